"""
Utilities for translating compose names, durations and sizes into their
Kubernetes forms.
"""
import math
import re
from typing import Optional

_INVALID_NAME_CHARS = re.compile(r'[^a-z0-9-]+')
_DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(us|ms|s|m|h)')
_MEMORY = re.compile(r'^(\d+(?:\.\d+)?)\s*([bkmg]?)b?$', re.IGNORECASE)

_DURATION_SECONDS = {'us': 1e-6, 'ms': 1e-3, 's': 1, 'm': 60, 'h': 3600}
_MEMORY_SUFFIX = {'': '', 'b': '', 'k': 'Ki', 'm': 'Mi', 'g': 'Gi'}


def k8s_name(value: str, max_length: int = 63) -> str:
    """
    Turns an arbitrary compose identifier into a DNS-1123 label.

    Example: ``./My_Data`` -> ``my-data``.
    """
    name = _INVALID_NAME_CHARS.sub('-', value.lower()).strip('-')
    name = re.sub(r'-{2,}', '-', name)[:max_length].rstrip('-')
    return name or "unnamed"


def duration_seconds(value: Optional[str]) -> Optional[int]:
    """
    Parses a compose duration such as ``1m30s`` into whole seconds.

    Non-zero durations round up to at least one second. Returns None when the
    value is missing or not a duration.
    """
    if value is None:
        return None
    text = value.strip()
    if re.fullmatch(r'\d+', text):
        return int(text)
    parts = _DURATION_PART.findall(text)
    if not parts or ''.join(n + u for n, u in parts) != text:
        return None
    seconds = sum(float(n) * _DURATION_SECONDS[u] for n, u in parts)
    return int(math.ceil(seconds)) if seconds > 0 else 0


def memory_quantity(value: Optional[str]) -> Optional[str]:
    """
    Converts a compose memory size (``512m``, ``1g``, ``1024k``) into a
    Kubernetes quantity (``512Mi``, ``1Gi``, ``1024Ki``).

    Values that already look like Kubernetes quantities pass through.
    """
    if value is None:
        return None
    text = value.strip()
    if re.fullmatch(r'\d+(\.\d+)?[KMGT]i', text):
        return text
    match = _MEMORY.match(text)
    if not match:
        return text
    number, unit = match.groups()
    return f"{number}{_MEMORY_SUFFIX[unit.lower()]}"
