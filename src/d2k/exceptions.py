# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Exception hierarchy for the compose → Kubernetes pipeline.
"""
from typing import Optional


class D2KError(Exception):
    """
    Root of all errors raised by d2k.

    :param message: What went wrong.
    :param suggestion: Optional hint shown to the user after the message.
    """
    def __init__(self, message: str, suggestion: Optional[str] = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self):
        if self.suggestion:
            return f"{self.message}\n\nSuggestion: {self.suggestion}"
        return self.message


class StructuralError(D2KError):
    """
    The compose document cannot be turned into a model at all.

    Raised when the document is not a mapping, is not valid YAML, or the
    mandatory ``services`` section is missing or is not a mapping.
    """


class FieldParseError(D2KError):
    """
    A port or volume string violates its grammar.

    Unlike other optional fields, which silently fall back to defaults, a
    malformed raw shape aborts extraction.
    """
    def __init__(self, service: str, field: str, value: str, reason: str):
        self.service = service
        self.field = field
        self.value = value
        super().__init__(
            f"Service '{service}': invalid {field} entry '{value}': {reason}",
            suggestion=_FIELD_HINTS.get(field),
        )


class RenderError(D2KError):
    """
    A single manifest could not be rendered.

    Collected per manifest by the converter; never aborts sibling manifests.
    """
    def __init__(self, kind: str, name: str, reason: str):
        self.kind = kind
        self.name = name
        super().__init__(f"Failed to render {kind} '{name}': {reason}")


class ConfigError(D2KError):
    """Invalid conversion configuration."""


_FIELD_HINTS = {
    "ports": "Use the short syntax '[host:]container', e.g. '8080:80' or '80'.",
    "volumes": "Use the short syntax 'source:target[:ro]', e.g. 'data:/var/lib/data'.",
}
