"""
Compose-style variable interpolation for raw compose text.
"""
import logging
import re
from typing import Dict, List

logger = logging.getLogger(__name__)

# $$ | ${VAR} | ${VAR:-default} | ${VAR-default} | ${VAR:+alt} | ${VAR+alt}
_PATTERN = re.compile(r'\$\$|\$\{([A-Za-z_][A-Za-z0-9_]*)(?:(:?)([-+])([^}]*))?\}')


class EnvironmentInterpolator:
    """
    Substitutes ``${VAR}`` references the way docker compose does.

    With a colon (``:-``, ``:+``) an empty variable counts as unset; without
    one only a missing variable does. ``$$`` is a literal dollar sign.
    """
    @staticmethod
    def interpolate(template: str, context: Dict[str, str], strict: bool = False) -> str:
        """
        Interpolates variables in the template using the provided context.

        :param template: Text containing ``${VAR}`` placeholders.
        :param context: Variable values.
        :param strict: Raise instead of substituting an empty string for a
            plain ``${VAR}`` that is not set.
        :return: The interpolated text.
        :raises KeyError: In strict mode, if a plain reference is unset.
        """
        missing: List[str] = []

        def replace(match):
            if match.group(0) == '$$':
                return '$'
            name, colon, modifier, alt = match.groups()
            value = context.get(name)
            unset = value is None or (colon == ':' and value == '')

            if modifier == '-':
                return alt if unset else value
            if modifier == '+':
                return '' if unset else alt
            if value is None:
                if strict:
                    raise KeyError(f"Variable {name} not found in context")
                missing.append(name)
                return ''
            return value

        result = _PATTERN.sub(replace, template)
        for name in sorted(set(missing)):
            logger.warning("Variable %s is not set, substituting an empty string", name)
        return result
