import logging
import pytest
from d2k.UTILS.string_interpolation import EnvironmentInterpolator


def test_interpolate_plain_and_defaults():
    context = {'NAME': 'app', 'EMPTY': ''}
    assert EnvironmentInterpolator.interpolate("${NAME}-x", context) == "app-x"
    assert EnvironmentInterpolator.interpolate("${MISSING:-fallback}", context) == "fallback"
    assert EnvironmentInterpolator.interpolate("${EMPTY:-fallback}", context) == "fallback"
    assert EnvironmentInterpolator.interpolate("${EMPTY-fallback}", context) == ""
    assert EnvironmentInterpolator.interpolate("${MISSING-fallback}", context) == "fallback"


def test_interpolate_alternate_values():
    context = {'SET': '1', 'EMPTY': ''}
    assert EnvironmentInterpolator.interpolate("${SET:+on}", context) == "on"
    assert EnvironmentInterpolator.interpolate("${EMPTY:+on}", context) == ""
    assert EnvironmentInterpolator.interpolate("${EMPTY+on}", context) == "on"
    assert EnvironmentInterpolator.interpolate("${MISSING+on}", context) == ""


def test_escaped_dollar():
    assert EnvironmentInterpolator.interpolate("pa$$word ${X}", {'X': 'y'}) == "pa$word y"
    assert EnvironmentInterpolator.interpolate("$$${X}", {'X': 'y'}) == "$y"


def test_unset_variable_becomes_empty_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="d2k.UTILS.string_interpolation"):
        result = EnvironmentInterpolator.interpolate("a${B}c${B}${A}", {})
    assert result == "ac"
    warnings = [r.getMessage() for r in caplog.records]
    assert warnings == [
        "Variable A is not set, substituting an empty string",
        "Variable B is not set, substituting an empty string",
    ]


def test_strict_mode_raises():
    with pytest.raises(KeyError):
        EnvironmentInterpolator.interpolate("${NOPE}", {}, strict=True)


def test_text_without_references_is_unchanged():
    text = "price: $5 and {braces} and $NAME"
    assert EnvironmentInterpolator.interpolate(text, {'NAME': 'x'}) == text
