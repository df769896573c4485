"""Argument checks against tool declarations."""

import pytest

from parley.tools.base import ToolDeclaration
from parley.tools.validation import ToolValidator
from tests.mock_tools import ECHO_TOOL, FLEXIBLE_TOOL, WEATHER_TOOL

OPTIONAL_ONLY = ToolDeclaration(
    name="optional",
    description="Only optional parameters.",
    parameters={"properties": {"note": {"type": "string"}}},
)


@pytest.mark.parametrize(
    "declaration, arguments",
    [
        (ECHO_TOOL, {"message": "hello"}),
        (WEATHER_TOOL, {"city": "Chengdu"}),
        (WEATHER_TOOL, {"city": "Chengdu", "days": 3}),
        (FLEXIBLE_TOOL, {"base_param": "x", "extra": "stuff", "count": 42}),
        (OPTIONAL_ONLY, {}),
    ],
)
def test_accepted(declaration, arguments):
    assert ToolValidator.validate(declaration, arguments) == (True, None)


@pytest.mark.parametrize(
    "declaration, arguments",
    [
        (ECHO_TOOL, {}),
        (ECHO_TOOL, {"message": 12345}),
        (WEATHER_TOOL, {"city": "Chengdu", "days": "three"}),
        # schemas without an explicit additionalProperties are closed
        (ECHO_TOOL, {"message": "hello", "rogue": "value"}),
    ],
)
def test_rejected(declaration, arguments):
    ok, err = ToolValidator.validate(declaration, arguments)
    assert ok is False
    assert err


def test_missing_field_named_in_message():
    _, err = ToolValidator.validate(WEATHER_TOOL, {"days": 2})
    assert "city" in err
