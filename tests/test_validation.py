"""Tests for ToolValidator."""

from termchat.tools.validation import ToolValidator
from tests.mock_tools import EchoTool, NoArgsTool


class TestToolValidator:
    def test_valid_arguments(self):
        assert ToolValidator.validate(EchoTool(), {"message": "hi"}) == (True, None)

    def test_missing_required(self):
        ok, msg = ToolValidator.validate(EchoTool(), {})
        assert not ok
        assert "message" in msg

    def test_wrong_type_reports_path(self):
        ok, msg = ToolValidator.validate(EchoTool(), {"message": 5})
        assert not ok
        assert msg.startswith("message:")

    def test_additional_properties_rejected(self):
        ok, msg = ToolValidator.validate(NoArgsTool(), {"surprise": 1})
        assert not ok
        assert "surprise" in msg

    def test_empty_arguments_for_no_arg_tool(self):
        assert ToolValidator.validate(NoArgsTool(), {}) == (True, None)
