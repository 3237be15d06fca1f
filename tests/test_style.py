"""Tests for terminal styling."""

import pytest

from relaycode import style


@pytest.fixture
def no_color(monkeypatch):
    monkeypatch.setattr(style, "USE_COLOR", False)


@pytest.fixture
def color(monkeypatch):
    monkeypatch.setattr(style, "USE_COLOR", True)


class TestPaint:
    """Tests for the color helpers."""

    @pytest.mark.parametrize("helper", [style.dim, style.bold, style.red, style.green, style.yellow, style.cyan])
    def test_plain_text_without_color(self, no_color, helper):
        """Test helpers add nothing when color is off."""
        assert helper("Finished check.md") == "Finished check.md"

    def test_escape_codes_with_color(self, color):
        """Test helpers wrap text in escape sequences when color is on."""
        assert style.red("failed") == "\033[31mfailed\033[0m"
        assert style.dim("note") == "\033[90mnote\033[0m"

    def test_unknown_style(self, color):
        """Test a style name without a code is a programming error."""
        with pytest.raises(KeyError):
            style.paint("x", "magenta")


class TestSupportsColor:
    """Tests for the color decision made at import."""

    def test_force_color(self, monkeypatch):
        monkeypatch.setenv("FORCE_COLOR", "1")
        monkeypatch.setenv("NO_COLOR", "1")

        assert style._supports_color() is True

    def test_no_color(self, monkeypatch):
        monkeypatch.delenv("FORCE_COLOR", raising=False)
        monkeypatch.setenv("NO_COLOR", "1")

        assert style._supports_color() is False

    def test_captured_stdout_has_no_color(self, monkeypatch, capsys):
        """Test output that is not a terminal stays plain."""
        monkeypatch.delenv("FORCE_COLOR", raising=False)
        monkeypatch.delenv("NO_COLOR", raising=False)

        assert style._supports_color() is False


class TestDebugBlock:
    """Tests for debug_block."""

    def test_json_body(self, no_color):
        """Test data is dumped as indented JSON under its label."""
        assert style.debug_block("TOOL CALL", {"name": "read_file"}) == (
            '[DEBUG TOOL CALL]\n{\n  "name": "read_file"\n}'
        )

    def test_string_body(self, no_color):
        """Test strings are shown as they are."""
        assert style.debug_block("RAW", "hello") == "[DEBUG RAW]\nhello"

    def test_circular_body(self, no_color):
        """Test data JSON cannot encode falls back to str()."""
        data = {}
        data["self"] = data

        assert style.debug_block("LOOP", data) == "[DEBUG LOOP]\n{'self': {...}}"
