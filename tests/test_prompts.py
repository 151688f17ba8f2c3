"""Tests for interactive prompts."""

from unittest.mock import patch

import pytest
from rich.console import Console

from rabbithole.prompts import Choice, ConsolePrompter, parse_selection

CHOICES = [
    Choice("express 4.18.0 -> 5.0.0", "express", checked=False),
    Choice("lodash 4.17.20 -> 4.17.21", "lodash", checked=True),
    Choice("vitest 1.0.0 -> 1.6.0", "vitest", checked=True),
]


class TestParseSelection:
    """Tests for parse_selection."""

    def test_empty_keeps_preselection(self):
        assert parse_selection("", CHOICES) == ["lodash", "vitest"]

    def test_all(self):
        assert parse_selection(" ALL ", CHOICES) == ["express", "lodash", "vitest"]

    def test_none(self):
        assert parse_selection("none", CHOICES) == []

    def test_numbers(self):
        assert parse_selection("3, 1", CHOICES) == ["express", "vitest"]

    def test_range(self):
        assert parse_selection("1-2", CHOICES) == ["express", "lodash"]

    def test_duplicates_collapse(self):
        assert parse_selection("1 1-2 2", CHOICES) == ["express", "lodash"]

    @pytest.mark.parametrize("answer", ["0", "4", "2-9", "3-1", "abc", "1-", "-2"])
    def test_invalid(self, answer):
        assert parse_selection(answer, CHOICES) is None


@pytest.fixture
def prompter():
    return ConsolePrompter(Console(record=True, width=100))


class TestConsolePrompter:
    """Tests for ConsolePrompter with rich prompts mocked."""

    @patch("rabbithole.prompts.Confirm.ask", return_value=True)
    def test_confirm(self, mock_ask, prompter):
        assert prompter.confirm("Retry?", default=False) is True
        assert mock_ask.call_args.kwargs["default"] is False

    @patch("rabbithole.prompts.Confirm.ask", side_effect=KeyboardInterrupt)
    def test_confirm_cancelled(self, mock_ask, prompter):
        assert prompter.confirm("Retry?") is None

    @patch("rabbithole.prompts.Confirm.ask", side_effect=EOFError)
    def test_confirm_end_of_input(self, mock_ask, prompter):
        assert prompter.confirm("Retry?") is None

    @patch("rabbithole.prompts.Prompt.ask", return_value="")
    def test_select_many_defaults(self, mock_ask, prompter):
        assert prompter.select_many("Select packages:", CHOICES) == ["lodash", "vitest"]
        output = prompter.console.export_text()
        assert "Select packages:" in output
        assert "express 4.18.0 -> 5.0.0" in output

    @patch("rabbithole.prompts.Prompt.ask", side_effect=["what", "1"])
    def test_select_many_reprompts_on_bad_answer(self, mock_ask, prompter):
        assert prompter.select_many("Select:", CHOICES) == ["express"]
        assert mock_ask.call_count == 2
        assert "Could not understand" in prompter.console.export_text()

    @patch("rabbithole.prompts.Prompt.ask", side_effect=KeyboardInterrupt)
    def test_select_many_cancelled(self, mock_ask, prompter):
        assert prompter.select_many("Select:", CHOICES) is None
