"""Tests for the output formatter."""

import json

from kvassets.output import OutputFormatter


class TestOutputFormatter:
    """Tests for OutputFormatter modes."""

    def test_info_printed(self, capsys):
        OutputFormatter().info("Syncing: public")
        assert "Syncing: public" in capsys.readouterr().out

    def test_quiet_suppresses_info_not_errors(self, capsys):
        out = OutputFormatter(quiet=True)
        out.info("hidden")
        out.success("hidden too")
        out.error("shown [with brackets]")
        captured = capsys.readouterr()
        assert "hidden" not in captured.out
        assert "shown [with brackets]" in captured.err

    def test_json_mode_suppresses_text(self, capsys):
        out = OutputFormatter(json_output=True)
        out.info("hidden")
        out.output_json({"b": 1, "a": [1, 2]})
        assert json.loads(capsys.readouterr().out) == {"a": [1, 2], "b": 1}

    def test_summary_in_json_mode(self, capsys):
        out = OutputFormatter(json_output=True)
        out.print_summary("a.txt", [("Size", "5 B")], data={"size": 5})
        assert json.loads(capsys.readouterr().out) == {"size": 5}

    def test_summary_table(self, capsys):
        OutputFormatter().print_summary("a.txt", [("Size", "5 B")])
        text = capsys.readouterr().out
        assert "Size" in text
        assert "5 B" in text
