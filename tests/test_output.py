"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline, including the authorization URL
- Quiet and verbose modes
- print_table in all three modes
- Logging configuration
- Global instance management
"""

from __future__ import annotations

import json
import logging

import pytest
from rich.logging import RichHandler

from giteacli import output as output_module
from giteacli.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    configure_logging,
    get_output,
    reset_output,
    set_output,
)


@pytest.fixture()
def non_tty(monkeypatch):
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("giteacli.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True."""
    monkeypatch.setattr("giteacli.output._is_tty", lambda: True)
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("TERM", raising=False)


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty):
        assert OutputManager().format == OutputFormat.RICH

    def test_auto_resolves_to_plain_when_no_color(self, tty):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


class TestStreams:
    @pytest.mark.parametrize("method", ["info", "success", "warning", "error", "suggest"])
    def test_diagnostics_go_to_stderr(self, capfd, non_tty, method):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        getattr(mgr, method)("message text")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "message text" in captured.err

    def test_print_data_goes_to_stdout(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).print_data("data")
        captured = capfd.readouterr()
        assert captured.out == "data\n"
        assert captured.err == ""

    def test_print_url_on_stderr_even_when_quiet(self, capfd, non_tty):
        url = "https://g.example/login/oauth/authorize?client_id=abc&state=S1"
        OutputManager(format=OutputFormat.PLAIN, quiet=True).print_url(url)
        captured = capfd.readouterr()
        assert captured.out == ""
        assert captured.err == url + "\n"


class TestQuietAndVerbose:
    @pytest.mark.parametrize("method", ["info", "success", "suggest"])
    def test_quiet_suppresses(self, capfd, non_tty, method):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        getattr(mgr, method)("hidden")
        assert capfd.readouterr().err == ""

    @pytest.mark.parametrize("method", ["warning", "error"])
    def test_quiet_keeps(self, capfd, non_tty, method):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        getattr(mgr, method)("visible")
        assert "visible" in capfd.readouterr().err

    def test_debug_hidden_by_default(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).debug("dbg")
        assert capfd.readouterr().err == ""

    def test_debug_shown_with_verbose(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True).debug("dbg")
        assert "[debug] dbg" in capfd.readouterr().err


class TestStructuredOutput:
    def test_format_response_json(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).format_response({"user": "alice"})
        assert json.loads(capfd.readouterr().out) == {"user": "alice"}

    def test_format_response_plain(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).format_response({"user": "alice", "url": "u"})
        assert capfd.readouterr().out == "user\talice\nurl\tu\n"

    def test_table_json(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_table(["Name", "URL"], [["w", "https://g"]])
        assert json.loads(capfd.readouterr().out) == [{"Name": "w", "URL": "https://g"}]

    def test_table_plain(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).print_table(["Name", "URL"], [["w", "https://g"]])
        assert capfd.readouterr().out == "Name\tURL\nw\thttps://g\n"

    def test_table_rich(self, capfd, non_tty):
        OutputManager(format=OutputFormat.RICH).print_table(["Name"], [["work"]], title="Logins")
        out = capfd.readouterr().out
        assert "work" in out
        assert "Logins" in out


class TestConfigureLogging:
    def test_default_level_is_warning(self):
        configure_logging()
        logger = logging.getLogger("giteacli")
        assert logger.level == logging.WARNING
        assert logger.propagate is False
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)

    def test_verbose_enables_debug_and_replaces_handler(self):
        configure_logging()
        configure_logging(verbose=True)
        logger = logging.getLogger("giteacli")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1


class TestGlobalInstance:
    def test_get_output_creates_default(self):
        reset_output()
        assert isinstance(get_output(), OutputManager)

    def test_set_output_is_used_by_helpers(self, capfd, non_tty):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True))
        output_module.error("boom")
        output_module.print_url("https://g.example")
        err = capfd.readouterr().err
        assert "Error: boom" in err
        assert "https://g.example" in err

    def test_data_helpers_write_stdout(self, capfd, non_tty):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True))
        output_module.print_data("work")
        output_module.format_response({"user": "alice"})
        output_module.print_table(["Name"], [["work"]])
        output_module.warning("careful")
        captured = capfd.readouterr()
        assert captured.out == "work\nuser\talice\nName\nwork\n"
        assert "careful" in captured.err
