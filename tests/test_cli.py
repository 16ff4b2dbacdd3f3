"""Tests for CLI module.

Tests the command-line interface for configuration and URL debugging.
"""

from __future__ import annotations

import contextlib
import re
import sys

from io import StringIO
from pathlib import Path
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

from pysocialite.cli import main


GITHUB_TOML = """
[drivers.github]
client_id = "cli-id"
client_secret = "cli-secret"
redirect = "https://app/cb"
scopes = ["read", "write"]
authorize_url = "https://provider.test/oauth/authorize"
token_url = "https://provider.test/oauth/token"
userinfo_url = "https://api.provider.test/user"
"""


def _run(*argv: str) -> tuple[int, str, str]:
    with (
        patch("sys.stdout", new_callable=StringIO) as stdout,
        patch("sys.stderr", new_callable=StringIO) as stderr,
    ):
        code = main(list(argv))
    return code, stdout.getvalue(), stderr.getvalue()


class TestMainEntryPoint:
    """Tests for CLI main entry point."""

    def test_no_args_prints_help_text(self) -> None:
        code, out, _ = _run()
        assert code == 0
        assert "usage:" in out.lower()
        assert "config" in out
        assert "url" in out

    def test_help_flag_shows_usage(self) -> None:
        with (
            patch.object(sys, "argv", ["pysocialite", "--help"]),
            patch("sys.stdout", new_callable=StringIO) as stdout,
            contextlib.suppress(SystemExit),
        ):
            main()
        assert "pysocialite" in stdout.getvalue()


class TestConfigCommand:
    """Tests for the config command."""

    def test_show(self, tmp_path: Path) -> None:
        (tmp_path / "pysocialite.toml").write_text(GITHUB_TOML, encoding="utf-8")
        code, out, _ = _run("config", "--show")
        assert code == 0
        assert "Driver: github" in out
        assert "cli-secret" not in out

    def test_toml(self, tmp_path: Path) -> None:
        (tmp_path / "pysocialite.toml").write_text(GITHUB_TOML, encoding="utf-8")
        code, out, _ = _run("config", "--toml")
        assert code == 0
        assert "[drivers.github]" in out
        assert "cli-secret" not in out

    def test_output_file(self, tmp_path: Path) -> None:
        target = tmp_path / "out.toml"
        code, out, _ = _run("config", "--toml", "--output", str(target))
        assert code == 0
        assert str(target) in out
        assert "[http]" in target.read_text(encoding="utf-8")


class TestUrlCommand:
    """Tests for the url command."""

    def test_prints_url_and_state(self, tmp_path: Path) -> None:
        (tmp_path / "pysocialite.toml").write_text(GITHUB_TOML, encoding="utf-8")
        code, out, _ = _run("url", "github")
        assert code == 0
        url, state_line = out.strip().splitlines()
        params = parse_qs(urlparse(url).query)
        assert params["client_id"] == ["cli-id"]
        assert params["scope"] == ["read,write"]
        match = re.fullmatch(r"state: ([0-9a-f]{40})", state_line)
        assert match
        assert params["state"] == [match.group(1)]

    def test_redirect_override(self, tmp_path: Path) -> None:
        (tmp_path / "pysocialite.toml").write_text(GITHUB_TOML, encoding="utf-8")
        _, out, _ = _run("url", "github", "--redirect", "http://localhost:9000/cb")
        params = parse_qs(urlparse(out.splitlines()[0]).query)
        assert params["redirect_uri"] == ["http://localhost:9000/cb"]

    def test_stateless(self, tmp_path: Path) -> None:
        (tmp_path / "pysocialite.toml").write_text(GITHUB_TOML, encoding="utf-8")
        code, out, _ = _run("url", "github", "--stateless")
        assert code == 0
        lines = out.strip().splitlines()
        assert len(lines) == 1
        assert "state" not in parse_qs(urlparse(lines[0]).query)

    def test_unknown_driver(self) -> None:
        code, out, err = _run("url", "nope")
        assert code == 1
        assert out == ""
        assert "credentials are not provided" in err
