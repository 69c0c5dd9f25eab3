"""
Tests for the jdkcache command-line interface.
"""

import logging

import pytest

from jdkcache import __version__
from jdkcache.cli.commands.acquire import build_request_and_settings
from jdkcache.cli.parser import CLI
from jdkcache.core.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def restore_logging():
    """CLI runs reconfigure the root logger; put it back afterwards."""
    root = logging.getLogger()
    level, handlers = root.level, root.handlers[:]
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def local_jdk(tmp_path):
    home = tmp_path / "jdk"
    (home / "bin").mkdir(parents=True)
    javac = home / "bin" / "javac"
    javac.write_text("#!/bin/sh\n")
    javac.chmod(0o755)
    return home


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_no_command_shows_help(self, capsys):
        """Test that running without command shows help."""
        result = CLI().run([])

        assert result == 1
        assert "usage:" in capsys.readouterr().out.lower()

    def test_version_flag(self, capsys):
        """Test --version flag."""
        with pytest.raises(SystemExit) as exc_info:
            CLI().run(["--version"])

        assert exc_info.value.code == 0
        assert f"jdkcache {__version__}" in capsys.readouterr().out

    def test_providers_command(self, capsys):
        """Test provider ids are listed."""
        assert CLI().run(["providers"]) == 0

        out = capsys.readouterr().out
        for provider_id in ("URL", "ADOPTIUM_API", "ADOPTIUM", "LIBERICA", "LOCAL"):
            assert provider_id in out


class TestAcquireParsing:
    """Test acquire command parsing."""

    def test_attributes(self, tmp_path):
        """Test repeated key=value attributes."""
        args = CLI().parse_args(
            ["acquire", "-p", "adoptium", "-a", "version=17*", "-a", "os=linux",
             "--cache-root", str(tmp_path), "--offline"]
        )

        assert args.command == "acquire"
        assert args.provider == "adoptium"
        assert args.attributes == [("version", "17*"), ("os", "linux")]
        assert args.cache_root == tmp_path
        assert args.offline is True

    def test_value_may_contain_equals(self):
        """Test only the first '=' separates key and value."""
        args = CLI().parse_args(["acquire", "-a", "url=https://h/x?a=b"])
        assert args.attributes == [("url", "https://h/x?a=b")]

    @pytest.mark.parametrize("bad", ["version", "=17"])
    def test_bad_attribute(self, bad):
        """Test malformed attributes are usage errors."""
        with pytest.raises(SystemExit) as exc_info:
            CLI().parse_args(["acquire", "-a", bad])
        assert exc_info.value.code == 2

    def test_config_file_merge(self, tmp_path):
        """Test command-line values win over the config file."""
        config_file = tmp_path / "jdkcache.yaml"
        config_file.write_text(
            f"""
settings:
  cache_root: {tmp_path / "from-file"}
  connection_timeout: 30
request:
  provider: corretto
  attributes:
    version: "17"
    arch: x64
"""
        )
        args = CLI().parse_args(
            ["acquire", "--config", str(config_file), "-a", "arch=aarch64",
             "--cache-root", str(tmp_path / "cli"), "--keep-archive"]
        )

        request, settings = build_request_and_settings(args)

        assert request.provider == "CORRETTO"
        assert request.attributes == {"version": "17", "arch": "aarch64"}
        assert settings.cache_root == tmp_path / "cli"
        assert settings.connection_timeout == 30
        assert settings.keep_archive is True

    def test_provider_required(self):
        """Test a provider is required."""
        args = CLI().parse_args(["acquire", "-a", "version=17"])
        with pytest.raises(ConfigurationError, match="No provider"):
            build_request_and_settings(args)


class TestAcquireCommand:
    """Test running the acquire command."""

    def test_local_prints_path(self, local_jdk, tmp_path, capsys):
        """Test the installed path is the only stdout output."""
        result = CLI().run(
            ["-q", "acquire", "-p", "local", "-a", f"path={local_jdk}",
             "--cache-root", str(tmp_path / "cache")]
        )

        assert result == 0
        assert capsys.readouterr().out.strip() == str(local_jdk)

    def test_offline_miss_exit_code(self, tmp_path, capsys, no_network):
        """Test library errors become exit code 1."""
        result = CLI().run(
            ["acquire", "-p", "corretto", "-a", "version=17",
             "--cache-root", str(tmp_path), "--offline"]
        )

        assert result == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Offline mode is active" in captured.err

    def test_missing_provider_exit_code(self, capsys):
        """Test configuration errors are reported, not raised."""
        assert CLI().run(["acquire"]) == 1
        assert "No provider given" in capsys.readouterr().err
