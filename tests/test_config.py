"""Tests for settings validation and console helpers."""

import io

import pytest
from pydantic import ValidationError

from config import IsoConfig, SummarizerConfig, load_config
from core.errors import ConfigurationError
from core.console import Spinner, human_size


class TestIsoConfig:
    def test_defaults(self):
        iso = IsoConfig()

        assert iso.arch == "amd64"
        assert iso.iso_type == "netinst"
        assert iso.iso_dir == "iso-cd"
        assert iso.mirror_roots[0] == "https://cdimage.debian.org/debian-cd"
        assert len(iso.mirror_roots) == 6

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("TOOLKIT_ISO_ARCH", "arm64")
        monkeypatch.setenv("TOOLKIT_ISO_ISO_TYPE", "DVD-1")

        iso = IsoConfig()

        assert iso.arch == "arm64"
        assert iso.iso_dir == "iso-dvd"

    def test_invalid_iso_type(self):
        with pytest.raises(ValidationError):
            IsoConfig(iso_type="live")

    def test_empty_mirror_list(self):
        with pytest.raises(ValidationError):
            IsoConfig(mirror_roots=[])


class TestSummarizerConfig:
    def test_model_follows_provider(self):
        assert SummarizerConfig().model == "claude-opus-4-1-20250805"
        assert SummarizerConfig(provider="openai").model == "gpt-4o-mini"

    def test_invalid_provider(self):
        with pytest.raises(ValidationError):
            SummarizerConfig(provider="mystery")


class TestLoadConfig:
    def test_environment_values_applied(self, monkeypatch):
        monkeypatch.setenv("TOOLKIT_DEBUG", "true")
        monkeypatch.setenv("TOOLKIT_SUMMARY_DEFAULT_LANGUAGE", "de")

        app_config = load_config()

        assert app_config.debug is True
        assert app_config.summary.default_language == "de"

    def test_invalid_environment_value(self, monkeypatch):
        monkeypatch.setenv("TOOLKIT_ISO_ISO_TYPE", "bogus")

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config()


class _TtyBuffer(io.StringIO):
    def isatty(self):
        return True


class TestConsole:
    @pytest.mark.parametrize("num_bytes,expected", [
        (None, "?"),
        (512, "512B"),
        (2048, "2.0K"),
        (5 * 1024 * 1024, "5.0M"),
        (int(3.7 * 1024 ** 3), "3.7G"),
    ])
    def test_human_size(self, num_bytes, expected):
        assert human_size(num_bytes) == expected

    def test_spinner_silent_without_terminal(self):
        stream = io.StringIO()

        with Spinner("Working...", stream=stream) as spinner:
            assert spinner.enabled is False

        assert stream.getvalue() == ""

    def test_spinner_thread_stopped_on_exit(self):
        stream = _TtyBuffer()

        with Spinner("Working...", interval=0.01, stream=stream) as spinner:
            assert spinner._thread is not None

        assert spinner._thread is None
        assert stream.getvalue().endswith("\r\033[K")
