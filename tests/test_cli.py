"""
Tests for the enhancement-client command line.
"""
import base64
import json

import httpx
import pytest

from enhancement_client import cli
from enhancement_client.client import EnhancementClient
from enhancement_client.config import TransportConfig
from enhancement_client.preferences import EnhancementPreferences, PreferenceError


@pytest.fixture(autouse=True)
def shared_store(monkeypatch, store):
    """Run every command against one in-memory store, without logging setup."""
    monkeypatch.setattr(cli, "create_preference_store", lambda config: store)
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)
    return store


@pytest.fixture
def mock_server(monkeypatch):
    """Route the CLI's client to a mock transport; returns the seen requests."""
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"colorImgData": base64.b64encode(b"ENHANCED").decode()})

    monkeypatch.setattr(
        cli, "EnhancementClient",
        lambda: EnhancementClient(TransportConfig(timeout=5.0), transport=httpx.MockTransport(handler)),
    )
    return seen


class TestParseValue:
    """Test command line value conversion."""

    def test_booleans(self, preferences):
        """Test boolean spellings."""
        assert cli.parse_value(preferences.enabled(), "yes") is True
        assert cli.parse_value(preferences.enabled(), "OFF") is False
        with pytest.raises(PreferenceError):
            cli.parse_value(preferences.enabled(), "sometimes")

    def test_integers(self, preferences):
        """Test integer parsing."""
        assert cli.parse_value(preferences.denoiser_sigma(), "40") == 40
        with pytest.raises(PreferenceError):
            cli.parse_value(preferences.denoiser_sigma(), "forty")

    def test_strings_pass_through(self, preferences):
        """Test strings are kept as given."""
        assert cli.parse_value(preferences.base_url(), "https://x") == "https://x"


class TestSettingsCommands:
    """Test show/set/reset."""

    def test_show(self, capsys):
        """Test show lists all seven settings."""
        assert cli.main(["show"]) == 0
        output = capsys.readouterr().out
        for name in ("enabled", "base_url", "use_denoiser", "use_colorizer",
                     "use_upscaler", "denoiser_sigma", "use_server_cache"):
            assert name in output

    def test_set_and_reset(self, shared_store):
        """Test set writes through and reset restores the default."""
        preferences = EnhancementPreferences(shared_store)
        assert cli.main(["set", "denoiser_sigma", "120"]) == 0
        assert preferences.denoiser_sigma().get() == 120

        assert cli.main(["reset", "pref_enhancement_denoiser_sigma"]) == 0
        assert preferences.denoiser_sigma().get() == 25

    def test_set_out_of_range(self, shared_store, capsys):
        """Test sigma outside [0,150] is refused."""
        assert cli.main(["set", "denoiser_sigma", "151"]) == 2
        assert "Invalid value" in capsys.readouterr().err
        assert not EnhancementPreferences(shared_store).denoiser_sigma().is_set()

    def test_unknown_key(self, capsys):
        """Test unknown settings are reported."""
        assert cli.main(["set", "brightness", "3"]) == 2
        assert cli.main(["reset", "brightness"]) == 2

    def test_no_command_prints_help(self, capsys):
        """Test running without a command shows usage."""
        assert cli.main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()


class TestEnhanceCommand:
    """Test one-off enhancement."""

    def test_disabled_refuses(self, tmp_path, mock_server, png_bytes):
        """Test nothing is sent while enhancement is disabled."""
        image = tmp_path / "page.png"
        image.write_bytes(png_bytes)
        assert cli.main(["enhance", str(image), "--title", "T", "--chapter", "C"]) == 1
        assert mock_server == []

    def test_writes_enhanced_image(self, tmp_path, shared_store, mock_server, png_bytes):
        """Test the decoded result is written next to the input."""
        preferences = EnhancementPreferences(shared_store)
        preferences.enabled().set(True)
        preferences.base_url().set("https://enhancer.test")
        preferences.denoiser_sigma().set(5)

        image = tmp_path / "page.png"
        image.write_bytes(png_bytes)
        assert cli.main(["enhance", str(image), "--title", "T", "--chapter", "C", "--url", "https://cdn/p"]) == 0

        assert (tmp_path / "page_enhanced.png").read_bytes() == b"ENHANCED"
        assert len(mock_server) == 1
        assert mock_server[0]["imgName"] == "page.png"
        assert mock_server[0]["imgURL"] == "https://cdn/p"
        assert mock_server[0]["denoiseSigma"] == 5

    def test_force_with_base_url_override(self, tmp_path, mock_server, png_bytes):
        """Test --force and --base-url allow a call with default settings."""
        image = tmp_path / "page.png"
        image.write_bytes(png_bytes)
        output = tmp_path / "out.png"
        assert cli.main([
            "enhance", str(image), "--title", "T", "--chapter", "C",
            "--force", "--base-url", "https://enhancer.test", "--output", str(output),
        ]) == 0
        assert output.read_bytes() == b"ENHANCED"

    def test_missing_base_url_keeps_original(self, tmp_path, mock_server, png_bytes, capsys):
        """Test a configuration failure is reported and nothing is written."""
        image = tmp_path / "page.png"
        image.write_bytes(png_bytes)
        assert cli.main(["enhance", str(image), "--title", "T", "--chapter", "C", "--force"]) == 1
        assert "Original image kept" in capsys.readouterr().out
        assert not (tmp_path / "page_enhanced.png").exists()
        assert mock_server == []
