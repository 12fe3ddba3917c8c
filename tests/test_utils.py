"""Test suite for utility functions, configuration and download state."""
import asyncio
import hashlib
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from modprofile import config
from modprofile.domain.models import DownloadProgress
from modprofile.events import MOD_DOWNLOAD_PROGRESS, EventHub
from modprofile.state.downloads import DownloadTracker, stage_text
from modprofile.utils.checksum import checksums_match, sha256_file


class TestChecksum:
    def test_sha256_file(self, tmp_path):
        path = tmp_path / "a.dll"
        path.write_bytes(b"x" * 200_000)
        assert sha256_file(path) == hashlib.sha256(b"x" * 200_000).hexdigest()

    def test_match_ignores_case_and_prefix(self):
        assert checksums_match("SHA256:ABCDEF", "abcdef")
        assert checksums_match(" abcdef ", "ABCDEF")
        assert not checksums_match("abcdef", "abcdee")


class TestConfig:
    @pytest.fixture
    def config_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config"
        monkeypatch.setattr(config, "CONFIG_FILE", path)
        monkeypatch.setattr(config, "CONFIG_DIR", tmp_path)
        for key in (config.CATALOG_URL_KEY, config.RUNTIME_URL_KEY, config.DATA_DIR_KEY):
            monkeypatch.delenv(key, raising=False)
        return path

    def test_defaults(self, config_file, tmp_path):
        assert config.get_catalog_url() == config.DEFAULT_CATALOG_URL
        assert config.get_runtime_url() == config.DEFAULT_RUNTIME_URL
        assert config.get_data_dir() == tmp_path
        assert config.get_legacy_registry_path() == tmp_path / "registry.json"

    def test_set_value_preserves_other_keys(self, config_file):
        config.set_value("OTHER", "1")
        config.set_catalog_url("https://catalog.example.com/")

        assert config.get_catalog_url() == "https://catalog.example.com"
        assert config.get_value("OTHER") == "1"
        assert config_file.read_text().splitlines() == [
            "OTHER=1",
            "MODPROFILE_CATALOG_URL=https://catalog.example.com/",
        ]

    def test_environment_overrides_file(self, config_file, monkeypatch, tmp_path):
        config.set_catalog_url("https://file.example.com")
        monkeypatch.setenv(config.CATALOG_URL_KEY, "https://env.example.com")
        monkeypatch.setenv(config.DATA_DIR_KEY, str(tmp_path / "data"))

        assert config.get_catalog_url() == "https://env.example.com"
        assert config.get_data_dir() == tmp_path / "data"
        assert config.get_runtime_cache_path() == tmp_path / "data" / "cache" / "bepinex.zip"

    def test_unreadable_lines_ignored(self, config_file):
        config_file.write_text("garbage\nMODPROFILE_RUNTIME_URL=https://x/y.zip\n")
        assert config.get_runtime_url() == "https://x/y.zip"


class TestDownloadTracker:
    def test_states_follow_events(self):
        hub = EventHub()
        tracker = DownloadTracker(hub)
        tracker.start()

        asyncio.run(hub.publish(MOD_DOWNLOAD_PROGRESS, DownloadProgress(mod_id="a", stage="downloading", downloaded=3)))
        assert tracker.is_downloading("a")
        assert tracker.get_state("a").progress.downloaded == 3

        asyncio.run(hub.publish(MOD_DOWNLOAD_PROGRESS, DownloadProgress(mod_id="a", stage="complete")))
        assert tracker.get_state("a").status == "complete"
        assert not tracker.is_downloading("a")

        tracker.close()
        assert hub.subscriber_count(MOD_DOWNLOAD_PROGRESS) == 0

    def test_error_and_clear(self):
        tracker = DownloadTracker(EventHub())
        tracker.set_error("a", "Checksum mismatch")
        tracker.set_error("b", "offline")

        assert tracker.get_state("a").message == "Checksum mismatch"
        tracker.clear("a")
        assert tracker.get_state("a") is None

    def test_stage_text(self):
        assert stage_text("verifying") == "Verifying checksum..."
        assert stage_text("complete") == "Complete"
        assert stage_text("unknown") == ""


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
