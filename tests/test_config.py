"""Tests for settings loading and logging setup."""

import logging

import pytest

from obsidian_syncer.config import GitSettings, SyncerSettings, configure_logging, load_settings
from obsidian_syncer.errors import ConfigError


class TestLoadSettings:
    """Tests for load_settings."""

    def test_full_file(self, tmp_path):
        path = tmp_path / "syncer.yml"
        path.write_text(
            "vault_path: notes/\n"
            "use_permalink: true\n"
            "use_excalidraw: true\n"
            "git:\n"
            "  repository: owner/site\n"
            "  branch: v4\n",
            encoding="utf-8",
        )

        settings = load_settings(path)

        assert settings.vault_path == "notes/"
        assert settings.use_permalink is True
        assert settings.use_excalidraw is True
        assert settings.git.repository == "owner/site"
        assert settings.git.branch == "v4"
        assert settings.content_folder == "content"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "syncer.yml"
        path.write_text("", encoding="utf-8")

        assert load_settings(path) == SyncerSettings()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings(tmp_path / "nope.yml")

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "syncer.yml"
        path.write_text("use_magic: true\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="use_magic"):
            load_settings(path)

    def test_unknown_git_key(self, tmp_path):
        path = tmp_path / "syncer.yml"
        path.write_text("git:\n  remote: origin\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="remote"):
            load_settings(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "syncer.yml"
        path.write_text("vault_path: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "syncer.yml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_settings(path)


class TestSettings:
    """Tests for the settings objects."""

    def test_get_by_name(self):
        settings = SyncerSettings(use_dataview=False)

        assert settings.get("use_dataview") is False
        assert settings.get("use_datacore") is True
        assert settings.get("missing", "fallback") == "fallback"

    def test_token_from_environment(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GH_TOKEN", "gh")

        assert GitSettings().resolved_token() == "gh"
        assert GitSettings(token="explicit").resolved_token() == "explicit"

    def test_no_token(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)

        assert GitSettings().resolved_token() is None

    def test_owner_and_name(self):
        git = GitSettings(repository="owner/site")

        assert git.owner == "owner"
        assert git.name == "site"


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.fixture
    def package_logger(self):
        logger = logging.getLogger("obsidian_syncer")
        saved = (logger.level, list(logger.handlers))
        logger.handlers.clear()
        yield logger
        logger.setLevel(saved[0])
        logger.handlers[:] = saved[1]

    def test_single_handler(self, package_logger):
        configure_logging("debug")
        configure_logging("info")

        assert package_logger.level == logging.INFO
        assert len(package_logger.handlers) == 1

    def test_numeric_level(self, package_logger):
        configure_logging(logging.WARNING)

        assert package_logger.level == logging.WARNING
