"""Unit tests for saved settings and keyring lookup."""

import json
import pytest
from unittest.mock import patch

from ftpqueue.config.settings import AppSettings, SettingsManager
from ftpqueue.config.credentials import CredentialManager


class TestAppSettings:
    """Tests for AppSettings dataclass."""

    def test_default_values(self):
        """Test default settings values."""
        settings = AppSettings()
        assert settings.last_host == ""
        assert settings.last_port == 21
        assert settings.last_user == "anonymous"
        assert settings.keepalive_interval == 10.0
        assert settings.timeout == 30.0

    def test_to_dict(self):
        """Test converting settings to dictionary."""
        settings = AppSettings(last_host="ftp.example.com", last_port=2121)
        data = settings.to_dict()

        assert data["last_host"] == "ftp.example.com"
        assert data["last_port"] == 2121
        assert "keepalive_interval" in data

    def test_from_dict_ignores_unknown_keys(self):
        """Test that from_dict ignores unknown keys."""
        data = {
            "last_host": "ftp.example.com",
            "passive_mode": True,
            "window_width": 800
        }
        settings = AppSettings.from_dict(data)

        assert settings.last_host == "ftp.example.com"
        assert not hasattr(settings, "passive_mode")

    def test_from_dict_with_missing_keys(self):
        """Test that from_dict uses defaults for missing keys."""
        settings = AppSettings.from_dict({"last_user": "alice"})

        assert settings.last_user == "alice"
        assert settings.last_port == 21


class TestSettingsManager:
    """Tests for SettingsManager class."""

    @pytest.fixture
    def manager(self, temp_settings_file):
        """Create a SettingsManager with temp path."""
        return SettingsManager(config_path=temp_settings_file)

    def test_load_returns_defaults_when_file_missing(self, manager, temp_settings_file):
        """Test loading settings when file doesn't exist."""
        assert not temp_settings_file.exists()

        settings = manager.load()

        assert settings == AppSettings()

    def test_save_and_load(self, manager, temp_settings_file):
        """Test that saved settings are restored by a new manager."""
        manager.save(AppSettings(last_host="ftp.example.com", last_user="alice", timeout=12.5))

        with open(temp_settings_file, "r") as f:
            assert json.load(f)["last_user"] == "alice"

        loaded = SettingsManager(config_path=temp_settings_file).load()
        assert loaded.last_host == "ftp.example.com"
        assert loaded.timeout == 12.5

    def test_save_creates_parent_directories(self, tmp_path):
        """Test that save creates parent directories if needed."""
        nested_path = tmp_path / "deep" / "nested" / "settings.json"
        SettingsManager(config_path=nested_path).save(AppSettings())

        assert nested_path.exists()

    def test_load_handles_corrupted_file(self, manager, temp_settings_file):
        """Test loading settings from corrupted file returns defaults."""
        temp_settings_file.write_text("not valid json {{{")

        assert manager.load() == AppSettings()

    def test_load_handles_non_object_json(self, manager, temp_settings_file):
        """Test that a JSON list instead of an object falls back to defaults."""
        temp_settings_file.write_text("[1, 2, 3]")

        assert manager.load() == AppSettings()

    def test_reset_removes_file(self, manager, temp_settings_file):
        """Test reset removes the settings file."""
        manager.save(AppSettings(last_host="to.delete"))

        settings = manager.reset()

        assert settings == AppSettings()
        assert not temp_settings_file.exists()

    def test_update_modifies_specific_fields(self, manager):
        """Test update modifies only specified fields and ignores unknown ones."""
        updated = manager.update(last_host="ftp.example.com", nonexistent_field="ignored")

        assert updated.last_host == "ftp.example.com"
        assert updated.last_user == "anonymous"
        assert not hasattr(updated, "nonexistent_field")


class TestCredentialManager:
    """Tests for CredentialManager class."""

    @pytest.fixture
    def credential_manager(self):
        """Create a CredentialManager instance."""
        return CredentialManager()

    def test_make_key(self, credential_manager):
        """Test _make_key joins host and user."""
        assert credential_manager._make_key("ftp.example.com", "alice") == "ftp.example.com:alice"

    @patch("keyring.get_password")
    def test_get_password_found(self, mock_get, credential_manager):
        """Test retrieving an existing password."""
        mock_get.return_value = "my_secret"

        result = credential_manager.get_password("ftp.example.com", "alice")

        assert result == "my_secret"
        mock_get.assert_called_once_with("ftpqueue", "ftp.example.com:alice")

    @patch("keyring.get_password")
    def test_get_password_error(self, mock_get, credential_manager):
        """Test get_password returns None on keyring errors."""
        from keyring.errors import KeyringError
        mock_get.side_effect = KeyringError("Backend error")

        assert credential_manager.get_password("ftp.example.com", "alice") is None

    @patch("keyring.get_password")
    def test_has_password(self, mock_get, credential_manager):
        """Test has_password reflects the lookup result."""
        mock_get.return_value = "secret"
        assert credential_manager.has_password("ftp.example.com", "alice") is True

        mock_get.return_value = None
        assert credential_manager.has_password("ftp.example.com", "alice") is False
