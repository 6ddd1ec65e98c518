"""
Tests for JSON config loading and settings validation.
"""

import json
import shutil
import tempfile
from pathlib import Path

import pytest

from sheetsync.domain.errors import ConfigError
from sheetsync.domain.settings import SyncSettings, TrackerSettings
from sheetsync.infrastructure.config_loader import ConfigLoader

EXAMPLE_CONFIG = Path(__file__).parents[1] / "config" / "sync_config.example.json"


class TestConfigLoader:
    """Test cases for ConfigLoader."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config_dir = self.temp_dir / "config"
        self.config_dir.mkdir()
        self.loader = ConfigLoader(self.config_dir)

    def teardown_method(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir)

    def write(self, name, data):
        path = self.config_dir / name
        path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
        return path

    def test_example_config_is_valid(self):
        """The shipped example parses and validates."""
        settings = self.loader.load_settings(str(EXAMPLE_CONFIG))
        assert settings.sheet_name == "Persons"
        assert settings.field_options["custom_fields.interests"].kind == "set"
        assert settings.tracker.debounce_seconds == 5

    def test_defaults_fill_missing_sections(self):
        self.write("sync_config.json", {"sheet_name": "Deals"})
        settings = self.loader.load_settings()
        assert settings.sheet_name == "Deals"
        assert settings.columns.tracking_label == "Sync Status"
        assert settings.tracker.undo_cooldown_seconds == 10

    def test_missing_file(self):
        with pytest.raises(ConfigError, match="not found"):
            self.loader.load_settings()

    def test_empty_file(self):
        self.write("sync_config.json", "   ")
        with pytest.raises(ConfigError, match="empty"):
            self.loader.load_settings()

    def test_invalid_json_reports_position(self):
        self.write("sync_config.json", '{"sheet_name": }')
        with pytest.raises(ConfigError, match="line 1"):
            self.loader.load_settings()

    def test_root_must_be_object(self):
        self.write("sync_config.json", "[1, 2]")
        with pytest.raises(ConfigError, match="JSON object"):
            self.loader.load_settings()

    def test_out_of_range_value(self):
        self.write("sync_config.json", {"tracker": {"debounce_seconds": -1}})
        with pytest.raises(ConfigError, match="debounce_seconds"):
            self.loader.load_settings()

    def test_token_file(self):
        (self.temp_dir / "secrets").mkdir()
        (self.temp_dir / "secrets" / "token.json").write_text('{"api_token": "abc"}')
        self.write("sync_config.json", {"api": {"token_file": "secrets/token.json"}})

        settings = self.loader.load_settings()

        assert settings.api.api_token == "abc"

    def test_inline_token_wins(self):
        self.write(
            "sync_config.json",
            {"api": {"api_token": "inline", "token_file": "missing.json"}},
        )
        assert self.loader.load_settings().api.api_token == "inline"

    def test_validate_config(self):
        assert not self.loader.validate_config()
        self.write("sync_config.json", {})
        assert self.loader.validate_config()


class TestSettings:
    def test_markers_and_domains_lowercased(self):
        settings = SyncSettings.model_validate(
            {
                "tracker": {"metadata_markers": [" Last ", ""]},
                "normalizer": {"email_domain_corrections": {"GMAIL.COMM": "Gmail.com"}},
            }
        )
        assert settings.tracker.metadata_markers == ["last"]
        assert settings.normalizer.email_domain_corrections == {"gmail.comm": "gmail.com"}

    def test_blank_tracking_label_rejected(self):
        with pytest.raises(ValueError):
            SyncSettings.model_validate({"columns": {"tracking_label": "  "}})

    def test_defaults(self):
        tracker = TrackerSettings()
        assert tracker.debounce_seconds == 5.0
        assert tracker.metadata_min_filled_cells == 3
