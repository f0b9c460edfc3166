"""Tests for configuration loading."""

from scoutsync.config import Config, load_config


class TestLoadConfig:
    """Tests for YAML loading and environment overrides."""

    def test_defaults(self):
        config = load_config(None)

        assert config == Config()
        assert config.remote.mutation_timeout_seconds == 5.0
        assert config.remote.read_timeout_seconds is None
        assert config.sync.max_team_pages == 200

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_config(tmp_path / "absent.yaml") == Config()

    def test_yaml_sections(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "remote:\n"
            "  base_url: https://scouting.example.org/api\n"
            "  mutation_timeout_seconds: 8\n"
            "store:\n"
            "  db_path: /tmp/scouting.db\n"
            "sync:\n"
            "  events_year: 2024\n"
            "  always_refresh_general_data: true\n"
        )

        config = load_config(path)

        assert config.remote.base_url == "https://scouting.example.org/api"
        assert config.remote.mutation_timeout_seconds == 8
        assert config.remote.api_token is None
        assert config.store.db_path == "/tmp/scouting.db"
        assert config.sync.events_year == 2024
        assert config.sync.always_refresh_general_data is True
        assert config.sync.max_team_pages == 200

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(path) == Config()

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("remote:\n  base_url: https://from-file\n")
        monkeypatch.setenv("SCOUTSYNC_REMOTE_URL", "https://from-env")
        monkeypatch.setenv("SCOUTSYNC_API_TOKEN", "token")
        monkeypatch.setenv("SCOUTSYNC_MUTATION_TIMEOUT", "2.5")
        monkeypatch.setenv("SCOUTSYNC_DB_PATH", "/data/db.sqlite")
        monkeypatch.setenv("SCOUTSYNC_EVENTS_YEAR", "2026")
        monkeypatch.setenv("SCOUTSYNC_ALWAYS_REFRESH", "yes")

        config = load_config(path)

        assert config.remote.base_url == "https://from-env"
        assert config.remote.api_token == "token"
        assert config.remote.mutation_timeout_seconds == 2.5
        assert config.store.db_path == "/data/db.sqlite"
        assert config.sync.events_year == 2026
        assert config.sync.always_refresh_general_data is True
