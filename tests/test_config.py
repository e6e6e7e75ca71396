"""Tests for settings loading."""

import pytest

from prospection.config import Settings, load_config

ENV_VARS = [
    "INSEE_CLIENT_ID", "INSEE_CLIENT_SECRET", "INSEE_API_KEY", "BDNB_API_KEY",
    "IGN_API_KEY", "PAPPERS_API_KEY", "REDIS_URL", "CACHE_BACKEND",
    "PROSPECTION_ENABLED_SOURCES", "PROSPECTION_MIN_SCORE_DESTRATIFICATION",
    "PROSPECTION_MIN_SCORE_PRESSION", "PROSPECTION_MIN_SCORE_MATELAS_ISOLANTS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """Settings without any file or environment."""

    def test_defaults(self):
        settings = load_config()
        assert settings.missing_data_policy == "keep"
        assert settings.cache_backend == "memory"
        assert settings.threshold_for("destratification") == 0
        assert "pappers" not in settings.enabled_sources

    def test_pappers_needs_key_and_opt_in(self):
        settings = Settings()
        settings.enabled_sources.add("pappers")
        assert not settings.is_enabled("pappers")

        settings.sources["pappers"].api_key = "secret"
        assert settings.is_enabled("pappers")

    def test_sources_are_not_shared_between_instances(self):
        first, second = Settings(), Settings()
        first.sources["ban"].ttl = 1
        assert second.sources["ban"].ttl != 1


class TestYamlFile:
    """Values read from a config file."""

    def test_file_overrides(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "missing_data_policy: drop\n"
            "enabled_sources: [recherche, ban]\n"
            "min_score_thresholds:\n"
            "  pression: 40\n"
            "sources:\n"
            "  ban:\n"
            "    rate_points: 5\n"
            "    unknown_field: ignored\n"
            "  nowhere:\n"
            "    ttl: 1\n"
            "not_a_setting: 3\n"
        )

        settings = load_config(str(path))

        assert settings.missing_data_policy == "drop"
        assert settings.enabled_sources == {"recherche", "ban"}
        assert settings.threshold_for("pression") == 40
        assert settings.threshold_for("destratification") == 0
        assert settings.sources["ban"].rate_points == 5
        assert "nowhere" not in settings.sources

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_config(str(tmp_path / "absent.yaml"))
        assert settings.missing_data_policy == "keep"

    def test_invalid_policy(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("missing_data_policy: maybe\n")
        with pytest.raises(ValueError, match="missing_data_policy"):
            load_config(str(path))


class TestEnvironment:
    """Environment takes precedence over the file."""

    def test_credentials(self, monkeypatch):
        monkeypatch.setenv("INSEE_CLIENT_ID", "id")
        monkeypatch.setenv("INSEE_CLIENT_SECRET", "secret")
        monkeypatch.setenv("PAPPERS_API_KEY", "pk")

        settings = load_config()

        assert settings.sources["sirene"].client_id == "id"
        assert settings.sources["sirene"].client_secret == "secret"
        assert settings.sources["pappers"].api_key == "pk"

    def test_redis_url_selects_redis(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/0")
        settings = load_config()
        assert settings.cache_backend == "redis"
        assert settings.redis_url == "redis://cache:6379/0"

    def test_env_beats_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("min_score_thresholds:\n  destratification: 20\n")
        monkeypatch.setenv("PROSPECTION_MIN_SCORE_DESTRATIFICATION", "55")
        monkeypatch.setenv("PROSPECTION_ENABLED_SOURCES", "recherche, ban ,dpe")

        settings = load_config(str(path))

        assert settings.threshold_for("destratification") == 55
        assert settings.enabled_sources == {"recherche", "ban", "dpe"}
