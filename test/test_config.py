"""Tests for config loading."""

import pytest

from fintrack.cache import CacheConfig
from fintrack.config import AppConfig, load_config
from fintrack.roles import Role


@pytest.fixture()
def valid_config_yaml(tmp_path):
    """Write a minimal valid config.yaml and return its path."""
    content = """\
cache_ttl: 120
cache_stale_time: 30
default_user_id: "user-7"
default_role: "viewer"
seed_transactions: false
seed_users: false
"""
    p = tmp_path / "config.yaml"
    p.write_text(content)
    return str(p)


class TestLoadConfig:
    def test_loads_valid_config(self, valid_config_yaml):
        config = load_config(valid_config_yaml)
        assert config.cache_ttl == 120
        assert config.cache_stale_time == 30
        assert config.default_user_id == "user-7"
        assert config.default_role == Role.viewer
        assert config.seed_users is False
        assert config.seed_transactions is False

    def test_defaults_applied(self, tmp_path):
        p = tmp_path / "config.yaml"
        p.write_text("")
        config = load_config(str(p))
        assert config.cache_ttl == 300
        assert config.cache_stale_time == 60
        assert config.default_user_id == "user-123"
        assert config.default_role == Role.user
        assert config.seed_transactions is True
        assert config.seed_users is True

    def test_env_overrides_secrets(self, valid_config_yaml, monkeypatch):
        monkeypatch.setenv("API_KEY", "my-secret")
        config = load_config(valid_config_yaml)
        assert config.api_key == "my-secret"

    def test_secrets_ignored_in_yaml(self, tmp_path, monkeypatch):
        monkeypatch.delenv("API_KEY", raising=False)
        p = tmp_path / "config.yaml"
        p.write_text('api_key: "from-yaml"\n')
        config = load_config(str(p))
        assert config.api_key is None

    def test_secrets_none_when_not_set(self, valid_config_yaml, monkeypatch):
        monkeypatch.delenv("API_KEY", raising=False)
        config = load_config(valid_config_yaml)
        assert config.api_key is None

    def test_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/config.yaml")

    def test_config_path_from_env(self, valid_config_yaml, monkeypatch):
        monkeypatch.setenv("CONFIG_PATH", valid_config_yaml)
        config = load_config()
        assert config.cache_ttl == 120

    def test_negative_ttl_raises(self, tmp_path):
        p = tmp_path / "config.yaml"
        p.write_text("cache_ttl: -1\n")
        with pytest.raises(Exception):  # ValidationError
            load_config(str(p))

    def test_stale_time_above_ttl_raises(self, tmp_path):
        p = tmp_path / "config.yaml"
        p.write_text("cache_ttl: 10\ncache_stale_time: 20\n")
        with pytest.raises(Exception, match="must not exceed"):
            load_config(str(p))

    def test_unknown_role_raises(self, tmp_path):
        p = tmp_path / "config.yaml"
        p.write_text('default_role: "superuser"\n')
        with pytest.raises(Exception):
            load_config(str(p))


class TestCacheConfigFromAppConfig:
    def test_cache_config(self):
        config = AppConfig(cache_ttl=300, cache_stale_time=60)
        assert config.cache_config() == CacheConfig(ttl=300, stale_time=60)
