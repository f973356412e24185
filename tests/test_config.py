"""Unit tests for docarchive.engine.config — ArchiveConfig and loading."""

import pytest

from docarchive.engine.config import (
    BACKEND_URL_ENV,
    ArchiveConfig,
    AuthConfig,
    BackendConfig,
    LoggingConfig,
    get_config,
    load_config,
    reset_config,
)
from docarchive.engine.errors import DocArchiveConfigError


class TestArchiveConfig:
    """Test the ArchiveConfig Pydantic model."""

    def test_defaults(self):
        cfg = ArchiveConfig()
        assert cfg.app.environment == "dev"
        assert cfg.backend.url == "http://localhost:4943"
        assert cfg.backend.timeout_seconds is None
        assert cfg.auth.role_check_timeout_seconds == 15.0
        assert cfg.auth.role_check_retries == 2
        assert cfg.documents.page_size == 20
        assert cfg.documents.max_upload_size_mb == 50
        assert cfg.documents.allowed_mime_types == ["application/pdf", "image/png", "image/jpeg"]
        assert cfg.cache.stale_time_seconds == 30.0
        assert cfg.metrics.client_side is False
        assert cfg.logging.level == "INFO"

    def test_valid_environments(self):
        for env in ("dev", "staging", "prod"):
            cfg = ArchiveConfig(app={"environment": env})
            assert cfg.app.environment == env

    def test_invalid_environment(self):
        with pytest.raises(ValueError, match="dev/staging/prod"):
            ArchiveConfig(app={"environment": "test"})

    def test_backend_url_trailing_slash_stripped(self):
        assert BackendConfig(url="http://backend:8000/").url == "http://backend:8000"

    def test_backend_url_requires_http(self):
        with pytest.raises(ValueError, match="http"):
            BackendConfig(url="ftp://backend")

    def test_log_level_normalized(self):
        assert LoggingConfig(level="debug").level == "DEBUG"
        with pytest.raises(ValueError, match="unknown log level"):
            LoggingConfig(level="chatty")

    def test_page_size_must_be_positive(self):
        with pytest.raises(ValueError):
            ArchiveConfig(documents={"page_size": 0})

    def test_custom_auth(self):
        cfg = ArchiveConfig(auth=AuthConfig(role_check_timeout_seconds=5, role_check_retries=0))
        assert cfg.auth.role_check_timeout_seconds == 5
        assert cfg.auth.role_check_retries == 0


class TestLoadConfig:
    """Test loading docarchive.yaml from disk."""

    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_config(str(tmp_path / "docarchive.yaml"))
        assert cfg == ArchiveConfig()

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "docarchive.yaml"
        path.write_text(
            "backend:\n"
            "  url: https://archive.example.org/\n"
            "documents:\n"
            "  page_size: 50\n"
            "metrics:\n"
            "  client_side: true\n"
        )
        cfg = load_config(str(path))
        assert cfg.backend.url == "https://archive.example.org"
        assert cfg.documents.page_size == 50
        assert cfg.metrics.client_side is True

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "docarchive.yaml"
        path.write_text("")
        assert load_config(str(path)).backend.url == "http://localhost:4943"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "docarchive.yaml"
        path.write_text("backend: [unclosed\n")
        with pytest.raises(DocArchiveConfigError, match="Invalid YAML"):
            load_config(str(path))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "docarchive.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(DocArchiveConfigError, match="mapping"):
            load_config(str(path))

    def test_validation_errors_collected(self, tmp_path):
        path = tmp_path / "docarchive.yaml"
        path.write_text("app:\n  environment: qa\ndocuments:\n  page_size: 0\n")
        with pytest.raises(DocArchiveConfigError) as exc_info:
            load_config(str(path))
        assert "2 error(s)" in exc_info.value.message
        assert len(exc_info.value.context["errors"]) == 2

    def test_env_overrides_backend_url(self, tmp_path, monkeypatch):
        path = tmp_path / "docarchive.yaml"
        path.write_text("backend:\n  url: http://from-file\n  timeout_seconds: 3\n")
        monkeypatch.setenv(BACKEND_URL_ENV, "http://from-env:9000/")
        cfg = load_config(str(path))
        assert cfg.backend.url == "http://from-env:9000"
        assert cfg.backend.timeout_seconds == 3

    def test_env_override_without_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv(BACKEND_URL_ENV, "http://from-env")
        cfg = load_config(str(tmp_path / "missing.yaml"))
        assert cfg.backend.url == "http://from-env"

    def test_auto_discovers_parent_directory(self, tmp_path, monkeypatch):
        (tmp_path / "docarchive.yaml").write_text("documents:\n  page_size: 7\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        assert load_config().documents.page_size == 7


class TestGetConfig:
    def test_get_config_caches(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        first = get_config()
        assert get_config() is first

    def test_reset_config(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        first = get_config()
        reset_config()
        assert get_config() is not first
