"""Tests for YAML profile loading and profile-to-request translation.

Tests cover:
- load_runtime_config: YAML parsing, structure validation, ${ENV_VAR} substitution
- get_profile: lookup and error listing available profiles
- request_from_profile: profile values become base-request options
"""

import base64
from pathlib import Path

import httpx
import pytest

from webx import options as opt
from webx.config_loader import (
    ConfigError,
    get_profile,
    load_runtime_config,
    profile_options,
    request_from_profile,
)
from webx.models import AuthConfig, ProfileConfig


def write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "webx.yaml"
    path.write_text(text, encoding="utf-8")
    return path


FULL_CONFIG = """
profiles:
  prod:
    base_url: https://api.example.com/v1/
    headers:
      X-Tenant: acme
    args:
      format: json
    api_key: ${WEBX_TEST_KEY}
    auth:
      username: svc
      password: ${WEBX_TEST_PASSWORD}
    timeout: 5
    debug: true
  local:
    base_url: http://localhost:8080/
"""


class TestLoadRuntimeConfig:
    def test_full_config(self, tmp_path, monkeypatch):
        """Env vars are substituted in nested values."""
        monkeypatch.setenv("WEBX_TEST_KEY", "key-123")
        monkeypatch.setenv("WEBX_TEST_PASSWORD", "s3cret")

        config = load_runtime_config(write_config(tmp_path, FULL_CONFIG))

        prod = config.profiles["prod"]
        assert prod.base_url == "https://api.example.com/v1/"
        assert prod.headers == {"X-Tenant": "acme"}
        assert prod.args == {"format": "json"}
        assert prod.api_key == "key-123"
        assert prod.auth == AuthConfig(username="svc", password="s3cret")
        assert prod.timeout == 5
        assert prod.debug is True

        local = config.profiles["local"]
        assert local.headers == {}
        assert local.auth is None
        assert local.timeout is None

    def test_missing_env_var(self, tmp_path, monkeypatch):
        monkeypatch.delenv("WEBX_TEST_KEY", raising=False)
        monkeypatch.setenv("WEBX_TEST_PASSWORD", "x")
        with pytest.raises(ConfigError, match="WEBX_TEST_KEY"):
            load_runtime_config(write_config(tmp_path, FULL_CONFIG))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_runtime_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_runtime_config(write_config(tmp_path, "profiles: [unclosed"))

    def test_not_a_mapping(self, tmp_path):
        with pytest.raises(ConfigError, match="mapping"):
            load_runtime_config(write_config(tmp_path, "- just\n- a list\n"))

    def test_unknown_field_rejected(self, tmp_path):
        text = "profiles:\n  p:\n    base_url: http://h/\n    retries: 3\n"
        with pytest.raises(ConfigError, match="Invalid config structure"):
            load_runtime_config(write_config(tmp_path, text))

    def test_non_positive_timeout_rejected(self, tmp_path):
        text = "profiles:\n  p:\n    base_url: http://h/\n    timeout: 0\n"
        with pytest.raises(ConfigError):
            load_runtime_config(write_config(tmp_path, text))

    def test_empty_username_rejected(self, tmp_path):
        text = "profiles:\n  p:\n    base_url: http://h/\n    auth:\n      username: \"\"\n"
        with pytest.raises(ConfigError, match="username"):
            load_runtime_config(write_config(tmp_path, text))


class TestGetProfile:
    def test_found(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WEBX_TEST_KEY", "k")
        monkeypatch.setenv("WEBX_TEST_PASSWORD", "p")
        config = load_runtime_config(write_config(tmp_path, FULL_CONFIG))
        assert get_profile(config, "local").base_url == "http://localhost:8080/"

    def test_missing_lists_available(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WEBX_TEST_KEY", "k")
        monkeypatch.setenv("WEBX_TEST_PASSWORD", "p")
        config = load_runtime_config(write_config(tmp_path, FULL_CONFIG))
        with pytest.raises(ConfigError, match="Available: prod, local"):
            get_profile(config, "staging")


class TestRequestFromProfile:
    def test_profile_becomes_base_request(self):
        profile = ProfileConfig(
            base_url="https://api.example.com/v1/",
            headers={"X-Tenant": "acme"},
            args={"format": "json"},
            api_key="key-123",
            auth=AuthConfig(username="svc", password="pw"),
            timeout=5,
        )
        request = request_from_profile(profile).build("items", opt.append_arg("format", "xml"))

        assert request.url.path == "/v1/items"
        assert request.url.params.get_list("format") == ["json", "xml"]
        assert request.headers["X-Tenant"] == "acme"
        assert request.headers["X-API-Key"] == "key-123"
        expected = base64.b64encode(b"svc:pw").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert request.extensions["timeout"] == httpx.Timeout(5.0).as_dict()

    def test_extra_options_apply_after_profile(self):
        profile = ProfileConfig(base_url="http://h/", headers={"X-A": "1"})
        request = request_from_profile(profile, opt.replace_header("X-A", "2")).build("x")
        assert request.headers.get_list("X-A") == ["2"]

    def test_minimal_profile_has_no_options(self):
        assert profile_options(ProfileConfig(base_url="http://h/")) == []

    def test_debug_profile(self):
        options = profile_options(ProfileConfig(base_url="http://h/", debug=True))
        assert opt.resolve(options).debug is True
