"""Tests for client configuration."""

import json

import pytest

from fayekit.bayeux.config import ClientConfig, load_client_config, validate_endpoint


class TestClientConfig:
    """Tests for ClientConfig validation."""

    def test_defaults(self):
        config = ClientConfig()
        assert config.endpoint is None
        assert config.connection_type == "long-polling"
        assert config.retry_interval == 5.0

    def test_localhost_http_allowed(self):
        assert validate_endpoint("http://localhost:8000/faye")
        assert validate_endpoint("http://127.0.0.1:8000/faye")

    def test_remote_http_rejected(self):
        with pytest.raises(ValueError, match="must use https"):
            ClientConfig(endpoint="http://example.com/faye")

    def test_non_http_rejected(self):
        with pytest.raises(ValueError, match="http"):
            ClientConfig(endpoint="ws://example.com/faye")

    def test_empty_endpoint_rejected(self):
        with pytest.raises(ValueError, match="endpoint is required"):
            validate_endpoint("")

    def test_invalid_timeouts_rejected(self):
        with pytest.raises(ValueError, match="request_timeout"):
            ClientConfig(request_timeout=0)
        with pytest.raises(ValueError, match="retry_interval"):
            ClientConfig(retry_interval=-1)

    def test_from_dict_ignores_unknown_keys(self):
        config = ClientConfig.from_dict({"endpoint": "https://example.com/faye", "colour": "blue"})
        assert config.endpoint == "https://example.com/faye"


class TestLoadClientConfig:
    """Tests for config file loading."""

    def write(self, path, data):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data) if not isinstance(data, str) else data)

    def test_no_files_gives_defaults(self, tmp_path):
        config = load_client_config(tmp_path, global_config=tmp_path / "missing.json")
        assert config == ClientConfig()

    def test_local_overrides_global(self, tmp_path):
        global_path = tmp_path / "global" / "bayeux.json"
        self.write(
            global_path,
            {"bayeux": {"endpoint": "https://global.example.com/faye", "retry_interval": 1.0}},
        )
        self.write(
            tmp_path / ".fayekit" / "bayeux.json",
            {"bayeux": {"endpoint": "https://local.example.com/faye"}},
        )

        config = load_client_config(tmp_path, global_config=global_path)

        assert config.endpoint == "https://local.example.com/faye"
        assert config.retry_interval == 1.0

    def test_unreadable_file_ignored(self, tmp_path):
        global_path = tmp_path / "bayeux.json"
        self.write(global_path, "{not json")
        assert load_client_config(global_config=global_path) == ClientConfig()

    def test_invalid_values_fall_back_to_defaults(self, tmp_path):
        global_path = tmp_path / "bayeux.json"
        self.write(global_path, {"bayeux": {"endpoint": "http://remote.example.com"}})
        assert load_client_config(global_config=global_path) == ClientConfig()
