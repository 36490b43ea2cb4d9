"""Tests for gateway configuration loading and validation."""

import pytest

from linkcloud.config_loader import ConfigLoader, GatewayConfig
from linkcloud.exceptions import ConfigurationError
from linkcloud.streaming import DEFAULT_CHUNK_SIZE


@pytest.mark.unit
class TestGatewayConfigDefaults:
    """Test suite for configuration defaults."""

    def test_defaults_register_azure_provider(self):
        """Test that an empty configuration serves the azureblob provider."""
        config = ConfigLoader().load()

        assert [(p.name, p.type) for p in config.providers] == [("azureblob", "azure")]
        assert config.server.host == "127.0.0.1"
        assert config.server.port == 8080
        assert config.streaming.chunk_size == DEFAULT_CHUNK_SIZE
        assert config.logging.level == "INFO"

    def test_empty_mapping_uses_defaults(self):
        """Test that an empty YAML document is the default configuration."""
        assert ConfigLoader().load_from_dict(None) == GatewayConfig()


@pytest.mark.unit
class TestConfigLoaderFile:
    """Test suite for YAML file loading."""

    def test_loads_providers_and_server_settings(self, tmp_path):
        """Test a full YAML configuration."""
        config_file = tmp_path / "linkcloud.yaml"
        config_file.write_text(
            """
server:
  host: 0.0.0.0
  port: 9000
logging:
  level: debug
  json_format: false
streaming:
  chunk_size: 1048576
providers:
  - name: azureblob
    type: azure
  - name: local
    type: filesystem
    options:
      root: /srv/blobs
"""
        )

        config = ConfigLoader().load_from_file(str(config_file))

        assert config.server.port == 9000
        assert config.logging.level == "DEBUG"
        assert config.logging.json_format is False
        assert config.streaming.chunk_size == 1048576
        assert config.providers[1].options == {"root": "/srv/blobs"}

    def test_missing_file_raises_configuration_error(self, tmp_path):
        """Test a nonexistent path is reported clearly."""
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigLoader().load_from_file(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml_raises_configuration_error(self, tmp_path):
        """Test YAML syntax errors are wrapped."""
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("providers: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            ConfigLoader().load_from_file(str(config_file))


@pytest.mark.unit
class TestConfigValidation:
    """Test suite for pydantic validation errors."""

    def test_duplicate_provider_names_rejected(self):
        """Test provider names must be unique."""
        raw = {"providers": [{"name": "a", "type": "azure"}, {"name": "a", "type": "s3"}]}

        with pytest.raises(ConfigurationError, match="duplicate provider name"):
            ConfigLoader().load_from_dict(raw)

    @pytest.mark.parametrize(
        "raw",
        [
            {"server": {"port": 0}},
            {"logging": {"level": "LOUD"}},
            {"streaming": {"chunk_size": 0}},
            {"providers": [{"name": "", "type": "azure"}]},
        ],
    )
    def test_invalid_values_rejected(self, raw):
        """Test out-of-range values fail validation."""
        with pytest.raises(ConfigurationError):
            ConfigLoader().load_from_dict(raw)

    def test_non_mapping_root_rejected(self):
        """Test a YAML list at the root is rejected."""
        with pytest.raises(ConfigurationError, match="mapping"):
            ConfigLoader().load_from_dict(["providers"])


@pytest.mark.unit
class TestEnvVarSubstitution:
    """Test suite for ${VAR} substitution."""

    def test_substitutes_required_variable(self, monkeypatch):
        """Test ${VAR} is replaced with the environment value."""
        monkeypatch.setenv("BLOB_ROOT", "/data/blobs")
        raw = {"providers": [{"name": "local", "type": "filesystem", "options": {"root": "${BLOB_ROOT}"}}]}

        config = ConfigLoader().load_from_dict(raw)

        assert config.providers[0].options["root"] == "/data/blobs"

    def test_uses_default_when_unset_or_empty(self, monkeypatch):
        """Test ${VAR:-default} falls back for unset and empty values."""
        monkeypatch.delenv("LINKCLOUD_HOST", raising=False)
        monkeypatch.setenv("LINKCLOUD_LEVEL", "")

        config = ConfigLoader().load_from_dict(
            {"server": {"host": "${LINKCLOUD_HOST:-0.0.0.0}"}, "logging": {"level": "${LINKCLOUD_LEVEL:-WARNING}"}}
        )

        assert config.server.host == "0.0.0.0"
        assert config.logging.level == "WARNING"

    def test_missing_required_variable_raises(self, monkeypatch):
        """Test an unset ${VAR} without default is an error."""
        monkeypatch.delenv("AZURITE_URL", raising=False)

        with pytest.raises(ConfigurationError, match="AZURITE_URL"):
            ConfigLoader().load_from_dict(
                {"providers": [{"name": "dev", "type": "azure", "options": {"endpoint": "${AZURITE_URL}"}}]}
            )

    def test_double_dollar_is_literal(self):
        """Test $$ escapes a literal dollar sign."""
        config = ConfigLoader().load_from_dict({"server": {"host": "$${NOT_A_VAR}"}})

        assert config.server.host == "${NOT_A_VAR}"
