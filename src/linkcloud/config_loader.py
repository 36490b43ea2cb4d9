"""Gateway configuration loading with Pydantic validation."""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from linkcloud.exceptions import ConfigurationError
from linkcloud.streaming import DEFAULT_CHUNK_SIZE

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ServerConfig(BaseModel):
    """HTTP listener settings."""

    host: str = Field("127.0.0.1", description="Interface to bind")
    port: int = Field(8080, ge=1, le=65535, description="TCP port to listen on")


class LoggingConfig(BaseModel):
    """Logging settings passed to configure_logging()."""

    level: str = Field("INFO", description="Log level")
    json_format: bool = Field(True, description="Emit JSON log lines")
    log_file: Optional[str] = Field(None, description="Optional log file path")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is one of the standard names."""
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"level must be one of {LOG_LEVELS}, got '{v}'")
        return level


class StreamingConfig(BaseModel):
    """Blob transfer settings."""

    chunk_size: int = Field(DEFAULT_CHUNK_SIZE, gt=0, description="Bytes per backend transfer chunk")


class ProviderConfig(BaseModel):
    """One entry of the provider registry."""

    name: str = Field(..., min_length=1, description="Provider name used in request paths")
    type: str = Field(..., description="Backend type (azure, s3, s3-compatible, filesystem)")
    options: Dict[str, Any] = Field(default_factory=dict, description="Backend constructor options")


def default_providers() -> List[ProviderConfig]:
    return [ProviderConfig(name="azureblob", type="azure")]


class GatewayConfig(BaseModel):
    """Root configuration model."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    streaming: StreamingConfig = Field(default_factory=StreamingConfig)
    providers: List[ProviderConfig] = Field(default_factory=default_providers)

    @field_validator("providers")
    @classmethod
    def validate_unique_names(cls, v: List[ProviderConfig]) -> List[ProviderConfig]:
        """Validate provider names are unique."""
        seen = set()
        for provider in v:
            if provider.name in seen:
                raise ValueError(f"duplicate provider name '{provider.name}'")
            seen.add(provider.name)
        return v


class ConfigLoader:
    """Load and validate gateway configuration from YAML files."""

    def _substitute_env_vars(self, value: Any) -> Any:
        """
        Recursively substitute environment variables in configuration values.

        Supports patterns:
        - ${VAR} - Replace with environment variable value (raises error if not set)
        - ${VAR:-default} - Replace with VAR or use default if not set
        - $$ - Escape sequence for literal $

        Raises:
            ConfigurationError: If required environment variable is not set
        """
        if isinstance(value, str):
            result = value.replace("$$", "\x00")  # Temporary placeholder

            def replace_var(match: re.Match[str]) -> str:
                var_with_default = match.group(1)

                if ":-" in var_with_default:
                    var_name, default_value = var_with_default.split(":-", 1)
                    env_value = os.environ.get(var_name)

                    # Treat empty string as unset
                    if env_value is None or env_value == "":
                        return default_value
                    return env_value

                env_value = os.environ.get(var_with_default)
                if env_value is None:
                    raise ConfigurationError(
                        f"Required environment variable '{var_with_default}' is not set"
                    )
                return env_value

            result = re.sub(r"\$\{([^}]+)\}", replace_var, result)
            return result.replace("\x00", "$")

        elif isinstance(value, dict):
            return {k: self._substitute_env_vars(v) for k, v in value.items()}

        elif isinstance(value, list):
            return [self._substitute_env_vars(item) for item in value]

        else:
            return value

    def load_from_dict(self, raw_config: Optional[Dict[str, Any]]) -> GatewayConfig:
        """
        Validate an already-parsed configuration mapping.

        Raises:
            ConfigurationError: If substitution or validation fails
        """
        if raw_config is None:
            raw_config = {}
        if not isinstance(raw_config, dict):
            raise ConfigurationError("Configuration root must be a mapping")

        substituted_config = self._substitute_env_vars(raw_config)

        try:
            return GatewayConfig(**substituted_config)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {str(e)}") from e

    def load_from_file(self, file_path: str) -> GatewayConfig:
        """
        Load configuration from YAML file with validation.

        Raises:
            ConfigurationError: If the file is missing, is not valid YAML, or
                fails validation
        """
        config_path = Path(file_path)

        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {file_path}")

        with open(config_path, "r") as f:
            try:
                raw_config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {file_path}: {e}") from e

        return self.load_from_dict(raw_config)

    def load(self, file_path: Optional[str] = None) -> GatewayConfig:
        """Load from file_path if given, otherwise return the defaults."""
        if file_path is None:
            return GatewayConfig()
        return self.load_from_file(file_path)
