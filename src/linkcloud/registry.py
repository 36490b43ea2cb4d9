"""Provider registry mapping provider names to storage backends.

The registry is built once at startup and never changes afterwards, so
request threads can resolve providers concurrently without locking. It is
constructed explicitly and handed to the application rather than living in
module state, which keeps it easy to replace in tests.
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Tuple, Type

from linkcloud.config_loader import GatewayConfig, ProviderConfig
from linkcloud.exceptions import ConfigurationError, UnsupportedProviderError
from linkcloud.storage_backend import (
    AzureBlobBackend,
    LocalFilesystemBackend,
    S3Backend,
    S3CompatibleBackend,
    StorageBackend,
)

logger = logging.getLogger(__name__)

# Backend implementations selectable from configuration by ``type``
BACKEND_TYPES: Mapping[str, Type[StorageBackend]] = MappingProxyType(
    {
        AzureBlobBackend.provider_type: AzureBlobBackend,
        S3Backend.provider_type: S3Backend,
        S3CompatibleBackend.provider_type: S3CompatibleBackend,
        LocalFilesystemBackend.provider_type: LocalFilesystemBackend,
    }
)


class ProviderRegistry:
    """Read-only mapping from provider name to a live StorageBackend.

    Examples:
        >>> registry = ProviderRegistry([("azureblob", AzureBlobBackend())])
        >>> backend = registry.resolve("azureblob")
    """

    def __init__(self, providers: Iterable[Tuple[str, StorageBackend]]):
        """Initialize the registry.

        Args:
            providers: (name, backend) pairs; registration order is kept

        Raises:
            ConfigurationError: If a name is empty or registered twice
        """
        backends: Dict[str, StorageBackend] = {}
        for name, backend in providers:
            if not name:
                raise ConfigurationError("Provider name must not be empty")
            if name in backends:
                raise ConfigurationError(f"Provider '{name}' is registered more than once", provider=name)
            backends[name] = backend

        self._backends: Mapping[str, StorageBackend] = MappingProxyType(backends)

    def resolve(self, provider_name: str) -> StorageBackend:
        """Return the backend registered under provider_name.

        Raises:
            UnsupportedProviderError: If the name is not registered
        """
        try:
            return self._backends[provider_name]
        except KeyError:
            raise UnsupportedProviderError(
                f"Provider '{provider_name}' is not supported", provider=provider_name
            ) from None

    def names(self) -> List[str]:
        return list(self._backends)

    def items(self) -> Iterator[Tuple[str, StorageBackend]]:
        return iter(self._backends.items())

    def __contains__(self, provider_name: object) -> bool:
        return provider_name in self._backends

    def __len__(self) -> int:
        return len(self._backends)


def create_backend(provider: ProviderConfig, chunk_size: int) -> StorageBackend:
    """Instantiate the backend described by one provider entry.

    Raises:
        ConfigurationError: If the type is unknown or its options are rejected
    """
    backend_cls = BACKEND_TYPES.get(provider.type)
    if backend_cls is None:
        raise ConfigurationError(
            f"Unknown backend type '{provider.type}' for provider '{provider.name}', "
            f"expected one of {sorted(BACKEND_TYPES)}",
            provider=provider.name,
        )

    options = {"chunk_size": chunk_size, **provider.options}
    try:
        return backend_cls(**options)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid options for provider '{provider.name}': {e}", provider=provider.name
        ) from e


def build_registry(config: GatewayConfig) -> ProviderRegistry:
    """Build the provider registry from a validated gateway configuration."""
    providers = [
        (provider.name, create_backend(provider, config.streaming.chunk_size))
        for provider in config.providers
    ]
    registry = ProviderRegistry(providers)
    logger.info("Provider registry ready", extra={"providers": registry.names()})
    return registry
