"""
Provider Adapter Registry

Maps each ProviderName to the adapter class that speaks its dialect and
creates adapter instances from configuration. Dispatch is by enum value;
there is no string matching on provider names anywhere else.
"""

import logging
from typing import Dict, Optional, Type

import httpx

from .alchemy import AlchemyAdapter
from .bases import ProviderAdapter
from .entrypoint import EntryPointAdapter
from .gelato import GelatoAdapter
from .pimlico import PimlicoAdapter
from ..config import ChainConfig, ProviderConfig, ProviderName
from ..engine.exceptions import ConfigurationError
from ..evm.chain import ChainClient

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Registry for creating provider adapters.

    Example:
        registry = ProviderRegistry()
        adapter = registry.create_adapter(provider_config, chain_config, chain_client)
    """

    _default_adapters: Dict[ProviderName, Type[ProviderAdapter]] = {
        ProviderName.PIMLICO: PimlicoAdapter,
        ProviderName.ALCHEMY: AlchemyAdapter,
        ProviderName.GELATO: GelatoAdapter,
        ProviderName.ENTRYPOINT: EntryPointAdapter,
    }

    def __init__(self):
        self._adapters: Dict[ProviderName, Type[ProviderAdapter]] = dict(self._default_adapters)

    def register(self, provider: ProviderName, adapter_type: Type[ProviderAdapter]) -> None:
        """
        Register (or replace) the adapter class for a provider.

        Raises:
            TypeError: If adapter_type is not a ProviderAdapter subclass
        """
        if not (isinstance(adapter_type, type) and issubclass(adapter_type, ProviderAdapter)):
            raise TypeError(f"Adapter must subclass ProviderAdapter, got {adapter_type!r}")
        self._adapters[ProviderName(provider)] = adapter_type

    def get_adapter_type(self, provider: ProviderName) -> Type[ProviderAdapter]:
        """
        Raises:
            ConfigurationError: If no adapter is registered for the provider
        """
        try:
            return self._adapters[ProviderName(provider)]
        except (KeyError, ValueError) as e:
            raise ConfigurationError(f"No adapter registered for provider {provider!r}") from e

    def create_adapter(
        self,
        config: ProviderConfig,
        chain: ChainConfig,
        chain_client: Optional[ChainClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> ProviderAdapter:
        """
        Instantiate the adapter for ``config.provider`` on ``chain``.

        Args:
            config: Provider configuration
            chain: Chain configuration
            chain_client: Chain reader for adapters that compute fees on-chain
            transport: Optional httpx transport shared by the adapter's clients

        Returns:
            ProviderAdapter ready for use

        Raises:
            ConfigurationError: If the provider does not support the chain
        """
        adapter_type = self.get_adapter_type(config.provider)
        if config.chain != chain.chain or chain.chain not in adapter_type.supported_chains():
            raise ConfigurationError(
                f"Provider {config.provider.value} does not support chain {chain.chain.value}"
            )
        adapter = adapter_type(config, chain, chain_client=chain_client, transport=transport)
        logger.info("Using %r for %s", adapter, config.provider.value)
        return adapter
