"""
Provider Registry Test Suite

Tests adapter dispatch by provider name, chain support checks and custom
adapter registration.
"""

import pytest

from test_mocks import MockRpcServer, create_chain_config, create_mock_chain_client, create_provider_config

from userop_pipeline.adapters import (
    AlchemyAdapter,
    EntryPointAdapter,
    GelatoAdapter,
    PimlicoAdapter,
    ProviderRegistry,
)
from userop_pipeline.config import ProviderName
from userop_pipeline.engine.exceptions import ConfigurationError
from userop_pipeline.evm.constants import Chain


class TestDispatch:

    @pytest.mark.parametrize(
        "provider, adapter_type",
        [
            ("pimlico", PimlicoAdapter),
            ("alchemy", AlchemyAdapter),
            ("gelato", GelatoAdapter),
            ("entrypoint", EntryPointAdapter),
        ],
    )
    def test_default_adapters(self, provider, adapter_type):
        registry = ProviderRegistry()
        adapter = registry.create_adapter(
            create_provider_config(provider),
            create_chain_config(),
            chain_client=create_mock_chain_client(),
            transport=MockRpcServer().transport,
        )
        assert type(adapter) is adapter_type
        assert adapter.provider == ProviderName(provider)

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            ProviderRegistry().get_adapter_type("stackup")

    def test_chain_mismatch(self):
        with pytest.raises(ConfigurationError):
            ProviderRegistry().create_adapter(
                create_provider_config("pimlico", "sepolia"),
                create_chain_config("base-sepolia"),
            )


class TestSupportMatrix:

    def test_hosted_providers(self):
        assert PimlicoAdapter.supported_chains() == {Chain.SEPOLIA, Chain.BASE_SEPOLIA}
        assert AlchemyAdapter.supported_chains() == {Chain.SEPOLIA, Chain.GOERLI}
        assert GelatoAdapter.supported_chains() == {Chain.SEPOLIA, Chain.BASE_SEPOLIA}

    def test_generic_bundler_accepts_every_chain(self):
        assert EntryPointAdapter.supported_chains() == frozenset(Chain)


class TestRegistration:

    def test_register_replaces_adapter(self):
        class StubPimlicoAdapter(PimlicoAdapter):
            pass

        registry = ProviderRegistry()
        registry.register(ProviderName.PIMLICO, StubPimlicoAdapter)
        assert registry.get_adapter_type("pimlico") is StubPimlicoAdapter
        assert ProviderRegistry().get_adapter_type("pimlico") is PimlicoAdapter

    def test_register_rejects_non_adapters(self):
        with pytest.raises(TypeError):
            ProviderRegistry().register(ProviderName.GELATO, object)
