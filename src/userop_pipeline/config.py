"""
Pipeline Configuration

Explicit, immutable configuration objects passed into the pipeline
constructor. Nothing here reads the environment at import time; the
``load_config_from_env`` helper reads a dotenv file and the process
environment only when called.

The (provider, chain) support matrix lives here so that an unsupported
combination is rejected when the configuration is validated, before any
network call is made.

Example::

    config = PipelineConfig(
        chain=ChainConfig.for_chain("sepolia", rpc_url="https://..."),
        provider=ProviderConfig(provider="pimlico", chain="sepolia", api_key="..."),
        account=AccountConfig(owners=["0x..."]),
    )
"""

import os
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .engine.exceptions import ConfigurationError
from .evm.constants import Chain, ENTRYPOINT_V06, SafeDeployment, get_chain_info
from .schemas.bases import normalize_address


class ProviderName(str, Enum):
    """Bundler / paymaster backends."""
    PIMLICO = "pimlico"
    ALCHEMY = "alchemy"
    GELATO = "gelato"
    ENTRYPOINT = "entrypoint"


#: Chains each hosted provider is wired for; the generic EntryPoint RPC
#: accepts any known chain.
SUPPORTED_CHAINS: Dict[ProviderName, FrozenSet[Chain]] = {
    ProviderName.PIMLICO: frozenset({Chain.SEPOLIA, Chain.BASE_SEPOLIA}),
    ProviderName.ALCHEMY: frozenset({Chain.SEPOLIA, Chain.GOERLI}),
    ProviderName.GELATO: frozenset({Chain.SEPOLIA, Chain.BASE_SEPOLIA}),
    ProviderName.ENTRYPOINT: frozenset(Chain),
}

#: Providers able to return paymaster data
PAYMASTER_PROVIDERS = frozenset({ProviderName.PIMLICO, ProviderName.ALCHEMY, ProviderName.ENTRYPOINT})

#: Providers whose adapter attaches a token-paid ERC-20 paymaster
ERC20_PAYMASTER_PROVIDERS = frozenset({ProviderName.PIMLICO})


class ChainConfig(BaseModel):
    """Chain the pipeline operates on."""
    model_config = ConfigDict(frozen=True)

    chain: Chain
    chain_id: int = Field(..., gt=0)
    rpc_url: str = Field(..., description="Chain node JSON-RPC endpoint")
    entry_point: str = ENTRYPOINT_V06
    safe: SafeDeployment = Field(default_factory=SafeDeployment)

    @field_validator("entry_point")
    @classmethod
    def _check_entry_point(cls, value):
        return normalize_address(value, "entry_point")

    @classmethod
    def for_chain(cls, chain, rpc_url: Optional[str] = None, **overrides) -> "ChainConfig":
        """
        Build a ChainConfig from the static chain table.

        Raises:
            ConfigurationError: If the chain is unknown
        """
        info = get_chain_info(chain)
        if info is None:
            raise ConfigurationError(f"Unknown chain: {chain!r}")
        return cls(
            chain=info.name,
            chain_id=info.chain_id,
            rpc_url=rpc_url or info.public_rpc_url,
            **overrides,
        )


class ProviderConfig(BaseModel):
    """
    Provider selection and credentials.

    Attributes:
        provider: Backend to dispatch to
        chain: Network name the provider is addressed with
        api_key: Hosted provider API key (Pimlico, Alchemy, Gelato sponsor key)
        policy_id: Sponsorship / gas manager policy id
        bundler_url: Explicit bundler endpoint (required for the generic provider)
        paymaster_url: Explicit paymaster endpoint
        paymaster_address: ERC-20 paymaster address (token-paid gas)
        erc20_token: Token the ERC-20 paymaster charges in
        request_timeout: HTTP timeout in seconds
    """
    model_config = ConfigDict(frozen=True)

    provider: ProviderName
    chain: Chain
    api_key: Optional[str] = None
    policy_id: Optional[str] = None
    bundler_url: Optional[str] = None
    paymaster_url: Optional[str] = None
    paymaster_address: Optional[str] = None
    erc20_token: Optional[str] = None
    request_timeout: float = Field(30.0, gt=0)

    @field_validator("paymaster_address", "erc20_token")
    @classmethod
    def _check_address(cls, value, info):
        return None if value is None else normalize_address(value, info.field_name)

    @model_validator(mode="after")
    def _check_support(self):
        if self.chain not in SUPPORTED_CHAINS[self.provider]:
            supported = ", ".join(sorted(c.value for c in SUPPORTED_CHAINS[self.provider]))
            raise ConfigurationError(
                f"Provider {self.provider.value} does not support chain {self.chain.value} (supported: {supported})"
            )
        if self.provider == ProviderName.ENTRYPOINT:
            if not self.bundler_url:
                raise ConfigurationError("The entrypoint provider needs an explicit bundler_url")
        elif not self.api_key:
            raise ConfigurationError(f"Provider {self.provider.value} needs an api_key")
        if (self.paymaster_address is None) != (self.erc20_token is None):
            raise ConfigurationError("paymaster_address and erc20_token must be configured together")
        if self.uses_erc20_paymaster and self.provider not in ERC20_PAYMASTER_PROVIDERS:
            raise ConfigurationError(f"Provider {self.provider.value} does not support an ERC-20 paymaster")
        return self

    @property
    def uses_erc20_paymaster(self) -> bool:
        return self.paymaster_address is not None


class PollingConfig(BaseModel):
    """Receipt polling budget."""
    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(60, ge=1)
    interval: float = Field(6.0, ge=0, description="Seconds between receipt polls")


class FundingConfig(BaseModel):
    """Bounded wait for a sender top-up."""
    model_config = ConfigDict(frozen=True)

    max_checks: int = Field(10, ge=0)
    interval: float = Field(15.0, ge=0, description="Seconds between balance checks")


class AccountConfig(BaseModel):
    """Safe owners and deployment salt."""
    model_config = ConfigDict(frozen=True)

    owners: List[str] = Field(..., min_length=1)
    threshold: int = Field(1, ge=1)
    salt_nonce: int = Field(0, ge=0)
    nonce_key: int = Field(0, ge=0, lt=2**192, description="EntryPoint nonce key space")

    @field_validator("owners")
    @classmethod
    def _check_owners(cls, value):
        return [normalize_address(o, "owner") for o in value]

    @model_validator(mode="after")
    def _check_threshold(self):
        if self.threshold > len(self.owners):
            raise ConfigurationError(f"threshold {self.threshold} exceeds {len(self.owners)} owner(s)")
        return self


class PipelineConfig(BaseModel):
    """
    Complete pipeline configuration.

    Attributes:
        chain: Chain and contract addresses
        provider: Backend selection and credentials
        account: Safe owners and salt
        polling: Receipt polling budget
        funding: Top-up wait budget
        use_paymaster: Request sponsorship instead of self-funding
        include_validity_window: Prefix validAfter/validUntil to signatures
    """
    model_config = ConfigDict(frozen=True)

    chain: ChainConfig
    provider: ProviderConfig
    account: AccountConfig
    polling: PollingConfig = Field(default_factory=PollingConfig)
    funding: FundingConfig = Field(default_factory=FundingConfig)
    use_paymaster: bool = False
    include_validity_window: bool = False

    @model_validator(mode="after")
    def _check_consistency(self):
        if self.provider.chain != self.chain.chain:
            raise ConfigurationError(
                f"Provider chain {self.provider.chain.value} does not match chain {self.chain.chain.value}"
            )
        if self.use_paymaster and self.provider.provider not in PAYMASTER_PROVIDERS:
            raise ConfigurationError(f"Provider {self.provider.provider.value} cannot sponsor operations")
        if self.use_paymaster and self.provider.provider == ProviderName.ENTRYPOINT and not self.provider.paymaster_url:
            raise ConfigurationError("Sponsorship through the entrypoint provider needs a paymaster_url")
        if self.use_paymaster and self.provider.uses_erc20_paymaster:
            raise ConfigurationError("use_paymaster cannot be combined with an ERC-20 paymaster")
        return self


# ---------------------------------------------------------------------------
# Environment loading
# ---------------------------------------------------------------------------

def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def load_config_from_env(
    env_file: Optional[str] = None,
    prefix: str = "USEROP_",
    environ: Optional[Mapping[str, str]] = None,
) -> PipelineConfig:
    """
    Build a PipelineConfig from a dotenv file and the environment.

    Values from ``environ`` (default: ``os.environ``) override the file.

    Recognised variables (after ``prefix``): PROVIDER, CHAIN, RPC_URL,
    API_KEY, POLICY_ID, BUNDLER_URL, PAYMASTER_URL, PAYMASTER_ADDRESS,
    ERC20_TOKEN, OWNERS (comma separated), THRESHOLD, SALT_NONCE, NONCE_KEY,
    USE_PAYMASTER, POLL_ATTEMPTS, POLL_INTERVAL, ENTRY_POINT.

    Raises:
        ConfigurationError: If a required value is missing or invalid
    """
    values: Dict[str, Optional[str]] = dict(dotenv_values(env_file)) if env_file else {}
    values.update(os.environ if environ is None else environ)

    def get(name: str, default: Optional[str] = None) -> Optional[str]:
        value = values.get(prefix + name)
        return value if value not in (None, "") else default

    def require(name: str) -> str:
        value = get(name)
        if value is None:
            raise ConfigurationError(f"Missing required setting {prefix}{name}")
        return value

    try:
        provider_name = require("PROVIDER").lower()
        chain_name = require("CHAIN")
        owners = [o.strip() for o in require("OWNERS").split(",") if o.strip()]
        chain_overrides = {}
        if get("ENTRY_POINT"):
            chain_overrides["entry_point"] = get("ENTRY_POINT")
        chain = ChainConfig.for_chain(chain_name, rpc_url=get("RPC_URL"), **chain_overrides)

        provider = ProviderConfig(
            provider=provider_name,
            chain=chain.chain,
            api_key=get("API_KEY"),
            policy_id=get("POLICY_ID"),
            bundler_url=get("BUNDLER_URL"),
            paymaster_url=get("PAYMASTER_URL"),
            paymaster_address=get("PAYMASTER_ADDRESS"),
            erc20_token=get("ERC20_TOKEN"),
        )
        account = AccountConfig(
            owners=owners,
            threshold=int(get("THRESHOLD", "1")),
            salt_nonce=int(get("SALT_NONCE", "0")),
            nonce_key=int(get("NONCE_KEY", "0")),
        )
        polling = PollingConfig(
            max_attempts=int(get("POLL_ATTEMPTS", "60")),
            interval=float(get("POLL_INTERVAL", "6")),
        )
        return PipelineConfig(
            chain=chain,
            provider=provider,
            account=account,
            polling=polling,
            use_paymaster=_flag(get("USE_PAYMASTER")),
        )
    except ValueError as e:
        # pydantic ValidationError and int()/float() parse failures
        raise ConfigurationError(f"Invalid configuration: {e}") from e
