"""
ERC-4337 UserOperation pipeline for Safe smart accounts.

Builds, sponsors or self-funds, signs and submits UserOperations through
Pimlico, Alchemy, Gelato or any EntryPoint v0.6 bundler.
"""

from .engine.exceptions import (
    ConfigurationError,
    EncodingError,
    InsufficientFunds,
    PipelineError,
    ProviderError,
    Timeout,
    ValidationRejected,
)
from .config import (
    AccountConfig,
    ChainConfig,
    FundingConfig,
    PipelineConfig,
    PollingConfig,
    ProviderConfig,
    ProviderName,
    load_config_from_env,
)
from .schemas import (
    Erc20Mint,
    Erc20Transfer,
    Erc721Mint,
    NativeTransfer,
    RawCall,
    UserOperation,
)
from .adapters import ProviderRegistry
from .evm.signatures import LocalAccountSigner
from .engine.states import OperationState
from .engine.poller import SubmissionOutcome, SubmissionPoller
from .engine.pipeline import UserOperationPipeline

__version__ = "0.1.0"

__all__ = [
    "PipelineError",
    "ConfigurationError",
    "EncodingError",
    "ProviderError",
    "ValidationRejected",
    "InsufficientFunds",
    "Timeout",
    "AccountConfig",
    "ChainConfig",
    "FundingConfig",
    "PipelineConfig",
    "PollingConfig",
    "ProviderConfig",
    "ProviderName",
    "load_config_from_env",
    "NativeTransfer",
    "Erc20Transfer",
    "Erc20Mint",
    "Erc721Mint",
    "RawCall",
    "UserOperation",
    "ProviderRegistry",
    "LocalAccountSigner",
    "OperationState",
    "SubmissionOutcome",
    "SubmissionPoller",
    "UserOperationPipeline",
]
