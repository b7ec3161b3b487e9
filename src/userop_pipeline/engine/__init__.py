from .exceptions import (
    ChainRpcError,
    ConfigurationError,
    EncodingError,
    IncompleteOperationError,
    InsufficientFunds,
    InvalidTransition,
    OperationFrozenError,
    PipelineError,
    ProviderError,
    Timeout,
    ValidationRejected,
)

__all__ = [
    "PipelineError",
    "ConfigurationError",
    "EncodingError",
    "ProviderError",
    "ValidationRejected",
    "ChainRpcError",
    "IncompleteOperationError",
    "OperationFrozenError",
    "InsufficientFunds",
    "Timeout",
    "InvalidTransition",
]
