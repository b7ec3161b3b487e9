"""
Exception and Error Definitions Module

Defines the error taxonomy for building, sponsoring, signing and submitting
UserOperations. All exceptions inherit from PipelineError for unified
exception handling by the caller.

Exception Hierarchy:
    PipelineError (root)
    ├── ConfigurationError
    ├── EncodingError
    ├── ProviderError
    │   ├── ValidationRejected
    │   └── ChainRpcError
    ├── IncompleteOperationError
    ├── OperationFrozenError
    ├── InsufficientFunds
    ├── Timeout
    └── InvalidTransition
"""

from typing import Any, Optional


class PipelineError(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions should inherit from this class to enable
    unified exception handling and centralized error processing.
    """
    pass


class ConfigurationError(PipelineError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Unsupported (provider, chain) combination
    - Missing API key for a hosted provider
    - Paymaster requested from a provider that cannot sponsor
    - Missing Safe deployment addresses for a chain

    Fatal for the pipeline: nothing is retried.
    """
    pass


class EncodingError(PipelineError):
    """
    Raised when an action or field cannot be encoded.

    This includes scenarios such as:
    - Unsupported action variant
    - Malformed address length or hex payload
    - Missing dummy signature for a provider that simulates validation
    """
    pass


class ProviderError(PipelineError):
    """
    Raised when a bundler, paymaster or chain RPC exchange fails.

    Covers network failures, non-JSON bodies, responses without a ``result``
    field and provider-reported error objects. The caller decides whether
    to retry; the pipeline never retries internally.

    Attributes:
        provider: Provider name (e.g. 'pimlico', 'chain')
        method: JSON-RPC method that was called
        cause: Underlying exception or error message
        code: JSON-RPC error code when the provider returned one
        data: JSON-RPC error data when the provider returned one
    """

    def __init__(
        self,
        provider: str,
        method: str,
        cause: Any,
        code: Optional[int] = None,
        data: Any = None,
    ):
        self.provider = provider
        self.method = method
        self.cause = cause
        self.code = code
        self.data = data
        super().__init__(f"{provider} {method} failed: {cause}")


class ValidationRejected(ProviderError):
    """
    Raised when the provider reports the operation would revert or fails
    entry point validation (ERC-4337 error codes -32500 to -32507, AAxx).

    Fatal for this attempt: the operation must be rebuilt with new
    nonce, fees or signature before resubmitting.
    """
    pass


class ChainRpcError(ProviderError):
    """
    Raised when a read-only chain node call (getCode, getBalance,
    getNonce, latest block) fails.
    """

    def __init__(self, method: str, cause: Any):
        super().__init__("chain", method, cause)


class IncompleteOperationError(PipelineError):
    """
    Raised when a final signature is requested before the gas fields
    covered by it are populated.

    Attributes:
        missing: Names of the zero-valued gas fields
    """

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"UserOperation gas fields not populated: {', '.join(self.missing)}")


class OperationFrozenError(PipelineError):
    """
    Raised when a submitted (frozen) UserOperation is mutated.
    """
    pass


class InsufficientFunds(PipelineError):
    """
    Raised when the sender balance stays below the required prefund after
    the bounded funding wait.

    Attributes:
        required: Amount required (wei)
        available: Amount available (wei)
    """

    def __init__(self, sender: str, required: int, available: int):
        self.sender = sender
        self.required = required
        self.available = available
        super().__init__(
            f"Sender {sender} balance {available} wei is below required {required} wei"
        )


class Timeout(PipelineError):
    """
    Raised when no receipt is obtained within the caller's deadline.

    The outcome is unknown: the operation may still be included on-chain.

    Attributes:
        submission: Operation hash or relay task id
    """

    def __init__(self, submission: str, message: Optional[str] = None):
        self.submission = submission
        super().__init__(message or f"No receipt for {submission} within the deadline")


class InvalidTransition(PipelineError):
    """
    Raised when the submission state machine is asked for a transition that
    is not valid from its current state.

    Attributes:
        current_state: Current operation state
        target_state: Requested state
    """

    def __init__(self, current_state, target_state):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(f"Invalid transition {current_state} -> {target_state}")
