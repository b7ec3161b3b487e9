"""
Abstract Base Class for Bundler / Paymaster Provider Adapters

Defines the interface every provider backend (Pimlico, Alchemy, Gelato, a
generic ERC-4337 bundler) must implement. Each adapter translates the unified
UserOperation request/response shapes into its backend's JSON-RPC dialect.

Core Capabilities:
    - estimate_gas: gas limits for the operation
    - get_fee_quote: EIP-1559 fee bounds
    - request_paymaster_data: sponsorship (paymasterAndData and signed-over gas)
    - submit: send the signed operation, returning a SubmissionHandle
    - get_receipt: look up inclusion, None while pending

Each capability is exactly one network exchange. Failures surface as
ProviderError (or ValidationRejected); adapters never retry.
"""

from abc import ABC, abstractmethod
from typing import FrozenSet, Optional

from ..config import ChainConfig, ProviderConfig, ProviderName, SUPPORTED_CHAINS
from ..evm.constants import Chain
from ..schemas.operations import (
    FeeQuote,
    GasEstimate,
    OperationReceipt,
    PaymasterData,
    SubmissionHandle,
    SubmissionKind,
    UserOperation,
)


class ProviderAdapter(ABC):
    """
    Abstract Base Class for provider adapters.

    Class Attributes:
        provider: Backend this adapter speaks to
        submission_kind: Key space of identifiers returned by ``submit``
        requires_dummy_signature: Backend simulates validation during
            sponsorship, so a structurally valid signature must be present
        supports_paymaster: Backend can return paymasterAndData
        zero_fee_sponsorship: Backend sponsors by requiring zero fees
        sponsorship_quotes_fees: Sponsorship response carries maxFeePerGas
            and maxPriorityFeePerGas, so no separate fee quote is requested

    Example Implementation:
        class MyBundlerAdapter(ProviderAdapter):
            provider = ProviderName.ENTRYPOINT
            ...
    """

    provider: ProviderName
    submission_kind: SubmissionKind = SubmissionKind.OPERATION_HASH
    requires_dummy_signature: bool = False
    supports_paymaster: bool = True
    zero_fee_sponsorship: bool = False
    sponsorship_quotes_fees: bool = False

    def __init__(self, config: ProviderConfig, chain: ChainConfig):
        self.config = config
        self.chain = chain

    @classmethod
    def supported_chains(cls) -> FrozenSet[Chain]:
        return SUPPORTED_CHAINS[cls.provider]

    @property
    def entry_point(self) -> str:
        return self.chain.entry_point

    async def prepare(self, op: UserOperation) -> None:
        """
        Adjust a freshly built operation before fees and gas are requested.

        Default: no-op. Adapters that need placeholder fields (ERC-20
        paymaster address, gas placeholders) override this.
        """
        return None

    @abstractmethod
    async def estimate_gas(self, op: UserOperation) -> GasEstimate:
        """
        Estimate gas limits for an operation.

        Args:
            op: Operation with sender, nonce, initCode and callData populated

        Returns:
            GasEstimate with the three gas limits

        Raises:
            ProviderError: Network failure or malformed response
            ValidationRejected: Simulation reverted
        """
        pass

    @abstractmethod
    async def get_fee_quote(self, op: UserOperation) -> FeeQuote:
        """
        Quote maxFeePerGas / maxPriorityFeePerGas for an operation.

        Raises:
            ProviderError: Network failure or malformed response
        """
        pass

    @abstractmethod
    async def request_paymaster_data(self, op: UserOperation) -> PaymasterData:
        """
        Ask the backend to sponsor an operation.

        Returns:
            PaymasterData with paymasterAndData and, where the backend
            returns them, the gas limits and fees it signed over

        Raises:
            ConfigurationError: Backend cannot sponsor
            ProviderError: Network failure or malformed response
            ValidationRejected: Sponsorship simulation failed
        """
        pass

    @abstractmethod
    async def submit(self, op: UserOperation) -> SubmissionHandle:
        """
        Send a signed operation.

        Returns:
            SubmissionHandle (operation hash or relay task id)

        Raises:
            ProviderError: Network failure or malformed response
            ValidationRejected: Operation rejected by the bundler
        """
        pass

    @abstractmethod
    async def get_receipt(self, handle: SubmissionHandle) -> Optional[OperationReceipt]:
        """
        Look up the receipt for a submission.

        Returns:
            OperationReceipt once included, None while pending

        Raises:
            ProviderError: Network failure or malformed response
        """
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(chain={self.chain.chain.value})"
