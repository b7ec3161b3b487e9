"""
Generic ERC-4337 Bundler Adapter

Speaks the standard bundler JSON-RPC namespace against any EntryPoint v0.6
bundler:

    eth_estimateUserOperationGas  [userOp, entryPoint]
    eth_sendUserOperation         [userOp, entryPoint]   -> userOpHash
    eth_getUserOperationReceipt   [userOpHash]           -> receipt | null
    pm_sponsorUserOperation       [userOp, entryPoint, {sponsorshipPolicyId}]

Fees come from the chain node: priority fee from eth_maxPriorityFeePerGas and
the base fee of the latest block, with a 50% buffer on their sum.

The hosted provider adapters subclass this one and override the calls whose
dialect differs.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .bases import ProviderAdapter
from ..clients.rpc_client import JsonRpcClient, redact_url
from ..config import ChainConfig, ProviderConfig, ProviderName
from ..engine.exceptions import ConfigurationError, ProviderError
from ..evm.chain import ChainClient
from ..schemas.operations import (
    FeeQuote,
    GasEstimate,
    OperationReceipt,
    PaymasterData,
    SubmissionHandle,
    UserOperation,
)

logger = logging.getLogger(__name__)


def buffered_max_fee(base_fee: int, priority_fee: int) -> int:
    """maxFeePerGas = (baseFee + priorityFee) * 1.5, in integer arithmetic."""
    return (base_fee + priority_fee) * 15 // 10


class EntryPointAdapter(ProviderAdapter):
    """
    Adapter for any ERC-4337 bundler exposing the standard namespace.

    Args:
        config: Provider configuration (bundler_url required)
        chain: Chain configuration
        chain_client: Chain reader used for fee computation
        transport: Optional httpx transport (tests inject httpx.MockTransport)
    """

    provider = ProviderName.ENTRYPOINT

    def __init__(
        self,
        config: ProviderConfig,
        chain: ChainConfig,
        chain_client: Optional[ChainClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(config, chain)
        self.chain_client = chain_client
        bundler_url = self.bundler_url()
        self._bundler = JsonRpcClient(
            bundler_url,
            provider=self.provider.value,
            timeout=config.request_timeout,
            transport=transport,
        )
        paymaster_url = self.paymaster_url()
        if paymaster_url is None or paymaster_url == bundler_url:
            self._paymaster = self._bundler
        else:
            self._paymaster = JsonRpcClient(
                paymaster_url,
                provider=self.provider.value,
                timeout=config.request_timeout,
                transport=transport,
            )
        logger.debug("%s bundler endpoint %s", self.provider.value, redact_url(bundler_url))

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def bundler_url(self) -> str:
        if not self.config.bundler_url:
            raise ConfigurationError(f"{self.provider.value} adapter needs a bundler_url")
        return self.config.bundler_url

    def paymaster_url(self) -> Optional[str]:
        return self.config.paymaster_url

    def _require_chain_client(self) -> ChainClient:
        if self.chain_client is None:
            raise ConfigurationError(f"{self.provider.value} fee computation needs a chain client")
        return self.chain_client

    @staticmethod
    def _expect_object(result: Any, provider: str, method: str) -> Dict[str, Any]:
        if not isinstance(result, dict):
            raise ProviderError(provider, method, f"expected an object result, got {type(result).__name__}")
        return result

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def estimation_payload(self, op: UserOperation) -> Dict[str, str]:
        """Operation fields sent for gas estimation."""
        return op.to_rpc_dict()

    async def estimate_gas(self, op: UserOperation) -> GasEstimate:
        method = "eth_estimateUserOperationGas"
        result = await self._bundler.call(method, [self.estimation_payload(op), self.entry_point])
        estimate = GasEstimate.from_rpc(self._expect_object(result, self.provider.value, method))
        logger.info(
            "%s estimated gas for %s: call=%s verification=%s preVerification=%s",
            self.provider.value, op.sender,
            estimate.call_gas_limit, estimate.verification_gas_limit, estimate.pre_verification_gas,
        )
        return estimate

    async def get_fee_quote(self, op: UserOperation) -> FeeQuote:
        chain_client = self._require_chain_client()
        priority_fee = await chain_client.get_max_priority_fee()
        base_fee = await chain_client.get_base_fee()
        return FeeQuote(
            max_fee_per_gas=buffered_max_fee(base_fee, priority_fee),
            max_priority_fee_per_gas=priority_fee,
        )

    async def request_paymaster_data(self, op: UserOperation) -> PaymasterData:
        method = "pm_sponsorUserOperation"
        params = [op.to_rpc_dict(), self.entry_point]
        if self.config.policy_id:
            params.append({"sponsorshipPolicyId": self.config.policy_id})
        result = await self._paymaster.call(method, params)
        data = PaymasterData.from_rpc(self._expect_object(result, self.provider.value, method))
        logger.info("%s sponsored %s via paymaster %s", self.provider.value, op.sender, data.paymaster_and_data[:42])
        return data

    async def submit(self, op: UserOperation) -> SubmissionHandle:
        method = "eth_sendUserOperation"
        result = await self._bundler.call(method, [op.to_rpc_dict(), self.entry_point])
        if not isinstance(result, str) or not result:
            raise ProviderError(self.provider.value, method, f"expected a submission id, got {result!r}")
        logger.info("%s accepted operation from %s: %s", self.provider.value, op.sender, result)
        return SubmissionHandle(key=result, kind=self.submission_kind)

    async def get_receipt(self, handle: SubmissionHandle) -> Optional[OperationReceipt]:
        method = "eth_getUserOperationReceipt"
        if handle.kind != self.submission_kind:
            raise ValueError(
                f"{self.provider.value} issues {self.submission_kind.value} handles, got {handle.kind.value}"
            )
        result = await self._bundler.call(method, [handle.key], allow_null=True)
        if result is None:
            return None
        receipt = OperationReceipt.from_rpc(self._expect_object(result, self.provider.value, method))
        if not receipt.is_included:
            return None
        return receipt

    async def aclose(self) -> None:
        await self._bundler.aclose()
        if self._paymaster is not self._bundler:
            await self._paymaster.aclose()
