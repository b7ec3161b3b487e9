"""
Gelato Adapter

Endpoint: https://api.gelato.digital/bundlers/{chainId}/rpc?sponsorApiKey={key}

Dialect differences from the generic bundler:
    - sponsorship is through the sponsor API key (1Balance) and requires
      maxFeePerGas = maxPriorityFeePerGas = 0; there is no paymaster
    - eth_sendUserOperation returns a relay task id rather than the operation
      hash, so receipts are keyed by task id and the operation hash is
      recovered from the UserOperationEvent log
"""

import logging
from typing import Dict, Optional

from .entrypoint import EntryPointAdapter
from ..config import ProviderName
from ..engine.exceptions import ConfigurationError
from ..schemas.operations import (
    FeeQuote,
    OperationReceipt,
    PaymasterData,
    SubmissionHandle,
    SubmissionKind,
    UserOperation,
)

logger = logging.getLogger(__name__)

GELATO_URL = "https://api.gelato.digital/bundlers/{chain_id}/rpc?sponsorApiKey={api_key}"

_ESTIMATION_FIELDS = ("sender", "nonce", "initCode", "callData", "signature")


class GelatoAdapter(EntryPointAdapter):
    """Adapter for Gelato's sponsored bundler."""

    provider = ProviderName.GELATO
    submission_kind = SubmissionKind.TASK_ID
    zero_fee_sponsorship = True
    supports_paymaster = False

    def bundler_url(self) -> str:
        if self.config.bundler_url:
            return self.config.bundler_url
        return GELATO_URL.format(chain_id=self.chain.chain_id, api_key=self.config.api_key)

    def estimation_payload(self, op: UserOperation) -> Dict[str, str]:
        payload = op.to_rpc_dict(fields=_ESTIMATION_FIELDS)
        payload["paymasterAndData"] = "0x"
        return payload

    async def get_fee_quote(self, op: UserOperation) -> FeeQuote:
        return FeeQuote(max_fee_per_gas=0, max_priority_fee_per_gas=0)

    async def request_paymaster_data(self, op: UserOperation) -> PaymasterData:
        raise ConfigurationError("Gelato sponsors through the sponsor API key; paymasters are not supported")

    async def get_receipt(self, handle: SubmissionHandle) -> Optional[OperationReceipt]:
        receipt = await super().get_receipt(handle)
        if receipt is None:
            return None
        user_op_hash = receipt.alternate_user_op_hash(self.entry_point)
        if user_op_hash and user_op_hash != receipt.user_op_hash:
            logger.info("Gelato task %s carried operation %s", handle.key, user_op_hash)
            receipt = receipt.model_copy(update={"user_op_hash": user_op_hash})
        return receipt
