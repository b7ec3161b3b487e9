"""
Alchemy Adapter

Endpoint: https://eth-{chain}.g.alchemy.com/v2/{key}

Dialect differences from the generic bundler:
    - sponsorship and gas in one call, alchemy_requestGasAndPaymasterAndData,
      which simulates validation and therefore needs a dummy signature;
      its response carries the fee fields too
    - priority fee from rundler_maxPriorityFeePerGas; maxFeePerGas is
      (latest base fee + priority fee) * 1.5
    - self-funded estimation omits the gas and fee fields
"""

import logging
from typing import Dict

from .entrypoint import EntryPointAdapter, buffered_max_fee
from ..config import ProviderName
from ..engine.exceptions import ConfigurationError, EncodingError
from ..schemas.bases import parse_quantity, to_quantity
from ..schemas.operations import FeeQuote, PaymasterData, UserOperation

logger = logging.getLogger(__name__)

ALCHEMY_URL = "https://eth-{chain}.g.alchemy.com/v2/{api_key}"

_ESTIMATION_FIELDS = ("sender", "nonce", "initCode", "callData", "paymasterAndData", "signature")


class AlchemyAdapter(EntryPointAdapter):
    """Adapter for Alchemy's Rundler bundler and Gas Manager paymaster."""

    provider = ProviderName.ALCHEMY
    requires_dummy_signature = True
    sponsorship_quotes_fees = True

    def bundler_url(self) -> str:
        if self.config.bundler_url:
            return self.config.bundler_url
        return ALCHEMY_URL.format(chain=self.config.chain.value, api_key=self.config.api_key)

    def estimation_payload(self, op: UserOperation) -> Dict[str, str]:
        return op.to_rpc_dict(fields=_ESTIMATION_FIELDS)

    async def get_fee_quote(self, op: UserOperation) -> FeeQuote:
        method = "rundler_maxPriorityFeePerGas"
        priority_fee = parse_quantity(await self._bundler.call(method, []), method)
        base_fee = await self._require_chain_client().get_base_fee()
        return FeeQuote(
            max_fee_per_gas=buffered_max_fee(base_fee, priority_fee),
            max_priority_fee_per_gas=priority_fee,
        )

    async def request_paymaster_data(self, op: UserOperation) -> PaymasterData:
        method = "alchemy_requestGasAndPaymasterAndData"
        if not self.config.policy_id:
            raise ConfigurationError("Alchemy sponsorship needs a gas manager policy_id")
        if op.signature == "0x":
            raise EncodingError("dummy signature required before requesting Alchemy paymaster data")

        params = [{
            "policyId": self.config.policy_id,
            "entryPoint": self.entry_point,
            "dummySignature": op.signature,
            "userOperation": {
                "sender": op.sender,
                "nonce": to_quantity(op.nonce),
                "initCode": op.init_code,
                "callData": op.call_data,
            },
        }]
        result = await self._bundler.call(method, params)
        data = PaymasterData.from_rpc(self._expect_object(result, self.provider.value, method))
        logger.info("Alchemy gas manager sponsored %s", op.sender)
        return data
