"""
Pimlico Adapter

Bundler:   https://api.pimlico.io/v1/{chain}/rpc?apikey={key}
Paymaster: https://api.pimlico.io/v2/{chain}/rpc?apikey={key}

Dialect differences from the generic bundler:
    - fees from pimlico_getUserOperationGasPrice (the "fast" tier)
    - sponsorship through pm_sponsorUserOperation with a sponsorship policy
    - ERC-20 paymaster mode: paymasterAndData is set to the token paymaster
      address before estimation, so the estimate accounts for it
    - estimation rejects zero gas fields, so they start at 1
"""

import logging

from .entrypoint import EntryPointAdapter
from ..config import ProviderName
from ..schemas.operations import FeeQuote, UserOperation

logger = logging.getLogger(__name__)

PIMLICO_BUNDLER_URL = "https://api.pimlico.io/v1/{chain}/rpc?apikey={api_key}"
PIMLICO_PAYMASTER_URL = "https://api.pimlico.io/v2/{chain}/rpc?apikey={api_key}"


class PimlicoAdapter(EntryPointAdapter):
    """Adapter for Pimlico's bundler and verifying / ERC-20 paymasters."""

    provider = ProviderName.PIMLICO

    def bundler_url(self) -> str:
        if self.config.bundler_url:
            return self.config.bundler_url
        return PIMLICO_BUNDLER_URL.format(chain=self.config.chain.value, api_key=self.config.api_key)

    def paymaster_url(self) -> str:
        if self.config.paymaster_url:
            return self.config.paymaster_url
        return PIMLICO_PAYMASTER_URL.format(chain=self.config.chain.value, api_key=self.config.api_key)

    async def prepare(self, op: UserOperation) -> None:
        if op.call_gas_limit == 0:
            op.call_gas_limit = 1
        if op.verification_gas_limit == 0:
            op.verification_gas_limit = 1
        if op.pre_verification_gas == 0:
            op.pre_verification_gas = 1
        if self.config.uses_erc20_paymaster:
            op.paymaster_and_data = self.config.paymaster_address
            logger.info("Using ERC-20 paymaster %s for %s", self.config.paymaster_address, op.sender)

    async def get_fee_quote(self, op: UserOperation) -> FeeQuote:
        method = "pimlico_getUserOperationGasPrice"
        result = self._expect_object(await self._bundler.call(method, []), self.provider.value, method)
        tier = self._expect_object(result.get("fast"), self.provider.value, method)
        return FeeQuote.from_rpc(tier)
