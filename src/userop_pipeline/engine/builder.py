"""
UserOperation assembly.

The builder turns an account action into an unsigned UserOperation with
every gas, fee, paymaster and signature field at its zero value. initCode
is only attached while the Safe has no code; deployment state is read right
before building and can be re-read before submission, since another
operation may deploy the account in between.
"""

import logging
from typing import Optional

from .exceptions import OperationFrozenError
from ..adapters.unions import ActionTypes, parse_action
from ..evm.calldata import CallDataEncoder
from ..evm.chain import ChainClient
from ..evm.safe import SafeAccount
from ..schemas.operations import UserOperation

logger = logging.getLogger(__name__)


class OperationBuilder:
    """
    Builds UserOperations for one Safe account.

    Args:
        account: Safe definition (owners, threshold, salt, deployment)
        chain_client: Chain reader for code presence, nonces and the proxy
            creation code
        nonce_key: EntryPoint nonce key (upper 192 bits of the nonce)
        encoder: Call data encoder
    """

    def __init__(
        self,
        account: SafeAccount,
        chain_client: ChainClient,
        nonce_key: int = 0,
        encoder: Optional[CallDataEncoder] = None,
    ):
        self.account = account
        self.chain_client = chain_client
        self.nonce_key = nonce_key
        self.encoder = encoder or CallDataEncoder()
        self._sender: Optional[str] = None

    async def sender(self) -> str:
        """Counterfactual Safe address, derived once per builder."""
        if self._sender is None:
            creation_code = await self.chain_client.get_proxy_creation_code(self.account.deployment.proxy_factory)
            self._sender = self.account.address(creation_code)
            logger.info("Derived Safe address %s (salt nonce %d)", self._sender, self.account.salt_nonce)
        return self._sender

    def build(self, sender: str, nonce: int, action: ActionTypes, deployed: bool) -> UserOperation:
        """
        Build an unsigned operation.

        Args:
            sender: Safe address
            nonce: EntryPoint nonce
            action: Account action (model or plain dict)
            deployed: Whether the Safe already has code

        Raises:
            EncodingError: If the action is not supported
        """
        call_data = self.encoder.encode_hex(parse_action(action))
        return UserOperation(
            sender=sender,
            nonce=nonce,
            init_code="0x" if deployed else self.account.init_code(),
            call_data=call_data,
        )

    async def prepare(self, action: ActionTypes) -> UserOperation:
        """Read deployment state and nonce, then build."""
        sender = await self.sender()
        deployed = await self.chain_client.is_deployed(sender)
        nonce = await self.chain_client.get_entry_point_nonce(sender, self.nonce_key)
        logger.info("Building operation for %s (deployed=%s, nonce=%d)", sender, deployed, nonce)
        return self.build(sender, nonce, action, deployed)

    async def rebuild_deployed(self, sender: str, action: ActionTypes) -> UserOperation:
        """
        Rebuild without initCode once the Safe has code.

        The nonce is read again: the deploying operation may have been this
        account's own, consuming the nonce the first build used.
        """
        nonce = await self.chain_client.get_entry_point_nonce(sender, self.nonce_key)
        logger.info("Rebuilding operation for deployed Safe %s (nonce=%d)", sender, nonce)
        return self.build(sender, nonce, action, deployed=True)

    async def refresh_deployment(self, op: UserOperation) -> bool:
        """
        Re-check code presence before submission.

        Returns:
            True when the operation still carries initCode but the Safe has
            been deployed since it was built, so it must be rebuilt

        Raises:
            OperationFrozenError: If the operation was already submitted
        """
        if op.is_frozen:
            raise OperationFrozenError(f"UserOperation for {op.sender} was already submitted")
        if not op.is_deploying:
            return False
        if await self.chain_client.is_deployed(op.sender):
            logger.info("Safe %s was deployed since the operation was built; dropping initCode", op.sender)
            return True
        return False
