"""
UserOperation Pipeline

End-to-end flow for one account action:

    derive Safe address, read deployment state and nonce, build
    -> adapter.prepare (placeholders, ERC-20 paymaster)
    -> dummy signature (providers that simulate validation)
    -> fee quote (unless the sponsorship response carries the fees)
    -> paymaster sponsorship or gas estimation
    -> prefund check with a bounded wait for a top-up (self-funded only)
    -> final owner signatures
    -> deployment re-check (rebuild without initCode if the Safe appeared)
    -> submit once and poll for the receipt

Each gas and fee field is assigned once from the response that provides it.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence

import httpx

from .builder import OperationBuilder
from .events import EventBus
from .exceptions import ConfigurationError, InsufficientFunds
from .poller import SubmissionOutcome, SubmissionPoller
from ..adapters.bases import ProviderAdapter
from ..adapters.registry import ProviderRegistry
from ..adapters.unions import ActionTypes, parse_action
from ..config import PipelineConfig
from ..evm.chain import ChainClient
from ..evm.constants import explorer_link
from ..evm.safe import SafeAccount
from ..evm.signatures import TypedDataSigner, UserOperationSigner
from ..evm.standards import SafeOperationDomain
from ..schemas.actions import NativeTransfer, RawCall
from ..schemas.operations import UserOperation

logger = logging.getLogger(__name__)

# funder(sender, shortfall_wei) tops the sender up
Funder = Callable[[str, int], Awaitable[None]]


def build_safe_account(config: PipelineConfig) -> SafeAccount:
    """Safe definition for the configured owners, salt and paymaster setup."""
    account = config.account
    provider = config.provider
    if provider.uses_erc20_paymaster:
        return SafeAccount.with_paymaster_approval(
            owners=list(account.owners),
            deployment=config.chain.safe,
            erc20_token=provider.erc20_token,
            paymaster=provider.paymaster_address,
            threshold=account.threshold,
            salt_nonce=account.salt_nonce,
        )
    return SafeAccount(
        owners=list(account.owners),
        deployment=config.chain.safe,
        threshold=account.threshold,
        salt_nonce=account.salt_nonce,
    )


class UserOperationPipeline:
    """
    Builds, sponsors or funds, signs and submits UserOperations for a Safe.

    Args:
        config: Validated pipeline configuration
        adapter: Provider adapter for config.provider
        chain_client: Chain reader for the configured chain
        signers: Owner signers; at least ``threshold`` configured owners
        event_bus: Optional bus receiving lifecycle events
        funder: Optional coroutine invoked with (sender, shortfall) when a
            self-funded sender cannot cover the prefund
        builder: Override the OperationBuilder (tests)
        signer: Override the UserOperationSigner (tests)

    Raises:
        ConfigurationError: If the signers do not satisfy the account
    """

    def __init__(
        self,
        config: PipelineConfig,
        adapter: ProviderAdapter,
        chain_client: ChainClient,
        signers: Sequence[TypedDataSigner],
        event_bus: Optional[EventBus] = None,
        funder: Optional[Funder] = None,
        builder: Optional[OperationBuilder] = None,
        signer: Optional[UserOperationSigner] = None,
    ):
        self.config = config
        self.adapter = adapter
        self.chain_client = chain_client
        self.signers = list(signers)
        self.funder = funder
        self._check_signers()

        self.builder = builder or OperationBuilder(
            build_safe_account(config),
            chain_client,
            nonce_key=config.account.nonce_key,
        )
        self.signer = signer or UserOperationSigner(
            entry_point=config.chain.entry_point,
            include_validity_window=config.include_validity_window,
        )
        self.domain = SafeOperationDomain(
            chainId=config.chain.chain_id,
            verifyingContract=config.chain.safe.safe_4337_module,
        )
        self.poller = SubmissionPoller(adapter, config.polling, event_bus)

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        signers: Sequence[TypedDataSigner],
        registry: Optional[ProviderRegistry] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ) -> "UserOperationPipeline":
        """Create the chain client and provider adapter from configuration."""
        chain_client = ChainClient(
            config.chain.rpc_url,
            entry_point=config.chain.entry_point,
            request_timeout=config.provider.request_timeout,
        )
        registry = registry or ProviderRegistry()
        adapter = registry.create_adapter(config.provider, config.chain, chain_client=chain_client, transport=transport)
        return cls(config, adapter, chain_client, signers, **kwargs)

    def _check_signers(self) -> None:
        owners = {o.lower() for o in self.config.account.owners}
        strangers = [s.address for s in self.signers if s.address.lower() not in owners]
        if strangers:
            raise ConfigurationError(f"Signers are not Safe owners: {', '.join(strangers)}")
        if len({s.address.lower() for s in self.signers}) < self.config.account.threshold:
            raise ConfigurationError(
                f"{len(self.signers)} signer(s) cannot meet threshold {self.config.account.threshold}"
            )

    @staticmethod
    async def _sleep_async(seconds: float) -> None:
        await asyncio.sleep(seconds)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def prepare_signed(self, action: ActionTypes) -> UserOperation:
        """
        Build and sign an operation for ``action`` without submitting it.

        Raises:
            EncodingError: If the action is not supported
            ProviderError: If a provider or chain call fails
            InsufficientFunds: If a self-funded sender stays short of the prefund
            IncompleteOperationError: If the provider left a signed gas field empty
        """
        action = parse_action(action)
        op = await self.builder.prepare(action)
        await self._complete(op, action)

        if await self.builder.refresh_deployment(op):
            op = await self.builder.rebuild_deployed(op.sender, action)
            await self._complete(op, action)
        return op

    async def execute(self, action: ActionTypes, timeout: Optional[float] = None) -> SubmissionOutcome:
        """
        Build, sign, submit and poll.

        Args:
            action: Account action
            timeout: Optional wall-clock deadline for submission and polling

        Raises:
            Timeout: If ``timeout`` elapses before a terminal state
        """
        op = await self.prepare_signed(action)
        if timeout is None:
            outcome = await self.poller.run(op)
        else:
            outcome = await self.poller.wait(op, timeout)
        if outcome.receipt is not None:
            logger.info(
                "Operation from %s %s: %s",
                op.sender, outcome.state.value,
                explorer_link(self.config.chain.chain, "tx", outcome.receipt.transaction_hash),
            )
        return outcome

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _complete(self, op: UserOperation, action: ActionTypes) -> None:
        await self.adapter.prepare(op)

        if self.adapter.requires_dummy_signature:
            op.signature = await self.signer.sign(op, self.domain, self.signers, dummy=True)

        fees_from_sponsor = self.config.use_paymaster and self.adapter.sponsorship_quotes_fees
        if not fees_from_sponsor:
            op.apply_fees(await self.adapter.get_fee_quote(op))

        if self.config.use_paymaster:
            data = await self.adapter.request_paymaster_data(op)
            op.apply_paymaster(data)
            if data.gas is None:
                op.apply_gas(await self.adapter.estimate_gas(op))
            if fees_from_sponsor and data.fees is None:
                op.apply_fees(await self.adapter.get_fee_quote(op))
        else:
            op.apply_gas(await self.adapter.estimate_gas(op))

        if not op.has_paymaster:
            await self._ensure_funded(op, _native_value(action))

        op.signature = await self.signer.sign(
            op,
            self.domain,
            self.signers,
            zero_fee_sponsorship=self.adapter.zero_fee_sponsorship,
        )
        logger.info(
            "Signed operation for %s: nonce=%d callGas=%d verificationGas=%d preVerificationGas=%d maxFee=%d",
            op.sender, op.nonce, op.call_gas_limit, op.verification_gas_limit,
            op.pre_verification_gas, op.max_fee_per_gas,
        )

    async def _ensure_funded(self, op: UserOperation, value: int) -> None:
        required = op.required_prefund() + value
        if required == 0:
            return
        balance = await self.chain_client.get_balance(op.sender)
        if balance >= required:
            return

        logger.warning("Sender %s holds %d wei, needs %d", op.sender, balance, required)
        if self.funder is not None:
            await self.funder(op.sender, required - balance)

        funding = self.config.funding
        for _ in range(funding.max_checks):
            await self._sleep_async(funding.interval)
            balance = await self.chain_client.get_balance(op.sender)
            if balance >= required:
                logger.info("Sender %s funded: %d wei", op.sender, balance)
                return
        raise InsufficientFunds(op.sender, required, balance)

    async def aclose(self) -> None:
        await self.adapter.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()


def _native_value(action: ActionTypes) -> int:
    if isinstance(action, (NativeTransfer, RawCall)):
        return action.value
    return 0
