"""
UserOperation and Provider Response Models

Defines the central ERC-4337 (EntryPoint v0.6) UserOperation value object and
the models that carry provider responses back into it.

Key Features:
    - UserOperation: snake_case attributes with camelCase wire aliases, validated
      on every assignment, frozen once submitted
    - GasEstimate / FeeQuote / PaymasterData: parsed provider responses; each
      gas field is assigned onto the operation exactly once per response
    - SubmissionHandle: operation hash or relay task id (distinct key spaces)
    - OperationReceipt: immutable inclusion record parsed from
      eth_getUserOperationReceipt

Example::

    op = UserOperation(sender="0x...", nonce=0, call_data="0x7bb37428...")
    op.apply_gas(GasEstimate.from_rpc(result))
    op.to_rpc_dict()  # {"sender": "0x...", "nonce": "0x0", ...}
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ConfigDict, Field, PrivateAttr, field_validator

from .bases import (
    CanonicalModel,
    normalize_address,
    normalize_hex,
    parse_quantity,
    to_quantity,
)
from ..engine.exceptions import OperationFrozenError


# Wire name of every field, in EntryPoint v0.6 struct order
USER_OPERATION_FIELDS = (
    "sender",
    "nonce",
    "initCode",
    "callData",
    "callGasLimit",
    "verificationGasLimit",
    "preVerificationGas",
    "maxFeePerGas",
    "maxPriorityFeePerGas",
    "paymasterAndData",
    "signature",
)

GAS_FIELDS = ("callGasLimit", "verificationGasLimit", "preVerificationGas")
FEE_FIELDS = ("maxFeePerGas", "maxPriorityFeePerGas")

# Gas fields a final signature must not be computed without
SIGNATURE_REQUIRED_FIELDS = ("call_gas_limit", "verification_gas_limit", "max_fee_per_gas")

_INT_FIELDS = (
    "nonce",
    "call_gas_limit",
    "verification_gas_limit",
    "pre_verification_gas",
    "max_fee_per_gas",
    "max_priority_fee_per_gas",
)
_BYTES_FIELDS = ("init_code", "call_data", "paymaster_and_data", "signature")


class GasEstimate(CanonicalModel):
    """Gas limits returned by eth_estimateUserOperationGas or a sponsorship call."""

    call_gas_limit: Optional[int] = Field(None, alias="callGasLimit")
    verification_gas_limit: Optional[int] = Field(None, alias="verificationGasLimit")
    pre_verification_gas: Optional[int] = Field(None, alias="preVerificationGas")

    @classmethod
    def from_rpc(cls, payload: Dict[str, Any]) -> "GasEstimate":
        # Older bundlers report verificationGas instead of verificationGasLimit
        verification = payload.get("verificationGasLimit", payload.get("verificationGas"))
        return cls(
            call_gas_limit=_optional_quantity(payload.get("callGasLimit"), "callGasLimit"),
            verification_gas_limit=_optional_quantity(verification, "verificationGasLimit"),
            pre_verification_gas=_optional_quantity(payload.get("preVerificationGas"), "preVerificationGas"),
        )


class FeeQuote(CanonicalModel):
    """EIP-1559 fee bounds for a UserOperation."""

    max_fee_per_gas: int = Field(..., ge=0, alias="maxFeePerGas")
    max_priority_fee_per_gas: int = Field(..., ge=0, alias="maxPriorityFeePerGas")

    @classmethod
    def from_rpc(cls, payload: Dict[str, Any]) -> "FeeQuote":
        return cls(
            max_fee_per_gas=parse_quantity(payload.get("maxFeePerGas"), "maxFeePerGas"),
            max_priority_fee_per_gas=parse_quantity(payload.get("maxPriorityFeePerGas"), "maxPriorityFeePerGas"),
        )


class PaymasterData(CanonicalModel):
    """
    Paymaster sponsorship result.

    Combined gas-and-paymaster endpoints also return the gas limits (and, for
    Alchemy, the fees) the paymaster signed over; these travel with the
    paymaster payload so they can be applied together.
    """

    paymaster_and_data: str = Field("0x", alias="paymasterAndData")
    gas: Optional[GasEstimate] = None
    fees: Optional[FeeQuote] = None

    @field_validator("paymaster_and_data", mode="before")
    @classmethod
    def _check_payload(cls, value):
        return normalize_hex(value, "paymasterAndData")

    @classmethod
    def from_rpc(cls, payload: Dict[str, Any]) -> "PaymasterData":
        gas = GasEstimate.from_rpc(payload)
        fees = None
        if payload.get("maxFeePerGas") is not None and payload.get("maxPriorityFeePerGas") is not None:
            fees = FeeQuote.from_rpc(payload)
        has_gas = any(v is not None for v in (gas.call_gas_limit, gas.verification_gas_limit, gas.pre_verification_gas))
        return cls(
            paymaster_and_data=payload.get("paymasterAndData") or "0x",
            gas=gas if has_gas else None,
            fees=fees,
        )


class UserOperation(CanonicalModel):
    """
    ERC-4337 v0.6 UserOperation.

    Created empty by the OperationBuilder, filled field by field by the
    provider adapter and the signer, then frozen when submitted. Integers are
    stored as Python ints and byte strings as 0x-prefixed lowercase hex; the
    JSON-RPC encoding is produced by ``to_rpc_dict``.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    sender: str = Field(..., description="Smart account address (deployed or counterfactual)")
    nonce: int = Field(..., ge=0, description="EntryPoint nonce (key << 64 | sequence)")
    init_code: str = Field("0x", alias="initCode", description="factory ++ factory calldata, empty when deployed")
    call_data: str = Field("0x", alias="callData", description="Account call performed after validation")
    call_gas_limit: int = Field(0, ge=0, alias="callGasLimit")
    verification_gas_limit: int = Field(0, ge=0, alias="verificationGasLimit")
    pre_verification_gas: int = Field(0, ge=0, alias="preVerificationGas")
    max_fee_per_gas: int = Field(0, ge=0, alias="maxFeePerGas")
    max_priority_fee_per_gas: int = Field(0, ge=0, alias="maxPriorityFeePerGas")
    paymaster_and_data: str = Field("0x", alias="paymasterAndData")
    signature: str = Field("0x", description="Concatenated owner signatures")

    _frozen: bool = PrivateAttr(default=False)

    @field_validator("sender", mode="before")
    @classmethod
    def _check_sender(cls, value):
        return normalize_address(value, "sender")

    @field_validator(*_BYTES_FIELDS, mode="before")
    @classmethod
    def _check_bytes(cls, value, info):
        return normalize_hex(value, info.field_name)

    @field_validator(*_INT_FIELDS, mode="before")
    @classmethod
    def _check_quantity(cls, value, info):
        return parse_quantity(value, info.field_name)

    def __setattr__(self, name: str, value: Any) -> None:
        if not name.startswith("_") and self.is_frozen:
            raise OperationFrozenError(f"UserOperation for {self.sender} is frozen; cannot set {name}")
        super().__setattr__(name, value)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_frozen(self) -> bool:
        return bool(getattr(self, "_frozen", False))

    def freeze(self) -> "UserOperation":
        """Mark the operation immutable (called on submission)."""
        self._frozen = True
        return self

    # ------------------------------------------------------------------
    # Field groups
    # ------------------------------------------------------------------

    @property
    def is_deploying(self) -> bool:
        return self.init_code != "0x"

    @property
    def has_paymaster(self) -> bool:
        return self.paymaster_and_data != "0x"

    @property
    def paymaster_address(self) -> Optional[str]:
        """First 20 bytes of paymasterAndData, or None when self-funded."""
        if len(self.paymaster_and_data) < 42:
            return None
        return normalize_address(self.paymaster_and_data[:42], "paymaster")

    def missing_gas_fields(self) -> List[str]:
        return [name for name in SIGNATURE_REQUIRED_FIELDS if getattr(self, name) == 0]

    def is_complete(self) -> bool:
        """True when every gas field covered by the final signature is populated."""
        return not self.missing_gas_fields() and self.pre_verification_gas > 0

    def required_prefund(self) -> int:
        """
        Maximum wei the EntryPoint may charge up front (v0.6 formula).

        Verification gas is counted three times when a paymaster is present
        (validation, postOp and its reserve).
        """
        multiplier = 3 if self.has_paymaster else 1
        required_gas = (
            self.call_gas_limit
            + self.verification_gas_limit * multiplier
            + self.pre_verification_gas
        )
        return required_gas * self.max_fee_per_gas

    # ------------------------------------------------------------------
    # Provider responses
    # ------------------------------------------------------------------

    def apply_gas(self, estimate: GasEstimate) -> None:
        """Assign every gas limit present in the estimate, each exactly once."""
        if estimate.call_gas_limit is not None:
            self.call_gas_limit = estimate.call_gas_limit
        if estimate.verification_gas_limit is not None:
            self.verification_gas_limit = estimate.verification_gas_limit
        if estimate.pre_verification_gas is not None:
            self.pre_verification_gas = estimate.pre_verification_gas

    def apply_fees(self, quote: FeeQuote) -> None:
        self.max_fee_per_gas = quote.max_fee_per_gas
        self.max_priority_fee_per_gas = quote.max_priority_fee_per_gas

    def apply_paymaster(self, data: PaymasterData) -> None:
        self.paymaster_and_data = data.paymaster_and_data
        if data.gas is not None:
            self.apply_gas(data.gas)
        if data.fees is not None:
            self.apply_fees(data.fees)

    # ------------------------------------------------------------------
    # Wire format
    # ------------------------------------------------------------------

    def to_rpc_dict(self, fields: Optional[Iterable[str]] = None) -> Dict[str, str]:
        """
        Encode the operation for JSON-RPC.

        Args:
            fields: Optional subset of wire names to include, in struct order

        Returns:
            Dict[str, str]: wire name -> 0x-hex value
        """
        data = self.model_dump(by_alias=True)
        wanted = USER_OPERATION_FIELDS if fields is None else tuple(f for f in USER_OPERATION_FIELDS if f in set(fields))
        encoded = {}
        for name in wanted:
            value = data[name]
            encoded[name] = to_quantity(value) if isinstance(value, int) else value
        return encoded

    @classmethod
    def from_rpc(cls, payload: Dict[str, Any]) -> "UserOperation":
        return cls(**{name: payload[name] for name in USER_OPERATION_FIELDS if name in payload})


class SubmissionKind(str, Enum):
    """Key space of a submission identifier."""
    OPERATION_HASH = "operation_hash"
    TASK_ID = "task_id"


class SubmissionHandle(CanonicalModel):
    """Identifier returned by a provider on submission."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Operation hash or relay task id")
    kind: SubmissionKind = SubmissionKind.OPERATION_HASH

    def __str__(self) -> str:
        return self.key


class OperationReceipt(CanonicalModel):
    """
    Immutable inclusion record for a UserOperation.

    Attributes:
        user_op_hash: Operation hash reported by the bundler
        transaction_hash: Bundle transaction hash (empty until included)
        success: Whether the inner call succeeded
        actual_gas_used: Gas charged to the operation
        actual_gas_cost: Wei charged to the sender or paymaster
        gas_used: Gas used by the whole bundle transaction
        logs: Raw operation logs
        reason: Revert reason when the provider reports one
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_op_hash: Optional[str] = Field(None, alias="userOpHash")
    transaction_hash: str = Field("", alias="transactionHash")
    success: bool = False
    actual_gas_used: int = Field(0, alias="actualGasUsed")
    actual_gas_cost: int = Field(0, alias="actualGasCost")
    gas_used: int = Field(0, alias="gasUsed")
    logs: List[Dict[str, Any]] = Field(default_factory=list)
    reason: Optional[str] = None

    @property
    def is_included(self) -> bool:
        return bool(self.transaction_hash)

    @classmethod
    def from_rpc(cls, payload: Dict[str, Any]) -> "OperationReceipt":
        tx = payload.get("receipt") or {}
        return cls(
            user_op_hash=payload.get("userOpHash"),
            transaction_hash=tx.get("transactionHash") or "",
            success=bool(payload.get("success", False)),
            actual_gas_used=_optional_quantity(payload.get("actualGasUsed"), "actualGasUsed") or 0,
            actual_gas_cost=_optional_quantity(payload.get("actualGasCost"), "actualGasCost") or 0,
            gas_used=_optional_quantity(tx.get("gasUsed"), "gasUsed") or 0,
            logs=list(payload.get("logs") or []),
            reason=payload.get("reason") or None,
        )

    def alternate_user_op_hash(self, entry_point: str) -> Optional[str]:
        """
        Recover the operation hash from the UserOperationEvent log.

        Relays that key submissions by task id emit the EntryPoint's
        UserOperationEvent second to last; its first indexed topic is the
        operation hash.
        """
        if len(self.logs) < 2:
            return None
        event = self.logs[-2]
        address = event.get("address") or ""
        topics = event.get("topics") or []
        if address.lower() != entry_point.lower() or len(topics) < 2:
            return None
        return topics[1]


def _optional_quantity(value, field: str) -> Optional[int]:
    if value is None:
        return None
    return parse_quantity(value, field)
