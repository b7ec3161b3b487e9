"""
SafeOp Signing Utilities

EIP-712 signing of UserOperations for the Safe4337Module. Every owner signs
the same SafeOp typed data; the module verifies the concatenated signatures
with ``checkSignatures``, which requires them in ascending owner-address
order, so ordering is part of the signature format.

Exported helpers
----------------
TypedDataSigner
    Abstract signer identity (address + async typed-data signing). Remote
    signers (HSM, MPC, wallet RPC) implement this interface.

LocalAccountSigner
    In-process signer backed by an ``eth_account`` private key.

UserOperationSigner
    Builds the SafeOp typed data for an operation and produces the ordered,
    concatenated signature, or a dummy signature for gas estimation.

build_safe_operation_typed_data
    Low-level helper that wraps an operation in a ``SafeOperationTypedData``
    envelope without signing.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence, Tuple
import logging

from eth_account import Account
from eth_account.messages import encode_typed_data

from .constants import ENTRYPOINT_V06
from .standards import SafeOperationDomain, SafeOperationMessage, SafeOperationTypedData
from ..engine.exceptions import EncodingError, IncompleteOperationError
from ..schemas.bases import hex_to_bytes, normalize_address
from ..schemas.operations import UserOperation

logger = logging.getLogger(__name__)


ECDSA_SIGNATURE_LENGTH = 65
VALIDITY_WINDOW_LENGTH = 12

# r just below the curve order, low-s, v = 28: passes structural checks in
# bundler simulation but recovers to an unrelated address.
DUMMY_ECDSA_SIGNATURE = bytes.fromhex(
    "f" * 31 + "0" * 33
    + "7" + "a" * 63
    + "1c"
)


# ---------------------------------------------------------------------------
# Signer identities
# ---------------------------------------------------------------------------

class TypedDataSigner(ABC):
    """An owner able to produce an EIP-712 signature."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Checksummed owner address."""
        pass

    @abstractmethod
    async def sign_typed_data(self, full_message: Dict[str, Any]) -> bytes:
        """
        Sign a full EIP-712 message ({types, primaryType, domain, message}).

        Returns:
            bytes: 65-byte r ++ s ++ v signature
        """
        pass


class LocalAccountSigner(TypedDataSigner):
    """Signer backed by a local private key."""

    def __init__(self, private_key: str):
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_typed_data(self, full_message: Dict[str, Any]) -> bytes:
        signed = Account.sign_typed_data(self._account.key, full_message=full_message)
        return bytes(signed.signature)

    def __repr__(self) -> str:
        return f"LocalAccountSigner(address={self.address})"


# ---------------------------------------------------------------------------
# Typed-data builder
# ---------------------------------------------------------------------------

def build_safe_operation_typed_data(
    op: UserOperation,
    domain: SafeOperationDomain,
    entry_point: str = ENTRYPOINT_V06,
    valid_after: int = 0,
    valid_until: int = 0,
) -> SafeOperationTypedData:
    """
    Wrap a UserOperation in a SafeOp typed-data envelope.

    Args:
        op: Operation to sign (signature field is ignored)
        domain: Module domain (chain id + Safe4337Module address)
        entry_point: EntryPoint the module is bound to
        valid_after: uint48 timestamp, 0 for no lower bound
        valid_until: uint48 timestamp, 0 for no upper bound

    Returns:
        SafeOperationTypedData ready for ``to_dict()``
    """
    for name, value in (("valid_after", valid_after), ("valid_until", valid_until)):
        if not 0 <= value < 2**48:
            raise EncodingError(f"{name} out of uint48 range: {value}")

    message = SafeOperationMessage(
        safe=op.sender,
        nonce=op.nonce,
        initCode=hex_to_bytes(op.init_code),
        callData=hex_to_bytes(op.call_data),
        callGasLimit=op.call_gas_limit,
        verificationGasLimit=op.verification_gas_limit,
        preVerificationGas=op.pre_verification_gas,
        maxFeePerGas=op.max_fee_per_gas,
        maxPriorityFeePerGas=op.max_priority_fee_per_gas,
        paymasterAndData=hex_to_bytes(op.paymaster_and_data),
        validAfter=valid_after,
        validUntil=valid_until,
        entryPoint=normalize_address(entry_point, "entry_point"),
    )
    return SafeOperationTypedData(domain=domain, message=message)


def dummy_signature(signer_count: int) -> bytes:
    """Structurally valid placeholder signature for ``signer_count`` owners."""
    if signer_count < 1:
        raise EncodingError("at least one signer is required")
    return DUMMY_ECDSA_SIGNATURE * signer_count


# ---------------------------------------------------------------------------
# UserOperation signer
# ---------------------------------------------------------------------------

class UserOperationSigner:
    """
    Produces Safe4337Module signatures for UserOperations.

    Args:
        entry_point: EntryPoint the module validates against
        valid_after / valid_until: validity window covered by the signature
        include_validity_window: prefix the 12-byte window to the signature,
            as required by module versions that read it from the signature
    """

    def __init__(
        self,
        entry_point: str = ENTRYPOINT_V06,
        valid_after: int = 0,
        valid_until: int = 0,
        include_validity_window: bool = False,
    ):
        self.entry_point = normalize_address(entry_point, "entry_point")
        self.valid_after = valid_after
        self.valid_until = valid_until
        self.include_validity_window = include_validity_window

    def _window(self) -> bytes:
        if not self.include_validity_window:
            return b""
        return self.valid_after.to_bytes(6, "big") + self.valid_until.to_bytes(6, "big")

    def typed_data(self, op: UserOperation, domain: SafeOperationDomain) -> Dict[str, Any]:
        return build_safe_operation_typed_data(
            op,
            domain,
            entry_point=self.entry_point,
            valid_after=self.valid_after,
            valid_until=self.valid_until,
        ).to_dict()

    async def sign(
        self,
        op: UserOperation,
        domain: SafeOperationDomain,
        signers: Sequence[TypedDataSigner],
        dummy: bool = False,
        zero_fee_sponsorship: bool = False,
    ) -> bytes:
        """
        Sign an operation with every signer and concatenate in address order.

        Args:
            op: Operation whose gas fields are populated
            domain: Module domain
            signers: Owner identities (any order)
            dummy: Return a placeholder signature without invoking any signer
            zero_fee_sponsorship: Accept maxFeePerGas == 0 for relays that
                sponsor by requiring zero fees

        Returns:
            bytes: [validity window ++] sig_1 ++ ... ++ sig_n

        Raises:
            IncompleteOperationError: If a covered gas field is still zero
            EncodingError: If no signers are given or a signature is malformed
        """
        if not signers:
            raise EncodingError("at least one signer is required")

        if dummy:
            return self._window() + dummy_signature(len(signers))

        missing = op.missing_gas_fields()
        if zero_fee_sponsorship and "max_fee_per_gas" in missing:
            missing.remove("max_fee_per_gas")
        if missing:
            raise IncompleteOperationError(missing)

        full_message = self.typed_data(op, domain)
        collected: List[Tuple[str, bytes]] = []
        for signer in signers:
            signature = await signer.sign_typed_data(full_message)
            if len(signature) != ECDSA_SIGNATURE_LENGTH:
                raise EncodingError(
                    f"signer {signer.address} returned {len(signature)} bytes, expected {ECDSA_SIGNATURE_LENGTH}"
                )
            collected.append((signer.address.lower(), signature))

        collected.sort(key=lambda item: item[0])
        logger.debug("Signed SafeOp for %s with %d owner(s)", op.sender, len(collected))
        return self._window() + b"".join(sig for _, sig in collected)

    def recover_signers(self, op: UserOperation, domain: SafeOperationDomain, signature: bytes) -> List[str]:
        """
        Recover owner addresses from a concatenated signature, in order.

        Useful for checking an externally produced signature before submission.
        """
        body = signature[len(self._window()):]
        if len(body) == 0 or len(body) % ECDSA_SIGNATURE_LENGTH:
            raise EncodingError(f"signature length {len(body)} is not a multiple of {ECDSA_SIGNATURE_LENGTH}")

        signable = encode_typed_data(full_message=self.typed_data(op, domain))
        return [
            Account.recover_message(signable, signature=body[i:i + ECDSA_SIGNATURE_LENGTH])
            for i in range(0, len(body), ECDSA_SIGNATURE_LENGTH)
        ]
