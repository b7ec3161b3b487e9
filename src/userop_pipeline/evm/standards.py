from dataclasses import dataclass, field
from typing import Dict, Any, List


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass
class SafeOperationDomain:
    """
    EIP-712 domain of the Safe4337Module.

    The module domain carries no name or version: only the chain id and the
    module address, so a SafeOp signature is bound to one module on one chain.
    """
    chainId: int
    verifyingContract: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


# -----------------------------
# Safe4337Module: SafeOp
# -----------------------------

@dataclass
class SafeOperationMessage:
    """
    Message payload for the Safe4337Module "SafeOp" struct.

    Mirrors the UserOperation fields covered by the owner signatures, plus the
    validity window and the EntryPoint the module checks against. Byte
    fields hold raw bytes; ``safe`` is the UserOperation sender.

    Attributes:
        safe: Safe (sender) address.
        nonce: EntryPoint nonce.
        initCode: Deployment code, empty when the Safe exists.
        callData: executeUserOp call data.
        callGasLimit / verificationGasLimit / preVerificationGas: gas limits.
        maxFeePerGas / maxPriorityFeePerGas: fee bounds.
        paymasterAndData: Paymaster payload, empty when self-funded.
        validAfter / validUntil: uint48 validity window (0 = unbounded).
        entryPoint: EntryPoint address.
    """
    safe: str
    nonce: int
    initCode: bytes
    callData: bytes
    callGasLimit: int
    verificationGasLimit: int
    preVerificationGas: int
    maxFeePerGas: int
    maxPriorityFeePerGas: int
    paymasterAndData: bytes
    validAfter: int
    validUntil: int
    entryPoint: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "safe": self.safe,
            "nonce": self.nonce,
            "initCode": self.initCode,
            "callData": self.callData,
            "callGasLimit": self.callGasLimit,
            "verificationGasLimit": self.verificationGasLimit,
            "preVerificationGas": self.preVerificationGas,
            "maxFeePerGas": self.maxFeePerGas,
            "maxPriorityFeePerGas": self.maxPriorityFeePerGas,
            "paymasterAndData": self.paymasterAndData,
            "validAfter": self.validAfter,
            "validUntil": self.validUntil,
            "entryPoint": self.entryPoint,
        }


@dataclass
class SafeOperationTypedData:
    """
    Container for SafeOp typed data usable with EIP-712 signing routines.

    ``to_dict()`` produces the { types, primaryType, domain, message } layout
    consumed by ``eth_account`` and ``eth_signTypedData_v4``.
    """
    domain: SafeOperationDomain
    message: SafeOperationMessage

    primary_type: str = "SafeOp"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "EIP712Domain": [
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "SafeOp": [
                {"name": "safe", "type": "address"},
                {"name": "nonce", "type": "uint256"},
                {"name": "initCode", "type": "bytes"},
                {"name": "callData", "type": "bytes"},
                {"name": "callGasLimit", "type": "uint256"},
                {"name": "verificationGasLimit", "type": "uint256"},
                {"name": "preVerificationGas", "type": "uint256"},
                {"name": "maxFeePerGas", "type": "uint256"},
                {"name": "maxPriorityFeePerGas", "type": "uint256"},
                {"name": "paymasterAndData", "type": "bytes"},
                {"name": "validAfter", "type": "uint48"},
                {"name": "validUntil", "type": "uint48"},
                {"name": "entryPoint", "type": "address"},
            ],
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }
