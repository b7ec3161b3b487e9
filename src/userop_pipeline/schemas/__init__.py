from .bases import CanonicalModel, normalize_address, normalize_hex, parse_quantity, to_quantity
from .actions import CallOperation, Erc20Mint, Erc20Transfer, Erc721Mint, NativeTransfer, RawCall
from .operations import (
    FeeQuote,
    GasEstimate,
    OperationReceipt,
    PaymasterData,
    SubmissionHandle,
    SubmissionKind,
    UserOperation,
)

__all__ = [
    "CanonicalModel",
    "normalize_address",
    "normalize_hex",
    "parse_quantity",
    "to_quantity",
    "CallOperation",
    "NativeTransfer",
    "Erc20Transfer",
    "Erc20Mint",
    "Erc721Mint",
    "RawCall",
    "GasEstimate",
    "FeeQuote",
    "PaymasterData",
    "UserOperation",
    "SubmissionKind",
    "SubmissionHandle",
    "OperationReceipt",
]
