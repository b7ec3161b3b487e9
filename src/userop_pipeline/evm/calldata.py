"""
UserOperation Call Data Encoding

Every action is executed through the Safe4337Module entry point

    executeUserOp(address to, uint256 value, bytes data, uint8 operation)

so encoding an action means producing the inner ``(to, value, data,
operation)`` tuple and wrapping it. Decoding reverses both steps and is used
to check what an operation will actually do before it is signed.
"""

from typing import NamedTuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError as AbiEncodingError

from .abis import (
    ERC20_MINT_SIGNATURE,
    ERC20_TRANSFER_SIGNATURE,
    ERC721_SAFE_MINT_SIGNATURE,
    EXECUTE_USER_OP_SIGNATURE,
    selector,
)
from ..adapters.unions import ActionTypes
from ..engine.exceptions import EncodingError
from ..schemas.actions import (
    CallOperation,
    Erc20Mint,
    Erc20Transfer,
    Erc721Mint,
    NativeTransfer,
    RawCall,
)
from ..schemas.bases import hex_to_bytes, normalize_address


class ExecuteCall(NamedTuple):
    """Decoded executeUserOp arguments."""
    to: str
    value: int
    data: bytes
    operation: CallOperation


_EXECUTE_USER_OP = selector(EXECUTE_USER_OP_SIGNATURE)
_TRANSFER = selector(ERC20_TRANSFER_SIGNATURE)
_MINT = selector(ERC20_MINT_SIGNATURE)
_SAFE_MINT = selector(ERC721_SAFE_MINT_SIGNATURE)


class CallDataEncoder:
    """Encodes account actions into Safe4337Module call data."""

    def encode_inner(self, action: ActionTypes) -> ExecuteCall:
        """
        Map an action onto the call the Safe performs.

        Raises:
            EncodingError: If the action type is not supported
        """
        if isinstance(action, NativeTransfer):
            return ExecuteCall(action.to, action.value, b"", CallOperation.CALL)
        if isinstance(action, Erc20Transfer):
            data = _TRANSFER + encode(["address", "uint256"], [action.to, action.amount])
            return ExecuteCall(action.token, 0, data, CallOperation.CALL)
        if isinstance(action, Erc20Mint):
            data = _MINT + encode(["address", "uint256"], [action.to, action.amount])
            return ExecuteCall(action.token, 0, data, CallOperation.CALL)
        if isinstance(action, Erc721Mint):
            data = _SAFE_MINT + encode(["address"], [action.to])
            return ExecuteCall(action.token, 0, data, CallOperation.CALL)
        if isinstance(action, RawCall):
            return ExecuteCall(action.to, action.value, hex_to_bytes(action.data), CallOperation(action.operation))
        raise EncodingError(f"unsupported action: {type(action).__name__}")

    def encode(self, action: ActionTypes) -> bytes:
        """
        Encode an action as executeUserOp call data.

        Raises:
            EncodingError: If the action is unsupported or a value does not
                fit its ABI type
        """
        try:
            call = self.encode_inner(action)
            return _EXECUTE_USER_OP + encode(
                ["address", "uint256", "bytes", "uint8"],
                [normalize_address(call.to, "to"), call.value, call.data, int(call.operation)],
            )
        except AbiEncodingError as e:
            raise EncodingError(f"cannot encode {type(action).__name__}: {e}") from e

    def encode_hex(self, action: ActionTypes) -> str:
        return "0x" + self.encode(action).hex()


def decode_execute_user_op(call_data) -> ExecuteCall:
    """
    Decode executeUserOp call data.

    Raises:
        EncodingError: If the selector or the argument encoding does not match
    """
    raw = bytes(call_data) if isinstance(call_data, (bytes, bytearray)) else hex_to_bytes(call_data, "callData")
    if raw[:4] != _EXECUTE_USER_OP:
        raise EncodingError(f"not an executeUserOp call: selector 0x{raw[:4].hex()}")
    try:
        to, value, data, operation = decode(["address", "uint256", "bytes", "uint8"], raw[4:])
    except DecodingError as e:
        raise EncodingError(f"malformed executeUserOp arguments: {e}") from e
    try:
        operation = CallOperation(operation)
    except ValueError as e:
        raise EncodingError(f"unknown Safe operation {operation}") from e
    return ExecuteCall(normalize_address(to), value, data, operation)


def decode_action(call_data) -> ActionTypes:
    """
    Recover the action encoded in executeUserOp call data.

    Inner calls that match a known token selector are decoded to that action;
    everything else comes back as a RawCall.
    """
    call = decode_execute_user_op(call_data)
    data = call.data

    if call.operation == CallOperation.CALL:
        if not data:
            return NativeTransfer(to=call.to, value=call.value)
        if call.value == 0 and data[:4] in (_TRANSFER, _MINT) and len(data) == 68:
            recipient, amount = decode(["address", "uint256"], data[4:])
            cls = Erc20Transfer if data[:4] == _TRANSFER else Erc20Mint
            return cls(token=call.to, to=recipient, amount=amount)
        if call.value == 0 and data[:4] == _SAFE_MINT and len(data) == 36:
            (recipient,) = decode(["address"], data[4:])
            return Erc721Mint(token=call.to, to=recipient)

    return RawCall(to=call.to, value=call.value, data="0x" + data.hex(), operation=call.operation)
