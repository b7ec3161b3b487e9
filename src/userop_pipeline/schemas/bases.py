"""
Base Schema Models for the UserOperation Pipeline

This module defines the base model every schema inherits from, plus the hex
coercion helpers shared by the operation, receipt and action models. The
JSON-RPC wire format carries every integer as a 0x-prefixed quantity and
every byte string as 0x-prefixed lowercase hex; these helpers translate
between that wire format and plain Python ints and strings.

Core Classes:
    - CanonicalModel: Pydantic base model with deterministic JSON serialization

Helpers:
    - normalize_hex: validate and lowercase a 0x-hex byte string
    - normalize_address: validate and checksum a 20-byte address
    - to_quantity / parse_quantity: int <-> JSON-RPC hex quantity

Dependencies:
    - pydantic: For data validation and serialization
    - eth_utils: For address checksumming and hex decoding
"""

import json
from typing import Union

from pydantic import BaseModel, ConfigDict
from eth_utils import is_address, to_checksum_address

from ..engine.exceptions import EncodingError


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    Ensures a deterministic, whitespace-minimal JSON representation suitable
    for logging, hashing and comparing snapshots of an operation.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string (sorted keys, compact).

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json", by_alias=True)
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )


def normalize_hex(value: Union[str, bytes, bytearray], field: str = "value") -> str:
    """
    Normalize a byte string to 0x-prefixed lowercase hex.

    Args:
        value: Hex string (with or without 0x) or raw bytes
        field: Field name used in error messages

    Returns:
        str: 0x-prefixed lowercase hex, "0x" for empty input

    Raises:
        EncodingError: If the value is not valid even-length hex
    """
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if not isinstance(value, str):
        raise EncodingError(f"{field} must be hex string or bytes, got {type(value).__name__}")

    body = value[2:] if value[:2] in ("0x", "0X") else value
    if len(body) % 2:
        raise EncodingError(f"{field} has odd hex length: {value!r}")
    try:
        bytes.fromhex(body)
    except ValueError as e:
        raise EncodingError(f"{field} is not valid hex: {value!r}") from e
    return "0x" + body.lower()


def hex_to_bytes(value: Union[str, bytes, bytearray], field: str = "value") -> bytes:
    """Decode a 0x-hex string (or pass through bytes)."""
    return bytes.fromhex(normalize_hex(value, field)[2:])


def normalize_address(value: Union[str, bytes], field: str = "address") -> str:
    """
    Validate a 20-byte address and return its checksum form.

    Raises:
        EncodingError: If the value is not a 20-byte address
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            raise EncodingError(f"{field} must be 20 bytes, got {len(value)}")
        return to_checksum_address(bytes(value))
    if not isinstance(value, str) or not is_address(value):
        raise EncodingError(f"{field} is not a valid 20-byte address: {value!r}")
    return to_checksum_address(value)


def to_quantity(value: int) -> str:
    """Encode a non-negative integer as a JSON-RPC hex quantity (e.g. '0x1a')."""
    if value < 0:
        raise EncodingError(f"Quantity must be non-negative, got {value}")
    return hex(value)


def parse_quantity(value: Union[str, int, None], field: str = "value") -> int:
    """
    Parse a JSON-RPC quantity into an int.

    Accepts hex strings ('0x1a'), decimal strings ('26') and ints, since
    providers are not consistent about which they return.
    """
    if value is None:
        raise EncodingError(f"{field} is missing")
    if isinstance(value, bool):
        raise EncodingError(f"{field} must be a quantity, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            if value[:2] in ("0x", "0X"):
                return int(value, 16) if len(value) > 2 else 0
            return int(value, 10)
        except ValueError as e:
            raise EncodingError(f"{field} is not a valid quantity: {value!r}") from e
    raise EncodingError(f"{field} must be a quantity, got {type(value).__name__}")
