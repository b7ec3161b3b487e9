"""
Account Action Models

The closed set of actions a Safe can perform through a UserOperation. Every
action is discriminated by ``action_type`` so it can travel inside a pydantic
discriminated union (see ``adapters.unions.ActionTypes``).
"""

from enum import IntEnum
from typing import Literal

from pydantic import Field, field_validator

from .bases import CanonicalModel, normalize_address, normalize_hex

_UINT256_MAX = 2**256 - 1


class CallOperation(IntEnum):
    """Safe execution mode for the inner call."""
    CALL = 0
    DELEGATE_CALL = 1


class BaseAction(CanonicalModel):
    """Common base for account actions."""

    action_type: str = Field(..., description="Discriminator")

    @field_validator("to", "token", mode="before", check_fields=False)
    @classmethod
    def _check_address(cls, value, info):
        return normalize_address(value, info.field_name)


class NativeTransfer(BaseAction):
    """Send native currency from the Safe."""
    action_type: Literal["native_transfer"] = "native_transfer"
    to: str
    value: int = Field(..., ge=0, le=_UINT256_MAX, description="Amount in wei")


class Erc20Transfer(BaseAction):
    """ERC-20 ``transfer(to, amount)`` from the Safe."""
    action_type: Literal["erc20_transfer"] = "erc20_transfer"
    token: str
    to: str
    amount: int = Field(..., ge=0, le=_UINT256_MAX, description="Amount in token base units")


class Erc20Mint(BaseAction):
    """ERC-20 ``mint(to, amount)`` on a test token."""
    action_type: Literal["erc20_mint"] = "erc20_mint"
    token: str
    to: str
    amount: int = Field(..., ge=0, le=_UINT256_MAX)


class Erc721Mint(BaseAction):
    """ERC-721 ``safeMint(to)``."""
    action_type: Literal["erc721_mint"] = "erc721_mint"
    token: str
    to: str


class RawCall(BaseAction):
    """Arbitrary call (or delegate call) with caller-supplied data."""
    action_type: Literal["raw_call"] = "raw_call"
    to: str
    value: int = Field(0, ge=0, le=_UINT256_MAX)
    data: str = "0x"
    operation: CallOperation = CallOperation.CALL

    @field_validator("data", mode="before")
    @classmethod
    def _check_data(cls, value):
        return normalize_hex(value, "data")
