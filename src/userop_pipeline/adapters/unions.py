"""
Account Action Polymorphic Types (Discriminated Union)

Defines the action union that discriminates between the supported account
actions using the ``action_type`` field.

Pydantic's Discriminated Union automatically:
- Validates and selects the correct model based on the discriminator value
- Rejects unknown action types with a validation error
- Eliminates manual type detection when actions arrive as plain dicts

To add a new action:
1. Define the model in schemas/actions.py with a new ``action_type`` literal
2. Add it to the Union below
3. Teach CallDataEncoder.encode_inner how to encode it

Example usage:
    action = parse_action({
        "action_type": "erc20_transfer",
        "token": "0x...",
        "to": "0x...",
        "amount": 10**18,
    })  # -> Erc20Transfer
"""

from typing import Any, Dict, Union

from typing_extensions import Annotated
from pydantic import Field, TypeAdapter, ValidationError

from ..engine.exceptions import EncodingError
from ..schemas.actions import (
    Erc20Mint,
    Erc20Transfer,
    Erc721Mint,
    NativeTransfer,
    RawCall,
)


# Discriminated Union for account actions
# Automatically selects correct model based on 'action_type' field value
ActionTypes = Annotated[
    Union[
        NativeTransfer,  # action_type: "native_transfer"
        Erc20Transfer,   # action_type: "erc20_transfer"
        Erc20Mint,       # action_type: "erc20_mint"
        Erc721Mint,      # action_type: "erc721_mint"
        RawCall,         # action_type: "raw_call"
    ],
    Field(discriminator='action_type')
]

_ACTION_ADAPTER = TypeAdapter(ActionTypes)


def parse_action(data: Union[Dict[str, Any], ActionTypes]) -> ActionTypes:
    """
    Validate a plain dict into the matching action model.

    Instances of an action model are returned unchanged.

    Raises:
        EncodingError: If the action type is unknown or a field is invalid
    """
    if isinstance(data, (NativeTransfer, Erc20Transfer, Erc20Mint, Erc721Mint, RawCall)):
        return data
    try:
        return _ACTION_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise EncodingError(f"unsupported action: {e.errors()[0].get('msg', e)}") from e
