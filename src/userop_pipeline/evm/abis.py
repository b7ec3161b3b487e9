"""
Contract ABI Module

Simplified ABI fragments for the contracts the pipeline reads from through
web3 (EntryPoint, SafeProxyFactory, ERC-20), and the function signatures it
encodes call data for directly with eth_abi.

Usage:
    from .abis import get_entry_point_abi, SAFE_SETUP_SIGNATURE

    entry_point = w3.eth.contract(address=ENTRYPOINT_V06, abi=get_entry_point_abi())
    nonce = await entry_point.functions.getNonce(sender, 0).call()
"""

from typing import Any, Dict, List

from eth_utils import function_signature_to_4byte_selector


# Function signatures encoded by hand (selector ++ abi.encode(args))
SAFE_SETUP_SIGNATURE = "setup(address[],uint256,address,bytes,address,address,uint256,address)"
ENABLE_MODULES_SIGNATURE = "enableModules(address[])"
CREATE_PROXY_WITH_NONCE_SIGNATURE = "createProxyWithNonce(address,bytes,uint256)"
MULTI_SEND_SIGNATURE = "multiSend(bytes)"
EXECUTE_USER_OP_SIGNATURE = "executeUserOp(address,uint256,bytes,uint8)"
ERC20_TRANSFER_SIGNATURE = "transfer(address,uint256)"
ERC20_APPROVE_SIGNATURE = "approve(address,uint256)"
ERC20_MINT_SIGNATURE = "mint(address,uint256)"
ERC721_SAFE_MINT_SIGNATURE = "safeMint(address)"


def selector(signature: str) -> bytes:
    """4-byte function selector for a canonical signature."""
    return function_signature_to_4byte_selector(signature)


def get_entry_point_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for reading the sender nonce from the EntryPoint.

    Returns:
        List[Dict[str, Any]]: ABI for getNonce(address,uint192)
    """
    return [
        {
            "inputs": [
                {"name": "sender", "type": "address"},
                {"name": "key", "type": "uint192"},
            ],
            "name": "getNonce",
            "outputs": [{"name": "nonce", "type": "uint256"}],
            "stateMutability": "view",
            "type": "function",
        },
        {
            "inputs": [{"name": "account", "type": "address"}],
            "name": "balanceOf",
            "outputs": [{"name": "", "type": "uint256"}],
            "stateMutability": "view",
            "type": "function",
        },
    ]


def get_proxy_factory_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for reading the proxy creation code from SafeProxyFactory.

    Returns:
        List[Dict[str, Any]]: ABI for proxyCreationCode()
    """
    return [
        {
            "inputs": [],
            "name": "proxyCreationCode",
            "outputs": [{"name": "", "type": "bytes"}],
            "stateMutability": "pure",
            "type": "function",
        }
    ]


def get_balance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for querying an ERC-20 token balance.

    Returns:
        List[Dict[str, Any]]: ABI for balanceOf function
    """
    return [
        {
            "constant": True,
            "inputs": [{"name": "_owner", "type": "address"}],
            "name": "balanceOf",
            "outputs": [{"name": "balance", "type": "uint256"}],
            "stateMutability": "view",
            "type": "function",
        }
    ]
