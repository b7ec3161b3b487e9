"""
Client module for bundler and paymaster JSON-RPC endpoints.
"""

from .rpc_client import JsonRpcClient, redact_url

__all__ = ["JsonRpcClient", "redact_url"]
