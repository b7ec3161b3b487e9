"""
Read-only Chain Access

Thin AsyncWeb3 wrapper for the chain reads the pipeline performs: code
presence (deployment state), balances (fund sufficiency), the latest block
(base fee) and EntryPoint / SafeProxyFactory view calls. Every failure is
raised as ChainRpcError carrying the RPC method name; nothing is retried here.
"""

import logging
from typing import Optional

from web3 import AsyncWeb3

from .abis import get_balance_abi, get_entry_point_abi, get_proxy_factory_abi
from .constants import ENTRYPOINT_V06
from ..engine.exceptions import ChainRpcError, ConfigurationError
from ..schemas.bases import normalize_address

logger = logging.getLogger(__name__)


class ChainClient:
    """
    Async read-only client for one chain.

    Args:
        rpc_url: JSON-RPC endpoint of the chain node
        entry_point: EntryPoint address used for nonce reads
        request_timeout: HTTP timeout in seconds
        web3: Pre-built AsyncWeb3 instance (takes precedence over rpc_url)
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        entry_point: str = ENTRYPOINT_V06,
        request_timeout: float = 30.0,
        web3: Optional[AsyncWeb3] = None,
    ):
        if web3 is None and not rpc_url:
            raise ConfigurationError("ChainClient needs an rpc_url or a web3 instance")
        self.entry_point = normalize_address(entry_point, "entry_point")
        self._web3 = web3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": request_timeout}
        ))
        self._proxy_creation_code = {}

    @property
    def web3(self) -> AsyncWeb3:
        return self._web3

    async def get_code(self, address: str) -> bytes:
        try:
            code = await self._web3.eth.get_code(AsyncWeb3.to_checksum_address(address))
        except Exception as e:
            raise ChainRpcError("eth_getCode", e) from e
        return bytes(code)

    async def is_deployed(self, address: str) -> bool:
        """True when the address holds contract code."""
        return len(await self.get_code(address)) > 0

    async def get_balance(self, address: str, token_address: Optional[str] = None) -> int:
        """
        Native balance, or ERC-20 balance when ``token_address`` is given.

        Returns:
            int: Balance in wei / token base units
        """
        address = AsyncWeb3.to_checksum_address(address)
        if token_address is None:
            try:
                return int(await self._web3.eth.get_balance(address))
            except Exception as e:
                raise ChainRpcError("eth_getBalance", e) from e

        contract = self._web3.eth.contract(
            address=AsyncWeb3.to_checksum_address(token_address),
            abi=get_balance_abi()
        )
        try:
            return int(await contract.functions.balanceOf(address).call())
        except Exception as e:
            raise ChainRpcError("eth_call:balanceOf", e) from e

    async def get_block_number(self) -> int:
        try:
            return int(await self._web3.eth.block_number)
        except Exception as e:
            raise ChainRpcError("eth_blockNumber", e) from e

    async def get_base_fee(self) -> int:
        """baseFeePerGas of the latest block."""
        number = await self.get_block_number()
        try:
            block = await self._web3.eth.get_block(number)
        except Exception as e:
            raise ChainRpcError("eth_getBlockByNumber", e) from e
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            raise ChainRpcError("eth_getBlockByNumber", f"block {number} has no baseFeePerGas (pre-London chain)")
        return int(base_fee)

    async def get_max_priority_fee(self) -> int:
        try:
            return int(await self._web3.eth.max_priority_fee)
        except Exception as e:
            raise ChainRpcError("eth_maxPriorityFeePerGas", e) from e

    async def get_entry_point_nonce(self, sender: str, key: int = 0) -> int:
        """
        EntryPoint.getNonce(sender, key).

        The returned nonce already encodes the key in its upper 192 bits.
        """
        contract = self._web3.eth.contract(address=self.entry_point, abi=get_entry_point_abi())
        try:
            nonce = await contract.functions.getNonce(AsyncWeb3.to_checksum_address(sender), key).call()
        except Exception as e:
            raise ChainRpcError("eth_call:getNonce", e) from e
        return int(nonce)

    async def get_proxy_creation_code(self, factory: str) -> bytes:
        """SafeProxyFactory.proxyCreationCode(), cached per factory."""
        factory = normalize_address(factory, "factory")
        if factory not in self._proxy_creation_code:
            contract = self._web3.eth.contract(address=factory, abi=get_proxy_factory_abi())
            try:
                code = await contract.functions.proxyCreationCode().call()
            except Exception as e:
                raise ChainRpcError("eth_call:proxyCreationCode", e) from e
            self._proxy_creation_code[factory] = bytes(code)
            logger.debug("Fetched proxy creation code from %s (%d bytes)", factory, len(code))
        return self._proxy_creation_code[factory]
