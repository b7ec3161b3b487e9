"""
Chain Client Test Suite

Tests read-only chain access against a mocked AsyncWeb3 instance.
"""

import pytest
from unittest.mock import AsyncMock, Mock, PropertyMock

from test_mocks import MOCK_PROXY_CREATION_CODE, MOCK_SENDER_ADDRESS, MOCK_TOKEN_ADDRESS

from userop_pipeline.engine.exceptions import ChainRpcError, ConfigurationError
from userop_pipeline.evm.chain import ChainClient
from userop_pipeline.evm.constants import ENTRYPOINT_V06, SafeDeployment


async def latest_block_number():
    return 123


def make_web3(code=b"", balance=0, block=None):
    web3 = Mock()
    web3.eth.get_code = AsyncMock(return_value=code)
    web3.eth.get_balance = AsyncMock(return_value=balance)
    web3.eth.get_block = AsyncMock(return_value=block or {"baseFeePerGas": 10**10})
    type(web3.eth).block_number = PropertyMock(side_effect=latest_block_number)
    web3.eth.contract = Mock()
    return web3


def contract_call(web3, function_name, result=None, error=None):
    call = AsyncMock(return_value=result, side_effect=error)
    getattr(web3.eth.contract.return_value.functions, function_name).return_value.call = call
    return call


class TestChainClient:

    def test_needs_endpoint(self):
        with pytest.raises(ConfigurationError):
            ChainClient()

    @pytest.mark.asyncio
    async def test_is_deployed(self):
        assert await ChainClient(web3=make_web3(code=b"\x60\x80")).is_deployed(MOCK_SENDER_ADDRESS)
        assert not await ChainClient(web3=make_web3(code=b"")).is_deployed(MOCK_SENDER_ADDRESS)

    @pytest.mark.asyncio
    async def test_get_code_failure(self):
        web3 = make_web3()
        web3.eth.get_code.side_effect = OSError("connection refused")
        with pytest.raises(ChainRpcError) as exc_info:
            await ChainClient(web3=web3).get_code(MOCK_SENDER_ADDRESS)
        assert exc_info.value.method == "eth_getCode"
        assert exc_info.value.provider == "chain"

    @pytest.mark.asyncio
    async def test_native_and_token_balance(self):
        web3 = make_web3(balance=5)
        call = contract_call(web3, "balanceOf", result=9)
        client = ChainClient(web3=web3)
        assert await client.get_balance(MOCK_SENDER_ADDRESS) == 5
        assert await client.get_balance(MOCK_SENDER_ADDRESS, MOCK_TOKEN_ADDRESS) == 9
        call.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_base_fee_from_latest_block(self):
        web3 = make_web3()
        assert await ChainClient(web3=web3).get_base_fee() == 10**10
        web3.eth.get_block.assert_awaited_once_with(123)

    @pytest.mark.asyncio
    async def test_pre_london_block(self):
        with pytest.raises(ChainRpcError, match="baseFeePerGas"):
            await ChainClient(web3=make_web3(block={"number": 123})).get_base_fee()

    @pytest.mark.asyncio
    async def test_entry_point_nonce(self):
        web3 = make_web3()
        contract_call(web3, "getNonce", result=42)
        client = ChainClient(web3=web3)

        assert await client.get_entry_point_nonce(MOCK_SENDER_ADDRESS, 3) == 42
        web3.eth.contract.assert_called_once()
        assert web3.eth.contract.call_args.kwargs["address"] == ENTRYPOINT_V06
        web3.eth.contract.return_value.functions.getNonce.assert_called_once_with(MOCK_SENDER_ADDRESS, 3)

    @pytest.mark.asyncio
    async def test_nonce_failure(self):
        web3 = make_web3()
        contract_call(web3, "getNonce", error=ValueError("execution reverted"))
        with pytest.raises(ChainRpcError, match="getNonce"):
            await ChainClient(web3=web3).get_entry_point_nonce(MOCK_SENDER_ADDRESS)

    @pytest.mark.asyncio
    async def test_proxy_creation_code_cached(self):
        web3 = make_web3()
        call = contract_call(web3, "proxyCreationCode", result=MOCK_PROXY_CREATION_CODE)
        client = ChainClient(web3=web3)
        factory = SafeDeployment().proxy_factory

        assert await client.get_proxy_creation_code(factory) == MOCK_PROXY_CREATION_CODE
        assert await client.get_proxy_creation_code(factory.lower()) == MOCK_PROXY_CREATION_CODE
        call.assert_awaited_once()
