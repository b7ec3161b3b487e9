"""
Provider Adapter Test Suite

Exercises every adapter's wire dialect against a scripted JSON-RPC server
(httpx.MockTransport):
- endpoint URLs and method names
- request payload shapes
- response parsing into GasEstimate / FeeQuote / PaymasterData / receipts
- error mapping to ProviderError and ValidationRejected
"""

import httpx
import pytest

from test_mocks import (
    MOCK_BASE_FEE,
    MOCK_FEES,
    MOCK_GAS_ESTIMATE,
    MOCK_PAYMASTER_ADDRESS,
    MOCK_PRIORITY_FEE,
    MOCK_SPONSORED_PAYMASTER_AND_DATA,
    MOCK_TASK_ID,
    MOCK_TOKEN_ADDRESS,
    MOCK_USER_OP_HASH,
    MockRpcServer,
    RpcErrorResponse,
    create_chain_config,
    create_mock_chain_client,
    create_operation,
    create_provider_config,
    create_receipt_payload,
    create_user_operation_event_logs,
)

from userop_pipeline.adapters.alchemy import AlchemyAdapter
from userop_pipeline.adapters.entrypoint import EntryPointAdapter, buffered_max_fee
from userop_pipeline.adapters.gelato import GelatoAdapter
from userop_pipeline.adapters.pimlico import PimlicoAdapter
from userop_pipeline.engine.exceptions import (
    ConfigurationError,
    EncodingError,
    ProviderError,
    ValidationRejected,
)
from userop_pipeline.evm.constants import ENTRYPOINT_V06
from userop_pipeline.schemas.operations import SubmissionHandle, SubmissionKind

EXPECTED_BUFFERED_FEE = (MOCK_BASE_FEE + MOCK_PRIORITY_FEE) * 15 // 10


def make_adapter(adapter_type, server, provider, chain="sepolia", chain_client=None, **overrides):
    return adapter_type(
        create_provider_config(provider, chain, **overrides),
        create_chain_config(chain),
        chain_client=chain_client,
        transport=server.transport,
    )


class TestBufferedFee:

    def test_one_and_a_half_times_sum(self):
        assert buffered_max_fee(10, 2) == 18

    def test_integer_floor(self):
        assert buffered_max_fee(1, 0) == 1


# ============================================================================
# Pimlico
# ============================================================================

class TestPimlicoAdapter:

    def test_endpoint_urls(self):
        adapter = make_adapter(PimlicoAdapter, MockRpcServer(), "pimlico", chain="base-sepolia")
        assert adapter.bundler_url() == "https://api.pimlico.io/v1/base-sepolia/rpc?apikey=test-key"
        assert adapter.paymaster_url() == "https://api.pimlico.io/v2/base-sepolia/rpc?apikey=test-key"

    @pytest.mark.asyncio
    async def test_fee_quote_uses_fast_tier(self):
        server = MockRpcServer({
            "pimlico_getUserOperationGasPrice": {
                "slow": {"maxFeePerGas": "0x1", "maxPriorityFeePerGas": "0x1"},
                "fast": MOCK_FEES,
            }
        })
        adapter = make_adapter(PimlicoAdapter, server, "pimlico")
        quote = await adapter.get_fee_quote(create_operation())
        assert quote.max_fee_per_gas == 10**9
        assert server.methods() == ["pimlico_getUserOperationGasPrice"]
        assert "/v1/sepolia/" in server.calls[0].url

    @pytest.mark.asyncio
    async def test_estimate_gas(self):
        server = MockRpcServer({"eth_estimateUserOperationGas": MOCK_GAS_ESTIMATE})
        adapter = make_adapter(PimlicoAdapter, server, "pimlico")
        estimate = await adapter.estimate_gas(create_operation())
        assert estimate.pre_verification_gas == 50000
        payload, entry_point = server.calls[0].params
        assert entry_point == ENTRYPOINT_V06
        assert payload["callGasLimit"] == "0x186a0"

    @pytest.mark.asyncio
    async def test_sponsorship_goes_to_paymaster_endpoint(self):
        server = MockRpcServer({
            "pm_sponsorUserOperation": dict(MOCK_GAS_ESTIMATE, paymasterAndData=MOCK_SPONSORED_PAYMASTER_AND_DATA)
        })
        adapter = make_adapter(PimlicoAdapter, server, "pimlico", policy_id="sp_test")
        data = await adapter.request_paymaster_data(create_operation())

        assert data.paymaster_and_data == MOCK_SPONSORED_PAYMASTER_AND_DATA
        assert data.gas.call_gas_limit == 100000
        call = server.calls[0]
        assert "/v2/sepolia/" in call.url
        assert call.params[1] == ENTRYPOINT_V06
        assert call.params[2] == {"sponsorshipPolicyId": "sp_test"}

    @pytest.mark.asyncio
    async def test_prepare_sets_placeholders_and_erc20_paymaster(self):
        adapter = make_adapter(
            PimlicoAdapter, MockRpcServer(), "pimlico",
            paymaster_address=MOCK_PAYMASTER_ADDRESS, erc20_token=MOCK_TOKEN_ADDRESS,
        )
        op = create_operation(call_gas_limit=0, verification_gas_limit=0, pre_verification_gas=0)
        await adapter.prepare(op)
        assert (op.call_gas_limit, op.verification_gas_limit, op.pre_verification_gas) == (1, 1, 1)
        assert op.paymaster_address == MOCK_PAYMASTER_ADDRESS

    @pytest.mark.asyncio
    async def test_submit_returns_operation_hash(self):
        server = MockRpcServer({"eth_sendUserOperation": MOCK_USER_OP_HASH})
        adapter = make_adapter(PimlicoAdapter, server, "pimlico")
        handle = await adapter.submit(create_operation(signature="0x" + "aa" * 65))
        assert handle == SubmissionHandle(key=MOCK_USER_OP_HASH, kind=SubmissionKind.OPERATION_HASH)
        assert server.calls[0].params[0]["signature"] == "0x" + "aa" * 65


# ============================================================================
# Alchemy
# ============================================================================

class TestAlchemyAdapter:

    def test_endpoint_url(self):
        adapter = make_adapter(AlchemyAdapter, MockRpcServer(), "alchemy", chain="goerli")
        assert adapter.bundler_url() == "https://eth-goerli.g.alchemy.com/v2/test-key"
        assert adapter.requires_dummy_signature

    @pytest.mark.asyncio
    async def test_fee_quote_buffers_base_plus_priority(self):
        server = MockRpcServer({"rundler_maxPriorityFeePerGas": hex(MOCK_PRIORITY_FEE)})
        chain_client = create_mock_chain_client()
        adapter = make_adapter(AlchemyAdapter, server, "alchemy", chain_client=chain_client)

        quote = await adapter.get_fee_quote(create_operation())
        assert quote.max_priority_fee_per_gas == MOCK_PRIORITY_FEE
        assert quote.max_fee_per_gas == EXPECTED_BUFFERED_FEE
        assert server.calls[0].params == []
        chain_client.get_base_fee.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_estimation_omits_gas_fields(self):
        server = MockRpcServer({"eth_estimateUserOperationGas": MOCK_GAS_ESTIMATE})
        adapter = make_adapter(AlchemyAdapter, server, "alchemy")
        await adapter.estimate_gas(create_operation(signature="0x" + "ff" * 65))
        payload = server.calls[0].params[0]
        assert set(payload) == {"sender", "nonce", "initCode", "callData", "paymasterAndData", "signature"}

    @pytest.mark.asyncio
    async def test_gas_manager_request(self):
        response = dict(MOCK_GAS_ESTIMATE, paymasterAndData=MOCK_SPONSORED_PAYMASTER_AND_DATA, **MOCK_FEES)
        server = MockRpcServer({"alchemy_requestGasAndPaymasterAndData": response})
        adapter = make_adapter(AlchemyAdapter, server, "alchemy", policy_id="policy-1")
        op = create_operation(signature="0x" + "ff" * 65, nonce=3)

        data = await adapter.request_paymaster_data(op)

        (request,) = server.calls[0].params
        assert request["policyId"] == "policy-1"
        assert request["entryPoint"] == ENTRYPOINT_V06
        assert request["dummySignature"] == op.signature
        assert request["userOperation"] == {
            "sender": op.sender,
            "nonce": "0x3",
            "initCode": "0x",
            "callData": op.call_data,
        }
        assert data.gas.verification_gas_limit == 400000
        assert data.fees.max_fee_per_gas == 10**9

    @pytest.mark.asyncio
    async def test_gas_manager_requires_dummy_signature(self):
        server = MockRpcServer()
        adapter = make_adapter(AlchemyAdapter, server, "alchemy", policy_id="policy-1")
        with pytest.raises(EncodingError, match="dummy signature required"):
            await adapter.request_paymaster_data(create_operation())
        assert server.calls == []

    @pytest.mark.asyncio
    async def test_gas_manager_requires_policy(self):
        adapter = make_adapter(AlchemyAdapter, MockRpcServer(), "alchemy")
        with pytest.raises(ConfigurationError):
            await adapter.request_paymaster_data(create_operation(signature="0x" + "ff" * 65))


# ============================================================================
# Gelato
# ============================================================================

class TestGelatoAdapter:

    def test_endpoint_url_uses_chain_id(self):
        adapter = make_adapter(GelatoAdapter, MockRpcServer(), "gelato")
        assert adapter.bundler_url() == "https://api.gelato.digital/bundlers/11155111/rpc?sponsorApiKey=test-key"

    @pytest.mark.asyncio
    async def test_fees_are_zero_without_network(self):
        server = MockRpcServer()
        adapter = make_adapter(GelatoAdapter, server, "gelato")
        quote = await adapter.get_fee_quote(create_operation())
        assert (quote.max_fee_per_gas, quote.max_priority_fee_per_gas) == (0, 0)
        assert server.calls == []

    @pytest.mark.asyncio
    async def test_estimation_payload(self):
        server = MockRpcServer({"eth_estimateUserOperationGas": MOCK_GAS_ESTIMATE})
        adapter = make_adapter(GelatoAdapter, server, "gelato")
        op = create_operation(paymaster_and_data=MOCK_SPONSORED_PAYMASTER_AND_DATA)
        await adapter.estimate_gas(op)
        payload = server.calls[0].params[0]
        assert set(payload) == {"sender", "nonce", "initCode", "callData", "signature", "paymasterAndData"}
        assert payload["paymasterAndData"] == "0x"

    @pytest.mark.asyncio
    async def test_submit_returns_task_id(self):
        server = MockRpcServer({"eth_sendUserOperation": MOCK_TASK_ID})
        adapter = make_adapter(GelatoAdapter, server, "gelato")
        handle = await adapter.submit(create_operation(max_fee_per_gas=0, max_priority_fee_per_gas=0))
        assert handle.kind == SubmissionKind.TASK_ID
        assert handle.key == MOCK_TASK_ID

    @pytest.mark.asyncio
    async def test_receipt_recovers_operation_hash(self):
        actual_hash = "0x" + "77" * 32
        server = MockRpcServer({
            "eth_getUserOperationReceipt": create_receipt_payload(
                user_op_hash=MOCK_TASK_ID, logs=create_user_operation_event_logs(actual_hash)
            )
        })
        adapter = make_adapter(GelatoAdapter, server, "gelato")
        receipt = await adapter.get_receipt(SubmissionHandle(key=MOCK_TASK_ID, kind=SubmissionKind.TASK_ID))
        assert receipt.user_op_hash == actual_hash
        assert server.calls[0].params == [MOCK_TASK_ID]

    @pytest.mark.asyncio
    async def test_rejects_operation_hash_handles(self):
        adapter = make_adapter(GelatoAdapter, MockRpcServer(), "gelato")
        with pytest.raises(ValueError):
            await adapter.get_receipt(SubmissionHandle(key=MOCK_USER_OP_HASH))

    @pytest.mark.asyncio
    async def test_no_paymaster(self):
        adapter = make_adapter(GelatoAdapter, MockRpcServer(), "gelato")
        assert not adapter.supports_paymaster
        with pytest.raises(ConfigurationError):
            await adapter.request_paymaster_data(create_operation())


# ============================================================================
# Generic EntryPoint bundler
# ============================================================================

class TestEntryPointAdapter:

    @pytest.mark.asyncio
    async def test_fees_from_chain(self):
        chain_client = create_mock_chain_client()
        adapter = make_adapter(EntryPointAdapter, MockRpcServer(), "entrypoint", chain_client=chain_client)
        quote = await adapter.get_fee_quote(create_operation())
        assert quote.max_fee_per_gas == EXPECTED_BUFFERED_FEE
        assert quote.max_priority_fee_per_gas == MOCK_PRIORITY_FEE

    @pytest.mark.asyncio
    async def test_fees_need_chain_client(self):
        adapter = make_adapter(EntryPointAdapter, MockRpcServer(), "entrypoint")
        with pytest.raises(ConfigurationError):
            await adapter.get_fee_quote(create_operation())

    @pytest.mark.asyncio
    async def test_sponsorship_on_separate_paymaster_url(self):
        server = MockRpcServer({"pm_sponsorUserOperation": {"paymasterAndData": MOCK_SPONSORED_PAYMASTER_AND_DATA}})
        adapter = make_adapter(
            EntryPointAdapter, server, "entrypoint", paymaster_url="http://paymaster.local/rpc"
        )
        data = await adapter.request_paymaster_data(create_operation())
        assert data.gas is None
        assert server.calls[0].url == "http://paymaster.local/rpc"
        assert len(server.calls[0].params) == 2

    @pytest.mark.asyncio
    async def test_pending_receipt_is_none(self):
        server = MockRpcServer({"eth_getUserOperationReceipt": None})
        adapter = make_adapter(EntryPointAdapter, server, "entrypoint")
        assert await adapter.get_receipt(SubmissionHandle(key=MOCK_USER_OP_HASH)) is None

    @pytest.mark.asyncio
    async def test_receipt_without_transaction_is_pending(self):
        payload = create_receipt_payload()
        payload["receipt"] = {}
        server = MockRpcServer({"eth_getUserOperationReceipt": payload})
        adapter = make_adapter(EntryPointAdapter, server, "entrypoint")
        assert await adapter.get_receipt(SubmissionHandle(key=MOCK_USER_OP_HASH)) is None

    @pytest.mark.asyncio
    async def test_aclose(self):
        adapter = make_adapter(EntryPointAdapter, MockRpcServer(), "entrypoint")
        async with adapter:
            pass
        assert adapter._bundler.is_closed


class TestErrorMapping:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code, message",
        [
            (-32500, "account validation failed"),
            (-32507, "invalid signature"),
            (-32602, "AA21 didn't pay prefund"),
        ],
    )
    async def test_validation_rejections(self, code, message):
        server = MockRpcServer({"eth_sendUserOperation": RpcErrorResponse(code, message)})
        adapter = make_adapter(EntryPointAdapter, server, "entrypoint")
        with pytest.raises(ValidationRejected) as exc_info:
            await adapter.submit(create_operation())
        assert exc_info.value.provider == "entrypoint"
        assert exc_info.value.method == "eth_sendUserOperation"
        assert exc_info.value.code == code

    @pytest.mark.asyncio
    async def test_generic_rpc_error(self):
        server = MockRpcServer({"eth_estimateUserOperationGas": RpcErrorResponse(-32000, "internal error")})
        adapter = make_adapter(PimlicoAdapter, server, "pimlico")
        with pytest.raises(ProviderError) as exc_info:
            await adapter.estimate_gas(create_operation())
        assert not isinstance(exc_info.value, ValidationRejected)
        assert exc_info.value.provider == "pimlico"
        assert exc_info.value.code == -32000

    @pytest.mark.asyncio
    async def test_non_json_response(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway"))
        adapter = GelatoAdapter(
            create_provider_config("gelato"), create_chain_config(), transport=transport
        )
        with pytest.raises(ProviderError, match="non-JSON"):
            await adapter.submit(create_operation())

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused")

        adapter = AlchemyAdapter(
            create_provider_config("alchemy"), create_chain_config(), transport=httpx.MockTransport(refuse)
        )
        with pytest.raises(ProviderError) as exc_info:
            await adapter.submit(create_operation())
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_null_submission_result(self):
        server = MockRpcServer({"eth_sendUserOperation": None})
        adapter = make_adapter(EntryPointAdapter, server, "entrypoint")
        with pytest.raises(ProviderError):
            await adapter.submit(create_operation())

    @pytest.mark.asyncio
    async def test_non_object_estimate(self):
        server = MockRpcServer({"eth_estimateUserOperationGas": "0x1"})
        adapter = make_adapter(EntryPointAdapter, server, "entrypoint")
        with pytest.raises(ProviderError, match="expected an object"):
            await adapter.estimate_gas(create_operation())
