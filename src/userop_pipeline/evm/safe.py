"""
Safe 4337 Account Assembly

Builds the deployment payloads for a Safe whose only module is the
Safe4337Module:

- ``encode_initializer``: Safe.setup() call that delegate-calls
  SafeModuleSetup.enableModules([safe4337Module]) and sets the module as
  fallback handler. When extra setup transactions are requested (e.g. an
  ERC-20 approval for a token paymaster) they are bundled with the module
  setup through MultiSend.
- ``encode_multi_send``: MultiSend packed transaction encoding.
- ``SafeAccount``: owners + threshold + salt nonce bound to a deployment,
  producing initCode and the counterfactual address.
"""

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from eth_abi import encode

from .abis import (
    CREATE_PROXY_WITH_NONCE_SIGNATURE,
    ENABLE_MODULES_SIGNATURE,
    ERC20_APPROVE_SIGNATURE,
    MULTI_SEND_SIGNATURE,
    SAFE_SETUP_SIGNATURE,
    selector,
)
from .address import derive_address
from .constants import MAX_UINT256, SafeDeployment, ZERO_ADDRESS
from ..engine.exceptions import ConfigurationError
from ..schemas.actions import CallOperation
from ..schemas.bases import hex_to_bytes, normalize_address


# (operation, to, value, data)
MultiSendTx = Tuple[CallOperation, str, int, bytes]


def encode_multi_send(transactions: Sequence[MultiSendTx]) -> bytes:
    """
    Encode transactions for MultiSend.multiSend(bytes).

    Each transaction is packed as
    ``uint8 operation ++ address to ++ uint256 value ++ uint256 len ++ bytes data``.
    """
    packed = b""
    for operation, to, value, data in transactions:
        packed += (
            int(operation).to_bytes(1, "big")
            + bytes.fromhex(normalize_address(to, "to")[2:])
            + value.to_bytes(32, "big")
            + len(data).to_bytes(32, "big")
            + data
        )
    return selector(MULTI_SEND_SIGNATURE) + encode(["bytes"], [packed])


def encode_enable_modules(modules: Sequence[str]) -> bytes:
    return selector(ENABLE_MODULES_SIGNATURE) + encode(
        ["address[]"], [[normalize_address(m, "module") for m in modules]]
    )


def encode_erc20_approve(spender: str, amount: int = MAX_UINT256) -> bytes:
    return selector(ERC20_APPROVE_SIGNATURE) + encode(
        ["address", "uint256"], [normalize_address(spender, "spender"), amount]
    )


def encode_initializer(
    owners: Sequence[str],
    threshold: int,
    deployment: SafeDeployment,
    setup_transactions: Sequence[MultiSendTx] = (),
) -> bytes:
    """
    Encode the Safe.setup() initializer.

    Args:
        owners: Owner addresses
        threshold: Number of owner signatures required
        deployment: Safe contract addresses
        setup_transactions: Extra calls executed during setup (bundled via MultiSend)

    Returns:
        bytes: setup() call data
    """
    if not owners:
        raise ConfigurationError("Safe needs at least one owner")
    if not 1 <= threshold <= len(owners):
        raise ConfigurationError(f"threshold {threshold} out of range for {len(owners)} owners")

    enable_modules = encode_enable_modules([deployment.safe_4337_module])
    if setup_transactions:
        setup_to = deployment.multi_send
        setup_data = encode_multi_send(
            [(CallOperation.DELEGATE_CALL, deployment.module_setup, 0, enable_modules)]
            + list(setup_transactions)
        )
    else:
        setup_to = deployment.module_setup
        setup_data = enable_modules

    return selector(SAFE_SETUP_SIGNATURE) + encode(
        ["address[]", "uint256", "address", "bytes", "address", "address", "uint256", "address"],
        [
            [normalize_address(o, "owner") for o in owners],
            threshold,
            normalize_address(setup_to, "setup_to"),
            setup_data,
            normalize_address(deployment.safe_4337_module, "fallback_handler"),
            ZERO_ADDRESS,
            0,
            ZERO_ADDRESS,
        ],
    )


@dataclass
class SafeAccount:
    """
    A Safe 4337 account definition.

    The counterfactual address is a pure function of the factory, the
    initializer (owners, threshold, modules, setup transactions) and the
    salt nonce; changing any of them yields a different account.
    """
    owners: List[str]
    deployment: SafeDeployment
    threshold: int = 1
    salt_nonce: int = 0
    setup_transactions: List[MultiSendTx] = field(default_factory=list)

    @classmethod
    def with_paymaster_approval(
        cls,
        owners: List[str],
        deployment: SafeDeployment,
        erc20_token: str,
        paymaster: str,
        threshold: int = 1,
        salt_nonce: int = 0,
    ) -> "SafeAccount":
        """Account whose setup approves ``paymaster`` to spend ``erc20_token``."""
        approve = (CallOperation.CALL, erc20_token, 0, encode_erc20_approve(paymaster))
        return cls(
            owners=owners,
            deployment=deployment,
            threshold=threshold,
            salt_nonce=salt_nonce,
            setup_transactions=[approve],
        )

    def initializer(self) -> bytes:
        return encode_initializer(self.owners, self.threshold, self.deployment, self.setup_transactions)

    def factory_data(self) -> bytes:
        """createProxyWithNonce(singleton, initializer, saltNonce) call data."""
        return selector(CREATE_PROXY_WITH_NONCE_SIGNATURE) + encode(
            ["address", "bytes", "uint256"],
            [normalize_address(self.deployment.singleton, "singleton"), self.initializer(), self.salt_nonce],
        )

    def init_code(self) -> str:
        """initCode = factory address ++ factory call data, as 0x-hex."""
        factory = normalize_address(self.deployment.proxy_factory, "proxy_factory")
        return "0x" + (hex_to_bytes(factory) + self.factory_data()).hex()

    def address(self, proxy_creation_code) -> str:
        """Counterfactual address given the factory's proxyCreationCode()."""
        return derive_address(
            self.deployment.proxy_factory,
            self.initializer(),
            self.salt_nonce,
            proxy_creation_code,
            self.deployment.singleton,
        )
