"""
Counterfactual Address Derivation

CREATE2 address computation as performed on-chain by SafeProxyFactory:

    salt    = keccak256(keccak256(initializer) ++ uint256(saltNonce))
    code    = proxyCreationCode ++ uint256(uint160(singleton))
    address = keccak256(0xff ++ factory ++ salt ++ keccak256(code))[12:]

Any divergence from this formula yields a valid-looking address that nothing
will ever be deployed to, so every function here is pure and byte-exact.
"""

from typing import Union

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from ..engine.exceptions import EncodingError
from ..schemas.bases import hex_to_bytes, normalize_address


BytesLike = Union[str, bytes, bytearray]


def _as_bytes(value: BytesLike, field: str) -> bytes:
    return bytes(value) if isinstance(value, (bytes, bytearray)) else hex_to_bytes(value, field)


def compute_create2_address(deployer: BytesLike, salt: BytesLike, init_code: BytesLike) -> str:
    """
    Plain EIP-1014 CREATE2 address.

    Args:
        deployer: 20-byte deploying contract address
        salt: 32-byte salt
        init_code: Contract creation code (including constructor arguments)

    Returns:
        str: Checksummed address

    Raises:
        EncodingError: If deployer is not 20 bytes or salt is not 32 bytes
    """
    deployer_bytes = _as_bytes(deployer, "deployer")
    salt_bytes = _as_bytes(salt, "salt")
    if len(deployer_bytes) != 20:
        raise EncodingError(f"deployer must be 20 bytes, got {len(deployer_bytes)}")
    if len(salt_bytes) != 32:
        raise EncodingError(f"salt must be 32 bytes, got {len(salt_bytes)}")

    digest = keccak(b"\xff" + deployer_bytes + salt_bytes + keccak(_as_bytes(init_code, "init_code")))
    return to_checksum_address(digest[12:])


def proxy_salt(initializer: BytesLike, salt_nonce: int) -> bytes:
    """Second-level salt: keccak256(keccak256(initializer) ++ uint256(saltNonce))."""
    if salt_nonce < 0 or salt_nonce >= 2**256:
        raise EncodingError(f"salt nonce out of uint256 range: {salt_nonce}")
    return keccak(keccak(_as_bytes(initializer, "initializer")) + encode(["uint256"], [salt_nonce]))


def proxy_deployment_code(proxy_creation_code: BytesLike, singleton: str) -> bytes:
    """Proxy creation code with the singleton appended as its constructor argument."""
    singleton = normalize_address(singleton, "singleton")
    return _as_bytes(proxy_creation_code, "proxy_creation_code") + encode(["address"], [singleton])


def derive_address(
    factory: str,
    initializer: BytesLike,
    salt_nonce: int,
    proxy_creation_code: BytesLike,
    singleton: str,
) -> str:
    """
    Counterfactual address of a proxy deployed with createProxyWithNonce.

    Args:
        factory: SafeProxyFactory address
        initializer: Safe setup() call data
        salt_nonce: Caller-chosen salt nonce
        proxy_creation_code: Value of factory.proxyCreationCode()
        singleton: Safe singleton the proxy delegates to

    Returns:
        str: Checksummed counterfactual address
    """
    factory = normalize_address(factory, "factory")
    return compute_create2_address(
        factory,
        proxy_salt(initializer, salt_nonce),
        proxy_deployment_code(proxy_creation_code, singleton),
    )
