"""
EVM Chain and Safe Deployment Constants

Provides the closed set of chains the pipeline knows about, the canonical
EntryPoint v0.6 address, and the Safe 1.4.1 / Safe4337Module 0.2.0 contract
addresses. Safe contracts are deployed through a deterministic deployer, so the
same addresses apply on every supported chain.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

#: EntryPoint v0.6 singleton
ENTRYPOINT_V06 = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"

#: Unlimited ERC-20 allowance used for paymaster approvals
MAX_UINT256 = 2**256 - 1


class Chain(str, Enum):
    """Chains known to the pipeline, by provider-facing network name."""
    MAINNET = "mainnet"
    SEPOLIA = "sepolia"
    GOERLI = "goerli"
    BASE_SEPOLIA = "base-sepolia"
    POLYGON_MUMBAI = "mumbai"


class ChainInfo(BaseModel):
    """Static chain metadata."""
    model_config = ConfigDict(frozen=True)

    name: Chain
    chain_id: int
    public_rpc_url: str = Field(..., description="Public RPC endpoint (fallback when none is configured)")
    explorer_url: str


class SafeDeployment(BaseModel):
    """Addresses of the Safe contracts a 4337 account is assembled from."""
    model_config = ConfigDict(frozen=True)

    safe_version: str = "1.4.1"
    module_version: str = "0.2.0"
    singleton: str = Field("0x29fcB43b46531BcA003ddC8FCB67FFE91900C762", description="SafeL2 singleton")
    proxy_factory: str = Field("0x4e1DCf7AD4e460CfD30791CCC4F9c8a4f820ec67", description="SafeProxyFactory")
    module_setup: str = Field("0x8EcD4ec46D4D2a6B64fE960B3D64e8B94B2234eb", description="SafeModuleSetup")
    safe_4337_module: str = Field("0xa581c4A4DB7175302464fF3C06380BC3270b4037", description="Safe4337Module")
    multi_send: str = Field("0x38869bf66a61cF6bDB996A6aE40D5853Fd43B526", description="MultiSend")


# Raw chain configuration data
_CHAINS_DATA: Dict[Chain, Dict] = {
    Chain.MAINNET: {
        "chain_id": 1,
        "public_rpc_url": "https://ethereum-rpc.publicnode.com",
        "explorer_url": "https://etherscan.io",
    },
    Chain.SEPOLIA: {
        "chain_id": 11155111,
        "public_rpc_url": "https://ethereum-sepolia-rpc.publicnode.com",
        "explorer_url": "https://sepolia.etherscan.io",
    },
    Chain.GOERLI: {
        "chain_id": 5,
        "public_rpc_url": "https://ethereum-goerli-rpc.publicnode.com",
        "explorer_url": "https://goerli.etherscan.io",
    },
    Chain.BASE_SEPOLIA: {
        "chain_id": 84532,
        "public_rpc_url": "https://sepolia.base.org",
        "explorer_url": "https://sepolia.basescan.org",
    },
    Chain.POLYGON_MUMBAI: {
        "chain_id": 80001,
        "public_rpc_url": "https://rpc-mumbai.maticvigil.com",
        "explorer_url": "https://mumbai.polygonscan.com",
    },
}


def get_chain_info(chain) -> Optional[ChainInfo]:
    """
    Look up static metadata for a chain.

    Args:
        chain: Chain enum member, network name ('sepolia') or numeric chain id

    Returns:
        ChainInfo or None when the chain is unknown
    """
    if isinstance(chain, int) and not isinstance(chain, bool):
        for name, data in _CHAINS_DATA.items():
            if data["chain_id"] == chain:
                return ChainInfo(name=name, **data)
        return None
    try:
        name = Chain(chain)
    except ValueError:
        return None
    return ChainInfo(name=name, **_CHAINS_DATA[name])


def explorer_link(chain, kind: str, value: str) -> str:
    """Build an explorer URL, e.g. explorer_link('sepolia', 'tx', '0x...')."""
    info = get_chain_info(chain)
    if info is None:
        return value
    return f"{info.explorer_url}/{kind}/{value}"
