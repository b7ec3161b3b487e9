from .address import compute_create2_address, derive_address
from .constants import ENTRYPOINT_V06, Chain, SafeDeployment, get_chain_info
from .safe import SafeAccount
from .signatures import LocalAccountSigner, TypedDataSigner, UserOperationSigner
from .standards import SafeOperationDomain

__all__ = [
    "compute_create2_address",
    "derive_address",
    "ENTRYPOINT_V06",
    "Chain",
    "SafeDeployment",
    "get_chain_info",
    "SafeAccount",
    "LocalAccountSigner",
    "TypedDataSigner",
    "UserOperationSigner",
    "SafeOperationDomain",
]
