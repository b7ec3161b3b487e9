from .alchemy import AlchemyAdapter
from .bases import ProviderAdapter
from .entrypoint import EntryPointAdapter
from .gelato import GelatoAdapter
from .pimlico import PimlicoAdapter
from .registry import ProviderRegistry
from .unions import ActionTypes, parse_action

__all__ = [
    "ActionTypes",
    "AlchemyAdapter",
    "EntryPointAdapter",
    "GelatoAdapter",
    "PimlicoAdapter",
    "ProviderAdapter",
    "ProviderRegistry",
    "parse_action",
]
