from .nodes import NodesPlugin
from .pods import PodsPlugin
from .containers import ContainersPlugin

__all__ = [
    "NodesPlugin",
    "PodsPlugin",
    "ContainersPlugin",
]
