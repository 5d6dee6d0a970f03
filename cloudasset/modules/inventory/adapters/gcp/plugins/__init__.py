from .compute import ComputeInstancesPlugin
from .network import VpcsPlugin, SubnetsPlugin
from .gke import GKEClustersPlugin

__all__ = [
    "ComputeInstancesPlugin",
    "VpcsPlugin",
    "SubnetsPlugin",
    "GKEClustersPlugin",
]
