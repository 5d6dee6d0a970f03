from .ec2 import EC2InstancesPlugin
from .network import VpcsPlugin, SubnetsPlugin
from .eks import EKSClustersPlugin

__all__ = [
    "EC2InstancesPlugin",
    "VpcsPlugin",
    "SubnetsPlugin",
    "EKSClustersPlugin",
]
