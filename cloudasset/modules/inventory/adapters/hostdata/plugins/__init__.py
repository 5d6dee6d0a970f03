from .host import HostPlugin

__all__ = [
    "HostPlugin",
]
