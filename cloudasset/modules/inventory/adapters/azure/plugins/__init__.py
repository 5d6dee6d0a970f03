from .compute import VirtualMachinesPlugin

__all__ = ["VirtualMachinesPlugin"]
