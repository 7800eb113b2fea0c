"""Mutating admission webhook that mounts a host timezone file into pod containers."""

__version__ = "0.1.0"
