"""Common middleware for GatePass."""

from .observability import StructlogContextMiddleware

__all__ = ["StructlogContextMiddleware"]
