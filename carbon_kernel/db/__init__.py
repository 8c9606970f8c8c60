"""Database layer for the carbon kernel."""

from carbon_kernel.db.base import Base, TokenAmount, TrackedBase, UUIDString

__all__ = ["Base", "TokenAmount", "TrackedBase", "UUIDString"]
