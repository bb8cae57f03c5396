from .db import UsageDatabase

__all__ = ["UsageDatabase"]
