"""
Database Layer
Optional Redis side channel for samples and alert state.
"""

from .redis_store import RedisPersistence

__all__ = ["RedisPersistence"]
