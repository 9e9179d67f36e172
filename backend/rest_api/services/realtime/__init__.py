"""
Realtime reconciliation of an OrderSession with the store change feed.
"""

from .reconciler import Invalidation, Reconciler, TABLE_SCOPES

__all__ = ["Invalidation", "Reconciler", "TABLE_SCOPES"]
