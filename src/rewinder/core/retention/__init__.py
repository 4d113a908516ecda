"""Retention management for version history.

Provides PruneEngine for selecting and deleting versions outside the
retention policy while keeping every surviving version reconstructible.
"""

from rewinder.core.retention.prune import PruneEngine, PrunePolicy, PruneResult, select_deletable

__all__ = ["PruneEngine", "PrunePolicy", "PruneResult", "select_deletable"]
