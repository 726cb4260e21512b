"""
API Layer

RESPONSIBILITY: Serialise read models for a presentation layer
OUTPUTS: Plain, JSON-serialisable dicts

WHAT THIS LAYER MUST NOT DO:
============================
- Compute lineage, versions or timelines
- Own a network transport (the hosting application provides one)
"""

from .mapper import (
    map_lineage_view,
    map_timeline_view,
    map_version_history_view,
    map_version_snapshot,
)

__all__ = [
    'map_lineage_view',
    'map_timeline_view',
    'map_version_history_view',
    'map_version_snapshot',
]
