"""
Lineage Layer
=============

Biological lineage between records, established by transfers.

Modules:
- resolver: ancestor chains, descendant sets, generation checks
"""

from .resolver import AncestorChain, Lineage, LineageResolver

__all__ = [
    'AncestorChain',
    'Lineage',
    'LineageResolver',
]
