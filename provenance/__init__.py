"""
Cultivation Provenance & History Core

This package implements the read/derive layer that sits between the
record store of a cultivation log (cultures and grows) and the screens that
display where a record came from and how it changed. Each layer communicates
only through explicit contracts, never through shared mutable state.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Responsibility: Immutable records, versions, amendments, timeline events
   - Outputs: Frozen dataclasses, explicit ErrorCode / Error / Result types
   - MUST NOT: Depend on any other layer

2. STORAGE COLLABORATORS (storage/)
   - Responsibility: Keyed record lookup, append-only amendment log
   - Outputs: Records, Amendments, materialised Versions
   - MUST NOT: Derive lineage, build timelines

3. LINEAGE (lineage/)
   - Responsibility: Ancestor chains, descendant sets, generation checks
   - Allowed inputs: RecordRepository
   - MUST NOT: Write, "fix" generation numbers, raise on dangling parents

4. TEMPORAL (temporal/)
   - Responsibility: Version history, point-in-time reads, additive restore
   - Allowed inputs: RecordRepository, AmendmentLog, LogicalClock
   - MUST NOT: Mutate or remove an existing version

5. TIMELINE (timeline/)
   - Responsibility: Merge heterogeneous event sources, filter, sort, group
   - Allowed inputs: A Record and its amendments
   - MUST NOT: Persist events, crash on malformed timestamps

6. QUERY & API (query/, api/)
   - Responsibility: Compose the components into serialisable read models
   - Outputs: LineageView, VersionHistoryView, TimelineView, plain dicts

7. OBSERVABILITY (observability/)
   - Responsibility: Collect data-quality signals (guard trips, drops, mismatches)
   - MUST NOT: Change the outcome of any computation

CONSTRAINTS ENFORCED:
=====================
- Append-only: edits produce new versions, never in-place changes
- Graceful degradation: every read returns a smaller-but-valid result
- Explicit errors: rejected writes carry a typed ErrorCode
"""

from .config import ProvenanceConfig
from .query import ProvenanceService

__all__ = [
    'ProvenanceConfig',
    'ProvenanceService',
]

__version__ = "0.1.0"
