"""
Lineage Resolver
================

Ancestor chains and descendant sets over parent-pointer data.

DEGRADATION RULES:
==================
A lineage view must always render. Therefore:
- A dangling parent reference ends the ancestor walk silently
- A repository exception is treated as "parent unresolved"
- The walk stops after `max_ancestor_depth` parents (truncated, soft success)
- A revisited id ends the walk (cycle, truncated, soft success)
- A generation value inconsistent with the chain is reported, never fixed
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple
import logging

import networkx as nx

from ..config import ProvenanceConfig
from ..contracts.base import ErrorCode
from ..contracts.records import Record, RecordKind
from ..contracts.views import DataQualityWarning
from ..observability import DiagnosticsCollector
from ..storage import RecordRepository

logger = logging.getLogger(__name__)

COMPONENT = "lineage"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _creation_order(record: Record) -> Tuple[datetime, str]:
    return (record.created_at or _EPOCH, record.id)


@dataclass(frozen=True)
class AncestorChain:
    """
    Result of an ancestor walk, ordered oldest-first.

    The direct parent, when resolved, is the LAST element.
    """
    ancestors: Tuple[Record, ...] = field(default_factory=tuple)
    truncated: bool = False
    dangling_parent_id: Optional[str] = None
    cycle_at: Optional[str] = None

    @property
    def parent(self) -> Optional[Record]:
        return self.ancestors[-1] if self.ancestors else None

    @property
    def reached_root(self) -> bool:
        return not self.truncated and self.dangling_parent_id is None


@dataclass(frozen=True)
class Lineage:
    """Complete lineage of one record."""
    record_id: str
    kind: RecordKind
    record: Optional[Record]
    chain: AncestorChain = field(default_factory=AncestorChain)
    descendants: Tuple[Record, ...] = field(default_factory=tuple)
    direct_children: Tuple[Record, ...] = field(default_factory=tuple)
    warnings: Tuple[DataQualityWarning, ...] = field(default_factory=tuple)

    @property
    def ancestors(self) -> Tuple[Record, ...]:
        return self.chain.ancestors

    @property
    def generation(self) -> int:
        return self.record.generation if self.record else 0


class LineageResolver:
    """
    Computes lineage from a RecordRepository.

    Pure read/derive: holds no state between calls, so an abandoned call
    leaves nothing behind. Descendant reachability is delegated to
    NetworkX over a parent -> child DiGraph.
    """

    def __init__(
        self,
        repository: RecordRepository,
        config: Optional[ProvenanceConfig] = None,
        diagnostics: Optional[DiagnosticsCollector] = None
    ):
        self._repository = repository
        self._config = config or ProvenanceConfig()
        self._diagnostics = diagnostics

    def resolve(self, kind: RecordKind, record_id: str) -> Lineage:
        """Ancestors, descendants and warnings for one record."""
        record = self._safe_get(kind, record_id)
        if record is None:
            warning = DataQualityWarning(
                code=ErrorCode.RECORD_NOT_FOUND,
                message=f"{kind.value} {record_id} could not be resolved",
                record_id=record_id,
            )
            return Lineage(record_id=record_id, kind=kind, record=None, warnings=(warning,))

        chain = self.ancestors(record)
        warnings: List[DataQualityWarning] = []
        if chain.dangling_parent_id is not None:
            warnings.append(DataQualityWarning(
                code=ErrorCode.DANGLING_PARENT,
                message=f"Parent {chain.dangling_parent_id} could not be resolved",
                record_id=record.id,
                context=(("parent_id", chain.dangling_parent_id),),
            ))
        if chain.cycle_at is not None:
            warnings.append(DataQualityWarning(
                code=ErrorCode.LINEAGE_CYCLE,
                message=f"Parent chain revisits {chain.cycle_at}; ancestors truncated",
                record_id=record.id,
                context=(("revisited", chain.cycle_at),),
            ))
        elif chain.truncated:
            warnings.append(DataQualityWarning(
                code=ErrorCode.TRAVERSAL_GUARD_TRIPPED,
                message=f"Ancestors truncated at depth {self._config.max_ancestor_depth}",
                record_id=record.id,
            ))
        warnings.extend(self.check_generations(record, chain))

        return Lineage(
            record_id=record.id,
            kind=kind,
            record=record,
            chain=chain,
            descendants=self.descendants(kind, record.id),
            direct_children=self.direct_children(kind, record.id),
            warnings=tuple(warnings),
        )

    # -------------------------------------------------------------------------
    # Ancestors
    # -------------------------------------------------------------------------

    def ancestors(self, record: Record) -> AncestorChain:
        """
        Walk parent pointers from `record`, oldest-first result.

        At most `max_ancestor_depth` repository lookups are made.
        """
        max_depth = self._config.max_ancestor_depth
        found: List[Record] = []
        seen: Set[str] = {record.id}
        current_id = record.parent_id

        while current_id:
            if current_id in seen:
                self._signal(
                    ErrorCode.LINEAGE_CYCLE, record.id,
                    f"Parent chain of {record.id} revisits {current_id}",
                    revisited=current_id,
                )
                return AncestorChain(
                    ancestors=tuple(reversed(found)), truncated=True, cycle_at=current_id
                )
            if len(found) >= max_depth:
                self._signal(
                    ErrorCode.TRAVERSAL_GUARD_TRIPPED, record.id,
                    f"Ancestor walk of {record.id} stopped at depth {max_depth}",
                    max_depth=max_depth, next_parent=current_id,
                )
                return AncestorChain(ancestors=tuple(reversed(found)), truncated=True)

            parent = self._safe_get(record.kind, current_id)
            if parent is None:
                logger.info(
                    "Dangling parent %s in lineage of %s; returning partial chain",
                    current_id, record.id
                )
                return AncestorChain(
                    ancestors=tuple(reversed(found)), dangling_parent_id=current_id
                )

            found.append(parent)
            seen.add(parent.id)
            current_id = parent.parent_id

        return AncestorChain(ancestors=tuple(reversed(found)))

    # -------------------------------------------------------------------------
    # Descendants
    # -------------------------------------------------------------------------

    def direct_children(self, kind: RecordKind, record_id: str) -> Tuple[Record, ...]:
        """Records whose parent_id is `record_id`; no omissions, no duplicates."""
        try:
            candidates = self._repository.list_by_parent(kind, record_id)
        except Exception:
            logger.warning("list_by_parent failed for %s %s", kind.value, record_id, exc_info=True)
            self._signal(
                ErrorCode.REPOSITORY_UNAVAILABLE, record_id,
                "Direct children could not be listed",
            )
            return ()

        unique: Dict[str, Record] = {}
        for child in candidates:
            if child.parent_id == record_id and child.id != record_id:
                unique.setdefault(child.id, child)
        return tuple(sorted(unique.values(), key=_creation_order))

    def descendants(self, kind: RecordKind, record_id: str) -> Tuple[Record, ...]:
        """
        Every record with a finite parent-pointer path to `record_id`.

        Breadth-first order (children, then grandchildren, ...). The record
        itself is excluded even when it sits on a cycle.
        """
        records = self._safe_list_all(kind, record_id)
        if not records:
            return ()

        graph = self._build_graph(records)
        if record_id not in graph:
            return ()

        by_id = {r.id: r for r in records}
        reachable = nx.descendants(graph, record_id)
        reachable.discard(record_id)
        ordered = [n for n in nx.bfs_tree(graph, record_id) if n in reachable]
        return tuple(by_id[n] for n in ordered if n in by_id)

    def _build_graph(self, records: List[Record]) -> nx.DiGraph:
        graph = nx.DiGraph()
        for record in records:
            graph.add_node(record.id)
            if record.parent_id:
                graph.add_edge(record.parent_id, record.id)
        return graph

    # -------------------------------------------------------------------------
    # Generation check (advisory, never corrected)
    # -------------------------------------------------------------------------

    def check_generations(
        self,
        record: Record,
        chain: AncestorChain
    ) -> Tuple[DataQualityWarning, ...]:
        """
        Compare stored generations against the resolved chain.

        Two rules are checked:
        - Once the chain reaches a root, `record.generation` must equal the
          number of resolved ancestors.
        - Along the chain, a child's generation must exceed its parent's.

        Truncated, cyclic and dangling chains skip the first rule because
        their true length is unknown.
        """
        warnings = []
        if chain.reached_root:
            expected = len(chain.ancestors)
            if record.generation != expected:
                root = chain.ancestors[0] if chain.ancestors else record
                warnings.append(self._generation_warning(
                    record, record,
                    expected=str(expected),
                    message=(
                        f"{record.id} has generation {record.generation}, but "
                        f"{expected} ancestors resolve back to root {root.id}"
                    ),
                    root_id=root.id,
                ))

        path = list(chain.ancestors) + [record]
        for parent, child in zip(path, path[1:]):
            if child.generation > parent.generation:
                continue
            warnings.append(self._generation_warning(
                record, child,
                expected=f">{parent.generation}",
                message=(
                    f"{child.id} has generation {child.generation}, not above "
                    f"parent {parent.id} at {parent.generation}"
                ),
                parent_id=parent.id,
            ))
        return tuple(warnings)

    def _generation_warning(
        self,
        record: Record,
        child: Record,
        expected: str,
        message: str,
        **context: str
    ) -> DataQualityWarning:
        self._signal(
            ErrorCode.GENERATION_MISMATCH, record.id, message,
            child_id=child.id, **context
        )
        return DataQualityWarning(
            code=ErrorCode.GENERATION_MISMATCH,
            message=message,
            record_id=record.id,
            context=(
                ("child_id", child.id),
                *sorted(context.items()),
                ("child_generation", str(child.generation)),
                ("expected_generation", expected),
            ),
        )

    # -------------------------------------------------------------------------
    # Cross-kind lineage (culture -> grow spawn)
    # -------------------------------------------------------------------------

    def source_culture(self, grow: Record) -> Optional[Record]:
        """Culture a grow was spawned from, if it resolves."""
        if grow.kind is not RecordKind.GROW or not grow.source_culture_id:
            return None
        return self._safe_get(RecordKind.CULTURE, grow.source_culture_id)

    def spawned_grows(self, culture_id: str) -> Tuple[Record, ...]:
        """Grows whose source culture is `culture_id`."""
        grows = self._safe_list_all(RecordKind.GROW, culture_id)
        spawned = [g for g in grows if g.source_culture_id == culture_id]
        return tuple(sorted(spawned, key=_creation_order))

    # -------------------------------------------------------------------------
    # Repository access (exceptions never escape)
    # -------------------------------------------------------------------------

    def _safe_get(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        try:
            return self._repository.get_by_id(kind, record_id)
        except Exception:
            logger.warning("get_by_id failed for %s %s", kind.value, record_id, exc_info=True)
            self._signal(
                ErrorCode.REPOSITORY_UNAVAILABLE, record_id,
                "Lookup raised; treated as unresolved",
            )
            return None

    def _safe_list_all(self, kind: RecordKind, record_id: str) -> List[Record]:
        try:
            return list(self._repository.list_all(kind))
        except Exception:
            logger.warning("list_all failed for %s", kind.value, exc_info=True)
            self._signal(
                ErrorCode.REPOSITORY_UNAVAILABLE, record_id,
                f"Could not list {kind.value} records",
            )
            return []

    def _signal(self, code: ErrorCode, record_id: str, message: str, **context: object) -> None:
        if code in (ErrorCode.TRAVERSAL_GUARD_TRIPPED, ErrorCode.LINEAGE_CYCLE):
            logger.warning(message)
        if self._diagnostics is not None:
            self._diagnostics.collect(code, COMPONENT, record_id, message, **context)
