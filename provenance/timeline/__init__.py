"""
Timeline Layer
==============

Per-record activity timelines, recomputed on every read.

Modules:
- mapping: event style table and the registry of source mappers
- aggregator: timestamp validation, filtering, ordering, date grouping

MUST NOT:
- Persist events
- Reorder ties by anything but source order
"""

from .aggregator import AggregatedTimeline, TimelineAggregator, format_date_label
from .mapping import EVENT_STYLES, EventStyle, TimelineSource, source_mapper

__all__ = [
    'AggregatedTimeline',
    'TimelineAggregator',
    'format_date_label',
    'EVENT_STYLES',
    'EventStyle',
    'TimelineSource',
    'source_mapper',
]
