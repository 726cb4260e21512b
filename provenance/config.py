"""
Configuration

Tunables shared by the lineage, version and timeline components.
Values come from explicit construction or from PROVENANCE_* environment
variables; nothing reads the environment implicitly at import time.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import timezone, tzinfo as TzInfo
from typing import Mapping, Optional
from zoneinfo import ZoneInfo
import os


DEFAULT_MAX_ANCESTOR_DEPTH = 10


@dataclass(frozen=True)
class ProvenanceConfig:
    """Configuration for the provenance core."""
    max_ancestor_depth: int = DEFAULT_MAX_ANCESTOR_DEPTH
    display_timezone: str = "UTC"
    require_amendment_reason: bool = True

    def __post_init__(self):
        if self.max_ancestor_depth < 1:
            raise ValueError("max_ancestor_depth must be at least 1")
        # Fail at construction, not on first timeline render
        self.tzinfo

    @property
    def tzinfo(self) -> TzInfo:
        if self.display_timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.display_timezone)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ProvenanceConfig':
        """
        Build configuration from environment variables.

        PROVENANCE_MAX_ANCESTOR_DEPTH  int, default 10
        PROVENANCE_DISPLAY_TZ          IANA zone name, default UTC
        PROVENANCE_REQUIRE_REASON      "0"/"false" disables the reason check
        """
        env = os.environ if environ is None else environ
        require = env.get("PROVENANCE_REQUIRE_REASON", "1").strip().lower()
        return cls(
            max_ancestor_depth=int(env.get(
                "PROVENANCE_MAX_ANCESTOR_DEPTH", DEFAULT_MAX_ANCESTOR_DEPTH
            )),
            display_timezone=env.get("PROVENANCE_DISPLAY_TZ", "UTC"),
            require_amendment_reason=require not in ("0", "false", "no", "off"),
        )
