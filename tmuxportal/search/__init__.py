"""Fuzzy matching and filesystem project discovery."""

from __future__ import annotations

from .discovery import (
    CompiledPattern,
    DiscoveryCandidate,
    ScanReport,
    SearchPattern,
    compile_patterns,
    parse_pattern,
    scan_patterns,
)
from .fuzzy import FuzzyMatch, RankedCandidate, fuzzy_match, fuzzy_score, rank_candidates
from .scan_worker import DiscoveryScanScheduler

__all__ = [
    "CompiledPattern",
    "DiscoveryCandidate",
    "DiscoveryScanScheduler",
    "FuzzyMatch",
    "RankedCandidate",
    "ScanReport",
    "SearchPattern",
    "compile_patterns",
    "fuzzy_match",
    "fuzzy_score",
    "parse_pattern",
    "rank_candidates",
    "scan_patterns",
]
