from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

WORD_BOUNDARY_CHARS = "/_- .:"


@dataclass(frozen=True)
class FuzzyMatch:
    score: int
    spans: tuple[tuple[int, int], ...]


@dataclass(frozen=True)
class RankedCandidate:
    index: int
    label: str
    score: int
    spans: tuple[tuple[int, int], ...]


def _merge_spans(positions: list[int]) -> tuple[tuple[int, int], ...]:
    """Collapse matched indices into half-open ``(start, end)`` ranges."""
    spans: list[tuple[int, int]] = []
    for pos in positions:
        if spans and spans[-1][1] == pos:
            spans[-1] = (spans[-1][0], pos + 1)
        else:
            spans.append((pos, pos + 1))
    return tuple(spans)


def fuzzy_match(query: str, candidate: str) -> FuzzyMatch | None:
    """Score ``candidate`` against ``query`` as a case-insensitive subsequence.

    Contiguous runs and word/segment starts add to the score, gaps and long
    candidates subtract. Returns ``None`` when some query character is missing.
    """
    if not query:
        return FuzzyMatch(0, ())
    query_folded = query.casefold()
    candidate_folded = candidate.casefold()

    score = 0
    prev_idx = -1
    run = 0
    positions: list[int] = []
    for needle in query_folded:
        idx = candidate_folded.find(needle, prev_idx + 1)
        if idx < 0:
            return None
        if idx == prev_idx + 1:
            run += 1
            score += 20 + min(16, run * 4)
        else:
            gap = idx - prev_idx - 1
            run = 0
            score -= min(40, gap * 2)
        if idx == 0 or candidate_folded[idx - 1] in WORD_BOUNDARY_CHARS:
            score += 35
        positions.append(idx)
        prev_idx = idx

    score -= len(candidate_folded) // 5
    return FuzzyMatch(score, _merge_spans(positions))


def fuzzy_score(query: str, candidate: str) -> int | None:
    match = fuzzy_match(query, candidate)
    return None if match is None else match.score


def rank_candidates(query: str, labels: Sequence[str]) -> list[RankedCandidate]:
    """Return matching labels sorted by descending score.

    Equal scores prefer the shorter label, then the original order of
    ``labels``; an empty query keeps every label in input order.
    """
    ranked: list[RankedCandidate] = []
    for idx, label in enumerate(labels):
        match = fuzzy_match(query, label)
        if match is None:
            continue
        ranked.append(RankedCandidate(idx, label, match.score, match.spans))
    if query:
        ranked.sort(key=lambda item: (-item.score, len(item.label), item.index))
    return ranked
