"""
Roadmap transformer: turns ranked search results into numbered, time-boxed steps.

Effort per resource comes from EFFORT_RULES, an ordered table evaluated top to
bottom (first match wins). Tuning the heuristic means editing the table, not
the code that walks it.
"""
import math
import re
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from app.schemas.roadmap import RoadmapStep, SearchResult


TITLE_MAX_CHARS = 50
DEFAULT_EFFORT = 10
DEFAULT_WEEKLY_CAPACITY = 5

# Mirrors parseInt: optional whitespace and sign, then digits
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class EffortRule:
    """
    One row of the effort table.

    kind is "link_contains" (match if the lower-cased link contains any of
    `needles`) or "snippet_longer_than" (match if len(snippet) > `threshold`).
    """
    name: str
    kind: str
    effort: int
    needles: Tuple[str, ...] = ()
    threshold: int = 0

    def matches(self, result: SearchResult) -> bool:
        if self.kind == "link_contains":
            link = result.link.lower()
            return any(needle in link for needle in self.needles)
        if self.kind == "snippet_longer_than":
            return len(result.snippet or "") > self.threshold
        raise ValueError(f"Unknown effort rule kind: {self.kind}")


EFFORT_RULES: Tuple[EffortRule, ...] = (
    EffortRule("course_platform", "link_contains", 20, needles=("youtube", "coursera", "udemy")),
    EffortRule("community_answer", "link_contains", 5, needles=("reddit", "stackoverflow")),
    EffortRule("long_read", "snippet_longer_than", 15, threshold=200),
)


def estimate_effort(result: SearchResult, rules: Sequence[EffortRule] = EFFORT_RULES) -> int:
    """Effort units for one resource: the first matching rule, else DEFAULT_EFFORT."""
    for rule in rules:
        if rule.matches(result):
            return rule.effort
    return DEFAULT_EFFORT


def parse_weekly_capacity(time_commitment: str) -> int:
    """
    Weekly hours from a range like "5-10 hours" (lower bound).

    Anything without a leading integer ("Less than 5 hours", "") or a zero
    lower bound falls back to DEFAULT_WEEKLY_CAPACITY. Never below 1.
    """
    head = (time_commitment or "").split("-", 1)[0]
    match = _LEADING_INT.match(head)
    if not match:
        return DEFAULT_WEEKLY_CAPACITY
    capacity = int(match.group(1))
    if capacity == 0:
        return DEFAULT_WEEKLY_CAPACITY
    return max(capacity, 1)


def weeks_to_complete(effort: int, weekly_capacity: int) -> int:
    return max(1, math.ceil(effort / max(weekly_capacity, 1)))


def display_title(position: int, raw_title: str) -> str:
    return f"Step {position}: {(raw_title or '')[:TITLE_MAX_CHARS]}"


def build_roadmap(results: Sequence[SearchResult], time_commitment: str = "") -> List[RoadmapStep]:
    """
    One step per result, same order as given. No sorting, filtering or
    deduplication happens here.
    """
    capacity = parse_weekly_capacity(time_commitment)
    steps = []
    for index, result in enumerate(results):
        effort = estimate_effort(result)
        steps.append(
            RoadmapStep(
                position=index + 1,
                title=display_title(index + 1, result.title),
                description=result.snippet,
                link=result.link,
                estimated_time=effort,
                weeks_to_complete=weeks_to_complete(effort, capacity),
            )
        )
    return steps
