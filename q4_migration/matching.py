"""Name reconciliation between scraped persons and curated committee members.

Scraped person records and the hand-curated committee membership list are
joined by name only. Candidates are matched in stages of decreasing
strictness; a pair matched by one stage leaves both pools before the next
stage runs::

    result = match_people(persons, members, MatchThresholds())
    for match in result.matches:
        print(match.kind, match.confidence, match.member["name"])
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

EXACT = "exact"
NORMALIZED = "normalized"
FUZZY_HIGH = "fuzzy-high"
FUZZY_LOW = "fuzzy-low"
ORDERED = "ordered"

MEMBERSHIP_ROLES = ("Committee Member", "Committee Chair", "Vice Chair", "Non-Member")
SPECIAL_ROLES = (
    "Lead Independent Director",
    "Independent Director",
    "Financial Expert",
    "Board Chair",
    "Director",
    "Vice Board Chair",
    "CEO",
)
DEFAULT_MEMBERSHIP_ROLE = "Committee Member"

_SUFFIX_WORDS = re.compile(r"\b(jr|sr|ii|iii|iv)\b")
_INITIAL_TOKEN = re.compile(r"^[a-z]\.$")
_SUFFIX_TOKEN = re.compile(r"^(jr\.|sr\.|ii|iii|iv)$", re.IGNORECASE)


@dataclass(frozen=True)
class MatchThresholds:
    fuzzy_high: float = 0.85
    fuzzy_low: float = 0.75
    ordered_min_tokens: int = 2

    def __post_init__(self) -> None:
        if not 0.0 <= self.fuzzy_low <= self.fuzzy_high <= 1.0:
            raise ValueError("fuzzy thresholds must satisfy 0 <= low <= high <= 1")
        if self.ordered_min_tokens < 1:
            raise ValueError("ordered_min_tokens must be at least 1")


@dataclass(frozen=True)
class Match:
    person: Dict[str, Any]
    member: Dict[str, Any]
    kind: str
    confidence: float


@dataclass
class MatchResult:
    matches: List[Match] = field(default_factory=list)
    unmatched_persons: List[Dict[str, Any]] = field(default_factory=list)
    unmatched_members: List[Dict[str, Any]] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for match in self.matches:
            totals[match.kind] = totals.get(match.kind, 0) + 1
        return totals


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (0 if char_a == char_b else 1),
                )
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """``1 - distance / longest length``; two empty strings are identical."""

    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def normalize_name(name: str) -> str:
    value = re.sub(r"[^a-z0-9\s]", "", name.lower())
    value = re.sub(r"\s+", " ", value)
    value = _SUFFIX_WORDS.sub("", value)
    return value.strip()


def full_name(person: Dict[str, Any]) -> str:
    return f"{person.get('firstName', '')} {person.get('lastName', '')}"


def ordered_token_match(person_name: str, member_name: str) -> int:
    """Count tokens that appear in the same order in both names.

    Middle initials (``a.``) and suffixes are skipped on either side; any
    other mismatch skips the person token.
    """

    left = person_name.lower().split()
    right = member_name.lower().split()
    i = j = matched = 0
    while i < len(left) and j < len(right):
        if left[i] == right[j]:
            matched += 1
            i += 1
            j += 1
        elif _INITIAL_TOKEN.match(left[i]) or _SUFFIX_TOKEN.match(left[i]):
            i += 1
        elif _INITIAL_TOKEN.match(right[j]) or _SUFFIX_TOKEN.match(right[j]):
            j += 1
        else:
            i += 1
    return matched


Pool = List[Dict[str, Any]]
Stage = Callable[[Pool, Pool], List[Match]]


def _take(matches: List[Match], persons: Pool, members: Pool, match: Match) -> None:
    matches.append(match)
    persons[:] = [p for p in persons if p is not match.person]
    members[:] = [m for m in members if m is not match.member]


def _exact_stage(persons: Pool, members: Pool) -> List[Match]:
    matches: List[Match] = []
    for person in list(persons):
        name = full_name(person)
        member = next((m for m in members if m.get("name") == name), None)
        if member is not None:
            _take(matches, persons, members, Match(person, member, EXACT, 1.0))
    return matches


def _normalized_stage(persons: Pool, members: Pool) -> List[Match]:
    matches: List[Match] = []
    for person in list(persons):
        name = normalize_name(full_name(person))
        member = next((m for m in members if normalize_name(m.get("name", "")) == name), None)
        if member is not None:
            _take(matches, persons, members, Match(person, member, NORMALIZED, 0.95))
    return matches


def _fuzzy_stage(threshold: float, kind: str) -> Stage:
    def stage(persons: Pool, members: Pool) -> List[Match]:
        matches: List[Match] = []
        for person in list(persons):
            name = normalize_name(full_name(person))
            best: Optional[Tuple[Dict[str, Any], float]] = None
            for member in members:
                score = similarity(name, normalize_name(member.get("name", "")))
                if score >= threshold and (best is None or score > best[1]):
                    best = (member, score)
            if best is not None:
                _take(matches, persons, members, Match(person, best[0], kind, round(best[1], 4)))
        return matches

    return stage


def _ordered_stage(minimum: int) -> Stage:
    def stage(persons: Pool, members: Pool) -> List[Match]:
        matches: List[Match] = []
        for person in list(persons):
            name = full_name(person)
            member = next(
                (m for m in members if ordered_token_match(name, m.get("name", "")) >= minimum),
                None,
            )
            if member is not None:
                _take(matches, persons, members, Match(person, member, ORDERED, 0.9))
        return matches

    return stage


def match_people(
    persons: Sequence[Dict[str, Any]],
    members: Sequence[Dict[str, Any]],
    thresholds: MatchThresholds = MatchThresholds(),
) -> MatchResult:
    """Match scraped persons to committee members, strictest stage first."""

    person_pool: Pool = list(persons)
    member_pool: Pool = list(members)
    stages: List[Stage] = [
        _exact_stage,
        _normalized_stage,
        _fuzzy_stage(thresholds.fuzzy_high, FUZZY_HIGH),
        _fuzzy_stage(thresholds.fuzzy_low, FUZZY_LOW),
        _ordered_stage(thresholds.ordered_min_tokens),
    ]
    result = MatchResult()
    for stage in stages:
        result.matches.extend(stage(person_pool, member_pool))
    result.unmatched_persons = person_pool
    result.unmatched_members = member_pool
    return result


def normalize_membership_role(role: str) -> str:
    """Collapse free-form committee roles into the four supported ones."""

    value = re.sub(r"[-_ ]", "", role.strip().lower())
    if "chair" in value and "vice" not in value:
        return "Committee Chair"
    if "vicechair" in value:
        return "Vice Chair"
    if "nonmember" in value:
        return "Non-Member"
    return DEFAULT_MEMBERSHIP_ROLE


def normalize_committee_name(name: str) -> str:
    value = re.sub(r"[-_&]", " ", name.lower())
    value = re.sub(r"[^a-z0-9 ]", "", value)
    value = re.sub(r"\s+", " ", value)
    value = re.sub(r"\b(committee|comm)\b", "", value)
    return re.sub(r"\s+", " ", value).strip()


def _compact(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())


def closest(value: str, options: Sequence[str], minimum: float = 0.7) -> Optional[str]:
    """Pick the option ``value`` most plausibly meant, or ``None``.

    An exact match after compaction wins, then the longest option that
    contains (or is contained in) the value, then the best edit similarity
    above ``minimum``.
    """

    target = _compact(value)
    if not target:
        return None
    contained: Optional[str] = None
    best: Optional[Tuple[str, float]] = None
    for option in options:
        candidate = _compact(option)
        if candidate == target:
            return option
        if candidate in target or target in candidate:
            if contained is None or len(candidate) > len(_compact(contained)):
                contained = option
        score = similarity(target, candidate)
        if score > minimum and (best is None or score > best[1]):
            best = (option, score)
    if contained is not None:
        return contained
    return best[0] if best else None
