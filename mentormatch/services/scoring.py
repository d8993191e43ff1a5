# mentormatch/services/scoring.py
"""
Match Scoring

Pure scoring of a (mentor, mentee) pair. Nothing here touches the database:
callers turn users into ``MatchProfile`` values (``MatchProfile.from_user``)
and pass the pair's decision history in explicitly, so identical inputs
always produce identical scores.

Sub-scores are integers in 0-100:
- expertise: share of the mentee's needs covered by the mentor's expertise
- availability: share of the mentee's weekly minutes the mentor also has free
- interactions: program/major/interest affinity minus prior declines/expiries
- priority: mentee priority flag plus a wait-time bonus
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from mentormatch.config import settings
from mentormatch.exceptions import ValidationError
from mentormatch.utils.clock import as_naive_utc

logger = logging.getLogger(__name__)

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
DAY_MINUTES = 24 * 60

PRIORITY_FLAGS = {"high": 90, "urgent": 90, "medium": 60, "low": 35}
DEFAULT_PRIORITY = 50

NEUTRAL_INTERACTION = 50
SAME_PROGRAM_BONUS = 20
SAME_MAJOR_BONUS = 10
SHARED_INTEREST_BONUS = 20
DECLINE_PENALTY = 25
EXPIRY_PENALTY = 10


# =====================================
# CONFIGURATION
# =====================================

@dataclass(frozen=True)
class ScoreWeights:
    """Relative weight of each sub-score in the total."""
    expertise: float = 0.5
    availability: float = 0.25
    interactions: float = 0.15
    priority: float = 0.1

    @classmethod
    def from_settings(cls, config=None) -> "ScoreWeights":
        config = config or settings
        return cls(
            expertise=config.MATCH_WEIGHT_EXPERTISE,
            availability=config.MATCH_WEIGHT_AVAILABILITY,
            interactions=config.MATCH_WEIGHT_INTERACTIONS,
            priority=config.MATCH_WEIGHT_PRIORITY,
        ).validate()

    def validate(self) -> "ScoreWeights":
        values = (self.expertise, self.availability, self.interactions, self.priority)
        if any(value < 0 for value in values):
            raise ValidationError("Score weights must not be negative", code="INVALID_WEIGHTS")
        if sum(values) <= 0:
            raise ValidationError("At least one score weight must be positive", code="INVALID_WEIGHTS")
        return self

    @property
    def total(self) -> float:
        return self.expertise + self.availability + self.interactions + self.priority


@dataclass(frozen=True)
class PriorityPolicy:
    """Wait-time bonus: ``wait_bonus`` points once a mentee waited ``wait_days``."""
    wait_days: int = 30
    wait_bonus: int = 10

    @classmethod
    def from_settings(cls, config=None) -> "PriorityPolicy":
        config = config or settings
        return cls(
            wait_days=config.MATCH_PRIORITY_WAIT_DAYS,
            wait_bonus=config.MATCH_PRIORITY_WAIT_BONUS,
        )


# =====================================
# INPUT VALUES
# =====================================

@dataclass(frozen=True)
class TimeSlot:
    day: str
    start: int  # minutes since midnight
    end: int


@dataclass(frozen=True)
class InteractionHistory:
    """Prior terminal outcomes between one mentor and one mentee."""
    declines: int = 0
    expiries: int = 0

    @classmethod
    def from_statuses(cls, statuses: Iterable[Any]) -> "InteractionHistory":
        declines = 0
        expiries = 0
        for status in statuses:
            value = getattr(status, "value", status)
            if value in ("mentor_declined", "mentee_declined", "rejected"):
                declines += 1
            elif value == "expired":
                expiries += 1
        return cls(declines=declines, expiries=expiries)

    @property
    def is_empty(self) -> bool:
        return self.declines == 0 and self.expiries == 0


@dataclass(frozen=True)
class MatchProfile:
    """The matching-relevant view of a user."""
    user_id: int
    created_at: Optional[datetime] = None
    expertise: frozenset = frozenset()
    needs: frozenset = frozenset()
    interests: frozenset = frozenset()
    slots: Tuple[TimeSlot, ...] = ()
    program: Optional[str] = None
    major: Optional[str] = None
    priority: Optional[str] = None
    waiting_since: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "MatchProfile":
        profile = getattr(user, "profile", None)
        skills = normalize_terms(getattr(profile, "skills", None))
        interests = normalize_terms(getattr(profile, "interests", None))
        goals = normalize_terms(getattr(profile, "mentoring_goals", None))
        return cls(
            user_id=user.id,
            created_at=as_naive_utc(getattr(user, "created_at", None)),
            expertise=normalize_terms(getattr(profile, "expertise_areas", None)),
            needs=interests | skills | goals,
            interests=interests,
            slots=parse_slots(getattr(profile, "availability_slots", None)),
            program=_clean_label(getattr(profile, "program", None)),
            major=_clean_label(getattr(profile, "major", None)),
            priority=getattr(profile, "priority", None),
            waiting_since=as_naive_utc(
                getattr(user, "approved_at", None) or getattr(user, "created_at", None)
            ),
        )


@dataclass(frozen=True)
class MatchScore:
    total: int
    expertise: int
    availability: int
    interactions: int
    priority: int
    details: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def breakdown(self) -> Dict[str, int]:
        return {
            "expertise": self.expertise,
            "availability": self.availability,
            "interactions": self.interactions,
            "priority": self.priority,
        }


# =====================================
# NORMALIZATION HELPERS
# =====================================

def normalize_terms(value) -> frozenset:
    """Lower-cased, trimmed, de-duplicated terms from a list or comma string."""
    if not value:
        return frozenset()
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        return frozenset()
    return frozenset(
        term for term in (str(item).strip().lower() for item in items) if term
    )


def _clean_label(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    cleaned = str(value).strip().lower()
    return cleaned or None


def parse_time(value: str, *, is_end: bool = False) -> int:
    """Parse ``HH:MM`` into minutes since midnight."""
    try:
        hours_text, minutes_text = str(value).strip().split(":")
        hours, minutes = int(hours_text), int(minutes_text)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM", code="INVALID_SLOT")
    if is_end and hours == 24 and minutes == 0:
        return DAY_MINUTES
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM", code="INVALID_SLOT")
    return hours * 60 + minutes


def parse_slot(raw: Mapping[str, Any]) -> TimeSlot:
    day = str(raw.get("day") or "").strip().lower()[:3]
    if day not in WEEKDAYS:
        raise ValidationError(f"Invalid day '{raw.get('day')}'", code="INVALID_SLOT")
    start_raw, end_raw = raw.get("start"), raw.get("end")
    # A day without times means the whole day.
    start = parse_time(start_raw) if start_raw else 0
    end = parse_time(end_raw, is_end=True) if end_raw else DAY_MINUTES
    if end <= start:
        raise ValidationError(f"Slot on {day} ends before it starts", code="INVALID_SLOT")
    return TimeSlot(day=day, start=start, end=end)


def parse_slots(raw_slots) -> Tuple[TimeSlot, ...]:
    """Parse stored slot dicts, skipping malformed entries."""
    if not raw_slots or not isinstance(raw_slots, (list, tuple)):
        return ()
    slots: List[TimeSlot] = []
    for raw in raw_slots:
        if hasattr(raw, "model_dump"):
            raw = raw.model_dump()
        if not isinstance(raw, Mapping):
            continue
        try:
            slots.append(parse_slot(raw))
        except ValidationError as exc:
            logger.debug("Skipping availability slot %r: %s", raw, exc.message)
    return tuple(slots)


def _merge_by_day(slots: Sequence[TimeSlot]) -> Dict[str, List[Tuple[int, int]]]:
    by_day: Dict[str, List[Tuple[int, int]]] = {}
    for slot in sorted(slots, key=lambda s: (s.day, s.start, s.end)):
        intervals = by_day.setdefault(slot.day, [])
        if intervals and slot.start <= intervals[-1][1]:
            last_start, last_end = intervals[-1]
            intervals[-1] = (last_start, max(last_end, slot.end))
        else:
            intervals.append((slot.start, slot.end))
    return by_day


def _percent(part: float, whole: float) -> int:
    if whole <= 0:
        return 0
    return _clamp(math.floor(100.0 * part / whole + 0.5))


def _clamp(value: float, low: int = 0, high: int = 100) -> int:
    return int(max(low, min(high, value)))


# =====================================
# SUB-SCORES
# =====================================

def expertise_score(mentor: MatchProfile, mentee: MatchProfile) -> Tuple[int, List[str]]:
    if not mentor.expertise or not mentee.needs:
        return 0, []
    matched = sorted(mentee.needs & mentor.expertise)
    return _percent(len(matched), len(mentee.needs)), matched


def availability_score(mentor: MatchProfile, mentee: MatchProfile) -> Tuple[int, int]:
    """Return (score, overlapping minutes per week)."""
    if not mentor.slots or not mentee.slots:
        return 0, 0
    mentor_days = _merge_by_day(mentor.slots)
    mentee_days = _merge_by_day(mentee.slots)

    total_minutes = 0
    overlap_minutes = 0
    for day, intervals in mentee_days.items():
        for start, end in intervals:
            total_minutes += end - start
            for other_start, other_end in mentor_days.get(day, ()):
                overlap = min(end, other_end) - max(start, other_start)
                if overlap > 0:
                    overlap_minutes += overlap
    return _percent(overlap_minutes, total_minutes), overlap_minutes


def interaction_score(
    mentor: MatchProfile,
    mentee: MatchProfile,
    history: Optional[InteractionHistory] = None,
) -> int:
    history = history or InteractionHistory()
    score = NEUTRAL_INTERACTION
    if mentor.program and mentor.program == mentee.program:
        score += SAME_PROGRAM_BONUS
    if mentor.major and mentor.major == mentee.major:
        score += SAME_MAJOR_BONUS
    if mentor.interests and mentee.interests:
        shared = len(mentor.interests & mentee.interests)
        score += math.floor(SHARED_INTEREST_BONUS * shared / len(mentee.interests) + 0.5)
    score -= DECLINE_PENALTY * history.declines
    score -= EXPIRY_PENALTY * history.expiries
    return _clamp(score)


def priority_score(
    mentee: MatchProfile,
    policy: Optional[PriorityPolicy] = None,
    as_of: Optional[datetime] = None,
) -> int:
    policy = policy or PriorityPolicy()
    base = DEFAULT_PRIORITY
    raw = mentee.priority
    if raw is not None and str(raw).strip():
        text = str(raw).strip().lower()
        try:
            base = _clamp(float(text))
        except ValueError:
            base = PRIORITY_FLAGS.get(text, DEFAULT_PRIORITY)

    bonus = 0
    as_of = as_naive_utc(as_of)
    if as_of and mentee.waiting_since and policy.wait_days > 0 and policy.wait_bonus > 0:
        waited_days = max((as_of - mentee.waiting_since).total_seconds() / 86400.0, 0.0)
        ratio = min(waited_days, policy.wait_days) / policy.wait_days
        bonus = math.floor(policy.wait_bonus * ratio + 0.5)
    return _clamp(base + bonus)


# =====================================
# TOTAL SCORE
# =====================================

def _as_profile(subject) -> MatchProfile:
    if isinstance(subject, MatchProfile):
        return subject
    return MatchProfile.from_user(subject)


def score_pair(
    mentor,
    mentee,
    *,
    history: Optional[InteractionHistory] = None,
    weights: Optional[ScoreWeights] = None,
    priority_policy: Optional[PriorityPolicy] = None,
    as_of: Optional[datetime] = None,
) -> MatchScore:
    """
    Score one mentor/mentee pair.

    Args:
        mentor: MatchProfile or User
        mentee: MatchProfile or User
        history: Prior declines/expiries between the pair
        weights: Sub-score weights (defaults to configuration)
        priority_policy: Wait-time bonus policy (defaults to configuration)
        as_of: Reference time for the wait-time bonus; no bonus when omitted

    Returns:
        MatchScore with the weighted total and breakdown
    """
    mentor_profile = _as_profile(mentor)
    mentee_profile = _as_profile(mentee)
    weights = weights or ScoreWeights.from_settings()
    policy = priority_policy or PriorityPolicy.from_settings()
    history = history or InteractionHistory()

    expertise, matched_terms = expertise_score(mentor_profile, mentee_profile)
    availability, overlap_minutes = availability_score(mentor_profile, mentee_profile)
    interactions = interaction_score(mentor_profile, mentee_profile, history)
    priority = priority_score(mentee_profile, policy, as_of)

    weighted = (
        expertise * weights.expertise
        + availability * weights.availability
        + interactions * weights.interactions
        + priority * weights.priority
    )
    total = _clamp(math.floor(weighted / weights.total + 0.5))

    return MatchScore(
        total=total,
        expertise=expertise,
        availability=availability,
        interactions=interactions,
        priority=priority,
        details={
            "matched_expertise": matched_terms,
            "availability_overlap_minutes": overlap_minutes,
            "prior_declines": history.declines,
            "prior_expiries": history.expiries,
        },
    )


def ranking_key(score: MatchScore, counterpart: MatchProfile) -> Tuple[int, datetime, int]:
    """Descending score, then earliest-created counterpart, then lowest id."""
    return (-score.total, counterpart.created_at or datetime.max, counterpart.user_id)
