"""Visibility rules deciding whether an event is still active or already past.

The classifier is an ordered decision table. Facts about an event are
derived once, then the first rule whose predicate holds picks the bucket.
"""

from __future__ import annotations

import datetime
import enum
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from courtside.core.constants import (
    EVENT_STATUS_PARTNER_PENDING,
    EVENT_TYPE_MATCH,
    EVENT_TYPE_MEETUP,
    MEETUP_GRACE_HOURS,
)

from .models import Event
from .utils import utcnow

MEETUP_GRACE_PERIOD = datetime.timedelta(hours=MEETUP_GRACE_HOURS)


class GameFormat(str, enum.Enum):
    """Whether a game type is scored or purely social."""

    COMPETITIVE = "competitive"
    SOCIAL = "social"


class VisibilityBucket(str, enum.Enum):
    """Where an event belongs in the activity views."""

    ACTIVE = "active"
    PAST = "past"


GAME_TYPE_FORMATS: dict[str, GameFormat] = {
    "mens_singles": GameFormat.COMPETITIVE,
    "womens_singles": GameFormat.COMPETITIVE,
    "mens_doubles": GameFormat.COMPETITIVE,
    "womens_doubles": GameFormat.COMPETITIVE,
    "mixed_doubles": GameFormat.COMPETITIVE,
    "singles": GameFormat.COMPETITIVE,
    "doubles": GameFormat.COMPETITIVE,
    "rally": GameFormat.SOCIAL,
    "practice": GameFormat.SOCIAL,
}


def game_format(game_type: Optional[str]) -> Optional[GameFormat]:
    """Look up the format of a game type, or ``None`` if it is unknown."""
    if not game_type:
        return None
    normalized = game_type.strip().lower()
    if normalized in GAME_TYPE_FORMATS:
        return GAME_TYPE_FORMATS[normalized]
    if "singles" in normalized or "doubles" in normalized:
        return GameFormat.COMPETITIVE
    return None


def infer_event_type(event_type: Optional[str], game_type: Optional[str]) -> str:
    """Resolve the effective event type.

    Some events were stored as ``meetup`` while carrying a singles or doubles
    game type. Those are matches: only a meetup with a non-competitive game
    type stays a meetup.
    """
    if (event_type or "").lower() != EVENT_TYPE_MEETUP:
        return EVENT_TYPE_MATCH
    if game_format(game_type) is GameFormat.COMPETITIVE:
        return EVENT_TYPE_MATCH
    return EVENT_TYPE_MEETUP


def is_meetup(event: Event) -> bool:
    """Check whether an event is a meetup after type inference."""
    return infer_event_type(event.type, event.game_type) == EVENT_TYPE_MEETUP


def completion_time(event: Event) -> datetime.datetime:
    """When the event ended: recorded end time, else start plus duration."""
    if event.actual_end_time is not None:
        return event.actual_end_time
    return event.scheduled_time + datetime.timedelta(minutes=event.duration)


def is_completed_for_24_hours(
    event: Event, now: Optional[datetime.datetime] = None
) -> bool:
    """Check whether the event ended at least 24 hours ago."""
    if now is None:
        now = utcnow()
    return now - completion_time(event) >= MEETUP_GRACE_PERIOD


@dataclass(frozen=True)
class EventFacts:
    """Everything the decision table looks at, computed once per event."""

    has_match_result: bool
    status_is_partner_pending: bool
    is_future: bool
    is_ongoing: bool
    inferred_type: str
    is_24h_passed: bool

    @classmethod
    def of(cls, event: Event, now: datetime.datetime) -> EventFacts:
        """Derive the facts for one event at one instant."""
        ended_at = completion_time(event)
        return cls(
            has_match_result=event.match_result is not None,
            status_is_partner_pending=event.status == EVENT_STATUS_PARTNER_PENDING,
            is_future=event.scheduled_time > now,
            is_ongoing=now <= ended_at,
            inferred_type=infer_event_type(event.type, event.game_type),
            is_24h_passed=now - ended_at >= MEETUP_GRACE_PERIOD,
        )


@dataclass(frozen=True)
class Rule:
    """One row of the decision table."""

    name: str
    applies: Callable[[EventFacts], bool]
    bucket: VisibilityBucket


RULES: tuple[Rule, ...] = (
    # Someone still has to answer a partner invitation.
    Rule(
        "partner_pending",
        lambda f: f.status_is_partner_pending,
        VisibilityBucket.ACTIVE,
    ),
    Rule("match_scored", lambda f: f.has_match_result, VisibilityBucket.PAST),
    Rule("not_started", lambda f: f.is_future, VisibilityBucket.ACTIVE),
    Rule("in_progress", lambda f: f.is_ongoing, VisibilityBucket.ACTIVE),
    Rule(
        "meetup_grace_window",
        lambda f: f.inferred_type == EVENT_TYPE_MEETUP and not f.is_24h_passed,
        VisibilityBucket.ACTIVE,
    ),
    Rule(
        "meetup_retired",
        lambda f: f.inferred_type == EVENT_TYPE_MEETUP,
        VisibilityBucket.PAST,
    ),
    # Matches wait for a score, however late.
    Rule("match_awaiting_score", lambda f: True, VisibilityBucket.ACTIVE),
)


@dataclass(frozen=True)
class Classification:
    """The bucket chosen for an event and the rule that chose it."""

    bucket: VisibilityBucket
    rule: str

    @property
    def show_as_active(self) -> bool:
        """Whether the event belongs on the upcoming/active list."""
        return self.bucket is VisibilityBucket.ACTIVE


def classify(event: Event, now: Optional[datetime.datetime] = None) -> Classification:
    """Classify an event as active or past at ``now``."""
    if now is None:
        now = utcnow()
    facts = EventFacts.of(event, now)
    for rule in RULES:
        if rule.applies(facts):
            return Classification(rule.bucket, rule.name)
    raise AssertionError("decision table has no fallback rule")


def show_as_active(event: Event, now: Optional[datetime.datetime] = None) -> bool:
    """Shortcut for ``classify(event, now).show_as_active``."""
    return classify(event, now).show_as_active
