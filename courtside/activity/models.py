"""Data models for the activity blueprint."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from courtside.core.constants import (
    ACTIVE_APPLICATION_STATUSES,
    APP_APPROVED,
    APP_PENDING,
    DEFAULT_EVENT_DURATION_MINUTES,
)

from .utils import EPOCH, to_datetime, utcnow

if TYPE_CHECKING:
    from courtside.core.types import ApplicationDocument, EventDocument
    from google.cloud.firestore_v1.base_document import DocumentSnapshot


def _json_safe(value: Any) -> Any:
    """Convert stored values into something the JSON encoder accepts."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    as_datetime = to_datetime(value)
    if as_datetime is not None:
        return as_datetime.isoformat()
    if hasattr(value, "id"):
        return value.id
    return str(value)


@dataclass
class EventMatchResult:
    """The score submitted for a match event."""

    score: Any
    host_result: Optional[str] = None
    submitted_at: Optional[datetime.datetime] = None

    @classmethod
    def from_event_data(cls, data: dict[str, Any]) -> Optional[EventMatchResult]:
        """Read the result from ``matchResult``, ``result`` or a legacy score map.

        A stored ``matchResult`` counts even when it is empty.
        """
        raw = data.get("matchResult")
        if raw is None:
            raw = data.get("result") or None
        if isinstance(raw, dict):
            return cls(
                score=raw.get("score"),
                host_result=raw.get("hostResult"),
                submitted_at=to_datetime(raw.get("submittedAt")),
            )
        if raw is not None:
            return cls(score=raw)

        score = data.get("score")
        if isinstance(score, dict) and score.get("_winner"):
            host_won = score["_winner"] == "player1"
            return cls(
                score=score,
                host_result="win" if host_won else "loss",
                submitted_at=to_datetime(data.get("scoreSubmittedAt")) or utcnow(),
            )
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize the result."""
        return {
            "score": _json_safe(self.score),
            "hostResult": self.host_result,
            "submittedAt": self.submitted_at.isoformat() if self.submitted_at else None,
        }


@dataclass
class Event:
    """An event document, normalized once at the store boundary."""

    id: str
    scheduled_time: datetime.datetime
    type: Optional[str] = None
    game_type: Optional[str] = None
    status: Optional[str] = None
    duration: int = DEFAULT_EVENT_DURATION_MINUTES
    actual_end_time: Optional[datetime.datetime] = None
    match_result: Optional[EventMatchResult] = None
    title: Optional[str] = None
    host_id: Optional[str] = None
    host_name: Optional[str] = None
    participants: list[Any] = field(default_factory=list)
    current_participants: Optional[int] = None
    max_participants: Optional[int] = None
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None
    data: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, event_id: str, data: EventDocument) -> Event:
        """Build an event from raw document data, filling defaults."""
        created_at = to_datetime(data.get("createdAt"))
        updated_at = to_datetime(data.get("updatedAt"))
        scheduled_time = (
            to_datetime(data.get("scheduledTime")) or created_at or updated_at or utcnow()
        )

        duration = data.get("duration")
        try:
            duration = int(duration) if duration is not None else 0
        except (TypeError, ValueError, OverflowError):
            duration = 0
        if duration <= 0:
            duration = DEFAULT_EVENT_DURATION_MINUTES

        participants = data.get("participants")
        return cls(
            id=event_id,
            scheduled_time=scheduled_time,
            type=data.get("type"),
            game_type=data.get("gameType"),
            status=data.get("status"),
            duration=duration,
            actual_end_time=to_datetime(data.get("actualEndTime")),
            match_result=EventMatchResult.from_event_data(data),
            title=data.get("title"),
            host_id=data.get("hostId"),
            host_name=data.get("hostName"),
            participants=participants if isinstance(participants, list) else [],
            current_participants=data.get("currentParticipants"),
            max_participants=data.get("maxParticipants"),
            created_at=created_at,
            updated_at=updated_at,
            data=dict(data),
        )

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> Event:
        """Build an event from a Firestore snapshot."""
        return cls.from_dict(snapshot.id, snapshot.to_dict() or {})

    def has_participant(self, user_id: str) -> bool:
        """Check whether a participants entry names this user."""
        for entry in self.participants:
            if isinstance(entry, dict):
                if user_id in (entry.get("playerId"), entry.get("id")):
                    return True
            elif entry == user_id:
                return True
        return False

    def to_dict(self) -> dict[str, Any]:
        """Serialize the event, keeping fields the classifier does not read."""
        payload = {key: _json_safe(value) for key, value in self.data.items()}
        payload.update(
            {
                "id": self.id,
                "type": self.type,
                "gameType": self.game_type,
                "status": self.status,
                "title": self.title,
                "scheduledTime": self.scheduled_time.isoformat(),
                "duration": self.duration,
                "actualEndTime": (
                    self.actual_end_time.isoformat() if self.actual_end_time else None
                ),
                "matchResult": self.match_result.to_dict() if self.match_result else None,
                "hostId": self.host_id,
                "hostName": self.host_name,
                "participants": _json_safe(self.participants),
                "currentParticipants": self.current_participants,
                "maxParticipants": self.max_participants,
                "createdAt": self.created_at.isoformat() if self.created_at else None,
                "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            }
        )
        payload.pop("score", None)
        payload.pop("result", None)
        return payload


@dataclass
class ParticipationApplication:
    """One user's request to join an event, possibly as a team."""

    id: str
    event_id: Optional[str]
    applicant_id: Optional[str] = None
    applicant_name: Optional[str] = None
    partner_id: Optional[str] = None
    partner_name: Optional[str] = None
    partner_status: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None
    applied_at: datetime.datetime = EPOCH
    processed_at: Optional[datetime.datetime] = None
    data: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(
        cls, application_id: str, data: ApplicationDocument
    ) -> ParticipationApplication:
        """Build an application from raw document data."""
        return cls(
            id=application_id,
            event_id=data.get("eventId") or None,
            applicant_id=data.get("applicantId"),
            applicant_name=data.get("applicantName"),
            partner_id=data.get("partnerId") or None,
            partner_name=data.get("partnerName") or None,
            partner_status=data.get("partnerStatus"),
            status=data.get("status"),
            message=data.get("message"),
            applied_at=to_datetime(data.get("appliedAt")) or EPOCH,
            processed_at=to_datetime(data.get("processedAt")),
            data=dict(data),
        )

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> ParticipationApplication:
        """Build an application from a Firestore snapshot."""
        return cls.from_dict(snapshot.id, snapshot.to_dict() or {})

    @property
    def is_active(self) -> bool:
        """Whether the application is still in play."""
        return self.status in ACTIVE_APPLICATION_STATUSES

    @property
    def has_complete_team_info(self) -> bool:
        """Whether both the partner's id and name are on the record."""
        return bool(self.partner_id and self.partner_name)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the application."""
        return {
            "id": self.id,
            "eventId": self.event_id,
            "applicantId": self.applicant_id,
            "applicantName": self.applicant_name,
            "partnerId": self.partner_id,
            "partnerName": self.partner_name,
            "partnerStatus": self.partner_status,
            "status": self.status,
            "message": self.message,
            "appliedAt": self.applied_at.isoformat(),
            "processedAt": self.processed_at.isoformat() if self.processed_at else None,
        }


@dataclass
class EventWithParticipation:
    """An event joined with the viewing user's participation data."""

    event: Event
    my_application: Optional[ParticipationApplication] = None
    is_host: bool = False
    applications: list[ParticipationApplication] = field(default_factory=list)
    pending_applications: list[ParticipationApplication] = field(default_factory=list)
    approved_applications: list[ParticipationApplication] = field(default_factory=list)
    current_participants: Optional[int] = None
    solo_lobby_count: int = 0

    @property
    def id(self) -> str:
        """The event id."""
        return self.event.id

    @property
    def scheduled_time(self) -> datetime.datetime:
        """The event's scheduled start."""
        return self.event.scheduled_time

    def attach_applications(self, applications: list[ParticipationApplication]) -> None:
        """Set the event's applications and the counts derived from them."""
        self.applications = applications
        self.pending_applications = [a for a in applications if a.status == APP_PENDING]
        self.approved_applications = [a for a in applications if a.status == APP_APPROVED]
        self.current_participants = 1 + len(self.approved_applications)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the JSON API."""
        payload = self.event.to_dict()
        payload.update(
            {
                "isHost": self.is_host,
                "myApplication": (
                    self.my_application.to_dict() if self.my_application else None
                ),
                "pendingCount": len(self.pending_applications),
                "approvedCount": len(self.approved_applications),
                "approvedApplications": [a.to_dict() for a in self.approved_applications],
                "pendingApplications": [a.to_dict() for a in self.pending_applications],
                "soloLobbyCount": self.solo_lobby_count,
            }
        )
        if self.current_participants is not None:
            payload["currentParticipants"] = self.current_participants
        return payload
