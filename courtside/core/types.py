"""Core data types for the courtside application."""

from typing import Any, Dict, List, Optional, TypedDict  # noqa: UP035


class EventDocument(TypedDict, total=False):
    """Raw shape of an `events` document as stored."""

    title: str
    type: str
    gameType: str
    status: str
    scheduledTime: Any
    duration: int
    actualEndTime: Any
    matchResult: Dict[str, Any]  # noqa: UP006
    result: Dict[str, Any]  # noqa: UP006
    score: Dict[str, Any]  # noqa: UP006
    scoreSubmittedAt: Any
    hostId: str
    hostName: str
    participants: List[Any]  # noqa: UP006
    currentParticipants: int
    maxParticipants: int
    createdAt: Any
    updatedAt: Any


class ApplicationDocument(TypedDict, total=False):
    """Raw shape of a `participation_applications` document as stored."""

    eventId: str
    applicantId: str
    applicantName: str
    partnerId: Optional[str]
    partnerName: Optional[str]
    partnerStatus: str
    status: str
    message: str
    appliedAt: Any
    processedAt: Any

