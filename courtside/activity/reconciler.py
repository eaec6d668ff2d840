"""Merge a user's applicant-side and partner-side applications per event."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Union

from courtside.core.constants import (
    APP_MERGED,
    PARTNER_ACCEPTED,
    REJECTED_APPLICATION_STATUSES,
)

from .models import ParticipationApplication

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot

logger = logging.getLogger(__name__)

ApplicationInput = Union[ParticipationApplication, "DocumentSnapshot"]


def _as_application(item: Any) -> ParticipationApplication:
    if isinstance(item, ParticipationApplication):
        return item
    return ParticipationApplication.from_snapshot(item)


def should_replace(
    existing: ParticipationApplication | None, candidate: ParticipationApplication
) -> bool:
    """Decide whether ``candidate`` beats the record already kept for its event.

    Active beats inactive, then a record naming the partner (id and name)
    beats a partial one, then the later ``appliedAt`` wins. Full ties keep
    the existing record.
    """
    if existing is None:
        return True
    if candidate.is_active != existing.is_active:
        return candidate.is_active
    if candidate.has_complete_team_info != existing.has_complete_team_info:
        return candidate.has_complete_team_info
    return candidate.applied_at > existing.applied_at


def applicant_side(items: Iterable[ApplicationInput]) -> list[ParticipationApplication]:
    """Filter the applications where the user is the applicant.

    Rejected and cancelled applications are dropped. So are ``merged`` ones:
    the team application that replaced them reaches the user through the
    partner side.
    """
    kept = []
    for item in items:
        app = _as_application(item)
        if not app.event_id:
            logger.warning(f"Dropping application {app.id} without eventId")
            continue
        if app.status in REJECTED_APPLICATION_STATUSES or app.status == APP_MERGED:
            continue
        kept.append(app)
    return kept


def partner_side(items: Iterable[ApplicationInput]) -> list[ParticipationApplication]:
    """Filter the applications where the user is the invited partner.

    Rejected and cancelled applications are dropped, as are invitations the
    partner has not accepted. Legacy records without ``partnerStatus`` count
    as accepted.
    """
    kept = []
    for item in items:
        app = _as_application(item)
        if not app.event_id:
            logger.warning(f"Dropping application {app.id} without eventId")
            continue
        if app.status in REJECTED_APPLICATION_STATUSES:
            continue
        if app.partner_status is not None and app.partner_status != PARTNER_ACCEPTED:
            continue
        kept.append(app)
    return kept


def reconcile(
    applicant_docs: Iterable[ApplicationInput],
    partner_docs: Iterable[ApplicationInput],
) -> dict[str, ParticipationApplication]:
    """Pick one winning application per event from both roles.

    Each side is filtered on its own, so a rejection in one role never hides
    a live application in the other. The result depends only on the two
    inputs and their order.
    """
    winners: dict[str, ParticipationApplication] = {}
    for app in [*applicant_side(applicant_docs), *partner_side(partner_docs)]:
        event_id = app.event_id
        if event_id is None:
            continue
        if should_replace(winners.get(event_id), app):
            winners[event_id] = app
    return winners
