"""Service layer for event applications and activity feeds."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Optional, cast

from firebase_admin import firestore

from courtside.core.constants import (
    APP_APPROVED,
    APP_DECLINED,
    APP_PENDING,
    APPLICATIONS_COLLECTION,
    EVENTS_COLLECTION,
    FEED_UPCOMING,
    FIRESTORE_BATCH_LIMIT,
)
from courtside.errors import NotFoundError, ValidationError

from .callables import CallableClient, CallableError
from .feeds import (
    AppliedEventsFeed,
    Clock,
    FeedCallback,
    HostedEventsFeed,
    PastEventsFeed,
)
from .models import Event, EventWithParticipation, ParticipationApplication

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)


class ActivityService:
    """Handles event applications and the user's activity lists."""

    # Reads

    @staticmethod
    def get_applied_events(
        user_id: str,
        status: str = FEED_UPCOMING,
        db: Client | None = None,
        clock: Optional[Clock] = None,
    ) -> list[EventWithParticipation]:
        """Fetch the user's applied events once."""
        return AppliedEventsFeed(db, user_id, status=status, clock=clock).load()

    @staticmethod
    def get_hosted_events(
        user_id: str,
        status: str = FEED_UPCOMING,
        db: Client | None = None,
        clock: Optional[Clock] = None,
    ) -> list[EventWithParticipation]:
        """Fetch the events the user hosts once."""
        return HostedEventsFeed(db, user_id, status=status, clock=clock).load()

    @staticmethod
    def get_past_events(
        user_id: str, db: Client | None = None, clock: Optional[Clock] = None
    ) -> list[EventWithParticipation]:
        """Fetch the user's past matches once."""
        return PastEventsFeed(db, user_id, clock=clock).load()

    @staticmethod
    def subscribe_to_applied_events(
        user_id: str,
        callback: FeedCallback,
        status: str = FEED_UPCOMING,
        db: Client | None = None,
    ) -> Callable[[], None]:
        """Listen to the user's applied events."""
        return AppliedEventsFeed(db, user_id, callback, status=status).start()

    @staticmethod
    def subscribe_to_hosted_events(
        user_id: str,
        callback: FeedCallback,
        status: str = FEED_UPCOMING,
        db: Client | None = None,
    ) -> Callable[[], None]:
        """Listen to the events the user hosts."""
        return HostedEventsFeed(db, user_id, callback, status=status).start()

    @staticmethod
    def subscribe_to_past_events(
        user_id: str, callback: FeedCallback, db: Client | None = None
    ) -> Callable[[], None]:
        """Listen to the user's past matches."""
        return PastEventsFeed(db, user_id, callback).start()

    @staticmethod
    def get_event_by_id(event_id: str, db: Client | None = None) -> Event | None:
        """Fetch a single event."""
        if db is None:
            db = firestore.client()
        snapshot = cast(
            "DocumentSnapshot", db.collection(EVENTS_COLLECTION).document(event_id).get()
        )
        if not snapshot.exists:
            return None
        return Event.from_snapshot(snapshot)

    @staticmethod
    def get_application(
        application_id: str, db: Client | None = None
    ) -> ParticipationApplication | None:
        """Fetch a single application."""
        if db is None:
            db = firestore.client()
        snapshot = cast(
            "DocumentSnapshot",
            db.collection(APPLICATIONS_COLLECTION).document(application_id).get(),
        )
        if not snapshot.exists:
            return None
        return ParticipationApplication.from_snapshot(snapshot)

    @staticmethod
    def get_user_application_status(
        event_id: str, user_id: str, db: Client | None = None
    ) -> dict[str, Any]:
        """Report the user's latest application to an event."""
        if db is None:
            db = firestore.client()
        query = (
            db.collection(APPLICATIONS_COLLECTION)
            .where(filter=firestore.FieldFilter("eventId", "==", event_id))
            .where(filter=firestore.FieldFilter("applicantId", "==", user_id))
            .order_by("appliedAt", direction=firestore.Query.DESCENDING)
            .limit(1)
        )
        try:
            docs = list(query.stream())
        except Exception as e:
            logger.error(f"Error checking application status: {e}")
            return {"has_applied": False}

        if not docs:
            return {"has_applied": False}
        data = docs[0].to_dict() or {}
        return {
            "has_applied": True,
            "application_id": docs[0].id,
            "status": data.get("status"),
        }

    # Commands

    @staticmethod
    def apply_to_event(
        client: CallableClient,
        event_id: str,
        applicant_id: str,
        message: Optional[str] = None,
        applicant_name: Optional[str] = None,
    ) -> dict[str, Any]:
        """Apply to an event as an individual."""
        result = client.call(
            "applyToEvent",
            {
                "eventId": event_id,
                "applicantId": applicant_id,
                "message": message or "",
                "applicantName": applicant_name,
            },
        ) or {}
        return {
            "application_id": result.get("applicationId"),
            "auto_approved": bool(result.get("autoApproved", False)),
            "status": result.get("status") or APP_PENDING,
        }

    @staticmethod
    def apply_as_team(  # noqa: PLR0913
        client: CallableClient,
        event_id: str,
        applicant_id: str,
        partner_id: str,
        partner_name: str,
        applicant_name: Optional[str] = None,
        message: Optional[str] = None,
    ) -> dict[str, Any]:
        """Apply with a partner; the host sees it once the partner accepts."""
        if not partner_id:
            raise ValidationError("A partner is required for a team application.")
        if partner_id == applicant_id:
            raise ValidationError("You can't be your own partner.")
        result = client.call(
            "applyAsTeam",
            {
                "eventId": event_id,
                "applicantId": applicant_id,
                "partnerId": partner_id,
                "partnerName": partner_name,
                "applicantName": applicant_name,
                "message": message or "",
            },
        ) or {}
        return {
            "application_id": result.get("applicationId"),
            "invitation_id": result.get("invitationId"),
        }

    @staticmethod
    def apply_as_solo(
        client: CallableClient,
        event_id: str,
        applicant_id: str,
        applicant_name: Optional[str] = None,
        message: Optional[str] = None,
    ) -> dict[str, Any]:
        """Join a doubles event's solo lobby to be paired with another player."""
        result = client.call(
            "applyAsSolo",
            {
                "eventId": event_id,
                "applicantId": applicant_id,
                "applicantName": applicant_name,
                "message": message or "",
            },
        ) or {}
        return {
            "application_id": result.get("applicationId"),
            "notified_count": int(result.get("notifiedCount") or 0),
        }

    @staticmethod
    def reinvite_partner(
        client: CallableClient,
        application_id: str,
        old_invitation_id: Optional[str],
        new_partner_id: str,
        new_partner_name: str,
    ) -> dict[str, Any]:
        """Replace the invited partner on a team application."""
        result = client.call(
            "reinviteApplicationPartner",
            {
                "applicationId": application_id,
                "oldInvitationId": old_invitation_id,
                "newPartnerId": new_partner_id,
                "newPartnerName": new_partner_name,
            },
        ) or {}
        if not result.get("success") or not result.get("newInvitationId"):
            raise CallableError("internal", "Failed to reinvite partner")
        return {"new_invitation_id": result["newInvitationId"]}

    @staticmethod
    def cancel_application(client: CallableClient, application_id: str) -> None:
        """Withdraw the user's own application."""
        client.call("cancelApplication", {"applicationId": application_id})

    @staticmethod
    def merge_solo_to_team(
        client: CallableClient,
        proposer_application_id: str,
        acceptor_application_id: str,
    ) -> dict[str, Any]:
        """Fold two solo applications into one team application."""
        result = client.call(
            "mergeSoloToTeam",
            {
                "proposerApplicationId": proposer_application_id,
                "acceptorApplicationId": acceptor_application_id,
            },
        ) or {}
        return {
            "success": bool(result.get("success")),
            "team_application_id": result.get("teamApplicationId"),
            "event_id": result.get("eventId"),
            "proposer": result.get("proposer"),
            "acceptor": result.get("acceptor"),
        }

    @staticmethod
    def respond_to_friend_invite(
        client: CallableClient, event_id: str, response: str
    ) -> dict[str, Any]:
        """Accept or reject an invitation to join a friend's event."""
        if response not in ("accept", "reject"):
            raise ValidationError("Response must be 'accept' or 'reject'.")
        result = client.call(
            "respondToFriendInvite", {"eventId": event_id, "response": response}
        ) or {}
        return {
            "success": bool(result.get("success")),
            "message": result.get("message", ""),
        }

    @staticmethod
    def approve_application(
        application_id: str,
        host_id: str,
        client: Optional[CallableClient] = None,
        db: Client | None = None,
    ) -> None:
        """Approve an application, then let the backend update the event."""
        if db is None:
            db = firestore.client()
        app_ref = db.collection(APPLICATIONS_COLLECTION).document(application_id)
        app_doc = cast("DocumentSnapshot", app_ref.get())
        if not app_doc.exists:
            raise NotFoundError("Application not found.")
        app_data = app_doc.to_dict() or {}

        batch = db.batch()
        batch.update(
            app_ref,
            {
                "status": APP_APPROVED,
                "processedAt": firestore.SERVER_TIMESTAMP,
                "processedBy": host_id,
            },
        )
        batch.commit()

        if client is None:
            return
        try:
            client.call(
                "approveApplication",
                {
                    "applicationId": application_id,
                    "hostId": host_id,
                    "eventId": app_data.get("eventId"),
                    "applicantId": app_data.get("applicantId"),
                },
            )
        except CallableError as e:
            # The approval itself is already committed.
            logger.error(f"approveApplication failed for {application_id}: {e}")

    @staticmethod
    def decline_application(
        application_id: str,
        host_id: str,
        reason: Optional[str] = None,
        db: Client | None = None,
    ) -> None:
        """Decline an application."""
        if db is None:
            db = firestore.client()
        app_ref = db.collection(APPLICATIONS_COLLECTION).document(application_id)
        if not cast("DocumentSnapshot", app_ref.get()).exists:
            raise NotFoundError("Application not found.")
        app_ref.update(
            {
                "status": APP_DECLINED,
                "processedAt": firestore.SERVER_TIMESTAMP,
                "processedBy": host_id,
                "hostMessage": reason or "",
            }
        )

    @staticmethod
    def approve_all_pending(
        event_id: str, admin_id: str, db: Client | None = None
    ) -> int:
        """Approve every pending application of an event and return the count."""
        if db is None:
            db = firestore.client()
        pending = list(
            db.collection(APPLICATIONS_COLLECTION)
            .where(filter=firestore.FieldFilter("eventId", "==", event_id))
            .where(filter=firestore.FieldFilter("status", "==", APP_PENDING))
            .stream()
        )
        if not pending:
            return 0

        for start in range(0, len(pending), FIRESTORE_BATCH_LIMIT):
            batch = db.batch()
            for doc in pending[start : start + FIRESTORE_BATCH_LIMIT]:
                batch.update(
                    doc.reference,
                    {
                        "status": APP_APPROVED,
                        "processedAt": firestore.SERVER_TIMESTAMP,
                        "processedBy": admin_id,
                        "bulkApproved": True,
                    },
                )
            batch.commit()
        logger.info(f"Approved {len(pending)} pending applications for {event_id}")
        return len(pending)
