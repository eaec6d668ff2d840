"""Routes for the activity blueprint."""

from __future__ import annotations

from typing import Any

from flask import current_app, g, jsonify, request, session

from courtside.auth.decorators import login_required
from courtside.core.constants import FEED_STATUSES, FEED_UPCOMING
from courtside.errors import (
    AppError,
    DuplicateResourceError,
    EventFullError,
    NotFoundError,
    PermissionDeniedError,
    ServiceUnavailableError,
    UnauthenticatedError,
    ValidationError,
)

from . import bp
from .callables import CallableClient, CallableError
from .services import ActivityService

CALLABLE_ERRORS: dict[str, type[AppError]] = {
    "unauthenticated": UnauthenticatedError,
    "permission-denied": PermissionDeniedError,
    "not-found": NotFoundError,
    "already-exists": DuplicateResourceError,
    "invalid-argument": ValidationError,
}


def translate_callable_error(error: CallableError) -> AppError:
    """Turn a callable failure into the matching application error."""
    if error.code == "failed-precondition" and "full" in error.message.lower():
        return EventFullError(error.message or "This event is full.")
    error_class = CALLABLE_ERRORS.get(error.code)
    if error_class is None:
        return ServiceUnavailableError()
    if error.message:
        return error_class(error.message)
    return error_class()


def _client() -> CallableClient:
    return CallableClient.from_config(current_app.config, session.get("id_token"))


def _user_name() -> str | None:
    user = g.get("user") or {}
    return user.get("displayName") or user.get("name")


def _feed_status() -> str:
    status = request.args.get("status", FEED_UPCOMING)
    if status not in FEED_STATUSES:
        raise ValidationError(f"Invalid status filter: {status}")
    return status


def _payload() -> dict[str, Any]:
    return request.get_json(silent=True) or {}


def _require_host(event_id: str | None, user_id: str) -> None:
    event = ActivityService.get_event_by_id(event_id) if event_id else None
    if event is None:
        raise NotFoundError("Event not found.")
    if event.host_id != user_id:
        raise PermissionDeniedError("Only the host can manage applications.")


def _events_response(items):
    return jsonify({"status": "success", "events": [i.to_dict() for i in items]})


@bp.route("/applied")
@login_required
def applied_events():
    """List the events the user applied to."""
    items = ActivityService.get_applied_events(session["user_id"], _feed_status())
    return _events_response(items)


@bp.route("/hosted")
@login_required
def hosted_events():
    """List the events the user hosts."""
    items = ActivityService.get_hosted_events(session["user_id"], _feed_status())
    return _events_response(items)


@bp.route("/past")
@login_required
def past_events():
    """List the user's past matches."""
    return _events_response(ActivityService.get_past_events(session["user_id"]))


@bp.route("/events/<string:event_id>")
@login_required
def view_event(event_id):
    """Show a single event."""
    event = ActivityService.get_event_by_id(event_id)
    if event is None:
        raise NotFoundError("Event not found.")
    return jsonify({"status": "success", "event": event.to_dict()})


@bp.route("/events/<string:event_id>/application")
@login_required
def application_status(event_id):
    """Report the user's own application to an event."""
    result = ActivityService.get_user_application_status(event_id, session["user_id"])
    return jsonify({"status": "success", **result})


@bp.route("/events/<string:event_id>/apply", methods=["POST"])
@login_required
def apply(event_id):
    """Apply to an event, alone, with a partner, or into the solo lobby."""
    data = _payload()
    mode = data.get("mode", "individual")
    user_id = session["user_id"]
    try:
        if mode == "team":
            result = ActivityService.apply_as_team(
                _client(),
                event_id,
                user_id,
                data.get("partnerId"),
                data.get("partnerName"),
                applicant_name=_user_name(),
                message=data.get("message"),
            )
        elif mode == "solo":
            result = ActivityService.apply_as_solo(
                _client(),
                event_id,
                user_id,
                applicant_name=_user_name(),
                message=data.get("message"),
            )
        else:
            result = ActivityService.apply_to_event(
                _client(),
                event_id,
                user_id,
                message=data.get("message"),
                applicant_name=_user_name(),
            )
    except CallableError as e:
        raise translate_callable_error(e) from e
    current_app.logger.info(f"User {user_id} applied to {event_id} ({mode})")
    return jsonify({"status": "success", **result}), 201


@bp.route("/events/<string:event_id>/invite-response", methods=["POST"])
@login_required
def invite_response(event_id):
    """Accept or reject a friend's invitation to an event."""
    try:
        result = ActivityService.respond_to_friend_invite(
            _client(), event_id, _payload().get("response", "")
        )
    except CallableError as e:
        raise translate_callable_error(e) from e
    return jsonify({"status": "success", **result})


@bp.route("/applications/<string:application_id>/approve", methods=["POST"])
@login_required
def approve(application_id):
    """Approve an application to one of the user's events."""
    user_id = session["user_id"]
    application = ActivityService.get_application(application_id)
    if application is None:
        raise NotFoundError("Application not found.")
    _require_host(application.event_id, user_id)
    ActivityService.approve_application(application_id, user_id, client=_client())
    return jsonify({"status": "success"})


@bp.route("/applications/<string:application_id>/decline", methods=["POST"])
@login_required
def decline(application_id):
    """Decline an application to one of the user's events."""
    user_id = session["user_id"]
    application = ActivityService.get_application(application_id)
    if application is None:
        raise NotFoundError("Application not found.")
    _require_host(application.event_id, user_id)
    ActivityService.decline_application(
        application_id, user_id, reason=_payload().get("reason")
    )
    return jsonify({"status": "success"})


@bp.route("/applications/<string:application_id>/cancel", methods=["POST"])
@login_required
def cancel(application_id):
    """Withdraw one of the user's own applications."""
    try:
        ActivityService.cancel_application(_client(), application_id)
    except CallableError as e:
        raise translate_callable_error(e) from e
    return jsonify({"status": "success"})


@bp.route("/applications/<string:application_id>/reinvite", methods=["POST"])
@login_required
def reinvite(application_id):
    """Invite a different partner onto a team application."""
    data = _payload()
    if not data.get("partnerId"):
        raise ValidationError("A new partner is required.")
    try:
        result = ActivityService.reinvite_partner(
            _client(),
            application_id,
            data.get("oldInvitationId"),
            data["partnerId"],
            data.get("partnerName", ""),
        )
    except CallableError as e:
        raise translate_callable_error(e) from e
    return jsonify({"status": "success", **result})


@bp.route("/applications/merge", methods=["POST"])
@login_required
def merge():
    """Pair two solo applications into a team."""
    data = _payload()
    proposer = data.get("proposerApplicationId")
    acceptor = data.get("acceptorApplicationId")
    if not proposer or not acceptor:
        raise ValidationError("Both application ids are required.")
    try:
        result = ActivityService.merge_solo_to_team(_client(), proposer, acceptor)
    except CallableError as e:
        raise translate_callable_error(e) from e
    return jsonify({"status": "success", **result})


@bp.route("/events/<string:event_id>/approve-all", methods=["POST"])
@login_required
def approve_all(event_id):
    """Approve every pending application of one of the user's events."""
    user_id = session["user_id"]
    _require_host(event_id, user_id)
    count = ActivityService.approve_all_pending(event_id, user_id)
    return jsonify({"status": "success", "approved": count})
