"""Tests for the activity blueprint."""

import datetime
import unittest
from unittest.mock import MagicMock, patch

from courtside import create_app
from courtside.activity.callables import CallableError
from courtside.activity.models import (
    Event,
    EventWithParticipation,
    ParticipationApplication,
)
from courtside.activity.routes import translate_callable_error
from courtside.errors import EventFullError, ServiceUnavailableError, ValidationError

MOCK_USER_ID = "user1"
MOCK_USER_DATA = {"displayName": "User One"}
NOW = datetime.datetime(2024, 6, 1, 12, 0, tzinfo=datetime.timezone.utc)


class ActivityRoutesTestCase(unittest.TestCase):
    """Test case for the activity blueprint."""

    def setUp(self):
        self.mock_firestore_service = MagicMock()
        user_snapshot = MagicMock()
        user_snapshot.exists = True
        user_snapshot.to_dict.return_value = dict(MOCK_USER_DATA)
        mock_db = self.mock_firestore_service.client.return_value
        mock_db.collection.return_value.document.return_value.get.return_value = (
            user_snapshot
        )

        patchers = {
            "init_app": patch("firebase_admin.initialize_app"),
            "firestore_app": patch("courtside.firestore", new=self.mock_firestore_service),
            "service": patch("courtside.activity.routes.ActivityService"),
        }
        self.mocks = {name: p.start() for name, p in patchers.items()}
        for p in patchers.values():
            self.addCleanup(p.stop)
        self.service = self.mocks["service"]

        self.app = create_app(
            {
                "TESTING": True,
                "WTF_CSRF_ENABLED": False,
                "SERVER_NAME": "localhost",
                "FUNCTIONS_BASE_URL": "https://functions.example.com",
            }
        )
        self.client = self.app.test_client()

    def _set_session_user(self):
        with self.client.session_transaction() as sess:
            sess["user_id"] = MOCK_USER_ID
            sess["id_token"] = "mock-token"

    def _event(self, host_id="host1"):
        return Event.from_dict("e1", {"scheduledTime": NOW, "hostId": host_id})

    def test_requires_login(self):
        response = self.client.get("/activity/applied")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()["status"], "error")

    def test_applied_events(self):
        self._set_session_user()
        self.service.get_applied_events.return_value = [
            EventWithParticipation(event=self._event())
        ]

        response = self.client.get("/activity/applied?status=all")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["events"][0]["id"], "e1")
        self.service.get_applied_events.assert_called_once_with(MOCK_USER_ID, "all")

    def test_invalid_status_filter(self):
        self._set_session_user()
        response = self.client.get("/activity/hosted?status=finished")
        self.assertEqual(response.status_code, 400)
        self.service.get_hosted_events.assert_not_called()

    def test_view_missing_event(self):
        self._set_session_user()
        self.service.get_event_by_id.return_value = None
        response = self.client.get("/activity/events/e9")
        self.assertEqual(response.status_code, 404)

    def test_apply_solo(self):
        self._set_session_user()
        self.service.apply_as_solo.return_value = {
            "application_id": "a1",
            "notified_count": 2,
        }

        response = self.client.post("/activity/events/e1/apply", json={"mode": "solo"})

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.get_json()["notified_count"], 2)
        args, kwargs = self.service.apply_as_solo.call_args
        self.assertEqual(args[1:], ("e1", MOCK_USER_ID))
        self.assertEqual(kwargs["applicant_name"], "User One")
        self.assertEqual(args[0].id_token, "mock-token")

    def test_apply_to_full_event(self):
        self._set_session_user()
        self.service.apply_to_event.side_effect = CallableError(
            "failed-precondition", "Event is full"
        )
        response = self.client.post("/activity/events/e1/apply", json={})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["message"], "Event is full")

    def test_apply_backend_down(self):
        self._set_session_user()
        self.service.apply_as_team.side_effect = CallableError("unavailable", "down")
        response = self.client.post(
            "/activity/events/e1/apply",
            json={"mode": "team", "partnerId": "user2", "partnerName": "Bob"},
        )
        self.assertEqual(response.status_code, 503)

    def test_expired_token_clears_session(self):
        self._set_session_user()
        self.service.cancel_application.side_effect = CallableError(
            "unauthenticated", "Token expired"
        )

        response = self.client.post("/activity/applications/a1/cancel")

        self.assertEqual(response.status_code, 401)
        with self.client.session_transaction() as sess:
            self.assertNotIn("user_id", sess)
            self.assertNotIn("id_token", sess)

    def test_approve_requires_host(self):
        self._set_session_user()
        self.service.get_application.return_value = ParticipationApplication.from_dict(
            "a1", {"eventId": "e1"}
        )
        self.service.get_event_by_id.return_value = self._event(host_id="someone")

        response = self.client.post("/activity/applications/a1/approve")

        self.assertEqual(response.status_code, 403)
        self.service.approve_application.assert_not_called()

    def test_approve_as_host(self):
        self._set_session_user()
        self.service.get_application.return_value = ParticipationApplication.from_dict(
            "a1", {"eventId": "e1"}
        )
        self.service.get_event_by_id.return_value = self._event(host_id=MOCK_USER_ID)

        response = self.client.post("/activity/applications/a1/approve")

        self.assertEqual(response.status_code, 200)
        args, kwargs = self.service.approve_application.call_args
        self.assertEqual(args, ("a1", MOCK_USER_ID))
        self.assertIn("client", kwargs)

    def test_decline_with_reason(self):
        self._set_session_user()
        self.service.get_application.return_value = ParticipationApplication.from_dict(
            "a1", {"eventId": "e1"}
        )
        self.service.get_event_by_id.return_value = self._event(host_id=MOCK_USER_ID)

        response = self.client.post(
            "/activity/applications/a1/decline", json={"reason": "Roster is set"}
        )

        self.assertEqual(response.status_code, 200)
        self.service.decline_application.assert_called_once_with(
            "a1", MOCK_USER_ID, reason="Roster is set"
        )

    def test_approve_all(self):
        self._set_session_user()
        self.service.get_event_by_id.return_value = self._event(host_id=MOCK_USER_ID)
        self.service.approve_all_pending.return_value = 3

        response = self.client.post("/activity/events/e1/approve-all")

        self.assertEqual(response.get_json()["approved"], 3)

    def test_merge_requires_both_ids(self):
        self._set_session_user()
        response = self.client.post(
            "/activity/applications/merge", json={"proposerApplicationId": "s1"}
        )
        self.assertEqual(response.status_code, 400)


class TranslateCallableErrorTestCase(unittest.TestCase):
    def test_mapping(self):
        self.assertIsInstance(
            translate_callable_error(CallableError("failed-precondition", "Event full")),
            EventFullError,
        )
        self.assertEqual(
            translate_callable_error(CallableError("not-found", "gone")).status_code, 404
        )
        self.assertEqual(
            translate_callable_error(CallableError("already-exists")).status_code, 409
        )
        self.assertIsInstance(
            translate_callable_error(CallableError("invalid-argument", "bad")),
            ValidationError,
        )
        self.assertIsInstance(
            translate_callable_error(CallableError("failed-precondition", "closed")),
            ServiceUnavailableError,
        )


if __name__ == "__main__":
    unittest.main()
