"""Tests for the active/past event classifier."""

import datetime
import unittest

from courtside.activity.lifecycle import (
    GameFormat,
    VisibilityBucket,
    classify,
    completion_time,
    game_format,
    infer_event_type,
    is_completed_for_24_hours,
    show_as_active,
)
from courtside.activity.models import Event, EventMatchResult
from tests.conftest import NOW


def make_event(**fields):
    data = {"type": "match", "gameType": "mens_doubles", "duration": 120}
    data.update(fields)
    data.setdefault("scheduledTime", NOW)
    return Event.from_dict("e1", data)


def hours(n):
    return datetime.timedelta(hours=n)


class GameTypeTestCase(unittest.TestCase):
    def test_game_format_table(self):
        self.assertEqual(game_format("mixed_doubles"), GameFormat.COMPETITIVE)
        self.assertEqual(game_format("singles"), GameFormat.COMPETITIVE)
        self.assertEqual(game_format("rally"), GameFormat.SOCIAL)
        self.assertEqual(game_format("practice"), GameFormat.SOCIAL)
        self.assertEqual(game_format("senior_doubles"), GameFormat.COMPETITIVE)
        self.assertIsNone(game_format("clinic"))
        self.assertIsNone(game_format(None))

    def test_meetup_with_competitive_game_is_a_match(self):
        self.assertEqual(infer_event_type("meetup", "mens_doubles"), "match")
        self.assertEqual(infer_event_type("meetup", "rally"), "meetup")
        self.assertEqual(infer_event_type("meetup", None), "meetup")

    def test_missing_type_defaults_to_match(self):
        self.assertEqual(infer_event_type(None, "rally"), "match")
        self.assertEqual(infer_event_type("match", "rally"), "match")


class CompletionTimeTestCase(unittest.TestCase):
    def test_uses_duration(self):
        event = make_event(scheduledTime=NOW, duration=90)
        self.assertEqual(completion_time(event), NOW + datetime.timedelta(minutes=90))

    def test_missing_or_bad_duration_defaults_to_two_hours(self):
        for duration in (None, 0, -5, "abc"):
            event = make_event(duration=duration)
            self.assertEqual(completion_time(event), NOW + hours(2))

    def test_actual_end_time_wins(self):
        end = NOW + hours(5)
        event = make_event(actualEndTime=end)
        self.assertEqual(completion_time(event), end)

    def test_completed_for_24_hours_boundary(self):
        event = make_event(scheduledTime=NOW - hours(26))
        self.assertTrue(is_completed_for_24_hours(event, NOW))
        event = make_event(scheduledTime=NOW - hours(25))
        self.assertFalse(is_completed_for_24_hours(event, NOW))


class ClassifyTestCase(unittest.TestCase):
    def test_partner_pending_is_active_even_when_scored(self):
        event = make_event(
            status="partner_pending",
            scheduledTime=NOW - hours(100),
            matchResult={"score": {"a": 11, "b": 4}},
        )
        result = classify(event, NOW)
        self.assertEqual(result.bucket, VisibilityBucket.ACTIVE)
        self.assertEqual(result.rule, "partner_pending")

    def test_scored_match_is_past_even_if_future(self):
        event = make_event(
            scheduledTime=NOW + hours(3), matchResult={"score": {"a": 11, "b": 9}}
        )
        self.assertFalse(show_as_active(event, NOW))

    def test_empty_match_result_retires_match(self):
        event = make_event(scheduledTime=NOW - hours(48), matchResult={})
        result = classify(event, NOW)
        self.assertEqual(result.bucket, VisibilityBucket.PAST)
        self.assertEqual(result.rule, "match_scored")

    def test_legacy_score_winner_counts_as_result(self):
        event = make_event(scheduledTime=NOW + hours(3), score={"_winner": "team1"})
        self.assertFalse(show_as_active(event, NOW))

    def test_future_event_is_active(self):
        event = make_event(scheduledTime=NOW + hours(1))
        self.assertEqual(classify(event, NOW).rule, "not_started")

    def test_in_progress_event_is_active(self):
        event = make_event(scheduledTime=NOW - hours(1))
        self.assertEqual(classify(event, NOW).rule, "in_progress")

    def test_finished_meetup_within_grace_window(self):
        # Ended 10 hours ago.
        event = make_event(type="meetup", gameType="rally", scheduledTime=NOW - hours(12))
        result = classify(event, NOW)
        self.assertTrue(result.show_as_active)
        self.assertEqual(result.rule, "meetup_grace_window")

    def test_meetup_retired_after_a_day(self):
        event = make_event(type="meetup", gameType="rally", scheduledTime=NOW - hours(30))
        result = classify(event, NOW)
        self.assertEqual(result.bucket, VisibilityBucket.PAST)
        self.assertEqual(result.rule, "meetup_retired")

    def test_unscored_match_stays_active_indefinitely(self):
        event = make_event(scheduledTime=NOW - datetime.timedelta(days=60))
        result = classify(event, NOW)
        self.assertTrue(result.show_as_active)
        self.assertEqual(result.rule, "match_awaiting_score")

    def test_mislabelled_competitive_meetup_waits_for_score(self):
        event = make_event(
            type="meetup", gameType="womens_singles", scheduledTime=NOW - hours(48)
        )
        self.assertTrue(show_as_active(event, NOW))

    def test_singles_match_retires_when_scored(self):
        event = make_event(
            gameType="mens_singles", scheduledTime=NOW - hours(2), duration=60
        )
        self.assertTrue(show_as_active(event, NOW))
        event.match_result = EventMatchResult(score={"team1": 11, "team2": 6})
        self.assertFalse(show_as_active(event, NOW))

    def test_meetup_window_with_short_duration(self):
        meetup = {"type": "meetup", "gameType": "rally", "duration": 60}
        retired = make_event(scheduledTime=NOW - hours(25), **meetup)
        fresh = make_event(scheduledTime=NOW - hours(23), **meetup)
        self.assertFalse(show_as_active(retired, NOW))
        self.assertTrue(show_as_active(fresh, NOW))

    def test_classification_is_deterministic(self):
        event = make_event(type="meetup", gameType="rally", scheduledTime=NOW - hours(20))
        self.assertEqual(classify(event, NOW), classify(event, NOW))


if __name__ == "__main__":
    unittest.main()
