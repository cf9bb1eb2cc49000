"""
Unit tests for notifications/preferences.py
"""

import os
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from models.user import NotificationPreferences, QuietHours
from notifications.preferences import (
    blocked_reason,
    handle_unsubscribe,
    in_quiet_hours,
    is_paused,
    is_quiet_hour,
    record_bounce,
    resume_if_expired,
)
from notifications.unsubscribe_tokens import generate_unsubscribe_token
from tests.fixtures.in_memory_store import InMemoryStore
from tests.fixtures.user_factory import NOW, create_test_user


class TestIsQuietHour(unittest.TestCase):
    """Tests for is_quiet_hour()"""

    def test_window_wrapping_midnight(self):
        self.assertTrue(is_quiet_hour(23, 22, 8))
        self.assertTrue(is_quiet_hour(22, 22, 8))
        self.assertTrue(is_quiet_hour(3, 22, 8))
        self.assertFalse(is_quiet_hour(8, 22, 8))
        self.assertFalse(is_quiet_hour(12, 22, 8))

    def test_daytime_window(self):
        self.assertTrue(is_quiet_hour(10, 8, 22))
        self.assertFalse(is_quiet_hour(22, 8, 22))
        self.assertFalse(is_quiet_hour(7, 8, 22))

    def test_equal_bounds_disable_quiet_hours(self):
        for hour in range(24):
            self.assertFalse(is_quiet_hour(hour, 5, 5))


class TestInQuietHours(unittest.TestCase):
    """Tests for in_quiet_hours() with user timezones"""

    def test_uses_local_hour(self):
        prefs = NotificationPreferences(
            quiet_hours=QuietHours(start=22, end=8, timezone="America/Chicago")
        )
        # 03:00 UTC is 22:00 in Chicago (CDT, UTC-5) in summer
        summer_night = datetime(2026, 7, 1, 3, 0, tzinfo=timezone.utc)
        summer_noon = datetime(2026, 7, 1, 17, 0, tzinfo=timezone.utc)

        self.assertTrue(in_quiet_hours(prefs, summer_night))
        self.assertFalse(in_quiet_hours(prefs, summer_noon))

    def test_unknown_timezone_falls_back_to_utc(self):
        prefs = NotificationPreferences(
            quiet_hours=QuietHours(start=22, end=8, timezone="Mars/Olympus_Mons")
        )

        self.assertTrue(in_quiet_hours(prefs, datetime(2026, 7, 1, 23, 0, tzinfo=timezone.utc)))


class TestPauseAndBounces(unittest.TestCase):
    """Tests for pause state and bounce suppression"""

    def test_pause_without_end_is_indefinite(self):
        prefs = NotificationPreferences(pause_notifications=True)

        self.assertTrue(is_paused(prefs, NOW))
        self.assertEqual(blocked_reason(prefs, NOW), "Notifications paused")

    def test_pause_until_in_past_has_expired(self):
        prefs = NotificationPreferences(
            pause_notifications=True, pause_until=NOW - timedelta(minutes=1)
        )

        self.assertFalse(is_paused(prefs, NOW))
        self.assertIsNone(blocked_reason(prefs, NOW))

    def test_too_many_bounces_blocks(self):
        prefs = NotificationPreferences(bounce_count=3)

        self.assertEqual(blocked_reason(prefs, NOW), "Too many bounced emails")

    def test_soft_bounces_pause_at_threshold(self):
        prefs = NotificationPreferences()

        prefs = record_bounce(prefs, NOW)
        prefs = record_bounce(prefs, NOW)
        self.assertFalse(prefs.pause_notifications)

        prefs = record_bounce(prefs, NOW)
        self.assertTrue(prefs.pause_notifications)
        self.assertEqual(prefs.bounce_count, 3)
        self.assertEqual(prefs.last_bounce_at, NOW)

    def test_hard_bounce_pauses_immediately(self):
        prefs = record_bounce(NotificationPreferences(), NOW, hard=True)

        self.assertTrue(prefs.pause_notifications)
        self.assertEqual(prefs.bounce_count, 1)

    def test_resume_if_expired_persists(self):
        store = InMemoryStore(users=[create_test_user(user_id="user-1")])
        prefs = NotificationPreferences(
            pause_notifications=True, pause_until=NOW - timedelta(hours=1)
        )

        resumed = resume_if_expired(store, "user-1", prefs, NOW)

        self.assertFalse(resumed.pause_notifications)
        self.assertIsNone(resumed.pause_until)
        self.assertFalse(store.user_preferences("user-1").pause_notifications)

    def test_resume_leaves_active_pause_alone(self):
        store = InMemoryStore(users=[create_test_user(user_id="user-1")])
        prefs = NotificationPreferences(
            pause_notifications=True, pause_until=NOW + timedelta(days=1)
        )

        self.assertIs(resume_if_expired(store, "user-1", prefs, NOW), prefs)


@patch.dict(os.environ, {"UNSUBSCRIBE_SECRET_KEY": "k" * 40})
class TestHandleUnsubscribe(unittest.TestCase):
    """Tests for handle_unsubscribe()"""

    def setUp(self):
        self.store = InMemoryStore(users=[create_test_user(user_id="user-1")])

    def test_valid_token_pauses_user(self):
        token = generate_unsubscribe_token("user-1")

        self.assertTrue(handle_unsubscribe(self.store, token))
        self.assertTrue(self.store.user_preferences("user-1").pause_notifications)

    def test_invalid_token_changes_nothing(self):
        self.assertFalse(handle_unsubscribe(self.store, "forged.token.value"))
        self.assertFalse(self.store.user_preferences("user-1").pause_notifications)

    def test_unknown_user(self):
        token = generate_unsubscribe_token("ghost")

        self.assertFalse(handle_unsubscribe(self.store, token))


if __name__ == "__main__":
    unittest.main()
