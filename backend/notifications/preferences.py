"""
Notification preference checks - pauses, quiet hours, bounce suppression.
"""

from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config.settings import BOUNCE_PAUSE_THRESHOLD
from models.types import UserID
from models.user import NotificationPreferences
from notifications.unsubscribe_tokens import validate_unsubscribe_token
from shared.store import SupabaseStore


def is_quiet_hour(hour: int, start: int, end: int) -> bool:
    """
    Check if an hour of the day falls inside a quiet-hours window.

    The window may wrap midnight (start > end). Equal start and end means
    no quiet hours.

    Examples:
        >>> is_quiet_hour(23, 22, 8)
        True
        >>> is_quiet_hour(8, 22, 8)
        False
    """
    if start == end:
        return False
    if start > end:
        return hour >= start or hour < end
    return start <= hour < end


def in_quiet_hours(preferences: NotificationPreferences, now: datetime) -> bool:
    """Check quiet hours using the hour in the user's own timezone."""
    quiet_hours = preferences.quiet_hours
    try:
        tz = ZoneInfo(quiet_hours.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        print(f"  ⚠ Unknown timezone {quiet_hours.timezone!r}, using UTC")
        tz = ZoneInfo("UTC")
    return is_quiet_hour(now.astimezone(tz).hour, quiet_hours.start, quiet_hours.end)


def is_paused(preferences: NotificationPreferences, now: datetime) -> bool:
    """True while notifications are paused. A pause_until in the past has expired."""
    if not preferences.pause_notifications:
        return False
    if preferences.pause_until is not None and preferences.pause_until <= now:
        return False
    return True


def blocked_reason(preferences: NotificationPreferences, now: datetime) -> str | None:
    """Why no email may be sent to this user right now, or None if one may."""
    if is_paused(preferences, now):
        return "Notifications paused"
    if preferences.bounce_count >= BOUNCE_PAUSE_THRESHOLD:
        return "Too many bounced emails"
    return None


def resume_if_expired(
    store: SupabaseStore,
    user_id: UserID,
    preferences: NotificationPreferences,
    now: datetime,
) -> NotificationPreferences:
    """Clear a temporary pause whose pause_until has passed."""
    if (
        preferences.pause_notifications
        and preferences.pause_until is not None
        and preferences.pause_until <= now
    ):
        preferences = preferences.model_copy(
            update={"pause_notifications": False, "pause_until": None}
        )
        store.save_preferences(user_id, preferences)
        print(f"  ✓ Pause expired for user {user_id}, notifications resumed")
    return preferences


def record_bounce(
    preferences: NotificationPreferences, now: datetime, hard: bool = False
) -> NotificationPreferences:
    """
    Count a bounced email against the user.

    A hard bounce pauses notifications at once; soft bounces pause them when
    BOUNCE_PAUSE_THRESHOLD is reached.
    """
    bounce_count = preferences.bounce_count + 1
    pause = (
        preferences.pause_notifications
        or hard
        or bounce_count >= BOUNCE_PAUSE_THRESHOLD
    )
    return preferences.model_copy(
        update={
            "bounce_count": bounce_count,
            "last_bounce_at": now,
            "pause_notifications": pause,
        }
    )


def pause_user(store: SupabaseStore, user_id: UserID, reason: str) -> bool:
    """Pause all notifications for a user. Returns False if the user is unknown."""
    user = store.get_user(user_id)
    if user is None:
        return False
    preferences = user.notification_preferences.model_copy(
        update={"pause_notifications": True, "pause_until": None}
    )
    store.save_preferences(user_id, preferences)
    print(f"  ⚠ Paused notifications for user {user_id}: {reason}")
    return True


def handle_unsubscribe(store: SupabaseStore, token: str) -> bool:
    """
    Pause notifications for the user an unsubscribe token was issued to.

    Returns:
        True if the token was valid and the user was paused
    """
    user_id = validate_unsubscribe_token(token)
    if user_id is None:
        return False
    return pause_user(store, UserID(user_id), "unsubscribed")

