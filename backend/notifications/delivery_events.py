"""
Resend webhook handling - delivery status updates, bounces and complaints.

Payloads look like {"type": "email.delivered", "data": {"email_id": ...}}.
A digest email covers several notification records, so every record
carrying the email id is updated.
"""

from datetime import datetime
from typing import Any

from models.types import UserID
from notifications.preferences import pause_user, record_bounce
from shared.store import SupabaseStore
from shared.utils import parse_timestamp, utc_now

STATUS_BY_EVENT = {
    "email.sent": "sent",
    "email.delivered": "delivered",
    "email.bounced": "bounced",
}

# Terminal statuses map to an empty set
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"sent", "delivered", "bounced", "failed"},
    "sent": {"delivered", "bounced", "failed"},
    "delivered": {"bounced"},
    "bounced": set(),
    "failed": set(),
}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())


def _is_hard_bounce(data: dict[str, Any]) -> bool:
    if data.get("bounce_type") == "hard":
        return True
    bounce = data.get("bounce") or {}
    return str(bounce.get("type", "")).lower() in ("hard", "permanent")


def handle_email_event(
    store: SupabaseStore, payload: dict[str, Any], now: datetime | None = None
) -> str:
    """
    Apply one email provider event to the notification records it concerns.

    Args:
        store: Persistence
        payload: Webhook body with 'type' and 'data'
        now: Time to record as delivered_at / last_bounce_at (defaults to the
            event's created_at, then the current time)

    Returns:
        What was done: the new status, 'paused', 'logged', 'ignored' or 'unknown_email'
    """
    now = now or parse_timestamp(payload.get("created_at")) or utc_now()
    event_type = payload.get("type")
    data = payload.get("data") or {}
    email_id = data.get("email_id")

    if event_type == "email.delivery_delayed":
        print(f"  ⚠ Delivery delayed for email {email_id}")
        return "logged"

    if event_type not in STATUS_BY_EVENT and event_type != "email.complained":
        return "ignored"

    if not email_id:
        print(f"  ⚠ {event_type} event without email_id, ignoring")
        return "ignored"

    records = store.get_notifications_by_email_id(email_id)
    if not records:
        print(f"  ⚠ No notification found for email {email_id}")
        return "unknown_email"

    user_ids = list(dict.fromkeys(record.user_id for record in records))

    if event_type == "email.complained":
        for user_id in user_ids:
            pause_user(store, user_id, "spam complaint")
        return "paused"

    new_status = STATUS_BY_EVENT[event_type]
    updatable = [r for r in records if can_transition(r.status, new_status)]
    if not updatable:
        return "ignored"

    fields: dict[str, Any] = {"status": new_status}
    if new_status == "delivered":
        fields["delivered_at"] = now
    store.patch_notifications([r.id for r in updatable], fields)

    if new_status == "bounced":
        _apply_bounce(store, user_ids, _is_hard_bounce(data), now)

    print(f"  ✓ Email {email_id} marked {new_status} ({len(updatable)} records)")
    return new_status


def _apply_bounce(
    store: SupabaseStore, user_ids: list[UserID], hard: bool, now: datetime
) -> None:
    for user_id in user_ids:
        user = store.get_user(user_id)
        if user is None:
            continue
        preferences = record_bounce(user.notification_preferences, now, hard=hard)
        store.save_preferences(user_id, preferences)
        if preferences.pause_notifications:
            print(
                f"  ⚠ Notifications paused for user {user_id} after "
                f"{preferences.bounce_count} bounce(s)"
            )

