"""
Notification system for StaleBot.

This module handles:
- Deciding when and how users hear about newly stale issues
- Sending stale issue emails and digests via Resend
- Applying delivery events (delivered, bounced, complained)
- One-click unsubscribe links
"""

from .dispatcher import NotificationDispatcher
from .delivery_events import handle_email_event
from .email_sender import send_digest_email, send_stale_issue_email
from .preferences import handle_unsubscribe, is_quiet_hour

__all__ = [
    'NotificationDispatcher',
    'handle_email_event',
    'send_stale_issue_email',
    'send_digest_email',
    'handle_unsubscribe',
    'is_quiet_hour',
]
