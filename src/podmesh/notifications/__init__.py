"""
podmesh Notifications

Sharing announcements delivered through per-agent inbox containers.
"""

from podmesh.notifications.inbox import (
    InboxManager,
    build_notification,
    parse_notification,
    sort_by_published,
)

__all__ = [
    "InboxManager",
    "build_notification",
    "parse_notification",
    "sort_by_published",
]
