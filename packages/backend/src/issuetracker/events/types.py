"""Activity and notification type constants.

Learn: Centralizing type strings as constants prevents typos and makes it
easy to discover everything the audit log and the notification bell can
contain. Live stream event types are a separate closed enum in
issuetracker.realtime.events.
"""

# ─── Activity log: issues ────────────────────────────────

ISSUE_CREATED = "ISSUE_CREATED"
ISSUE_UPDATED = "ISSUE_UPDATED"
ISSUE_DELETED = "ISSUE_DELETED"
ISSUE_STATUS_CHANGED = "ISSUE_STATUS_CHANGED"
ISSUE_ASSIGNEE_CHANGED = "ISSUE_ASSIGNEE_CHANGED"
ISSUE_LABEL_ADDED = "ISSUE_LABEL_ADDED"
ISSUE_LABEL_REMOVED = "ISSUE_LABEL_REMOVED"

# ─── Activity log: comments ──────────────────────────────

COMMENT_CREATED = "COMMENT_CREATED"
COMMENT_DELETED = "COMMENT_DELETED"

# ─── Activity log: projects ──────────────────────────────

PROJECT_UPDATED = "PROJECT_UPDATED"
PROJECT_MEMBER_ADDED = "PROJECT_MEMBER_ADDED"
PROJECT_MEMBER_REMOVED = "PROJECT_MEMBER_REMOVED"
PROJECT_MEMBER_ROLE_CHANGED = "PROJECT_MEMBER_ROLE_CHANGED"

# ─── Notifications ───────────────────────────────────────

NOTIFY_ISSUE_ASSIGNED = "ISSUE_ASSIGNED"
NOTIFY_ISSUE_STATUS_CHANGED = "ISSUE_STATUS_CHANGED"
NOTIFY_ISSUE_COMMENTED = "ISSUE_COMMENTED"
NOTIFY_PROJECT_MEMBER_ADDED = "PROJECT_MEMBER_ADDED"
NOTIFY_PROJECT_MEMBER_ROLE_CHANGED = "PROJECT_MEMBER_ROLE_CHANGED"
