"""Issue Tracker — multi-tenant projects, issues, comments and notifications.

Users register, get approved by an administrator, create projects,
invite members, file issues and receive live notifications pushed
over Server-Sent Events.
"""

__version__ = "0.1.0"
