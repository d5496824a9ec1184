"""Client side of the live event stream.

Learn: The stream is a hint channel. Events never write into the local
cache; they only mark cached queries stale so the next read goes back to
the API for authoritative data.

    RealtimeSubscriber ──frames──▶ SSEParser ──events──▶ Reconciler
                                                             │
                                                   QueryCache.invalidate()
"""

from issuetracker.client.cache import QueryCache
from issuetracker.client.reconcile import INVALIDATIONS, Reconciler, SSEParser
from issuetracker.client.subscriber import RealtimeSubscriber

__all__ = ["INVALIDATIONS", "QueryCache", "RealtimeSubscriber", "Reconciler", "SSEParser"]
