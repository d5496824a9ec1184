"""Real-time infrastructure — per-user live event streams over SSE.

Learn: Events flow in one direction:
1. A service commits a mutation (and its durable Notification/Activity rows)
2. RealtimeEmitter resolves who should hear about it
3. EventDispatcher writes the framed event to every open sink of each user
4. The /realtime stream drains its sink to the browser

A pushed event is only a hint to re-fetch. Delivery is best-effort,
at-most-once and unordered; nothing is replayed on reconnect.
"""
