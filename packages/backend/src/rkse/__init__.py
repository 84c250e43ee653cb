"""RKSE — real-time model selection relay.

Relays model selection events published on a Redis channel to every
connected WebSocket client, and keeps a per-model usage counter in Redis.
"""

__version__ = "0.1.0"
