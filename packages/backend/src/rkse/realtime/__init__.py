"""Real-time infrastructure — Redis pub/sub → broadcast hub → WebSockets.

Learn: Events flow through three stages:
1. Redis SUBSCRIBE → parser → INCR counter (the relay pipeline)
2. Pipeline → BroadcastHub (in-process fan-out, bounded backlog)
3. Hub → one DeliverySession per WebSocket client

The hub is the only thing the pipeline and the sessions share. It is
created once at startup and handed to both sides explicitly.
"""
