#!/usr/bin/env python3
"""
RKSE Quickstart — publish a few selections and watch the counters move.

Publishes model selection envelopes on the relay's Redis channel, the same
way a bot would, then reads the usage counters back.
Run with: python examples/quickstart.py

Requires: pip install redis httpx
Relay must be running: rkse (http://localhost:3000, open it in a browser)
"""

import json
import random
import sys
import time

import httpx
import redis

REDIS_URL = "redis://127.0.0.1:6379/0"
RELAY = "http://127.0.0.1:3000"
CHANNEL = "on_model_selection"
STATS_PREFIX = "selector_stat"
MODELS = ["Kickoff", "Nexto", "Necto", "Seer"]


def main():
    # ── Health check ──────────────────────────────────────────────
    print("Checking relay health...")
    try:
        health = httpx.get(f"{RELAY}/api/v1/health", timeout=5).json()
    except httpx.ConnectError:
        print(f"Relay not reachable at {RELAY}. Start it with: rkse")
        sys.exit(1)
    print(f"  Relay:   {health['relay']}")
    print(f"  Redis:   {health['redis']}")
    print(f"  Clients: {health['consumers']}")

    r = redis.Redis.from_url(REDIS_URL, decode_responses=True)

    # ── Publish selections ────────────────────────────────────────
    print(f"\nPublishing on {CHANNEL!r}...")
    for _ in range(10):
        model = random.choice(MODELS)
        actions = [round(random.uniform(-1, 1), 3) for _ in range(5)]
        actions += [random.random() for _ in range(3)]  # jump, boost, handbrake
        receivers = r.publish(CHANNEL, json.dumps({"model": model, "actions": actions}))
        print(f"  {model:<8} → {receivers} subscriber(s)")
        time.sleep(0.5)

    # A malformed one — the relay logs and drops it
    r.publish(CHANNEL, json.dumps({"model": "Broken", "actions": [1, 0, 0]}))

    # ── Read counters ─────────────────────────────────────────────
    print("\nUsage counters:")
    for model in MODELS:
        key = f"{STATS_PREFIX}_{model.lower().replace(' ', '_')}"
        print(f"  {key:<24} {r.get(key) or 0}")


if __name__ == "__main__":
    main()
