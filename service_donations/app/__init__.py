"""
Donations Service package for the Donation Bridge.

Bridges donation platform webhooks to Roblox game servers that poll for
donations to display.

Structure:
- app.main: FastAPI app, routes, and background sweeper wiring.
- app.state: Owner of the queue, rate tables and dedupe tables.
- app.handlers: Ingestion, polling and listing pipelines.
- app.queue: In-memory donation queue.
- app.ratelimit: Sliding-window limiter.
- app.dedupe: Seen-id set and donor cooldown.
"""
