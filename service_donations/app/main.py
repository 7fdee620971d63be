"""
Donations service for the Donation Bridge.

Receives donation platform webhooks, queues them in memory and serves them
one at a time to polling Roblox game servers.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import Query, Request, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import DonationBridgeException, InternalError
from shared.observability import get_observability_manager

from .clock import Clock
from .handlers import IngestionHandler, ListHandler, PollHandler
from .state import DonationState

WEBHOOK_PATH = "/api/webhook"
NOTIFY_PATH = "/api/notify"
DONATIONS_PATH = "/api/donations"


class DonationsService(BaseService):
    """Donations service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, clock: Optional[Clock] = None):
        super().__init__("donations", 8020, config=config)

        self.observability = get_observability_manager("donations", self.metrics)

        # One state object per service instance, shared by every handler
        self.state = DonationState(self.config, clock=clock)
        self.ingestion = IngestionHandler(self.state, self.config, self.observability)
        self.poller = PollHandler(self.state, self.config, self.observability)
        self.lister = ListHandler(self.state, self.config)

        self.sweeper_task: Optional[asyncio.Task] = None
        self.running = False

        self._setup_donation_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.donations_service = self

    def _setup_cors(self):
        # API paths carry their own CORS headers and answer OPTIONS in routes
        pass

    def _response_headers(self, request: Request) -> Dict[str, str]:
        path = request.url.path
        if not path.startswith("/api/"):
            return {}

        headers = {"Access-Control-Allow-Origin": "*"}
        if request.method == "OPTIONS":
            headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            headers["Access-Control-Allow-Headers"] = "Content-Type"
        if path == WEBHOOK_PATH:
            headers["X-Content-Type-Options"] = "nosniff"
        elif path == NOTIFY_PATH:
            headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        return headers

    def _get_client_ip(self, request: Request) -> str:
        """Extract the caller IP from standard headers."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip
        if request.client:
            return request.client.host
        return "unknown"

    def _internal_error(self, operation: str, exc: Exception) -> InternalError:
        self.observability.log_error(f"{operation}_error", str(exc), exc_info=True)
        return InternalError()

    def _setup_donation_routes(self):
        """Set up donation routes."""

        @self.app.post(WEBHOOK_PATH)
        async def receive_webhook(request: Request):
            """Receive a donation from the donation platform."""
            source = self._get_client_ip(request)
            self.observability.trace_request(source=source)
            raw_body = await request.body()

            try:
                return self.ingestion.handle(raw_body, source)
            except DonationBridgeException:
                raise
            except Exception as e:
                raise self._internal_error("webhook", e) from e

        @self.app.get(WEBHOOK_PATH)
        async def webhook_health():
            """Liveness probe for the webhook receiver."""
            return {
                "status": "ok",
                "message": "Webhook server is running",
                "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            }

        @self.app.get(NOTIFY_PATH)
        async def notify(game_id: Optional[str] = Query(None, description="Roblox game identifier")):
            """Claim the next pending donation for display."""
            self.observability.trace_request(game_id=game_id)

            try:
                return self.poller.handle(game_id)
            except DonationBridgeException:
                raise
            except Exception as e:
                raise self._internal_error("notify", e) from e

        @self.app.get(DONATIONS_PATH)
        async def list_donations(
            game_id: Optional[str] = Query(None, description="Roblox game identifier"),
            status: Optional[str] = Query(None, description="all, pending or processed"),
            limit: Optional[str] = Query(None, description="Maximum records, capped at 100")
        ):
            """Inspect queued donations without consuming them."""
            try:
                return self.lister.handle(game_id, status, limit)
            except DonationBridgeException:
                raise
            except Exception as e:
                raise self._internal_error("list_donations", e) from e

        @self.app.get("/api/stats")
        async def get_stats():
            """Queue, dedupe and rate limiter counters."""
            return {
                "status": "ok",
                **self.state.get_stats(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

        async def preflight():
            return Response(status_code=200, media_type="application/json")

        async def method_not_allowed():
            return Response(
                status_code=405,
                content='{"status":"error","message":"Method not allowed"}',
                media_type="application/json",
            )

        for path, allowed in (
            (WEBHOOK_PATH, {"GET", "POST"}),
            (NOTIFY_PATH, {"GET"}),
            (DONATIONS_PATH, {"GET"}),
        ):
            self.app.add_api_route(path, preflight, methods=["OPTIONS"], include_in_schema=False)
            rejected = sorted({"GET", "POST", "PUT", "PATCH", "DELETE"} - allowed)
            self.app.add_api_route(path, method_not_allowed, methods=rejected, include_in_schema=False)

    async def _check_dependencies(self):
        """Check donations service dependencies."""
        return {
            "sweeper": "ok" if self.running else "stopped",
        }

    async def _sweep_loop(self):
        """Apply removal deadlines even when no requests arrive."""
        while self.running:
            await asyncio.sleep(self.config.sweep_interval_seconds)
            try:
                swept = self.state.sweep()
                if any(swept.values()):
                    self.logger.debug("Background sweep", **swept)
                self.metrics.set_gauge("donation_queue_size", len(self.state.queue))
            except Exception as e:
                self.logger.error("Background sweep failed", error=str(e), exc_info=True)

    async def start(self):
        """Start the background sweeper."""
        self.running = True
        self.sweeper_task = asyncio.create_task(self._sweep_loop())
        self.logger.info("Donations service started", sweep_interval_seconds=self.config.sweep_interval_seconds)

    async def stop(self):
        """Stop the background sweeper."""
        self.running = False
        if self.sweeper_task:
            self.sweeper_task.cancel()
            try:
                await self.sweeper_task
            except asyncio.CancelledError:
                pass
            self.sweeper_task = None

        self.logger.info("Donations service stopped")


def create_app():
    """Create donations service application."""
    service = DonationsService()
    return service.app


if __name__ == "__main__":
    service = DonationsService()
    service.run()
