"""
Unit tests for the donations service HTTP surface.
"""

import asyncio
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from shared.test_helpers import TEST_GAME_ID, TestDataFactory, create_test_config

from service_donations.app.clock import ManualClock
from service_donations.app.main import DonationsService, create_app


@pytest.fixture
def clock():
    """Create a manual clock."""
    return ManualClock()


@pytest.fixture
def donations_service(clock):
    """Create DonationsService instance."""
    return DonationsService(config=create_test_config(), clock=clock)


@pytest.fixture
def client(donations_service):
    """Create test client."""
    return TestClient(donations_service.app)


class TestDonationsService:
    """Test cases for DonationsService."""

    def test_service_initialization(self, donations_service):
        """Test service initialization."""
        assert donations_service.service_name == "donations"
        assert donations_service.port == 8020
        assert donations_service.state is not None
        assert donations_service.app.state.donations_service is donations_service

    def test_create_app(self):
        """Test the module-level factory."""
        app = create_app()
        assert app.title == "Donations Service"

    def test_health_endpoint(self, client):
        """Test health endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "donations"
        assert data["status"] == "ok"
        assert data["dependencies"]["sweeper"] == "stopped"

    def test_metrics_endpoint(self, client):
        """Test Prometheus exposition."""
        client.post("/api/webhook", json=TestDataFactory.create_webhook_payload())

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "donations_received_total 1.0" in response.text

    def test_sweeper_runs_with_lifespan(self, donations_service):
        """Test that the sweeper starts and stops with the application."""
        with TestClient(donations_service.app) as client:
            assert donations_service.running is True
            assert client.get("/health").json()["dependencies"]["sweeper"] == "ok"

        assert donations_service.running is False
        assert donations_service.sweeper_task is None


class TestWebhookEndpoint:
    """Test cases for /api/webhook."""

    def test_webhook_success(self, client):
        """Test a valid delivery."""
        payload = {"id": "d1", "amount": 5000, "donor_name": "Ana", "donor_email": "a@x.com"}

        response = client.post("/api/webhook", json=payload)

        assert response.status_code == 200
        assert response.json() == {
            "status": "success",
            "message": "Donation received",
            "donation_id": "d1",
            "queue_position": 1,
        }
        assert response.headers["content-type"] == "application/json"
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["x-content-type-options"] == "nosniff"

    def test_webhook_health(self, client):
        response = client.get("/api/webhook")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["message"] == "Webhook server is running"
        assert data["timestamp"].endswith("Z")

    def test_invalid_payload(self, client):
        response = client.post("/api/webhook", content=b"[]", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json() == {
            "status": "error",
            "message": "Invalid JSON payload",
            "code": "INVALID_PAYLOAD",
        }
        assert response.headers["access-control-allow-origin"] == "*"

    def test_invalid_data(self, client):
        payload = TestDataFactory.create_webhook_payload(amount=-1)

        response = client.post("/api/webhook", json=payload)

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_DATA"

    def test_oversized_integer_amount(self, client, donations_service):
        raw = b'{"id": "big", "amount": 1' + b"0" * 400 + b', "donor_name": "Ana", "donor_email": "a@x.com"}'

        response = client.post("/api/webhook", content=raw, headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_DATA"
        assert len(donations_service.state.queue) == 0

    def test_duplicate_donation(self, client, donations_service):
        """Test that a resubmitted id is a warning and the queue does not grow."""
        client.post("/api/webhook", json=TestDataFactory.create_webhook_payload(donation_id="d1"))

        response = client.post("/api/webhook", json=TestDataFactory.create_webhook_payload(donation_id="d1"))

        assert response.status_code == 400
        assert response.json() == {
            "status": "warning",
            "message": "Donation already processed",
            "code": "DUPLICATE_DONATION",
            "donation_id": "d1",
        }
        assert len(donations_service.state.queue) == 1

    def test_donor_frequency_limit(self, client, clock):
        """Test the donor cooldown end to end."""
        first = client.post("/api/webhook", json=TestDataFactory.create_webhook_payload(donor_email="a@x.com"))
        second = client.post("/api/webhook", json=TestDataFactory.create_webhook_payload(donor_email="a@x.com"))
        clock.advance(10_000)
        third = client.post("/api/webhook", json=TestDataFactory.create_webhook_payload(donor_email="a@x.com"))

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["code"] == "DONOR_FREQUENCY_LIMIT"
        assert second.json()["min_interval_seconds"] == 10
        assert third.status_code == 200

    def test_rate_limit_by_forwarded_for(self, client):
        """Test the per-source budget keyed by the first forwarded address."""
        headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
        for payload in TestDataFactory.create_webhook_batch(30):
            assert client.post("/api/webhook", json=payload, headers=headers).status_code == 200

        response = client.post("/api/webhook", json=TestDataFactory.create_webhook_payload(), headers=headers)

        assert response.status_code == 429
        assert response.json()["code"] == "RATE_LIMIT_EXCEEDED"

        other = client.post(
            "/api/webhook",
            json=TestDataFactory.create_webhook_payload(),
            headers={"X-Forwarded-For": "198.51.100.1"},
        )
        assert other.status_code == 200

    def test_internal_error(self, client, donations_service):
        """Test that unexpected faults become INTERNAL_ERROR without detail."""
        with patch.object(donations_service.state, "admit", side_effect=RuntimeError("boom")):
            response = client.post("/api/webhook", json=TestDataFactory.create_webhook_payload())

        assert response.status_code == 500
        assert response.json() == {
            "status": "error",
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
        }
        assert len(donations_service.state.queue) == 0

    def test_options(self, client):
        response = client.options("/api/webhook")

        assert response.status_code == 200
        assert response.content == b""

    @pytest.mark.parametrize("method", ["put", "patch", "delete"])
    def test_method_not_allowed(self, client, method):
        response = getattr(client, method)("/api/webhook")

        assert response.status_code == 405
        assert response.json() == {"status": "error", "message": "Method not allowed"}


class TestNotifyEndpoint:
    """Test cases for /api/notify."""

    def test_no_donation(self, client):
        response = client.get("/api/notify", params={"game_id": TEST_GAME_ID})

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "has_donation": False,
            "message": "No donations at the moment",
            "queue_size": 0,
        }
        assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.parametrize("params", [{}, {"game_id": ""}, {"game_id": "roblox_1"}, {"game_id": "test123456"}])
    def test_invalid_game_id(self, client, params):
        response = client.get("/api/notify", params=params)

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_GAME_ID"

    def test_rate_limit(self, client):
        """Test that at most 10 polls per second succeed for one game."""
        statuses = [
            client.get("/api/notify", params={"game_id": TEST_GAME_ID}).status_code
            for _ in range(12)
        ]

        assert statuses[:10] == [200] * 10
        assert statuses[10:] == [429, 429]

    def test_rate_limit_window_resets(self, client, clock):
        for _ in range(10):
            client.get("/api/notify", params={"game_id": TEST_GAME_ID})
        clock.advance(1_000)

        response = client.get("/api/notify", params={"game_id": TEST_GAME_ID})

        assert response.status_code == 200

    def test_internal_error(self, client, donations_service):
        with patch.object(donations_service.state, "take_next", side_effect=KeyError("boom")):
            response = client.get("/api/notify", params={"game_id": TEST_GAME_ID})

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"

    def test_options(self, client):
        response = client.options("/api/notify")

        assert response.status_code == 200
        assert response.content == b""

    def test_post_not_allowed(self, client):
        response = client.post("/api/notify")

        assert response.status_code == 405


class TestDonationsEndpoint:
    """Test cases for /api/donations."""

    def test_missing_game_id(self, client):
        response = client.get("/api/donations")

        assert response.status_code == 400
        assert response.json()["code"] == "MISSING_GAME_ID"

    def test_list_with_limit(self, client):
        for payload in TestDataFactory.create_webhook_batch(3):
            client.post("/api/webhook", json=payload)

        response = client.get("/api/donations", params={"game_id": TEST_GAME_ID, "limit": "2"})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert [d["id"] for d in data["donations"]] == ["d1", "d2"]
        assert data["total"] == 2
        assert data["queue_size"] == 3
        assert "source_identifier" not in data["donations"][0]

    def test_options(self, client):
        assert client.options("/api/donations").status_code == 200

    def test_stats(self, client):
        client.post("/api/webhook", json=TestDataFactory.create_webhook_payload())

        data = client.get("/api/stats").json()

        assert data["queue"]["size"] == 1
        assert data["dedupe"]["seen_ids"] == 1
        assert {limiter["name"] for limiter in data["rate_limits"]} == {"webhook", "poll"}


class TestResponseHeaders:
    """Test cases for CORS and caching headers on the API paths."""

    @pytest.mark.parametrize("path", ["/api/webhook", "/api/notify", "/api/donations"])
    def test_browser_preflight(self, client, path):
        """Test that a preflight with Origin gets the empty JSON answer."""
        response = client.options(
            path,
            headers={"Origin": "https://streamer.example", "Access-Control-Request-Method": "GET"},
        )

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["content-type"] == "application/json"
        assert response.headers["access-control-allow-origin"] == "*"
        assert "GET" in response.headers["access-control-allow-methods"]

    def test_notify_with_donation(self, client):
        client.post("/api/webhook", json=TestDataFactory.create_webhook_payload())

        response = client.get("/api/notify", params={"game_id": TEST_GAME_ID})

        assert response.json()["has_donation"] is True
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"

    def test_notify_error(self, client):
        response = client.get("/api/notify", params={"game_id": "bad"})

        assert response.status_code == 400
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"

    def test_donations_listing(self, client):
        response = client.get("/api/donations", params={"game_id": TEST_GAME_ID})

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        assert response.headers["access-control-allow-origin"] == "*"
        assert "cache-control" not in response.headers

    def test_missing_game_id_listing(self, client):
        response = client.get("/api/donations")

        assert response.status_code == 400
        assert response.headers["access-control-allow-origin"] == "*"

    def test_health_has_no_api_headers(self, client):
        response = client.get("/health")

        assert "access-control-allow-origin" not in response.headers


class TestBackgroundSweeper:
    """Test cases for the background sweeper."""

    @pytest.mark.asyncio
    async def test_sweeps_without_requests(self, clock):
        """Test that expired records vanish even when nobody calls the API."""
        service = DonationsService(config=create_test_config(sweep_interval_seconds=0.01), clock=clock)
        service.state.admit("d1", "Ana", 5000, "a@x.com", "Halo", "203.0.113.7")
        service.state.allow_poll(TEST_GAME_ID)
        clock.advance(60_000)

        await service.start()
        await asyncio.sleep(0.05)
        await service.stop()

        stats = service.state.get_stats()
        assert stats["queue"]["size"] == 0
        assert stats["queue"]["total_expired"] == 1
        assert stats["rate_limits"][1]["tracked_keys"] == 0

    @pytest.mark.asyncio
    async def test_sweep_failure_keeps_loop_alive(self, clock):
        service = DonationsService(config=create_test_config(sweep_interval_seconds=0.01), clock=clock)

        calls = []

        def flaky_sweep():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return {"expired": 0}

        with patch.object(service.state, "sweep", side_effect=flaky_sweep):
            await service.start()
            await asyncio.sleep(0.05)
            await service.stop()

        assert len(calls) >= 2
