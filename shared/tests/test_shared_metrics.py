"""
Unit tests for the shared metrics collector.
"""

from shared.metrics import MetricsCollector


class TestMetricsCollector:
    """Test cases for MetricsCollector."""

    def test_collectors_do_not_share_registries(self):
        first = MetricsCollector("donations")
        second = MetricsCollector("donations")

        first.increment_counter("donations_received_total")

        assert b"donations_received_total 1.0" in first.export()
        assert b"donations_received_total 0.0" in second.export()

    def test_labelled_counter_and_gauge(self):
        collector = MetricsCollector("donations")

        collector.increment_counter("donations_rejected_total", code="INVALID_DATA")
        collector.set_gauge("donation_queue_size", 3)
        exported = collector.export().decode()

        assert 'donations_rejected_total{code="INVALID_DATA"} 1.0' in exported
        assert "donation_queue_size 3.0" in exported

    def test_unknown_metric_is_ignored(self):
        collector = MetricsCollector("other")

        collector.increment_counter("donations_received_total")

        assert collector.get_metric("donations_received_total") is None

    def test_http_request_recorded(self):
        collector = MetricsCollector("donations")

        collector.record_http_request("GET", "/api/notify", 200, 0.01)

        exported = collector.export().decode()
        assert 'http_requests_total{method="GET",endpoint="/api/notify",status_code="200"} 1.0' in exported
