"""
Shared utilities for the Donation Bridge.

This package aggregates common building blocks consumed by services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace and caller correlation
- metrics: Prometheus metrics helpers
- tracing: OpenTelemetry tracing config
- observability: Facade combining the three above
- errors: Canonical error types and responses
- base_service: FastAPI scaffold with health, metrics and error handlers

Do not import from service packages into shared/.
"""
