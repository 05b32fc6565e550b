"""
Metrics Collection with Prometheus.

Exposes business and system metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from app.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    TIER = "tier"
    OUTCOME = "outcome"
    ERROR_TYPE = "error_type"


class DesignSystemMetrics:
    """
    Centralized metrics for the design system API.

    Covers:
    - HTTP requests (rate, duration)
    - Generations (outcome per tier, duration, response size)
    - Refinements (outcome)
    - Credit ledger (deductions, failures)
    - Errors by kind
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "forge_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "forge_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "forge_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
        )

        self.http_requests_in_progress = Gauge(
            "forge_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Generation Metrics
        # ====================================================================
        self.generations_total = Counter(
            "forge_generations_total",
            "Total design system generations",
            [MetricLabels.TIER, MetricLabels.OUTCOME],
        )

        self.generation_duration_seconds = Histogram(
            "forge_generation_duration_seconds",
            "Generative model call duration in seconds",
            [MetricLabels.TIER],
            buckets=(1.0, 2.5, 5.0, 7.5, 10.0, 15.0, 20.0, 30.0, 45.0, 60.0),
        )

        self.generation_response_chars = Histogram(
            "forge_generation_response_chars",
            "Size of generative model responses in characters",
            buckets=(1000, 2500, 5000, 7500, 10000, 15000, 20000, 40000),
        )

        # ====================================================================
        # Refinement Metrics
        # ====================================================================
        self.refinements_total = Counter(
            "forge_refinements_total",
            "Total refinements",
            [MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Credit Metrics
        # ====================================================================
        self.credit_deductions_total = Counter(
            "forge_credit_deductions_total",
            "Total credit deductions",
            ["success", "reason"],
        )

        self.credits_spent_total = Counter(
            "forge_credits_spent_total",
            "Total credits spent",
        )

        self.credits_added_total = Counter(
            "forge_credits_added_total",
            "Total credits granted or replenished",
            ["kind"],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "forge_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_generation(
        self, tier: str, outcome: str, duration: float, response_chars: int | None = None
    ) -> None:
        """Record a generation attempt."""
        self.generations_total.labels(tier=tier, outcome=outcome).inc()
        self.generation_duration_seconds.labels(tier=tier).observe(duration)
        if response_chars is not None:
            self.generation_response_chars.observe(response_chars)

    def record_refinement(self, outcome: str) -> None:
        self.refinements_total.labels(outcome=outcome).inc()

    def record_deduction(self, success: bool, amount: int, reason: str | None = None) -> None:
        """Record a credit deduction attempt."""
        self.credit_deductions_total.labels(
            success=str(success), reason=reason or "success"
        ).inc()
        if success:
            self.credits_spent_total.inc(amount)

    def record_credits_added(self, kind: str, amount: int) -> None:
        self.credits_added_total.labels(kind=kind).inc(amount)

    def record_error(self, error_type: str, operation: str) -> None:
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = DesignSystemMetrics()
