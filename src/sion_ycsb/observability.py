"""
Observability for the Sion client binding.

Provides:
- OpenTelemetry tracing of record operations
- Per-operation latency percentiles, counters, retries and connection resets
- Prometheus text export
"""

import time
import logging
import statistics
from typing import Any, Optional
from collections import defaultdict, deque
from contextlib import contextmanager
from enum import Enum

logger = logging.getLogger(__name__)


# ============================================================================
# OpenTelemetry Tracing
# ============================================================================

class TracingProvider(str, Enum):
    """Supported tracing providers."""
    NONE = "none"
    OPENTELEMETRY = "opentelemetry"


class Tracer:
    """
    Tracing interface backed by OpenTelemetry.

    Falls back to no-op spans when OpenTelemetry is not installed or
    tracing is disabled.
    """

    def __init__(self, service_name: str = "sion-ycsb", enabled: bool = True):
        self.service_name = service_name
        self.enabled = enabled
        self._tracer = None
        self._provider_type = TracingProvider.NONE

        if enabled:
            self._initialize_opentelemetry()

    def _initialize_opentelemetry(self):
        """Initialize OpenTelemetry tracing."""
        try:
            from opentelemetry import trace
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.resources import Resource, SERVICE_NAME

            # Reuse a provider configured by the host application
            current_provider = trace.get_tracer_provider()
            if isinstance(current_provider, TracerProvider):
                self._tracer = trace.get_tracer(__name__)
                self._provider_type = TracingProvider.OPENTELEMETRY
                logger.info("Using existing OpenTelemetry tracer")
                return

            resource = Resource(attributes={SERVICE_NAME: self.service_name})
            provider = TracerProvider(resource=resource)

            try:
                from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
                from opentelemetry.sdk.trace.export import BatchSpanProcessor
                provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
                logger.info("OpenTelemetry OTLP exporter configured")
            except ImportError:
                logger.info("OTLP exporter not available, spans are recorded but not exported")

            trace.set_tracer_provider(provider)
            self._tracer = trace.get_tracer(__name__)
            self._provider_type = TracingProvider.OPENTELEMETRY
            logger.info(f"OpenTelemetry tracing initialized for {self.service_name}")

        except ImportError:
            logger.warning(
                "OpenTelemetry not available. Install with: "
                "pip install opentelemetry-api opentelemetry-sdk"
            )
            self.enabled = False
            self._provider_type = TracingProvider.NONE

    @property
    def provider_type(self) -> TracingProvider:
        return self._provider_type

    @contextmanager
    def span(self, name: str, attributes: Optional[dict[str, Any]] = None):
        """
        Create a traced span for an operation.

        Args:
            name: Span name (e.g., "sion.insert", "sion.read")
            attributes: Span attributes

        Yields:
            The span, or None when tracing is disabled
        """
        if not self.enabled or self._tracer is None:
            yield None
            return

        from opentelemetry import trace

        with self._tracer.start_as_current_span(name) as span:
            if attributes:
                for key, value in attributes.items():
                    span.set_attribute(key, value if isinstance(value, (str, int, float, bool)) else str(value))

            try:
                yield span
                span.set_status(trace.Status(trace.StatusCode.OK))
            except Exception as e:
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                span.record_exception(e)
                raise


# ============================================================================
# Operation Metrics
# ============================================================================

class PercentileTracker:
    """
    Track percentile latencies (p50, p95, p99).

    Uses a sliding window to avoid unbounded memory growth.
    """

    def __init__(self, window_size: int = 1000, percentiles: list[float] = None):
        self.window_size = window_size
        self.percentiles = percentiles or [0.5, 0.95, 0.99]
        self.samples = deque(maxlen=window_size)

    def record(self, value: float):
        """Record a sample."""
        self.samples.append(value)

    def get_percentiles(self) -> dict[str, float]:
        """
        Calculate percentile values.

        Returns:
            Dictionary with keys like "p50", "p95", "p99"
        """
        if not self.samples:
            return {f"p{int(p*100)}": 0.0 for p in self.percentiles}

        if len(self.samples) == 1:
            only = self.samples[0]
            return {f"p{int(p*100)}": only for p in self.percentiles}

        cuts = statistics.quantiles(self.samples, n=100, method='inclusive')
        return {f"p{int(p*100)}": cuts[int(p * 100) - 1] for p in self.percentiles}

    def get_stats(self) -> dict[str, Any]:
        """Percentiles plus count, avg, min and max."""
        if not self.samples:
            return {
                "count": 0,
                "avg": 0.0,
                "min": 0.0,
                "max": 0.0,
                **self.get_percentiles()
            }

        return {
            "count": len(self.samples),
            "avg": statistics.mean(self.samples),
            "min": min(self.samples),
            "max": max(self.samples),
            **self.get_percentiles()
        }


class OperationMetrics:
    """
    Metrics for record operations.

    Tracks:
    - Latency percentiles per operation
    - Operation and error counts
    - Write retries and connection resets
    - Outcomes that were declared not implemented (delete, scan)
    """

    def __init__(self, service_name: str = "sion_ycsb", percentiles: list[float] = None):
        self.service_name = service_name
        self.percentiles = percentiles or [0.5, 0.95, 0.99]

        self.latencies: dict[str, PercentileTracker] = defaultdict(
            lambda: PercentileTracker(percentiles=self.percentiles)
        )
        self.operation_counts: dict[str, int] = defaultdict(int)
        self.error_counts: dict[str, int] = defaultdict(int)
        self.error_types: dict[str, int] = defaultdict(int)
        self.not_implemented_counts: dict[str, int] = defaultdict(int)

        self.retry_count = 0
        self.reset_count = 0

        self.start_time = time.time()

    def record_operation(
        self,
        operation: str,
        latency_ms: float,
        success: bool = True,
        error_type: str | None = None
    ):
        """
        Record one operation.

        Args:
            operation: Operation name (e.g., 'read', 'insert', 'update')
            latency_ms: Latency in milliseconds, retries included
            success: Whether the operation succeeded
            error_type: Exception class name if it failed
        """
        self.latencies[operation].record(latency_ms)
        self.operation_counts[operation] += 1
        if not success:
            self.error_counts[operation] += 1
            if error_type:
                self.error_types[error_type] += 1

    def record_retry(self):
        """Record a write attempt beyond the first."""
        self.retry_count += 1

    def record_reset(self):
        """Record a connection teardown after a failure."""
        self.reset_count += 1

    def record_not_implemented(self, operation: str):
        self.not_implemented_counts[operation] += 1

    def get_latency_stats(self, operation: str) -> dict[str, Any]:
        """Get latency statistics for a specific operation."""
        return self.latencies[operation].get_stats()

    def get_all_stats(self) -> dict[str, Any]:
        """
        Get all metrics.

        Returns:
            Metrics dictionary
        """
        elapsed_seconds = time.time() - self.start_time

        total_operations = sum(self.operation_counts.values())
        total_errors = sum(self.error_counts.values())
        error_rate = total_errors / total_operations if total_operations > 0 else 0.0

        return {
            "uptime_seconds": elapsed_seconds,
            "operations": {
                "total": total_operations,
                "rate_per_sec": total_operations / elapsed_seconds if elapsed_seconds > 0 else 0.0,
                "by_type": dict(self.operation_counts),
            },
            "errors": {
                "total": total_errors,
                "rate": error_rate,
                "by_type": dict(self.error_counts),
                "by_error": dict(self.error_types),
            },
            "latencies": {
                operation: tracker.get_stats()
                for operation, tracker in self.latencies.items()
            },
            "not_implemented": dict(self.not_implemented_counts),
            "retries": self.retry_count,
            "connection_resets": self.reset_count,
        }

    def reset(self):
        """Reset all metrics counters."""
        self.latencies.clear()
        self.operation_counts.clear()
        self.error_counts.clear()
        self.error_types.clear()
        self.not_implemented_counts.clear()
        self.retry_count = 0
        self.reset_count = 0
        self.start_time = time.time()

    def export_prometheus(self) -> str:
        """
        Export metrics in Prometheus text format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines = []
        stats = self.get_all_stats()

        for operation, count in stats["operations"]["by_type"].items():
            lines.append(f'sion_operations_total{{operation="{operation}"}} {count}')

        for operation, count in stats["errors"]["by_type"].items():
            lines.append(f'sion_errors_total{{operation="{operation}"}} {count}')

        for operation, latency_stats in stats["latencies"].items():
            for percentile_name, value in latency_stats.items():
                if percentile_name.startswith('p'):
                    lines.append(
                        f'sion_latency_ms{{'
                        f'operation="{operation}",percentile="{percentile_name}"'
                        f'}} {value}'
                    )

        lines.append(f'sion_write_retries_total {stats["retries"]}')
        lines.append(f'sion_connection_resets_total {stats["connection_resets"]}')

        return '\n'.join(lines)
