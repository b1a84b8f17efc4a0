"""
Error tracking and custom metrics for composition runs.

Errors go to Sentry when SENTRY_DSN is configured. Metrics are recorded through
the OpenTelemetry API; without an SDK meter provider installed by the host
process the instruments are no-ops.

Usage:
    from dailyquiz.observability import capture_error, metrics

    metrics.record_composition("success", duration_seconds=1.2, relaxation_level=0)
    capture_error(exc, context={"target_date": "2025-06-01"})
"""
import logging
from typing import Any, Dict, Optional

from dailyquiz.core.config import settings

logger = logging.getLogger(__name__)

_sentry_initialized = False


def init_sentry() -> bool:
    """Initialize Sentry if a DSN is configured.

    Returns:
        True if Sentry was initialized by this call or an earlier one.
    """
    global _sentry_initialized

    if _sentry_initialized:
        return True
    if not settings.SENTRY_DSN:
        logger.debug("Sentry disabled (SENTRY_DSN not set)")
        return False

    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        release=settings.APP_VERSION,
        send_default_pii=False,
    )
    _sentry_initialized = True
    logger.info("Sentry initialized (environment=%s)", settings.ENV)
    return True


def capture_error(
    error: BaseException,
    *,
    context: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """Capture an exception to Sentry if configured.

    Never raises: error reporting must not change the outcome of a run.
    """
    if not _sentry_initialized:
        return None
    try:
        import sentry_sdk

        with sentry_sdk.new_scope() as scope:
            if context:
                scope.set_context("composition", {k: str(v) for k, v in context.items()})
            for key, value in (tags or {}).items():
                scope.set_tag(key, value)
            return sentry_sdk.capture_exception(error)
    except Exception as e:
        logger.debug(f"Failed to capture error to Sentry: {e}")
        return None


class CompositionMetrics:
    """
    Composition metrics using OpenTelemetry.

    All methods are no-ops until initialize() has run with metrics enabled.
    """

    def __init__(self) -> None:
        self._initialized = False
        self._compositions: Any = None
        self._duration: Any = None
        self._emergencies: Any = None
        self._relaxation: Any = None
        self._errors: Any = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Create instruments on the globally configured meter provider."""
        if not settings.OTEL_METRICS_ENABLED:
            logger.info("Composition metrics not enabled (OTEL_METRICS_ENABLED=False)")
            return

        if self._initialized:
            logger.warning("Composition metrics already initialized")
            return

        from opentelemetry import metrics as otel_metrics

        meter = otel_metrics.get_meter("dailyquiz", version=settings.APP_VERSION)
        self._compositions = meter.create_counter(
            name="dailyquiz.compositions",
            unit="1",
            description="Composition runs by outcome",
        )
        self._duration = meter.create_histogram(
            name="dailyquiz.composition.duration",
            unit="s",
            description="Wall time of a composition run",
        )
        self._emergencies = meter.create_counter(
            name="dailyquiz.composition.emergency",
            unit="1",
            description="Runs that fell back to the emergency distribution",
        )
        self._relaxation = meter.create_histogram(
            name="dailyquiz.composition.relaxation_level",
            unit="1",
            description="Highest anti-repeat relaxation level needed per run",
        )
        self._errors = meter.create_counter(
            name="dailyquiz.errors",
            unit="1",
            description="Errors by type",
        )
        self._initialized = True
        logger.info("Composition metrics initialized")

    def record_composition(
        self,
        outcome: str,
        *,
        duration_seconds: float,
        relaxation_level: Optional[int] = None,
        emergency: bool = False,
    ) -> None:
        """
        Record one composition run.

        Args:
            outcome: "success", "failed", "skipped" or "preview"
            duration_seconds: Wall time of the run
            relaxation_level: Highest relaxation level used, if selection ran
            emergency: Whether the emergency distribution was used
        """
        if not self._initialized:
            return

        try:
            labels = {"outcome": outcome}
            self._compositions.add(1, attributes=labels)
            self._duration.record(duration_seconds, attributes=labels)
            if relaxation_level is not None:
                self._relaxation.record(relaxation_level)
            if emergency:
                self._emergencies.add(1)
        except Exception as e:
            logger.debug(f"Failed to record composition metric: {e}")

    def record_error(self, error_type: str) -> None:
        """Record an error occurrence."""
        if not self._initialized:
            return

        try:
            self._errors.add(1, attributes={"error.type": error_type})
        except Exception as e:
            logger.debug(f"Failed to record error metric: {e}")


metrics = CompositionMetrics()
