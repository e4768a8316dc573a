"""
Telemetry sinks for report counters.
Sinks swallow and log their own failures: a broken metrics backend never
fails a report.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from ..core.monitoring import MetricsCollector, get_metrics_collector

logger = logging.getLogger(__name__)


class TelemetrySink(ABC):
    """Receives gauges; ``flush`` delivers whatever is buffered"""

    @abstractmethod
    def gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        pass

    def flush(self) -> None:
        pass


class MetricsCollectorSink(TelemetrySink):
    """Writes gauges to an in-process MetricsCollector"""

    def __init__(self, collector: Optional[MetricsCollector] = None, namespace: str = "riadvisor."):
        self.collector = collector or get_metrics_collector()
        self.namespace = namespace

    def gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        try:
            self.collector.set_gauge(f"{self.namespace}{name}", float(value), tags)
        except Exception as e:
            logger.error(f"Failed to record gauge {name}: {e}")


class DatadogSink(TelemetrySink):
    """Buffers gauges and posts them to the Datadog series API on flush"""

    def __init__(self, api_key: str, site: str = "datadoghq.com", namespace: str = "riadvisor.",
                 timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self.api_key = api_key
        self.url = f"https://api.{site}/api/v1/series"
        self.namespace = namespace
        self.client = client or httpx.Client(timeout=timeout)
        self._series: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        point = {
            "metric": f"{self.namespace}{name}",
            "type": "gauge",
            "points": [[int(time.time()), float(value)]],
            "tags": [f"{k}:{v}" for k, v in sorted((tags or {}).items())],
        }
        with self._lock:
            self._series.append(point)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._series)

    def flush(self) -> None:
        with self._lock:
            series, self._series = self._series, []
        if not series:
            return

        try:
            response = self.client.post(
                self.url,
                json={"series": series},
                headers={"DD-API-KEY": self.api_key, "Content-Type": "application/json"},
            )
            response.raise_for_status()
            logger.debug(f"Sent {len(series)} series to Datadog")
        except httpx.HTTPError as e:
            logger.error(f"Failed to send {len(series)} series to Datadog: {e}")


class CompositeSink(TelemetrySink):
    """Fans gauges out to several sinks"""

    def __init__(self, sinks: List[TelemetrySink]):
        self.sinks = list(sinks)

    def gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        for sink in self.sinks:
            sink.gauge(name, value, tags)

    def flush(self) -> None:
        for sink in self.sinks:
            sink.flush()


def emit_report_metrics(summary, sink: TelemetrySink) -> None:
    """
    Send the counters of a report and every accepted conversion suggestion.

    Args:
        summary: ReportSummary to publish
        sink: Telemetry sink; its errors are logged, never raised
    """
    base = {"account": summary.account_id}
    try:
        sink.gauge("rds.instances", summary.rds.total_instances, base)
        sink.gauge("rds.low_used.instances", summary.rds.low_used_count, base)
        sink.gauge("ec2.low_used.instances", summary.ec2.low_used_count, base)
        sink.gauge("ec2.reserved_instances.expiration", summary.expiration.instance_count, base)

        # the unfiltered list, not the top-N view
        for suggestion in summary.conversion.suggestions:
            tags = {**base, "instance_type": suggestion.instance_type}
            sink.gauge("ec2.unreserved.percent_delta", suggestion.percent_delta, tags)
            sink.gauge("ec2.unreserved.savings", suggestion.savings, tags)
            sink.gauge("ec2.unreserved.machines", suggestion.machines, tags)

        sink.flush()
    except Exception as e:
        logger.error(f"Failed to emit report metrics for {summary.account_id}: {e}")


def build_telemetry_sink(config, collector: Optional[MetricsCollector] = None) -> Optional[TelemetrySink]:
    """Telemetry sink described by a ``MonitoringConfig`` section, None when disabled"""
    if not config.enabled:
        return None

    sinks: List[TelemetrySink] = [MetricsCollectorSink(collector, config.metrics_namespace)]
    if config.datadog_enabled:
        if config.datadog_api_key is None:
            logger.warning("Datadog enabled without an API key, skipping")
        else:
            sinks.append(DatadogSink(
                api_key=config.datadog_api_key.get_secret_value(),
                site=config.datadog_site,
                namespace=config.metrics_namespace,
                timeout=config.datadog_timeout,
            ))
    return sinks[0] if len(sinks) == 1 else CompositeSink(sinks)
