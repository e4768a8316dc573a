"""In-process metrics collection"""

import time
import threading
from typing import Dict, Optional, List, Tuple
from collections import defaultdict
from contextlib import contextmanager
import logging

logger = logging.getLogger(__name__)


class MetricsCollector:
    """Collect and store application metrics"""

    def __init__(self, max_histogram_values: int = 1000):
        self.counters = defaultdict(float)
        self.gauges = defaultdict(float)
        self.histograms = defaultdict(list)
        self.max_histogram_values = max_histogram_values
        self._lock = threading.Lock()

    def increment_counter(self, name: str, value: float = 1, tags: Optional[Dict[str, str]] = None):
        """Increment a counter"""
        with self._lock:
            key = self._get_metric_key(name, tags)
            self.counters[key] += value

    def set_gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None):
        """Set a gauge value"""
        with self._lock:
            key = self._get_metric_key(name, tags)
            self.gauges[key] = value

    def record_histogram(self, name: str, value: float, tags: Optional[Dict[str, str]] = None):
        """Record a histogram value"""
        with self._lock:
            key = self._get_metric_key(name, tags)
            self.histograms[key].append(value)
            if len(self.histograms[key]) > self.max_histogram_values:
                self.histograms[key] = self.histograms[key][-self.max_histogram_values:]

    def get_counter(self, name: str, tags: Optional[Dict[str, str]] = None) -> float:
        """Get counter value"""
        with self._lock:
            return self.counters.get(self._get_metric_key(name, tags), 0)

    def get_gauge(self, name: str, tags: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Get gauge value, None if it was never set"""
        with self._lock:
            return self.gauges.get(self._get_metric_key(name, tags))

    def get_gauges(self, name: str) -> Dict[str, float]:
        """Get every tagged series of a gauge, keyed by its metric key"""
        with self._lock:
            return {
                key: value for key, value in self.gauges.items()
                if self._parse_metric_key(key)[0] == name
            }

    def get_histogram_stats(self, name: str, tags: Optional[Dict[str, str]] = None) -> Dict[str, float]:
        """Get histogram statistics"""
        with self._lock:
            values = list(self.histograms.get(self._get_metric_key(name, tags), []))
        return self._stats(values)

    def reset(self):
        """Drop every recorded series"""
        with self._lock:
            self.counters.clear()
            self.gauges.clear()
            self.histograms.clear()

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus format"""
        lines = []

        with self._lock:
            counters = list(self.counters.items())
            gauges = list(self.gauges.items())
            histograms = [(k, list(v)) for k, v in self.histograms.items()]

        for key, value in counters:
            name, tags = self._parse_metric_key(key)
            lines.append(f"{self._prometheus_name(name)}_total{self._format_prometheus_tags(tags)} {value}")

        for key, value in gauges:
            name, tags = self._parse_metric_key(key)
            lines.append(f"{self._prometheus_name(name)}{self._format_prometheus_tags(tags)} {value}")

        for key, values in histograms:
            if not values:
                continue
            name, tags = self._parse_metric_key(key)
            tags_str = self._format_prometheus_tags(tags)
            for stat_name, stat_value in self._stats(values).items():
                lines.append(f"{self._prometheus_name(name)}_{stat_name}{tags_str} {stat_value}")

        return '\n'.join(lines)

    @staticmethod
    def _stats(values: List[float]) -> Dict[str, float]:
        if not values:
            return {}

        sorted_values = sorted(values)
        return {
            'count': len(values),
            'min': sorted_values[0],
            'max': sorted_values[-1],
            'mean': sum(values) / len(values),
            'p50': sorted_values[len(sorted_values) // 2],
            'p95': sorted_values[int(len(sorted_values) * 0.95)],
        }

    def _get_metric_key(self, name: str, tags: Optional[Dict[str, str]] = None) -> str:
        """Generate metric key from name and tags"""
        if not tags:
            return name
        tags_str = ','.join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name},{tags_str}"

    def _parse_metric_key(self, key: str) -> Tuple[str, Dict[str, str]]:
        """Parse metric key into name and tags"""
        parts = key.split(',', 1)
        name = parts[0]
        tags = {}

        if len(parts) > 1:
            for tag in parts[1].split(','):
                k, v = tag.split('=', 1)
                tags[k] = v

        return name, tags

    @staticmethod
    def _prometheus_name(name: str) -> str:
        return name.replace('.', '_').replace('-', '_')

    def _format_prometheus_tags(self, tags: Dict[str, str]) -> str:
        """Format tags for Prometheus"""
        if not tags:
            return ""
        tags_str = ','.join(f'{k}="{v}"' for k, v in sorted(tags.items()))
        return f"{{{tags_str}}}"


class PerformanceTracker:
    """Track operation durations and outcomes"""

    def __init__(self, metrics_collector: MetricsCollector):
        self.metrics_collector = metrics_collector

    @contextmanager
    def track(self, operation_type: str, **tags):
        """Record duration and success/failure count of the wrapped block"""
        start = time.monotonic()
        success = True
        try:
            yield
        except Exception:
            success = False
            raise
        finally:
            duration = time.monotonic() - start
            tags = {**{k: str(v) for k, v in tags.items()}, 'success': str(success).lower()}
            self.metrics_collector.record_histogram(f"operation.{operation_type}.duration", duration, tags)
            self.metrics_collector.increment_counter(f"operation.{operation_type}.count", tags=tags)


# Global metrics instance
metrics_collector = MetricsCollector()
performance_tracker = PerformanceTracker(metrics_collector)


def get_metrics_collector() -> MetricsCollector:
    """Get the process-wide metrics collector"""
    return metrics_collector


def get_performance_tracker() -> PerformanceTracker:
    """Get the process-wide performance tracker"""
    return performance_tracker
