"""In-process metrics registry."""
from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Callable, Dict, Iterator, Mapping, Tuple, TypeVar

from .base import CounterMetric, DistributionMetric, Metric, track_duration
from .definitions import MetricDefinition

M = TypeVar("M", bound=Metric)


class MetricsRegistry:
    """Owns metric instances by name."""

    def __init__(self) -> None:
        self._metrics: Dict[str, Metric] = {}
        self._lock = Lock()

    def _obtain(self, name: str, expected: type[M], factory: Callable[[], M]) -> M:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = factory()
        if not isinstance(metric, expected):
            raise TypeError(f"Metric '{name}' is already registered as {metric.kind}")
        return metric

    def counter(self, name: str, *, description: str = "", label_names: Tuple[str, ...] = ()) -> CounterMetric:
        return self._obtain(
            name, CounterMetric, lambda: CounterMetric(name, description=description, label_names=label_names)
        )

    def distribution(
        self, name: str, *, description: str = "", label_names: Tuple[str, ...] = ()
    ) -> DistributionMetric:
        return self._obtain(
            name,
            DistributionMetric,
            lambda: DistributionMetric(name, description=description, label_names=label_names),
        )

    def register(self, definition: MetricDefinition) -> Metric:
        if definition.metric_type == "counter":
            return self.counter(
                definition.name, description=definition.description, label_names=definition.label_names
            )
        if definition.metric_type == "distribution":
            return self.distribution(
                definition.name, description=definition.description, label_names=definition.label_names
            )
        raise ValueError(f"Unsupported metric type: {definition.metric_type}")

    def metrics(self) -> Tuple[Metric, ...]:
        with self._lock:
            return tuple(self._metrics.values())

    def snapshot(self) -> Dict[str, Mapping[Tuple[str, ...], Mapping[str, float]]]:
        return {metric.name: metric.snapshot() for metric in self.metrics()}

    @contextmanager
    def time(self, name: str, *, labels: Mapping[str, str] | None = None) -> Iterator[None]:
        with track_duration(self.distribution(name), labels=labels):
            yield
