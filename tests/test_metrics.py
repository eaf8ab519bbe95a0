import pytest

from apps.helpdesk.metrics import MetricsRegistry, PrometheusExporter, register_default_metrics
from apps.helpdesk.metrics.definitions import BULK_ITEMS_TOTAL, DEFAULT_METRIC_DEFINITIONS


def test_default_definitions_are_registered_once():
    registry = register_default_metrics(MetricsRegistry())
    register_default_metrics(registry)

    names = [metric.name for metric in registry.metrics()]
    assert names == [definition.name for definition in DEFAULT_METRIC_DEFINITIONS]


def test_counter_rejects_unknown_labels():
    registry = register_default_metrics(MetricsRegistry())

    with pytest.raises(ValueError):
        registry.counter(BULK_ITEMS_TOTAL).inc(labels={"kind": "timeline"})


def test_name_clash_between_metric_types_is_rejected():
    registry = MetricsRegistry()
    registry.counter("requests_total")

    with pytest.raises(TypeError):
        registry.distribution("requests_total")


def test_prometheus_exporter_renders_counters_and_summaries():
    registry = MetricsRegistry()
    registry.counter("ticket_transitions_total", description="Transitions", label_names=("outcome",)).inc(
        labels={"outcome": "success"}
    )
    with registry.time("lifecycle_operation_duration_seconds"):
        pass

    text = PrometheusExporter(registry).export()

    assert "# TYPE ticket_transitions_total counter" in text
    assert 'ticket_transitions_total{outcome="success"} 1.0' in text
    assert "lifecycle_operation_duration_seconds_count 1.0" in text
    assert text.endswith("\n")
