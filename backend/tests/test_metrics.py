"""Tests for metrics and tracing helpers."""
from __future__ import annotations

from typing import Any, Dict

from tandem.core.context import request_id_ctx_var, wizard_session_ctx_var
from tandem.observability import metrics
from tandem.observability import tracing


class _DummyTrace:
    def __init__(self, name: str, metadata: Dict[str, Any]):
        self.name = name
        self.metadata = metadata
        self.ended = False

    def end(self) -> None:
        self.ended = True


class _DummyClient:
    def __init__(self):
        self.traces: list[_DummyTrace] = []

    def trace(self, name: str, metadata: Dict[str, Any] | None = None):
        trace = _DummyTrace(name, metadata or {})
        self.traces.append(trace)
        return trace


def test_log_metric_closes_trace(monkeypatch) -> None:
    dummy_client = _DummyClient()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: dummy_client)

    metrics.log_metric("wizard.start.success", 1, metadata={"flow": "planning"})

    recorded = dummy_client.traces[0]
    assert recorded.name == "metric:wizard.start.success"
    assert recorded.metadata["value"] == 1
    assert recorded.metadata["flow"] == "planning"
    assert recorded.ended is True


def test_trace_picks_up_request_and_session_context(monkeypatch) -> None:
    dummy_client = _DummyClient()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: dummy_client)
    request_token = request_id_ctx_var.set("req-42")
    session_token = wizard_session_ctx_var.set("review:abc")
    try:
        with tracing.trace("wizard.review.event", metadata={"event": "quick_finish", "empty": None}):
            pass
    finally:
        wizard_session_ctx_var.reset(session_token)
        request_id_ctx_var.reset(request_token)

    metadata = dummy_client.traces[0].metadata
    assert metadata["request_id"] == "req-42"
    assert metadata["wizard_session"] == "review:abc"
    assert metadata["event"] == "quick_finish"
    assert "empty" not in metadata


def test_log_metric_is_a_noop_without_client(monkeypatch) -> None:
    monkeypatch.setattr(tracing, "get_opik_client", lambda: None)

    metrics.log_metric("wizard.event.success", 1)
