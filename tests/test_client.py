"""Tests for the client, integrations and init()/shutdown()."""

import logging

import pytest

import tracelink
from tracelink import runtime_config
from tracelink.client import Client
from tracelink.context.hub import Hub, get_current_hub, get_main_hub
from tracelink.integrations import Integration
from tracelink.processors import LoggingSpanProcessor
from tracelink.tracer.processor import SpanProcessor


class TestIntegrations:
    def test_setup_once_runs_once_per_process(self, client):
        calls = []
        integration = Integration(name="once", setup_once=lambda: calls.append("once"), setup=calls.append)

        first = Client(client.options, integrations=[integration])
        second = Client(client.options, integrations=[integration])

        assert calls == ["once", first, second]
        assert first.integrations.names == ["once"]
        assert "once" in second.integrations

    def test_later_integration_with_same_name_replaces_earlier(self, client):
        first = Integration(name="dup", process_event=lambda event, hint, c: dict(event, marker="first"))
        second = Integration(name="dup", process_event=lambda event, hint, c: dict(event, marker="second"))
        replaced = Client(client.options, integrations=[first, second])
        assert replaced.integrations.apply({})["marker"] == "second"

    def test_preprocess_runs_before_process(self, client):
        order = []

        def preprocess(event, hint, c):
            order.append("pre")
            event["seen"] = True

        def process(event, hint, c):
            order.append("process")
            assert event["seen"]
            return event

        integrations = [
            Integration(name="b", process_event=process),
            Integration(name="a", preprocess_event=preprocess),
        ]
        with_hooks = Client(client.options, integrations=integrations)
        assert with_hooks.integrations.apply({}) == {"seen": True}
        assert order == ["pre", "process"]

    def test_process_event_can_drop(self, sent, client):
        dropping = Client(
            client.options,
            transport=sent.append,
            integrations=[Integration(name="drop", process_event=lambda event, hint, c: None)],
        )
        hub = Hub(dropping)
        transaction = hub.start_transaction(name="dropped")
        transaction.finish()
        assert sent == []

    def test_failing_hook_is_logged(self, client, caplog):
        def broken(event, hint, c):
            raise RuntimeError("broken hook")

        failing = Client(client.options, integrations=[Integration(name="broken", process_event=broken)])
        with caplog.at_level(logging.ERROR, logger="tracelink"):
            assert failing.integrations.apply({"a": 1}) == {"a": 1}
        assert "broken" in caplog.text

    def test_hint_carries_transaction(self, sent, client):
        hints = []
        hinted = Client(
            client.options,
            transport=sent.append,
            integrations=[Integration(name="hint", preprocess_event=lambda event, hint, c: hints.append(hint))],
        )
        transaction = Hub(hinted).start_transaction(name="t")
        transaction.finish()
        assert hints[0]["transaction"] is transaction


class TestClient:
    def test_transport_failure_is_logged(self, client, caplog):
        def transport(event):
            raise ConnectionError("down")

        failing = Client(client.options, transport=transport)
        transaction = Hub(failing).start_transaction(name="t")
        with caplog.at_level(logging.ERROR, logger="tracelink"):
            transaction.finish()
        assert transaction.finished
        assert "Transport failed" in caplog.text

    def test_scope_data_is_applied(self, hub, sent):
        hub.get_scope().set_tag("team", "core")
        hub.get_scope().set_user({"id": "7"})
        with hub.start_transaction(name="t"):
            pass
        assert sent[0]["tags"]["team"] == "core"
        assert sent[0]["user"] == {"id": "7"}

    def test_closed_client_drops_everything(self, hub, client, sent):
        processor_calls = []

        class Recording(SpanProcessor):
            def on_end(self, span):
                processor_calls.append(span)

            def shutdown(self):
                processor_calls.append("shutdown")

        client.add_span_processor(Recording())
        client.close()
        client.close()
        hub.start_transaction(name="late").finish()
        assert sent == []
        assert processor_calls == ["shutdown"]

    def test_logging_span_processor(self, hub, client, caplog):
        client.add_span_processor(LoggingSpanProcessor())
        with caplog.at_level(logging.INFO, logger="tracelink.spans"):
            with hub.start_transaction(name="logged", op="task", tags={"k": "v"}):
                pass
        assert "op=task" in caplog.text
        assert "status=ok" in caplog.text
        assert "tags={'k': 'v'}" in caplog.text

    def test_public_key_comes_from_dsn(self, client):
        assert client.public_key == "public"


class TestInit:
    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch, tmp_path):
        for name in ("DSN", "ENVIRONMENT", "RELEASE", "DEBUG", "TRACES_SAMPLE_RATE"):
            monkeypatch.delenv("TRACELINK_" + name, raising=False)
        monkeypatch.chdir(tmp_path)
        yield
        tracelink.shutdown()

    def test_init_binds_main_hub(self, sent):
        client = tracelink.init(
            "https://key@o1.ingest.example.com/1",
            transport=sent.append,
            traces_sample_rate=1.0,
            release="3.1",
        )
        assert get_main_hub().client is client
        assert get_current_hub().client is client

        tracelink.trace({"name": "job"}, lambda span: None)
        assert sent[0]["release"] == "3.1"
        assert sent[0]["sdk_processing_metadata"]["dynamic_sampling_context"]["public_key"] == "key"

    def test_init_again_replaces_and_closes(self):
        first = tracelink.init(traces_sample_rate=1.0)
        second = tracelink.init(traces_sample_rate=0.5)
        assert get_main_hub().client is second
        assert first is not second
        assert first._closed

    def test_init_applies_runtime_flags(self):
        tracelink.init(debug=True, propagate_traceparent=True, max_spans=5)
        assert runtime_config.get_debug()
        assert runtime_config.get_propagate_traceparent()
        assert runtime_config.get_max_spans() == 5

    def test_init_rejects_bad_options(self):
        with pytest.raises(tracelink.ConfigError):
            tracelink.init(traces_sample_rate=2)

    def test_log_spans_installs_logging_processor(self, caplog):
        tracelink.init(traces_sample_rate=1.0, log_spans=True)
        with caplog.at_level(logging.INFO, logger="tracelink.spans"):
            tracelink.trace({"name": "logged", "op": "task"}, lambda span: None)
        assert "[span] op=task" in caplog.text

    def test_shutdown_unbinds(self):
        client = tracelink.init(traces_sample_rate=1.0)
        tracelink.shutdown()
        assert get_main_hub().client is None
        assert client._closed
        assert not runtime_config.get_debug()
