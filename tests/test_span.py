"""Tests for the span/transaction tree."""

import logging

import pytest

from tracelink.client import Client
from tracelink.config import ClientOptions
from tracelink.context.hub import Hub
from tracelink.tracer.processor import SpanProcessor
from tracelink.tracer.span import Span, SpanStatus, Transaction


class RecordingProcessor(SpanProcessor):
    def __init__(self):
        self.ended = []

    def on_end(self, span):
        self.ended.append(span)


class TestTree:
    def test_child_shares_trace_and_points_at_parent(self, hub):
        transaction = hub.start_transaction(name="root", op="task")
        child = transaction.start_child(op="db", description="SELECT 1")
        grandchild = child.start_child(op="db.cursor")

        assert transaction.parent_span_id is None
        assert child.trace_id == transaction.trace_id
        assert child.parent_span_id == transaction.span_id
        assert grandchild.trace_id == transaction.trace_id
        assert grandchild.parent_span_id == child.span_id
        assert grandchild.containing_transaction is transaction
        assert transaction.spans == [child, grandchild]

    def test_child_inherits_sampling(self, hub):
        transaction = hub.start_transaction(name="root", sampled=False)
        assert transaction.start_child(op="x").sampled is False

    def test_child_is_unaffected_by_later_parent_changes(self, hub):
        transaction = hub.start_transaction(name="root")
        child = transaction.start_child(op="x")
        transaction.sampled = False
        transaction.trace_id = "f" * 32
        assert child.sampled is True
        assert child.trace_id != "f" * 32

    def test_ids_are_unique(self, hub):
        transaction = hub.start_transaction(name="root")
        ids = {transaction.span_id} | {transaction.start_child().span_id for _ in range(50)}
        assert len(ids) == 51

    def test_max_spans_limits_recording_only(self, client):
        hub = Hub(Client(client.options.model_copy(update={"max_spans": 2})))
        transaction = hub.start_transaction(name="root")
        children = [transaction.start_child(op=str(i)) for i in range(4)]
        assert transaction.spans == children[:2]
        assert children[3].parent_span_id == transaction.span_id


class TestFinish:
    def test_finish_is_idempotent(self):
        span = Span(op="x")
        span.finish(end_time_ns=span.start_time_ns + 10)
        first_end = span.end_time_ns
        span.finish(status=SpanStatus.INTERNAL_ERROR)
        assert span.end_time_ns == first_end
        assert span.status == SpanStatus.OK

    def test_finish_with_status(self):
        span = Span(op="x")
        span.finish(status=SpanStatus.NOT_FOUND)
        assert span.status == SpanStatus.NOT_FOUND
        assert span.finished
        assert span.duration_ns >= 0

    def test_finished_span_ignores_mutation(self):
        span = Span(op="x")
        span.finish()
        span.set_tag("k", "v")
        span.set_data("k", 1)
        span.set_status(SpanStatus.ABORTED)
        assert span.tags == {}
        assert span.data == {}
        assert span.status == SpanStatus.OK

    def test_finishing_transaction_leaves_children_open(self, hub, sent, caplog):
        transaction = hub.start_transaction(name="root")
        done = transaction.start_child(op="done")
        still_running = transaction.start_child(op="running")
        done.finish()

        with caplog.at_level(logging.DEBUG, logger="tracelink"):
            transaction.finish()

        assert transaction.finished
        assert not still_running.finished
        assert "open child span" in caplog.text
        assert [s["op"] for s in sent[0]["spans"]] == ["done"]

        still_running.finish()
        assert still_running.finished
        assert len(sent) == 1

    def test_transaction_is_captured_once(self, hub, sent):
        transaction = hub.start_transaction(name="root")
        transaction.finish()
        transaction.finish()
        assert len(sent) == 1

    def test_unsampled_transaction_is_not_captured(self, hub, sent):
        transaction = hub.start_transaction(name="root", sampled=False)
        transaction.finish()
        assert transaction.finished
        assert sent == []

    def test_processors_see_sampled_spans(self, hub, client):
        processor = RecordingProcessor()
        client.add_span_processor(processor)
        transaction = hub.start_transaction(name="root")
        child = transaction.start_child(op="x")
        child.finish()
        transaction.finish()
        assert processor.ended == [child, transaction]

    def test_failing_processor_does_not_break_finish(self, hub, client, sent):
        class Broken(SpanProcessor):
            def on_end(self, span):
                raise RuntimeError("boom")

        client.add_span_processor(Broken())
        transaction = hub.start_transaction(name="root")
        transaction.finish()
        assert transaction.finished
        assert len(sent) == 1


class TestStatus:
    @pytest.mark.parametrize(
        "code, status",
        [
            (200, SpanStatus.OK),
            (302, SpanStatus.OK),
            (400, SpanStatus.FAILED_PRECONDITION),
            (401, SpanStatus.UNAUTHENTICATED),
            (404, SpanStatus.NOT_FOUND),
            (418, SpanStatus.INVALID_ARGUMENT),
            (429, SpanStatus.RESOURCE_EXHAUSTED),
            (500, SpanStatus.INTERNAL_ERROR),
            (503, SpanStatus.UNAVAILABLE),
            (504, SpanStatus.DEADLINE_EXCEEDED),
            (700, SpanStatus.UNKNOWN_ERROR),
        ],
    )
    def test_from_http_status(self, code, status):
        assert SpanStatus.from_http_status(code) == status

    def test_set_http_status(self):
        span = Span(op="http.client")
        span.set_http_status(404)
        assert span.tags["http.status_code"] == "404"
        assert span.data["http.response.status_code"] == 404
        assert span.status == SpanStatus.NOT_FOUND


class TestSpanAsContextManager:
    def test_activates_and_restores(self, hub):
        transaction = hub.start_transaction(name="root")
        with transaction:
            assert hub.get_scope().span is transaction
            with transaction.start_child(op="inner") as child:
                assert hub.get_scope().span is child
            assert hub.get_scope().span is transaction
            assert child.finished
        assert hub.get_scope().span is None
        assert transaction.finished

    def test_exception_marks_internal_error(self, hub):
        transaction = hub.start_transaction(name="root")
        with pytest.raises(ValueError):
            with transaction:
                raise ValueError("nope")
        assert transaction.status == SpanStatus.INTERNAL_ERROR
        assert hub.get_scope().span is None


class TestRecords:
    def test_transaction_event(self, hub, sent):
        transaction = hub.start_transaction(name="GET /", op="http.server", tags={"region": "eu"})
        child = transaction.start_child(op="db", description="SELECT 1")
        child.set_data("rows", 1)
        child.finish()
        transaction.finish()

        event = sent[0]
        assert event["type"] == "transaction"
        assert event["transaction"] == "GET /"
        assert event["environment"] == "prod"
        assert event["release"] == "1.0"
        assert event["tags"] == {"region": "eu"}
        assert event["contexts"]["trace"]["trace_id"] == transaction.trace_id
        assert event["contexts"]["trace"]["op"] == "http.server"
        assert event["spans"][0]["data"] == {"rows": 1}
        assert event["spans"][0]["parent_span_id"] == transaction.span_id
        dsc = event["sdk_processing_metadata"]["dynamic_sampling_context"]
        assert dsc["trace_id"] == transaction.trace_id

    def test_standalone_transaction_uses_current_hub(self, hub, sent):
        transaction = Transaction(name="manual", sampled=True)
        transaction.finish()
        assert sent[0]["transaction"] == "manual"

    def test_no_client_means_nothing_sent(self):
        hub = Hub()
        transaction = hub.start_transaction(name="root")
        assert transaction.sampled is False
        transaction.finish()
        assert transaction.finished
        assert transaction.get_dynamic_sampling_context()["environment"] == "production"

    def test_options_without_sample_rate_do_not_sample(self):
        hub = Hub(Client(ClientOptions()))
        assert hub.start_transaction(name="root").sampled is False
