"""Tests for operation and thread trails and their header propagation."""

import asyncio

import pytest

from logs_gateway import TrailContextError
from logs_gateway.trails import (
    OperationContext,
    ThreadContext,
    child_operation,
    clear_all_contexts,
    continue_thread,
    current_operation,
    current_thread,
    extract_operation_headers,
    extract_thread_headers,
    inject_operation_headers,
    inject_thread_headers,
    new_thread,
    next_event_id,
    start_operation,
    trail_fields,
)


@pytest.fixture(autouse=True)
def _clean_trails():
    clear_all_contexts()
    yield
    clear_all_contexts()


class TestOperations:
    def test_root_operation(self):
        with start_operation("checkout") as op:
            assert current_operation() is op
            assert op.operation_path == "checkout"
            assert op.operation_step == 0
            assert op.parent_operation_id is None
            assert len(op.trace_id) == 16
        assert current_operation() is None

    def test_nested_start_keeps_trace_and_extends_path(self):
        with start_operation("checkout") as parent:
            with start_operation("cart") as nested:
                assert nested.trace_id == parent.trace_id
                assert nested.operation_path == "checkout.cart"
                assert nested.operation_step == 0
                assert nested.parent_operation_id == parent.operation_id
            assert current_operation() is parent

    def test_child_operation_advances_step(self):
        with start_operation("checkout") as parent:
            with child_operation("charge") as child:
                with child_operation("capture") as grandchild:
                    assert grandchild.operation_step == 2
                    assert grandchild.operation_path == "checkout.charge.capture"
                    assert grandchild.trace_id == parent.trace_id
            assert child.span_id != parent.span_id

    def test_child_without_parent_raises(self):
        with pytest.raises(TrailContextError):
            child_operation("orphan")

    def test_end_is_idempotent(self):
        scope = start_operation("job")
        scope.end()
        scope.end()
        assert current_operation() is None

    def test_operations_isolated_between_tasks(self):
        async def worker(name):
            with start_operation(name):
                await asyncio.sleep(0)
                return current_operation().operation_name

        async def main():
            return await asyncio.gather(worker("a"), worker("b"))

        assert asyncio.run(main()) == ["a", "b"]


class TestThreads:
    def test_new_thread_defaults(self):
        with new_thread() as thread:
            assert current_thread() is thread
            assert thread.sequence_no == 0
            assert thread.causation_id == ()
        assert current_thread() is None

    def test_next_event_id_chains_causation(self):
        with new_thread("t-1") as first:
            event = next_event_id()
            assert event.startswith("evt_")
            second = current_thread()
            assert second.event_id == event
            assert second.sequence_no == 1
            assert second.causation_id == (first.event_id,)
            next_event_id()
            assert current_thread().causation_id == (first.event_id, event)
            assert current_thread().sequence_no == 2

    def test_next_event_id_without_thread_raises(self):
        with pytest.raises(TrailContextError):
            next_event_id()

    def test_continue_thread_merges_with_current(self):
        with new_thread("t-1", partition_key="p-9", attempt=1) as original:
            with continue_thread(sequence_no=5) as resumed:
                assert resumed.thread_id == "t-1"
                assert resumed.partition_key == "p-9"
                assert resumed.sequence_no == 5
                assert resumed.event_id != original.event_id

    def test_continue_thread_rejects_unknown_fields(self):
        with pytest.raises(TypeError):
            continue_thread(thread="t-1")

    def test_trail_fields_combines_both(self):
        with start_operation("job") as op, new_thread("t-1", worker_id="w-2"):
            fields = trail_fields()
        assert fields["operation_id"] == op.operation_id
        assert fields["thread_id"] == "t-1"
        assert fields["worker_id"] == "w-2"
        assert "causation_id" not in fields
        assert trail_fields() == {}


class TestHeaders:
    def test_operation_headers_cross_service(self):
        with start_operation("checkout"):
            with child_operation("charge") as op:
                headers = inject_operation_headers({})
        assert headers["x-operation-path"] == "checkout.charge"
        assert headers["x-operation-step"] == "1"
        assert headers["x-parent-operation-id"] == op.parent_operation_id

        extracted = extract_operation_headers(headers)
        assert extracted["operation_step"] == 1
        assert extracted["trace_id"] == op.trace_id
        assert extracted["operation_name"] == "charge"

    def test_root_operation_omits_parent_header(self):
        op = OperationContext(
            operation_id="o1",
            operation_name="job",
            operation_path="job",
            trace_id="t" * 16,
            span_id="s1",
        )
        headers = inject_operation_headers({}, op)
        assert "x-parent-operation-id" not in headers
        assert headers["x-operation-step"] == "0"

    def test_inject_without_context_leaves_headers(self):
        assert inject_operation_headers({"accept": "json"}) == {"accept": "json"}
        assert inject_thread_headers({}) == {}

    def test_thread_headers(self):
        thread = ThreadContext(
            thread_id="t-1",
            event_id="e-3",
            sequence_no=3,
            causation_id=("e-1", "e-2"),
            attempt=2,
        )
        headers = inject_thread_headers({}, thread)
        assert headers == {
            "x-thread-id": "t-1",
            "x-event-id": "e-3",
            "x-seq-no": "3",
            "x-causation-id": "e-1,e-2",
            "x-attempt": "2",
        }
        extracted = extract_thread_headers(headers)
        assert extracted["causation_id"] == ["e-1", "e-2"]
        assert extracted["sequence_no"] == 3

    def test_single_causation_stays_a_string(self):
        assert extract_thread_headers({"x-causation-id": "e-1"}) == {"causation_id": "e-1"}

    def test_non_numeric_values_skipped(self):
        extracted = extract_thread_headers({"X-Thread-Id": "t-1", "x-seq-no": "abc"})
        assert extracted == {"thread_id": "t-1"}
        assert extract_operation_headers({"x-operation-step": "two"}) == {}

    def test_extracted_headers_continue_thread(self):
        headers = {"x-thread-id": "t-7", "x-seq-no": "4", "x-causation-id": "e-1"}
        with continue_thread(**extract_thread_headers(headers)) as thread:
            assert thread.thread_id == "t-7"
            assert thread.sequence_no == 4
            assert thread.causation_id == ("e-1",)
