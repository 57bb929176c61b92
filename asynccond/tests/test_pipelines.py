"""Tests for the seq pipeline composer."""

import asyncio
import sys

import pytest

from asynccond import Pipeline, seq, trap_step, value_step
from asynccond.models.exceptions import ContinuationError, PipelineError, StepDefinitionError
from asynccond.models.outcome import Outcome
from asynccond.models.step import StepKind
from asynccond.services.config import FlowSettings
from asynccond.services.events import Event, EventBus, RunStartedEvent
from asynccond.services.scheduler import LoopScheduler, deferred


def cause_error(data, cb):
    cb("err", data + 10)


class TestOutcome:
    """Tests for the Outcome dataclass."""

    def test_success_creates_ok_outcome(self):
        outcome = Outcome.success("value")
        assert outcome.ok is True
        assert outcome.failed is False
        assert outcome.value == "value"
        assert outcome.error is None

    def test_fail_keeps_value(self):
        outcome = Outcome.fail("error message", 12)
        assert outcome.ok is False
        assert outcome.failed is True
        assert outcome.value == 12
        assert outcome.error == "error message"

    def test_falsy_errors_are_still_errors(self):
        assert Outcome.of(0, "v").failed is True
        assert Outcome.of("", "v").failed is True
        assert Outcome.of(None, "v").failed is False

    def test_of_matches_named_constructors(self):
        assert Outcome.of(None, 1) == Outcome.success(1)
        assert Outcome.of("err", 1) == Outcome.fail("err", 1)


class TestSeqComposition:
    """Tests for linear composition."""

    def test_passes_results_along(self, queue, step, done):
        seq(step, step, step, step, step)(0, done)
        queue.run()

        assert done.error is None
        assert done.result == 5

    def test_accepts_a_list(self, queue, step, done):
        seq([step, step, step, step, step])(0, done)
        queue.run()

        assert done.result == 5

    def test_accepts_a_mapping(self, queue, step, done):
        seq({"one": step, "two": step, "three": step, "four": step, "five": step})(0, done)
        queue.run()

        assert done.result == 5

    def test_empty_pipeline_returns_initial_value(self, done):
        seq()(7, done)

        assert done.error is None
        assert done.result == 7

    def test_callback_is_optional(self):
        seen = []
        seq(lambda data, cb: (seen.append(data), cb(None, data)))(3)

        assert seen == [3]

    def test_bound_methods_classified_without_self(self, done):
        class Doubler:
            def run(self, data, cb):
                cb(None, data * 2)

            def recover(self, err, data, cb):
                cb(None, data)

        doubler = Doubler()
        pipeline = seq(doubler.run, doubler.recover)

        assert [s.kind for s in pipeline.steps] == [StepKind.VALUE, StepKind.TRAP]
        pipeline(4, done)
        assert done.result == 8

    def test_sequential_execution(self, queue, done):
        order = []

        def make(name):
            def _step(data, cb):
                order.append(f"start {name}")
                queue.defer(lambda: (order.append(f"end {name}"), cb(None, data + [name])))

            return _step

        seq(make("a"), make("b"))([], done)
        queue.run()

        assert order == ["start a", "end a", "start b", "end b"]
        assert done.result == ["a", "b"]


class TestSeqErrorTraps:
    """Tests for error-trap dispatch."""

    def test_trap_then_terminate(self, queue, step, never_reach, done):
        def trap(err, data, cb):
            cb(err, data + 10)

        seq(step, step, cause_error, never_reach, never_reach, trap, never_reach, never_reach)(0, done)
        queue.run()

        assert done.error == "err"
        assert done.result == 22

    def test_trap_then_continue(self, queue, step, done):
        def trap(err, data, cb):
            cb(None, data + 10)

        seq(step, step, cause_error, trap, step, step)(0, done)
        queue.run()

        assert done.error is None
        assert done.result == 24

    def test_trap_skipped_without_error(self, queue, step, done):
        trapped = []

        def trap(err, data, cb):
            trapped.append(err)
            cb(None, data + 10)

        seq(step, step, trap, step, step)(0, done)
        queue.run()

        assert trapped == []
        assert done.error is None
        assert done.result == 4

    def test_nested_pipeline_uses_outer_bus(self, fresh_bus, done):
        private = EventBus()
        private_runs, shared_runs = [], []
        private.subscribe(RunStartedEvent, private_runs.append)
        fresh_bus.subscribe(RunStartedEvent, shared_runs.append)
        inner = seq(lambda data, cb: cb(None, data + 1))

        seq(inner, inner)(0, done, bus=private)

        assert done.result == 2
        assert [e.step_count for e in private_runs] == [2, 1, 1]
        assert shared_runs == []

    def test_nested_pipeline_uses_outer_settings(self, done):
        def twice(data, cb):
            cb(None, data)
            cb(None, data)

        with pytest.raises(ContinuationError):
            seq(seq(twice))(0, done, settings=FlowSettings(strict_continuations=True))

    def test_nested_pipeline_stays_quiet_when_events_disabled(self, fresh_bus, done):
        events = []
        fresh_bus.subscribe(Event, events.append)

        seq(seq(lambda data, cb: cb(None, data)))(0, done, settings=FlowSettings(emit_events=False))

        assert events == []
        assert done.result == 0

    def test_trap_receives_error_and_last_value(self, done):
        received = []

        def trap(err, data, cb):
            received.append((err, data))
            cb(None, data)

        seq(lambda data, cb: cb("bad", data * 2), trap)(21, done)

        assert received == [("bad", 42)]
        assert done.result == 42

    def test_unrecovered_error_reaches_callback(self, never_reach, done):
        seq(cause_error, never_reach)(1, done)

        assert done.error == "err"
        assert done.result == 11

    def test_second_trap_catches_reraised_error(self, done):
        traps = []

        def first(err, data, cb):
            traps.append("first")
            cb(f"{err}!", data)

        def second(err, data, cb):
            traps.append("second")
            cb(None, f"recovered from {err}")

        seq(cause_error, first, second)(0, done)

        assert traps == ["first", "second"]
        assert done.error is None
        assert done.result == "recovered from err!"

    def test_later_error_after_recovery_is_trapped_again(self, done):
        def recover(err, data, cb):
            cb(None, data + 1)

        seq(cause_error, recover, cause_error, recover)(0, done)

        assert done.error is None
        assert done.result == 22

    def test_falsy_error_enters_error_mode(self, never_reach, done):
        trapped = []

        def trap(err, data, cb):
            trapped.append(err)
            cb(None, data)

        seq(lambda data, cb: cb(0, data), never_reach, trap)("x", done)

        assert trapped == [0]
        assert done.result == "x"

    def test_explicit_tags_override_arity(self, done):
        def flexible(*args):
            *head, cb = args
            if len(head) == 2:
                cb(None, f"trapped {head[0]}")
            else:
                cb("fail", head[0])

        seq(value_step(flexible), trap_step(flexible))("in", done)

        assert done.error is None
        assert done.result == "trapped fail"


class TestSeqEarlyExit:
    """Tests for the exit flag."""

    def test_pre_exit(self, queue, step, never_reach, done):
        seq(step, step, lambda data, cb: cb(None, data, True), never_reach, never_reach)(0, done)
        queue.run()

        assert done.error is None
        assert done.result == 2

    def test_exit_skips_traps_too(self, done):
        def trap(err, data, cb):
            pytest.fail("Should not reach here")

        seq(lambda data, cb: cb("err", data, True), trap)(5, done)

        assert done.error == "err"
        assert done.result == 5

    def test_trap_can_exit(self, never_reach, done):
        def trap(err, data, cb):
            cb(None, data + 100, True)

        seq(cause_error, trap, never_reach)(0, done)

        assert done.error is None
        assert done.result == 110

    def test_docstring_example(self, done):
        seq(
            lambda data, cb: cb(None, data + 1),
            lambda data, cb: cb("err", data + 1),
            lambda data, cb: cb(None, data + 1),
            lambda err, data, cb: cb(None, data + 10),
            lambda data, cb: cb(None, data + 1, data > 10),
            lambda data, cb: cb(None, data + 1),
        )(1, done)

        assert done.error is None
        assert done.result == 14


class TestPipelineObject:
    """Tests for the Pipeline built by seq."""

    def test_reentrant_invocations_do_not_interfere(self, queue, step):
        pipeline = seq(step, step, step)
        first, second = [], []

        pipeline(0, lambda err, data: first.append((err, data)))
        pipeline(100, lambda err, data: second.append((err, data)))
        queue.run()

        assert first == [(None, 3)]
        assert second == [(None, 103)]

    def test_can_run_again_after_finishing(self, queue, step, done):
        pipeline = seq(step, step)

        pipeline(0, done)
        queue.run()
        pipeline(10, done)
        queue.run()

        assert done.calls == [(None, 2), (None, 12)]

    def test_kinds_resolved_at_build_time(self):
        def trap(err, data, cb):
            cb(err, data)

        pipeline = seq(cause_error, trap)

        assert [s.kind for s in pipeline.steps] == [StepKind.VALUE, StepKind.TRAP]
        assert len(pipeline) == 2

    def test_with_step_returns_new_pipeline(self, done):
        base = seq(lambda data, cb: cb(None, data + 1))
        longer = base.with_step(lambda data, cb: cb(None, data * 10))

        assert len(base) == 1
        assert len(longer) == 2
        longer(1, done)
        assert done.result == 20

    def test_repr_lists_steps(self):
        def trap(err, data, cb):
            cb(err, data)

        assert "trap:trap" in repr(seq(cause_error, trap))
        assert isinstance(seq(), Pipeline)

    def test_pipeline_nests_as_value_step(self, queue, step, done):
        inner = seq(step, step)

        seq(step, inner, step)(0, done)
        queue.run()

        assert seq(inner).steps[0].kind is StepKind.VALUE
        assert done.result == 4

    def test_rejects_four_parameter_step(self):
        with pytest.raises(StepDefinitionError, match="4 parameters"):
            seq(lambda a, b, c, d: None)

    def test_rejects_non_callable(self):
        with pytest.raises(StepDefinitionError):
            seq(lambda data, cb: cb(None, data), 42)


class TestLongPipelines:
    """Long pipelines must not grow the stack."""

    LENGTH = 10_000

    def test_deferred_steps(self, queue, done):
        step = deferred(lambda data, cb: cb(None, data + 1), queue)

        seq([step] * self.LENGTH)(0, done)
        queue.run()

        assert done.result == self.LENGTH

    def test_synchronous_steps(self, done):
        assert self.LENGTH > sys.getrecursionlimit()

        seq([lambda data, cb: cb(None, data + 1)] * self.LENGTH)(0, done)

        assert done.result == self.LENGTH

    def test_skipping_many_steps_in_error_mode(self, never_reach, done):
        def trap(err, data, cb):
            cb(None, data)

        seq([cause_error] + [never_reach] * self.LENGTH + [trap])(0, done)

        assert done.error is None
        assert done.result == 10


class TestCaptureExceptions:
    """Exceptions raised by steps."""

    def test_exceptions_propagate_by_default(self):
        def boom(data, cb):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            seq(boom)(0)

    def test_captured_exception_becomes_step_error(self, done):
        def boom(data, cb):
            raise RuntimeError("boom")

        def trap(err, data, cb):
            cb(None, (type(err).__name__, data))

        seq(boom, trap)(5, done, settings=FlowSettings(capture_exceptions=True))

        assert done.error is None
        assert done.result == ("RuntimeError", 5)

    def test_exception_after_continuation_still_raises(self, done):
        def late_boom(data, cb):
            cb(None, data)
            raise ValueError("after next")

        with pytest.raises(ValueError):
            seq(late_boom)(1, done, settings=FlowSettings(capture_exceptions=True))


class TestRunAsync:
    """Tests for awaiting a pipeline through asyncio."""

    def test_resolves_with_final_value(self):
        async def main():
            scheduler = LoopScheduler()
            step = deferred(lambda data, cb: cb(None, data + 1), scheduler)
            return await seq(step, step, step).run_async(0)

        assert asyncio.run(main()) == 3

    def test_unresolved_error_raises_pipeline_error(self):
        async def main():
            return await seq(cause_error).run_async(1)

        with pytest.raises(PipelineError) as exc_info:
            asyncio.run(main())

        assert exc_info.value.error == "err"
        assert exc_info.value.value == 11

    def test_concurrent_runs(self):
        async def main():
            scheduler = LoopScheduler()
            step = deferred(lambda data, cb: cb(None, data * 2), scheduler)
            pipeline = seq(step, step)
            return await asyncio.gather(pipeline.run_async(1), pipeline.run_async(5))

        assert asyncio.run(main()) == [4, 20]
