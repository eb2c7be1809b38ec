"""Tests for the background SchedulerService loop.

Most tests drive ``run()`` synchronously with a fake cancellation token
so no real time passes; one test exercises the daemon thread.
"""
import time
from datetime import timedelta
from unittest.mock import MagicMock

from reef_scheduler.domain.scheduling.models import PassResult
from reef_scheduler.services.scheduler_service import STARTUP_DELAY_SECONDS, SchedulerService

from tests.unit.use_cases.conftest import (
    T0,
    FakeCancellationToken,
    FakeClock,
    FakeTaskStateStore,
)


def _make_service(pass_use_case=None, store=None, **kwargs):
    if pass_use_case is None:
        pass_use_case = MagicMock()
        pass_use_case.execute.return_value = PassResult(started_at=T0, due_count=0)
    kwargs.setdefault("check_interval_seconds", 60)
    return SchedulerService(
        pass_use_case=pass_use_case,
        store=store or FakeTaskStateStore(),
        **kwargs,
    )


class TestRunLoop:
    def test_cancel_during_startup_delay_touches_nothing(self):
        store = FakeTaskStateStore()
        pass_use_case = MagicMock()
        service = _make_service(pass_use_case, store)
        token = FakeCancellationToken(cancel_on_wait=1)

        passes = service.run(token)

        assert passes == 0
        assert token.waits == [STARTUP_DELAY_SECONDS]
        assert store.calls == []
        pass_use_case.execute.assert_not_called()

    def test_runs_passes_at_check_interval_until_cancelled(self):
        service = _make_service(check_interval_seconds=30)
        token = FakeCancellationToken(cancel_on_wait=4)

        passes = service.run(token)

        # startup wait, then three passes each followed by an interval wait
        assert passes == 3
        assert token.waits == [STARTUP_DELAY_SECONDS, 30, 30, 30]
        assert service.passes_completed == 3

    def test_passes_cancel_token_to_use_case(self):
        pass_use_case = MagicMock()
        pass_use_case.execute.return_value = PassResult(started_at=T0, due_count=0)
        service = _make_service(pass_use_case)
        token = FakeCancellationToken(cancel_on_wait=2)

        service.run(token)

        pass_use_case.execute.assert_called_once_with(token)

    def test_last_pass_is_kept(self):
        result = PassResult(started_at=T0, due_count=2)
        pass_use_case = MagicMock()
        pass_use_case.execute.return_value = result
        service = _make_service(pass_use_case)

        service.run(FakeCancellationToken(cancel_on_wait=2))

        assert service.last_pass is result

    def test_exception_in_pass_does_not_stop_loop(self, caplog):
        pass_use_case = MagicMock()
        pass_use_case.execute.side_effect = [
            RuntimeError("database is locked"),
            PassResult(started_at=T0, due_count=0),
        ]
        service = _make_service(pass_use_case)

        with caplog.at_level("ERROR"):
            passes = service.run(FakeCancellationToken(cancel_on_wait=3))

        assert pass_use_case.execute.call_count == 2
        assert passes == 1
        assert "Error in scheduler service loop" in caplog.text

    def test_cancel_during_pass_ends_loop(self):
        pass_use_case = MagicMock()
        token = FakeCancellationToken()

        def _execute(cancel):
            cancel.cancel()
            return PassResult(started_at=T0, due_count=0, cancelled=True)

        pass_use_case.execute.side_effect = _execute
        service = _make_service(pass_use_case)

        assert service.run(token) == 1
        assert pass_use_case.execute.call_count == 1


class TestStaleRelease:
    def test_releases_stale_flags_before_first_pass(self):
        store = FakeTaskStateStore()
        store.add_task(1, T0, is_running=True)
        store.add_task(2, T0, is_running=True)
        order = []
        pass_use_case = MagicMock()

        def _execute(cancel):
            order.append(("pass", [t.is_running for t in store.tasks.values()]))
            return PassResult(started_at=T0, due_count=0)

        pass_use_case.execute.side_effect = _execute
        clock = FakeClock(T0 + timedelta(hours=3))
        service = _make_service(pass_use_case, store, now_fn=clock)

        service.run(FakeCancellationToken(cancel_on_wait=2))

        assert store.calls[0] == ("release_stale_running", clock.now)
        assert order == [("pass", [False, False])]
        assert [t.updated_at for t in store.tasks.values()] == [clock.now, clock.now]

    def test_release_can_be_disabled(self):
        store = FakeTaskStateStore()
        store.add_task(1, T0, is_running=True)
        service = _make_service(store=store, release_stale_on_startup=False)

        service.run(FakeCancellationToken(cancel_on_wait=2))

        assert store.calls == []
        assert store.tasks[1].is_running is True

    def test_release_failure_is_logged_and_loop_continues(self, caplog):
        store = FakeTaskStateStore()
        store.fail_on.add("release_stale_running")
        service = _make_service(store=store)

        with caplog.at_level("ERROR"):
            passes = service.run(FakeCancellationToken(cancel_on_wait=2))

        assert passes == 1
        assert "Failed to clear stale running flags" in caplog.text


class TestThread:
    def test_start_and_stop(self):
        pass_use_case = MagicMock()
        pass_use_case.execute.return_value = PassResult(started_at=T0, due_count=0)
        service = _make_service(
            pass_use_case,
            check_interval_seconds=0.01,
            startup_delay_seconds=0.01,
        )

        service.start()
        try:
            deadline = time.monotonic() + 5
            while service.passes_completed < 2 and time.monotonic() < deadline:
                time.sleep(0.01)
            assert service.is_running
        finally:
            service.stop(timeout=5)

        assert not service.is_running
        assert service.passes_completed >= 2

    def test_start_twice_keeps_one_thread(self):
        service = _make_service(check_interval_seconds=60, startup_delay_seconds=60)

        service.start()
        first_thread = service._thread
        service.start()
        try:
            assert service._thread is first_thread
        finally:
            service.stop(timeout=5)

    def test_stop_during_startup_delay_returns_promptly(self):
        service = _make_service(startup_delay_seconds=60)

        service.start()
        started = time.monotonic()
        service.stop(timeout=5)

        assert time.monotonic() - started < 2
        assert service.passes_completed == 0

    def test_stop_without_start_is_noop(self):
        _make_service().stop(timeout=1)
