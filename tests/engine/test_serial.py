from __future__ import annotations

import threading
import time

import pytest

from release_watcher.engine import SerialExecutor


def test_tasks_run_in_submission_order() -> None:
    executor = SerialExecutor("test")
    order: list[int] = []
    futures = [executor.submit(order.append, index) for index in range(20)]
    for future in futures:
        future.result()
    executor.shutdown()
    assert order == list(range(20))


def test_tasks_never_overlap() -> None:
    executor = SerialExecutor("test")
    active = 0
    peak = 0
    guard = threading.Lock()

    def task() -> None:
        nonlocal active, peak
        with guard:
            active += 1
            peak = max(peak, active)
        time.sleep(0.01)
        with guard:
            active -= 1

    threads = [threading.Thread(target=executor.run, args=(task,)) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    executor.shutdown()
    assert peak == 1


def test_failure_does_not_poison_queue() -> None:
    executor = SerialExecutor("test")

    def boom() -> None:
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        executor.run(boom)
    assert executor.run(lambda: 42) == 42
    executor.shutdown()


def test_reentrant_run_is_rejected() -> None:
    executor = SerialExecutor("test")

    def nested() -> int:
        return executor.run(lambda: 1)

    with pytest.raises(RuntimeError, match="inside a serialized task"):
        executor.run(nested)
    executor.shutdown()
