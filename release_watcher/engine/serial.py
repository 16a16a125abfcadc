"""FIFO single-worker executor serializing every state-mutating operation."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock, get_ident
from typing import Any, Callable, TypeVar

T = TypeVar("T")


class SerialExecutor:
    """Run submitted tasks one at a time, in submission order.

    A task that raises only fails its own future; queued tasks still run.
    Not reentrant: a task must not call :meth:`run` on the same executor.
    """

    def __init__(self, name: str = "poll") -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"watcher-{name}")
        self._worker_ident: int | None = None
        self._lock = Lock()

    def _wrap(self, task: Callable[..., T], args: tuple[Any, ...], kwargs: dict[str, Any]) -> T:
        self._worker_ident = get_ident()
        return task(*args, **kwargs)

    def submit(self, task: Callable[..., T], *args: Any, **kwargs: Any) -> Future[T]:
        with self._lock:
            return self._executor.submit(self._wrap, task, args, kwargs)

    def run(self, task: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Submit ``task`` and block until it finishes, re-raising its exception."""

        if self._worker_ident is not None and self._worker_ident == get_ident():
            raise RuntimeError("SerialExecutor.run() called from inside a serialized task")
        return self.submit(task, *args, **kwargs).result()

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._executor.shutdown(wait=wait)


__all__ = ["SerialExecutor"]
