"""One-shot tasks and the scheduler that runs them off the dispatch loop.

A Task wraps a zero-argument function producing exactly one Message.
Inputs are bound when the task is built, so the worker never reads
State. The scheduler starts each task on its own worker and hands the
result to ``deliver``, which re-enters the dispatch loop. Nothing is
cancelled; tasks of the same kind simply land in completion order.

A task with ``delay`` waits first. Waits observe the scheduler's stop
event, so ``shutdown()`` ends a pending poll chain without delivering.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Optional

from blocks_core.messages import ErrorOccurred, Message
from blocks_core.paths import configure_logger

_log = configure_logger("blocks.scheduler")


@dataclass(frozen=True)
class Task:
    kind: str
    fn: Callable[[], Optional[Message]]
    delay: float = 0.0

    def run(self) -> Optional[Message]:
        """Run the task function, turning unexpected failures into ErrorOccurred."""
        try:
            return self.fn()
        except Exception as e:
            _log.exception("task %s crashed", self.kind)
            return ErrorOccurred(f"{self.kind}: {e}")


def _thread_spawn(fn: Callable[[], None], name: str) -> None:
    threading.Thread(target=fn, name=f"blocks-task-{name}", daemon=True).start()


class Scheduler:
    """Runs tasks concurrently and delivers their results.

    Args:
        deliver: Called with each result message, from the worker.
        spawn: Starts ``fn`` on a worker; ``name`` is the task kind.
            Defaults to a daemon thread per task.
    """

    def __init__(self, deliver: Callable[[Message], None],
                 spawn: Callable[[Callable[[], None], str], None] | None = None):
        self._deliver = deliver
        self._spawn = spawn or _thread_spawn
        self._stop = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def submit(self, tasks) -> None:
        for task in tasks:
            if self.stopped:
                return
            _log.debug("scheduler: issue %s", task.kind)
            self._spawn(lambda t=task: self.execute(t), task.kind)

    def execute(self, task: Task) -> None:
        """Run ``task`` to completion on the calling thread and deliver."""
        if task.delay > 0 and self._stop.wait(task.delay):
            return
        msg = task.run()
        if msg is None or self.stopped:
            return
        self._deliver(msg)

    def shutdown(self) -> None:
        self._stop.set()
        _log.debug("scheduler: shut down")
