import threading
from collections.abc import Callable

from provenance.logging.logger import Log
from provenance.worker.worker import Worker

WorkerFactory = Callable[[threading.Event], Worker]


class WorkerPool:
    """Runs `size` workers on threads sharing one stop event.

    At most `size` jobs are in flight at any moment, one per worker.
    """

    def __init__(self, worker_factory: WorkerFactory, size: int) -> None:
        if size < 1:
            raise ValueError("Worker pool size must be at least 1")
        self._worker_factory = worker_factory
        self._size = size
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def size(self) -> int:
        return self._size

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("Worker pool already started")
        for index in range(self._size):
            worker = self._worker_factory(self._stop_event)
            thread = threading.Thread(target=worker.run, name=f"worker-{index}", daemon=True)
            thread.start()
            self._threads.append(thread)
        Log.info(f"Started {self._size} worker(s)")

    def stop(self, timeout_seconds: float | None = None) -> None:
        """Signal all workers and wait for in-flight attempts to finish."""
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout_seconds)
        alive = [thread.name for thread in self._threads if thread.is_alive()]
        if alive:
            Log.warning(f"Workers still running after stop: {', '.join(alive)}")
        self._threads = []

    def run_forever(self) -> None:
        """Start workers and block until interrupted."""
        self.start()
        try:
            while not self._stop_event.wait(1.0):
                pass
        except KeyboardInterrupt:
            Log.info("Worker pool shutting down gracefully")
        finally:
            self.stop()
