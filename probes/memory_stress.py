import logging
import math
import random
import threading
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from models import (
    DEFAULT_STRESS_ALLOCATION_SIZE,
    DEFAULT_STRESS_INTERVAL,
    MAX_STRESS_INTERVAL,
    StressParameters,
    StressSnapshot,
)
from probes.rwlock import ReadWriteLock

# Set up logging
logger = logging.getLogger(__name__)


class StressError(Exception):
    """Base class for memory stress session errors"""


class InvalidStressParametersError(StressError, ValueError):
    pass


class NegativeIntervalError(InvalidStressParametersError):
    def __init__(self):
        super().__init__("negative interval")


class InvalidIntervalError(InvalidStressParametersError):
    """Interval is NaN, infinite or longer than MAX_STRESS_INTERVAL"""

    def __init__(self):
        super().__init__("invalid interval")


class NegativeAllocationSizeError(InvalidStressParametersError):
    def __init__(self):
        super().__init__("negative allocation size")


class StressAlreadyRunningError(StressError):
    def __init__(self):
        super().__init__("memory stress is already running")


class StressNotRunningError(StressError):
    def __init__(self):
        super().__init__("memory stress is not currently running")


class RandomByteSource:
    """File-like source of pseudo-random bytes, seeded at creation."""

    def __init__(self, seed=None):
        self._rng = random.Random(int(time.time()) if seed is None else seed)

    def readinto(self, buffer) -> int:
        size = len(buffer)
        buffer[:size] = self._rng.randbytes(size)
        return size


class Stresser:
    """Allocates and retains memory at a fixed rate.

    Every tick reads ``allocation_size`` bytes from the byte source into a
    fresh buffer and keeps it in ``chunks``. Chunks are never released while
    the stresser is alive; growing the process footprint is the point.
    """

    def __init__(self, params: StressParameters, byte_source=None):
        """Initialize the Stresser.

        Args:
            params: Requested interval and allocation size, zero means default
            byte_source: Object with a ``readinto`` method; defaults to a
                seeded pseudo-random generator

        Raises:
            InvalidIntervalError: If params.interval is not finite or exceeds
                MAX_STRESS_INTERVAL
            NegativeIntervalError: If params.interval < 0
            NegativeAllocationSizeError: If params.allocation_size < 0
        """
        if not math.isfinite(params.interval) or params.interval > MAX_STRESS_INTERVAL:
            raise InvalidIntervalError()
        if params.interval < 0:
            raise NegativeIntervalError()
        if params.allocation_size < 0:
            raise NegativeAllocationSizeError()
        self.interval = params.interval or DEFAULT_STRESS_INTERVAL
        self.allocation_size = params.allocation_size or DEFAULT_STRESS_ALLOCATION_SIZE
        self.byte_source = byte_source if byte_source is not None else RandomByteSource()
        self.chunks: List[bytearray] = []
        self._bytes_allocated = 0
        self._lock = threading.Lock()

    @property
    def params(self) -> StressParameters:
        return StressParameters(interval=self.interval, allocation_size=self.allocation_size)

    @property
    def bytes_allocated(self) -> int:
        with self._lock:
            return self._bytes_allocated

    def allocate(self) -> int:
        """Read one chunk from the byte source and retain it.

        Returns the number of bytes read. Raises EOFError when the source is
        exhausted; errors from the source propagate unchanged.
        """
        chunk = bytearray(self.allocation_size)
        read = self.byte_source.readinto(chunk)
        if not read:
            raise EOFError("byte source exhausted")
        self.chunks.append(chunk)
        with self._lock:
            self._bytes_allocated += read
        return read

    def stress(self, cancel_event: threading.Event):
        """Allocate once per interval until cancel_event is set.

        Returns normally on cancellation. An allocation error stops the loop
        and is raised to the caller.
        """
        if cancel_event.is_set():
            return
        next_tick = time.monotonic()
        while True:
            next_tick += self.interval
            if cancel_event.wait(max(0.0, next_tick - time.monotonic())):
                return
            self.allocate()
            now = time.monotonic()
            # Drop ticks missed while allocating
            if now - next_tick >= self.interval:
                next_tick = now


class MemoryStressSession:
    """A running stresser with its start/finish timestamps and cancel token."""

    def __init__(self, stresser: Stresser):
        self.started_at = datetime.now(timezone.utc)
        self.finished_at: Optional[datetime] = None
        self.stresser = stresser
        self.cancel_event = threading.Event()
        self.error: Optional[BaseException] = None
        self.thread: Optional[threading.Thread] = None

    def start(self):
        self.thread = threading.Thread(target=self._run, name='memory-stress')
        self.thread.daemon = True
        self.thread.start()

    def _run(self):
        try:
            self.stresser.stress(self.cancel_event)
        except Exception as e:
            self.error = e
            logger.error(f"Memory stress stopped after {self.stresser.bytes_allocated} bytes: {e!r}")
        else:
            logger.info(f"Memory stress runner exited after {self.stresser.bytes_allocated} bytes")

    def cancel(self):
        self.cancel_event.set()
        self.finished_at = datetime.now(timezone.utc)

    def snapshot(self) -> StressSnapshot:
        error = self.error
        return StressSnapshot(
            started_at=self.started_at,
            finished_at=self.finished_at,
            bytes_allocated=self.stresser.bytes_allocated,
            error=(str(error) or type(error).__name__) if error is not None else None,
        )


class MemoryStressAgent:
    """Agent owning the single memory stress session of this instance.

    start and cancel take the write lock, poll takes the read lock. The
    runner thread never touches the lock, so it is never held while the
    stress loop runs.
    """

    def __init__(self, byte_source_factory: Optional[Callable[[], object]] = None):
        """Initialize the MemoryStressAgent.

        Args:
            byte_source_factory: Builds the byte source of each new session;
                None selects a fresh RandomByteSource per session
        """
        self.byte_source_factory = byte_source_factory
        self._session: Optional[MemoryStressSession] = None
        self._lock = ReadWriteLock()

    def start(self, params: StressParameters) -> StressSnapshot:
        with self._lock.write():
            if self._session is not None:
                raise StressAlreadyRunningError()
            byte_source = self.byte_source_factory() if self.byte_source_factory else None
            stresser = Stresser(params, byte_source=byte_source)
            session = MemoryStressSession(stresser)
            self._session = session
            session.start()
            snapshot = session.snapshot()
        logger.info(
            f"Memory stress started: {stresser.allocation_size} bytes every {stresser.interval}s"
        )
        return snapshot

    def poll(self) -> StressSnapshot:
        with self._lock.read():
            if self._session is None:
                raise StressNotRunningError()
            return self._session.snapshot()

    def cancel(self) -> StressSnapshot:
        with self._lock.write():
            session = self._session
            if session is None:
                raise StressNotRunningError()
            session.cancel()
            snapshot = session.snapshot()
            self._session = None
        logger.info(f"Memory stress cancelled after {snapshot.bytes_allocated} bytes")
        return snapshot

    def shutdown(self, timeout: Optional[float] = None):
        """Cancel the current session, if any, and wait for its runner to exit"""
        with self._lock.write():
            session = self._session
            self._session = None
        if session is None:
            return
        session.cancel()
        if session.thread is not None:
            session.thread.join(timeout)
        logger.info("Memory stress shut down")
