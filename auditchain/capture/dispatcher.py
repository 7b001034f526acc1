"""
Fire-and-forget audit dispatch.

Callers enqueue append requests and return immediately; one worker thread
drains the queue into the capture service. Failures are never dropped
silently: they are logged, counted and handed to an optional callback.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..core.errors import AuditError
from ..metrics import track_dispatch_failure, track_dispatch_rejected
from .service import EventCaptureService

logger = logging.getLogger(__name__)

# How often an idle worker checks for stop()
_POLL_SECONDS = 0.05


@dataclass(frozen=True)
class DispatchFailure:
    """A queued append that failed terminally."""

    request: Dict[str, Any]
    error: BaseException
    retryable: bool = field(default=False)


FailureHandler = Callable[[DispatchFailure], None]


class AuditDispatcher:
    """
    Queue-backed asynchronous front end for EventCaptureService.

    Usage:
        with AuditDispatcher(service) as dispatcher:
            dispatcher.submit(principal_id="user-1", event_type="DOCUMENT_READ", action="read")
    """

    def __init__(
        self,
        service: EventCaptureService,
        max_queue: int = 1000,
        on_failure: Optional[FailureHandler] = None,
    ) -> None:
        self.service = service
        self.on_failure = on_failure
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=max_queue)
        self._worker: Optional[threading.Thread] = None
        self._accepting = False
        self._stopping = threading.Event()
        self._state_lock = threading.Lock()

    def start(self) -> "AuditDispatcher":
        with self._state_lock:
            self._stopping.clear()
            self._accepting = True
            if self._worker is not None and self._worker.is_alive():
                return self
            self._worker = threading.Thread(
                target=self._run, name="auditchain-dispatcher", daemon=True
            )
            self._worker.start()
        return self

    def submit(self, **request: Any) -> bool:
        """
        Enqueue one append request (same keyword arguments as append()).

        Never blocks. Returns False when the request was rejected because the
        dispatcher is stopped or its queue is full; the rejection is logged.
        """
        with self._state_lock:
            if not self._accepting:
                reason = "dispatcher not running"
            else:
                try:
                    self._queue.put_nowait(dict(request))
                    return True
                except queue.Full:
                    reason = "dispatch queue full"
        self._reject(request, reason)
        return False

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until every queued request has been processed."""
        done = threading.Event()

        def _waiter() -> None:
            self._queue.join()
            done.set()

        threading.Thread(target=_waiter, daemon=True).start()
        return done.wait(timeout)

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop accepting requests, let the worker drain the queue and join it.

        Returns after at most timeout seconds. Requests still queued once the
        worker has exited are rejected, so none is dropped silently.
        """
        with self._state_lock:
            self._accepting = False
            self._stopping.set()
            worker = self._worker
        if worker is not None:
            worker.join(timeout)
            if worker.is_alive():
                logger.warning(f"Dispatcher still draining after {timeout}s; {self._queue.qsize()} queued")
                return
        while True:
            try:
                request = self._queue.get_nowait()
            except queue.Empty:
                return
            try:
                self._reject(request, "dispatcher stopped")
            finally:
                self._queue.task_done()

    def pending(self) -> int:
        return self._queue.qsize()

    def __enter__(self) -> "AuditDispatcher":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _run(self) -> None:
        while True:
            try:
                request = self._queue.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                # _stopping is set under the lock every accepted put holds, so
                # once it is set an empty queue stays empty.
                if self._stopping.is_set() and self._queue.empty():
                    return
                continue
            try:
                self._process(request)
            finally:
                self._queue.task_done()

    def _process(self, request: Dict[str, Any]) -> None:
        principal = request.get("principal_id") or "system"
        try:
            self.service.append(**request)
        except AuditError as e:
            self._fail(request, e, principal, e.retryable)
        except Exception as e:
            # Worker must survive any single failure; surface it like the rest.
            self._fail(request, e, principal, False)

    def _fail(self, request: Dict[str, Any], error: BaseException, principal: str, retryable: bool) -> None:
        logger.error(
            f"Audit event {request.get('event_type')} failed: {error}",
            extra={"trace_id": principal, "error_type": type(error).__name__},
        )
        track_dispatch_failure(type(error).__name__)
        self._notify(DispatchFailure(request=request, error=error, retryable=retryable), principal)

    def _reject(self, request: Dict[str, Any], reason: str) -> None:
        logger.error(
            f"Audit event {request.get('event_type')} rejected: {reason}",
            extra={"trace_id": request.get("principal_id") or "system"},
        )
        track_dispatch_rejected()
        self._notify(
            DispatchFailure(request=dict(request), error=RuntimeError(reason), retryable=True),
            request.get("principal_id") or "system",
        )

    def _notify(self, failure: DispatchFailure, principal: str) -> None:
        if self.on_failure is None:
            return
        try:
            self.on_failure(failure)
        except Exception:
            logger.exception("Dispatch failure handler raised", extra={"trace_id": principal})
