"""One-way outbound channel for Attempt and QuestionBank writes."""
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Optional

from deckdrill.errors import StorageError
from deckdrill.models import UserContext
from deckdrill.store import QuestionStore

logger = logging.getLogger(__name__)

RECORD_ATTEMPT = "record_attempt"
ADD_TO_BANK = "add_to_bank"
REMOVE_FROM_BANK = "remove_from_bank"


@dataclass(frozen=True)
class PendingWrite:
    kind: str
    question_id: str
    is_correct: Optional[bool] = None
    response_time_ms: Optional[int] = None


class WriteQueue:
    """Queue store writes without waiting on them.

    Writes are delivered in order by `flush()` or by the background worker.
    A write that fails with StorageError is logged and dropped.
    """

    def __init__(self, store: QuestionStore, user: UserContext):
        self.store = store
        self.user = user
        self._queue: "queue.Queue[Optional[PendingWrite]]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None

    def record_attempt(self, question_id: str, is_correct: bool, response_time_ms: Optional[int] = None) -> None:
        self._queue.put(PendingWrite(RECORD_ATTEMPT, question_id, is_correct, response_time_ms))

    def add_to_bank(self, question_id: str) -> None:
        self._queue.put(PendingWrite(ADD_TO_BANK, question_id))

    def remove_from_bank(self, question_id: str) -> None:
        self._queue.put(PendingWrite(REMOVE_FROM_BANK, question_id))

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def flush(self) -> int:
        """Deliver every queued write now. Returns how many were delivered."""
        delivered = 0
        while True:
            try:
                write = self._queue.get_nowait()
            except queue.Empty:
                return delivered
            if write is not None and self._deliver(write):
                delivered += 1

    def start(self) -> None:
        if self._worker is not None:
            return
        self._worker = threading.Thread(target=self._run, name="deckdrill-writes", daemon=True)
        self._worker.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        if self._worker is None:
            return
        self._queue.put(None)
        self._worker.join(timeout)
        self._worker = None

    def _run(self) -> None:
        while True:
            write = self._queue.get()
            if write is None:
                return
            self._deliver(write)

    def _deliver(self, write: PendingWrite) -> bool:
        try:
            if write.kind == RECORD_ATTEMPT:
                self.store.record_attempt(
                    self.user, write.question_id, write.is_correct, write.response_time_ms,
                )
            elif write.kind == ADD_TO_BANK:
                self.store.add_to_bank(self.user, write.question_id)
            elif write.kind == REMOVE_FROM_BANK:
                self.store.remove_from_bank(self.user, write.question_id)
        except StorageError as e:
            logger.warning("dropped %s for question %s: %s", write.kind, write.question_id, e)
            return False
        return True
