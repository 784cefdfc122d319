import logging
import threading
import time
from typing import Callable, Optional, Set, Tuple


class CountdownScheduler:
    """Run deferred room transitions on a background task.

    - One pending task per (room_id, token)
    - The task only sleeps and then hands control back to ``fire``; the
      callee re-reads room state and decides whether the transition applies
    - Disabled schedulers record nothing and never fire (TESTING default)
    """

    def __init__(
        self,
        start_task: Optional[Callable] = None,
        sleep: Callable[[float], None] = time.sleep,
        enabled: bool = True,
        inline: bool = False,
        heartbeat_sec: int = 0,
        logger: Optional[logging.Logger] = None,
    ):
        self.start_task = start_task or self._start_thread
        self.sleep = sleep
        self.enabled = enabled
        self.inline = inline
        self.heartbeat_sec = heartbeat_sec
        self.logger = logger or logging.getLogger(__name__)
        self._pending: Set[Tuple[str, int]] = set()
        self._lock = threading.Lock()

    @staticmethod
    def _start_thread(target, *args):
        thread = threading.Thread(target=target, args=args, daemon=True)
        thread.start()
        return thread

    def pending(self) -> Set[Tuple[str, int]]:
        with self._lock:
            return set(self._pending)

    def schedule(self, room_id: str, token: int, delay_ms: int, fire: Callable[[str, int], bool]) -> bool:
        if not self.enabled:
            self.logger.info(f"[timer-disabled] room={room_id} token={token}")
            return False

        key = (room_id, token)
        with self._lock:
            if key in self._pending:
                self.logger.info(f"[timer-skip] room={room_id} token={token} already scheduled")
                return False
            self._pending.add(key)

        self.logger.info(f"[timer-set] room={room_id} token={token} delay={delay_ms}ms")
        if self.inline:
            self._worker(room_id, token, delay_ms, fire)
            return True
        try:
            self.start_task(self._worker, room_id, token, delay_ms, fire)
        except Exception:
            with self._lock:
                self._pending.discard(key)
            raise
        return True

    def _worker(self, room_id: str, token: int, delay_ms: int, fire: Callable[[str, int], bool]) -> None:
        delay = max(0.0, delay_ms / 1000.0)
        hb = self.heartbeat_sec
        if hb and hb > 0:
            slept = 0.0
            while slept < delay:
                step = min(hb, delay - slept)
                self.sleep(step)
                slept += step
                self.logger.info(f"[timer-heartbeat] room={room_id} remaining={max(0.0, delay - slept):.1f}s")
        else:
            self.sleep(delay)

        with self._lock:
            self._pending.discard((room_id, token))
        self.logger.info(f"[timer-fire] room={room_id} token={token}")
        try:
            fire(room_id, token)
        except Exception:
            self.logger.exception(f"[timer-error] room={room_id} token={token}")
