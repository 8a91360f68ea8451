"""Job-scoped cancellation broadcast to per-stage tokens."""

import threading


class CancelToken:
    """Cancellation handle held by one unit of work."""

    def __init__(self):
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or timeout; return True if cancelled."""
        return self._event.wait(timeout)


class CancelSource:
    """Owns a job's cancellation state and broadcasts it to derived tokens."""

    def __init__(self):
        self._lock = threading.Lock()
        self._cancelled = False
        self._tokens: list[CancelToken] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def token(self) -> CancelToken:
        """Derive a token; tokens derived after cancellation start cancelled."""
        token = CancelToken()
        with self._lock:
            self._tokens.append(token)
            if self._cancelled:
                token.cancel()
        return token

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            tokens = list(self._tokens)
        for token in tokens:
            token.cancel()
