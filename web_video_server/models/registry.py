"""
Thread-safe registry of active streaming sessions.

Request threads insert sessions; the cleanup sweeper periodically removes
the ones that went inactive. Inserts always wait for the lock since a lost
session would leak its subscription and connection. Sweeps never wait: if
the lock is busy the sweep is skipped and the next tick tries again, so
under sustained insert traffic reclamation can be deferred indefinitely.
"""
import logging
import threading

logger = logging.getLogger('web_video.sessions')


class SessionRegistry:
    """Ordered collection of sessions guarded by a single lock"""

    def __init__(self):
        self._sessions = []
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def sessions(self) -> list:
        """Snapshot of the registered sessions in insertion order"""
        with self._lock:
            return list(self._sessions)

    def insert(self, session) -> bool:
        """Store a session; returns False if that object is already registered"""
        with self._lock:
            if any(existing is session for existing in self._sessions):
                logger.warning(f"Session for {session.topic} already registered")
                return False
            self._sessions.append(session)
            logger.debug(f"Added stream: {session.topic} ({len(self._sessions)} active)")
            return True

    def sweep(self):
        """Drop inactive sessions without blocking.

        Returns the removed sessions, or None when the lock was busy and
        nothing was examined. Removed sessions are closed after the lock is
        released, which releases any subscription or connection they still
        hold.
        """
        if not self._lock.acquire(blocking=False):
            return None
        try:
            kept, removed = [], []
            for session in self._sessions:
                (removed if session.is_inactive() else kept).append(session)
            if removed:
                self._sessions = kept
        finally:
            self._lock.release()

        for session in removed:
            logger.info(f"Removed stream: {session.topic}")
            try:
                session.close()
            except Exception as e:
                logger.warning(f"Closing stream {session.topic} failed: {e}")
        return removed

    def close_all(self) -> int:
        """Close and drop every session (shutdown)"""
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            try:
                session.close()
            except Exception as e:
                logger.warning(f"Closing stream {session.topic} failed: {e}")
        return len(sessions)
