import uuid
from datetime import datetime
from typing import Optional

from application.service.statement_session import StatementSession

DEFAULT_MAX_SESSIONS = 1000


class SessionStore:
    """
    In-memory statement sessions keyed by (session id, provider).

    Holds at most `max_sessions` entries; creating one more evicts the session
    loaded longest ago (never-loaded sessions go first).
    """

    def __init__(self, max_sessions: int = DEFAULT_MAX_SESSIONS):
        self.max_sessions = max(1, max_sessions)
        self._sessions: dict[tuple[str, str], StatementSession] = {}

    @staticmethod
    def new_session_id() -> str:
        return str(uuid.uuid4())

    def get(self, session_id: str, provider: str) -> Optional[StatementSession]:
        return self._sessions.get((session_id, provider))

    def get_or_create(
        self,
        session_id: str,
        provider: str,
        account_scope: Optional[str] = None,
    ) -> StatementSession:
        """
        Return the session for this id, provider and account scope.

        None is the "all accounts" scope. Changing the scope in either direction
        starts over with an empty collection, since records suppressed under the
        old scope are not in memory.
        """
        key = (session_id, provider)
        session = self._sessions.get(key)
        if session is not None and session.account_scope == account_scope:
            return session
        if session is None:
            self._evict_for_new_entry()
        session = StatementSession(provider=provider, account_scope=account_scope)
        self._sessions[key] = session
        return session

    def _evict_for_new_entry(self) -> None:
        while len(self._sessions) >= self.max_sessions:
            oldest = min(self._sessions, key=lambda key: self._sessions[key].loaded_at or datetime.min)
            del self._sessions[oldest]

    def drop(self, session_id: str) -> int:
        keys = [key for key in self._sessions if key[0] == session_id]
        for key in keys:
            del self._sessions[key]
        return len(keys)

    def __len__(self) -> int:
        return len(self._sessions)
