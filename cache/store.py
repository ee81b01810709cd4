"""
cache/store.py -- SQLite-backed cache for login tokens.

Maps a login token to the SessionSnapshot taken at login, with a sliding
expiry: set_login_token_cache() and renew_login_token_cache() push expires_at
to now + ttl. The manager renews the entry on each successful check_login(),
which is what makes the window slide.

Rows are keyed by the token's HMAC digest (auth.tokens.hash_login_token), so
the raw token never lands on disk. Expired rows are deleted lazily on read;
purge_expired() trims the rest.

Usage:
    cache = LoginTokenCache()
    cache.set_login_token_cache(token, snapshot)
    snapshot = cache.get_login_token_cache(token)   # SessionSnapshot or None
    cache.purge_expired()                          # call periodically
"""

import json
import logging
import sqlite3
import threading
import time
from dataclasses import asdict
from typing import Callable, Optional

from auth.models import SessionSnapshot
from auth.tokens import hash_login_token
from core.config import get_settings

logger = logging.getLogger("shopadmin.cache")

_DDL = """
CREATE TABLE IF NOT EXISTS login_token (
    token_digest  TEXT PRIMARY KEY,
    snapshot      TEXT NOT NULL,
    expires_at    REAL NOT NULL
);
"""


class LoginTokenCache:
    def __init__(
        self,
        db_path: Optional[str] = None,
        ttl: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        settings = get_settings()
        self.ttl = ttl if ttl is not None else settings.login_token_ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path or settings.token_cache_path, check_same_thread=False)
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    def set_login_token_cache(self, token: str, snapshot: SessionSnapshot) -> None:
        """Store snapshot under token, replacing any existing entry and resetting its expiry."""
        expires_at = self._clock() + self.ttl
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO login_token (token_digest, snapshot, expires_at) VALUES (?, ?, ?)",
                (hash_login_token(token), json.dumps(asdict(snapshot)), expires_at),
            )
            self._conn.commit()

    def get_login_token_cache(self, token: str) -> Optional[SessionSnapshot]:
        """Return the snapshot for token if it exists and hasn't expired."""
        digest = hash_login_token(token)
        with self._lock:
            row = self._conn.execute(
                "SELECT snapshot, expires_at FROM login_token WHERE token_digest = ?",
                (digest,),
            ).fetchone()
            if row is None:
                return None
            data, expires_at = row
            if self._clock() >= expires_at:
                self._conn.execute("DELETE FROM login_token WHERE token_digest = ?", (digest,))
                self._conn.commit()
                return None
        return SessionSnapshot(**json.loads(data))

    def renew_login_token_cache(self, token: str) -> bool:
        """Push a live entry's expiry to now + ttl.

        Only touches a row that still exists and has not expired, so a token
        deleted or expired since the caller read it stays gone. Returns True
        if an entry was renewed.
        """
        now = self._clock()
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE login_token SET expires_at = ? WHERE token_digest = ? AND expires_at > ?",
                (now + self.ttl, hash_login_token(token), now),
            )
            self._conn.commit()
        return cursor.rowcount > 0

    def delete_login_token_cache(self, token: str) -> bool:
        """Drop a token. Returns True if an entry was removed."""
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM login_token WHERE token_digest = ?",
                (hash_login_token(token),),
            )
            self._conn.commit()
        return cursor.rowcount > 0

    def purge_expired(self) -> int:
        """Delete all expired entries. Returns number of rows removed."""
        with self._lock:
            cursor = self._conn.execute("DELETE FROM login_token WHERE expires_at <= ?", (self._clock(),))
            self._conn.commit()
        if cursor.rowcount:
            logger.info("Purged %d expired login tokens", cursor.rowcount)
        return cursor.rowcount

    def close(self) -> None:
        self._conn.close()
