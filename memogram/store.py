"""Credential store — Telegram user id to Memos access token.

The mapping lives in memory and is written through to a flat file on
every change, one ``<user_id>:<token>`` record per line. Tokens may
contain colons; only the first colon separates the fields.

Writes go to a temp file in the same directory which is fsynced and then
renamed over the data file, so a crash never leaves a truncated file.
"""

import logging
import os
import re
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import PersistenceError

logger = logging.getLogger("memogram.store")

_USER_ID = re.compile(r"[+-]?[0-9]+", re.ASCII)
_INT64_MIN = -2 ** 63
_INT64_MAX = 2 ** 63 - 1


@dataclass(frozen=True)
class CredentialRecord:
    user_id: int
    token: str


def parse_line(line: str) -> Optional[CredentialRecord]:
    """Parse one data file line. Returns None for blank, comment or malformed lines."""
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    user_id, sep, token = line.partition(":")
    if not sep:
        return None
    # int() alone would also take "4_2" and non-ASCII digits
    if not _USER_ID.fullmatch(user_id):
        return None
    user_id = int(user_id)
    if not _INT64_MIN <= user_id <= _INT64_MAX:
        return None
    if user_id == 0 or not token:
        return None
    return CredentialRecord(user_id=user_id, token=token)


class CredentialStore:
    """Per-user access tokens backed by a single data file.

    One instance owns one path. ``set`` and ``delete`` block on file I/O;
    call them through ``asyncio.to_thread`` from async code.
    """

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._tokens: dict[int, str] = {}
        self._lock = threading.Lock()
        self._persist_lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def __contains__(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self._tokens

    def load(self) -> int:
        """Read the data file into memory. Returns the number of records loaded.

        A missing file is created empty. Malformed lines are skipped.
        """
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.touch()
            logger.info(f"Created credential file {self.path}")

        loaded = {}
        skipped = 0
        with open(self.path, "rb") as f:
            for lineno, raw in enumerate(f, start=1):
                # Decode per line so one corrupt line cannot fail the whole load
                try:
                    line = raw.decode("utf-8")
                except UnicodeDecodeError:
                    skipped += 1
                    logger.warning(f"Skipping undecodable line {lineno} in {self.path}")
                    continue
                record = parse_line(line)
                if record is None:
                    if line.strip() and not line.lstrip().startswith("#"):
                        skipped += 1
                        logger.warning(f"Skipping malformed line {lineno} in {self.path}")
                    continue
                loaded[record.user_id] = record.token

        with self._lock:
            self._tokens.update(loaded)
        logger.info(f"Loaded {len(loaded)} credential(s) from {self.path}"
                    + (f", skipped {skipped}" if skipped else ""))
        return len(loaded)

    def get(self, user_id: int) -> Optional[str]:
        with self._lock:
            return self._tokens.get(user_id)

    def set(self, user_id: int, token: str):
        """Store ``token`` for ``user_id`` and persist the whole map.

        Raises:
            PersistenceError: the file could not be written. The new token
                is kept in memory regardless.
        """
        with self._lock:
            self._tokens[user_id] = token
        self.save()

    def delete(self, user_id: int) -> bool:
        """Forget ``user_id``. Returns False if it was not stored."""
        with self._lock:
            if self._tokens.pop(user_id, None) is None:
                return False
        self.save()
        return True

    def records(self) -> list[CredentialRecord]:
        """Snapshot of all records, sorted by user id."""
        with self._lock:
            items = sorted(self._tokens.items())
        return [CredentialRecord(user_id=uid, token=token) for uid, token in items]

    def save(self):
        """Atomically rewrite the data file from the current map."""
        with self._persist_lock:
            # Snapshot inside the persist lock so the last writer wins on disk too
            records = self.records()
            try:
                self._write_atomic(records)
            except OSError as e:
                logger.error(f"Failed to save credentials to {self.path}: {e}")
                raise PersistenceError(f"failed to save {self.path}: {e}") from e

    def _write_atomic(self, records: list[CredentialRecord]):
        fd, tmp_path = tempfile.mkstemp(
            prefix="memogram-",
            suffix=".tmp",
            dir=self.path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for record in records:
                    f.write(f"{record.user_id}:{record.token}\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
