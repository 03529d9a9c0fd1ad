"""
HMAC-protected JSON file persistence.

Base class shared by the domain cache and search history stores. Each file
holds one envelope::

    {"version": 1, "data": {...}, "last_updated": "...", "hmac": "..."}

The HMAC-SHA256 covers everything except the ``hmac`` field itself, so an
edited or foreign file is rejected on load. Writes go to a sibling temporary
file that replaces the target, so readers never see a half-written file.
Several changes can be grouped with ``batch()`` so the file is rewritten once.
"""

import hashlib
import hmac
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from .exceptions import PersistenceError, TamperingError


ENVELOPE_FIELDS = ("version", "data", "last_updated")


class HmacJsonStore:
    """
    JSON file with HMAC-SHA256 integrity protection.

    Loading is lazy: subclasses call ``ensure_loaded`` before touching their
    in-memory model, and implement ``_to_data``/``_from_data`` to convert it
    to and from the envelope's ``data`` object.
    """

    VERSION = 1

    def __init__(self, file_path: Path, hmac_secret: str) -> None:
        self._file_path = Path(file_path)
        self._key = hmac_secret.encode("utf-8")
        self._loaded = False
        self._last_updated: Optional[str] = None
        self._lock = threading.RLock()
        self._batch_depth = 0
        self._dirty = False

    def load(self) -> bool:
        """
        Read and verify the file, replacing the in-memory state.

        A file that fails to load leaves the store unloaded, so every later
        read or write retries the load and raises again instead of
        overwriting the file.

        Returns:
            False if the file does not exist yet (state is reset to empty)

        Raises:
            TamperingError: If the signature does not match
            PersistenceError: If the file cannot be read or is not an envelope
        """
        if not self._file_path.exists():
            self._from_data({})
            self._loaded = True
            return False

        envelope = self._read_envelope()
        signature = envelope.get("hmac")
        if not isinstance(signature, str) or not hmac.compare_digest(
            signature, self.sign(envelope)
        ):
            raise TamperingError(
                code="hmac_mismatch",
                message=f"Integrity check failed for {self._file_path.name}",
                details={"file_path": str(self._file_path)},
            )

        self._last_updated = envelope.get("last_updated")
        self._from_data(envelope.get("data") or {})
        self._loaded = True
        return True

    def ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def save(self) -> None:
        """
        Sign and atomically write the current state.

        Raises:
            PersistenceError: If the file cannot be written
        """
        envelope: dict[str, Any] = {
            "version": self.VERSION,
            "data": self._to_data(),
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }
        envelope["hmac"] = self.sign(envelope)

        directory = self._file_path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(
                dir=directory, prefix=f".{self._file_path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(envelope, f, indent=2, sort_keys=True, ensure_ascii=False)
                os.replace(temp_name, self._file_path)
            except BaseException:
                if os.path.exists(temp_name):
                    os.unlink(temp_name)
                raise
        except OSError as e:
            raise self._error("io_error", f"Failed to write {self._file_path.name}: {e}")

        self._last_updated = envelope["last_updated"]
        self._dirty = False

    @contextmanager
    def batch(self) -> Iterator[None]:
        """
        Hold saves until the block exits, then save once if anything changed.

        Batches are serialized across threads and may be nested.

        Raises:
            PersistenceError: If the final save fails
        """
        with self._lock:
            self._batch_depth += 1
            try:
                yield
            finally:
                self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self.save()

    def _commit(self) -> None:
        """Save now, or mark the state dirty inside a batch."""
        if self._batch_depth:
            self._dirty = True
        else:
            self.save()

    def sign(self, envelope: dict) -> str:
        """HMAC-SHA256 over the canonical JSON of the signed envelope fields."""
        signed = {name: envelope.get(name) for name in ENVELOPE_FIELDS}
        canonical = json.dumps(signed, sort_keys=True, separators=(",", ":"))
        return hmac.new(self._key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()

    def _read_envelope(self) -> dict:
        try:
            with self._file_path.open("r", encoding="utf-8") as f:
                envelope = json.load(f)
        except json.JSONDecodeError as e:
            raise self._error("parse_error", f"Failed to parse {self._file_path.name}: {e}")
        except OSError as e:
            raise self._error("io_error", f"Failed to read {self._file_path.name}: {e}")

        if not isinstance(envelope, dict):
            raise self._error("parse_error", f"{self._file_path.name} is not a JSON object")
        return envelope

    def _error(self, code: str, message: str) -> PersistenceError:
        return PersistenceError(code=code, message=message, details={"file_path": str(self._file_path)})

    def _to_data(self) -> dict:
        raise NotImplementedError

    def _from_data(self, data: dict) -> None:
        raise NotImplementedError

    @property
    def last_updated(self) -> Optional[str]:
        return self._last_updated

    @property
    def file_path(self) -> Path:
        return self._file_path
