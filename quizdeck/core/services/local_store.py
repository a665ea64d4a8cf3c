"""Durable per-device records: student identity, session pointer and device id.

Each record lives in its own JSON file with a fixed name and is overwritten
wholesale on every save. A missing or unreadable file reads as "no record".
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable
from datetime import datetime
from uuid import uuid4

from quizdeck.constants.sync_constants import (
    DEVICE_ID_FILE_NAME,
    IDENTITY_FILE_NAME,
    SESSION_POINTER_FILE_NAME,
)
from quizdeck.core.models import SessionPointer, StudentIdentity, utc_now

logger = logging.getLogger(__name__)


def _read_json(path: Path) -> dict[str, Any] | None:
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable local record %s: %s", path, exc)
        return None
    return data if isinstance(data, dict) else None


def _write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


class LocalIdentityStore:
    """Stable student identity for this device."""

    def __init__(self, directory: Path, clock: Callable[[], datetime] = utc_now) -> None:
        self._path = Path(directory) / IDENTITY_FILE_NAME
        self._device_path = Path(directory) / DEVICE_ID_FILE_NAME
        self._clock = clock

    def load(self) -> StudentIdentity | None:
        data = _read_json(self._path)
        if data is None:
            return None
        try:
            return StudentIdentity.from_record(data)
        except KeyError:
            logger.warning("Local identity record is missing its id; ignoring it")
            return None

    def save(self, identity: StudentIdentity) -> None:
        _write_json(self._path, identity.to_record())

    def get_or_create(self, display_name: str | None = None) -> StudentIdentity:
        """Return the stored identity, creating it on first use.

        A non-empty ``display_name`` that differs from the stored one replaces
        it; the id never changes once created.
        """
        identity = self.load()
        if identity is None:
            identity = StudentIdentity(
                id=f"student_{uuid4().hex[:16]}",
                display_name=display_name or "",
                created_at=self._clock(),
            )
            self.save(identity)
            logger.info("Created local student identity %s", identity.id)
            return identity
        if display_name and display_name != identity.display_name:
            identity.display_name = display_name
            self.save(identity)
        return identity

    def device_id(self) -> str:
        if self._device_path.exists():
            try:
                stored = self._device_path.read_text(encoding="utf-8").strip()
            except OSError:
                stored = ""
            if stored:
                return stored
        device_id = f"device_{uuid4().hex[:16]}"
        self._device_path.parent.mkdir(parents=True, exist_ok=True)
        self._device_path.write_text(device_id, encoding="utf-8")
        return device_id


class SessionPointerStore:
    """Last joined session; never authoritative, only a reconnection hint."""

    def __init__(self, directory: Path) -> None:
        self._path = Path(directory) / SESSION_POINTER_FILE_NAME

    def load(self) -> SessionPointer | None:
        data = _read_json(self._path)
        if data is None:
            return None
        try:
            return SessionPointer.from_record(data)
        except KeyError:
            logger.warning("Session pointer is incomplete; ignoring it")
            return None

    def save(self, pointer: SessionPointer) -> None:
        _write_json(self._path, pointer.to_record())

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
