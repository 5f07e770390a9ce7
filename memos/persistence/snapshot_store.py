"""
Snapshot Store.

Durable JSON representation of the document store. A transform over a
Snapshot taken at save time; it keeps no copy of its own.

Writes go to a sibling temp file that is flushed, fsynced and swapped in
with ``os.replace``, so a reader only ever sees the previous or the new
snapshot. The temp name is fixed, so frequent autosaves never leave files
behind.

Loads fail soft: an unreadable snapshot yields an empty one, the reason is
recorded on ``last_warning`` and, when quarantine is on, the bad file is
moved to ``<name>.corrupt`` so the next save cannot overwrite it.
"""

import errno
import os
from pathlib import Path

from pydantic import ValidationError as SchemaValidationError

from memos.core.exceptions import CorruptDataWarning, StorageError, StorageQuotaExceeded
from memos.core.logging import get_logger, log_with_source
from memos.core.timers import Clock, SystemClock
from memos.schemas.snapshot import Snapshot

logger = get_logger(__name__)

_QUOTA_ERRNOS = frozenset({errno.ENOSPC, errno.EDQUOT})


class SnapshotStore:
    """
    Persistence adapter for a single snapshot file.

    Args:
        path: Snapshot file location
        max_bytes: Largest serialized snapshot accepted
        quarantine_corrupt: Move unreadable files aside instead of leaving them in place
        clock: Source of the ``lastSaved`` timestamp
    """

    def __init__(
        self,
        path: Path | str,
        max_bytes: int = 5 * 1024 * 1024,
        quarantine_corrupt: bool = True,
        clock: Clock | None = None,
    ) -> None:
        self.path = Path(path)
        self.max_bytes = max_bytes
        self.quarantine_corrupt = quarantine_corrupt
        self._clock = clock or SystemClock()
        self.last_warning: CorruptDataWarning | None = None

    @property
    def _tmp_path(self) -> Path:
        return self.path.with_name(f".{self.path.name}.tmp")

    @property
    def _quarantine_path(self) -> Path:
        return self.path.with_name(f"{self.path.name}.corrupt")

    def save(self, snapshot: Snapshot) -> Snapshot:
        """
        Atomically write a snapshot, stamping ``last_saved``.

        Returns:
            The snapshot as written

        Raises:
            StorageQuotaExceeded: If the snapshot is larger than ``max_bytes``
                or the filesystem is out of space
            StorageError: If the filesystem rejects the write for any other reason
        """
        stamped = snapshot.model_copy(update={"last_saved": self._clock.now()})
        data = stamped.model_dump_json(by_alias=True).encode("utf-8")

        if len(data) > self.max_bytes:
            log_with_source(
                logger, "persistence", "warning", "Snapshot exceeds storage quota",
                size=len(data), max_bytes=self.max_bytes,
            )
            raise StorageQuotaExceeded(
                f"Snapshot of {len(data)} bytes exceeds quota of {self.max_bytes} bytes",
                size=len(data),
            )

        try:
            self._write_atomic(data)
        except OSError as e:
            self._discard_tmp()
            if e.errno in _QUOTA_ERRNOS:
                log_with_source(
                    logger, "persistence", "error", "Storage full while saving snapshot",
                    path=str(self.path), error=str(e),
                )
                raise StorageQuotaExceeded(f"Storage full: {e.strerror}", size=len(data)) from e
            log_with_source(
                logger, "persistence", "error", "Snapshot write failed",
                path=str(self.path), error=str(e),
            )
            raise StorageError(
                f"Could not save notes: {e.strerror or e}", size=len(data)
            ) from e

        logger.debug(
            "Snapshot saved",
            source="persistence",
            extra={"path": str(self.path), "bytes": len(data)},
        )
        return stamped

    def load(self) -> Snapshot:
        """
        Read the snapshot.

        Returns:
            The stored snapshot, or an empty one when the file is missing or
            unreadable. ``last_warning`` is set in the unreadable case.
        """
        self.last_warning = None
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return Snapshot()
        except OSError as e:
            return self._recover(e, quarantine=False)

        try:
            return Snapshot.model_validate_json(raw)
        except SchemaValidationError as e:
            return self._recover(e)

    def clear(self) -> None:
        """
        Delete the snapshot (and any leftover temp file).

        Raises:
            StorageError: If the file exists but cannot be removed
        """
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Could not remove saved notes: {e.strerror or e}") from e
        self._discard_tmp()
        log_with_source(logger, "persistence", "info", "Snapshot cleared", path=str(self.path))

    def _write_atomic(self, data: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._tmp_path
        with open(tmp, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)

    def _discard_tmp(self) -> None:
        try:
            self._tmp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove temp snapshot", extra={"error": str(e)})

    def _recover(self, error: Exception, quarantine: bool = True) -> Snapshot:
        warning = CorruptDataWarning(
            f"Snapshot at {self.path} is unreadable; starting empty",
            path=str(self.path),
        )
        quarantined = False
        if quarantine and self.quarantine_corrupt:
            try:
                os.replace(self.path, self._quarantine_path)
            except OSError as e:
                logger.warning(
                    "Could not quarantine corrupt snapshot",
                    source="persistence",
                    extra={"path": str(self.path), "error": str(e)},
                )
            else:
                warning.path = str(self._quarantine_path)
                quarantined = True
        self.last_warning = warning
        log_with_source(
            logger, "persistence", "error", "Corrupt snapshot replaced with empty state",
            path=str(self.path), quarantined=quarantined, error=str(error),
        )
        return Snapshot()
