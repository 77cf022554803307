"""
Rotation and archival of log files.

Layout inside the log directory::

    {name}.log              active file, always the newest data
    {name}.1.log            most recently rotated
    {name}.{n}.log          older, up to log_count_max
    {name}-archive.zip      optional, holds rotated files under the same names

Nothing but files past ``log_count_max`` is ever deleted. The zip archive is
only ever replaced by a fully written and verified copy, and rotated files are
removed only after the archive holding them has been committed.
"""

from __future__ import annotations

import os
import re
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import List, Tuple

from ..diagnostics import get_diagnostic_logger
from ..exceptions import ArchiveMergeError, RotationError

logger = get_diagnostic_logger("logwarden.rotation.archiver")


class Archiver:
    def __init__(
        self,
        directory: str | os.PathLike[str],
        name: str,
        *,
        log_count_max: int = 5,
        compress: bool = False,
    ) -> None:
        if log_count_max < 1:
            raise ValueError("log_count_max must be at least 1")
        self.directory = Path(directory)
        self.name = name
        self.log_count_max = log_count_max
        self.compress = compress
        self._backup_re = re.compile(rf"^{re.escape(name)}\.(\d+)\.log$")

    # ================================
    # Paths
    # ================================

    @property
    def active_path(self) -> Path:
        return self.directory / f"{self.name}.log"

    @property
    def archive_path(self) -> Path:
        return self.directory / f"{self.name}-archive.zip"

    def backup_name(self, number: int) -> str:
        return f"{self.name}.{number}.log"

    def backups(self, directory: Path | None = None) -> List[Tuple[int, Path]]:
        """Numbered backups in ``directory`` (the log directory by default), oldest last."""
        root = directory or self.directory
        if not root.is_dir():
            return []
        found = []
        for entry in root.iterdir():
            match = self._backup_re.match(entry.name)
            if match and entry.is_file():
                found.append((int(match.group(1)), entry))
        return sorted(found)

    def archive_members(self) -> List[str]:
        if not self.archive_path.exists():
            return []
        with zipfile.ZipFile(self.archive_path) as zf:
            return sorted(zf.namelist())

    # ================================
    # Rotation
    # ================================

    def rotate(self) -> bool:
        """Roll the active file over to ``{name}.1.log``.

        Returns:
            True if the active file was rotated, False if there was nothing to rotate.

        Raises:
            RotationError: the rename step failed; the active file is untouched.
            ArchiveMergeError: rotation happened but the archive step was rolled
                back; the rotated files stay on disk for the next attempt.
        """
        active = self.active_path
        if not active.exists():
            return False

        try:
            self._shift(self.directory, by=1)
            active.rename(self.directory / self.backup_name(1))
        except OSError as exc:
            raise RotationError(f"Could not rotate '{active}': {exc}", path=str(active)) from exc

        logger.debug("log_rotated", path=str(active), log_count_max=self.log_count_max)

        if self.compress:
            self._archive_pending()
        return True

    def _shift(self, directory: Path, *, by: int) -> None:
        """Renumber backups in ``directory`` by ``by``, dropping those past the limit.

        Highest numbers move first so no rename ever lands on an existing file.
        """
        for number, path in reversed(self.backups(directory)):
            target = number + by
            if target > self.log_count_max:
                path.unlink()
                logger.debug("backup_expired", path=str(path))
            else:
                path.rename(directory / self.backup_name(target))

    # ================================
    # Archive
    # ================================

    def _archive_pending(self) -> None:
        pending = self.backups()
        if not pending:
            return
        if self.archive_path.exists():
            self._merge_archive(pending)
        else:
            self._create_archive(pending)

    def _create_archive(self, pending: List[Tuple[int, Path]]) -> None:
        tmp_archive = self._tmp_archive_path()
        try:
            self._write_archive(tmp_archive, self.directory, [path for _, path in pending])
            self._commit(tmp_archive)
        except Exception as exc:
            tmp_archive.unlink(missing_ok=True)
            raise self._merge_error(pending, exc) from exc
        self._remove_archived(pending)

    def _merge_archive(self, pending: List[Tuple[int, Path]]) -> None:
        """Merge rotated files into the existing archive through a scratch copy.

        The existing archive is only read until the new one is complete and
        verified, at which point it is swapped in with a single rename.
        """
        workdir = Path(tempfile.mkdtemp(prefix=f".{self.name}-merge-", dir=self.directory))
        tmp_archive = self._tmp_archive_path()
        try:
            self._extract(self.archive_path, workdir)
            # Make room for the pending files, keeping relative order.
            self._shift(workdir, by=pending[-1][0])
            for _, path in pending:
                shutil.copy2(path, workdir / path.name)
            files = sorted(p for p in workdir.rglob("*") if p.is_file())
            self._write_archive(tmp_archive, workdir, files)
            self._commit(tmp_archive)
        except Exception as exc:
            tmp_archive.unlink(missing_ok=True)
            raise self._merge_error(pending, exc) from exc
        finally:
            shutil.rmtree(workdir, ignore_errors=True)
        self._remove_archived(pending)

    @staticmethod
    def _extract(archive: Path, target: Path) -> None:
        root = target.resolve()
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                destination = (root / info.filename).resolve()
                if root not in destination.parents:
                    raise zipfile.BadZipFile(f"member {info.filename!r} points outside the archive")
                destination.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(destination, "wb") as dst:
                    shutil.copyfileobj(src, dst)

    @staticmethod
    def _write_archive(target: Path, root: Path, files: List[Path]) -> None:
        with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for path in files:
                zf.write(path, arcname=path.relative_to(root).as_posix())
        with zipfile.ZipFile(target) as zf:
            bad = zf.testzip()
        if bad is not None:
            raise zipfile.BadZipFile(f"corrupt member {bad!r} in {target}")

    def _commit(self, tmp_archive: Path) -> None:
        os.replace(tmp_archive, self.archive_path)

    def _remove_archived(self, pending: List[Tuple[int, Path]]) -> None:
        members = set(self.archive_members())
        for _, path in pending:
            if path.name not in members:
                logger.warning("archived_file_missing", path=str(path), archive=str(self.archive_path))
                continue
            try:
                path.unlink()
            except OSError as exc:
                # Committed already; the copy left behind is only a duplicate.
                logger.warning("archived_file_not_removed", path=str(path), error=str(exc))
        logger.debug("archive_updated", archive=str(self.archive_path), added=len(pending))

    def _tmp_archive_path(self) -> Path:
        return self.archive_path.with_name(f".{self.archive_path.name}.tmp")

    def _merge_error(self, pending: List[Tuple[int, Path]], exc: BaseException) -> ArchiveMergeError:
        error = ArchiveMergeError(
            archive=str(self.archive_path),
            pending=[path.name for _, path in pending],
            reason=str(exc) or type(exc).__name__,
        )
        logger.warning("archive_merge_rolled_back", archive=str(self.archive_path), error=str(exc))
        return error
