"""
Archive inspection and extraction for downloaded distributions.

This module provides:
- Container detection (zip, gzip+tar): the file extension is a fast path,
  confirmed against the content; otherwise the file is tried as zip, then
  as gzip+tar
- Archive root detection, used as the prefix stripped during extraction
- Selective extraction of sub-trees with size checks and executable bits
- Normalization of platform bundles (Contents/Home) to a plain layout

Only zip and tar.gz are produced by the supported providers; anything else
is an ArchiveFormatError.
"""

import logging
import os
import posixpath
import shutil
import tarfile
import threading
import zipfile
from enum import Enum
from pathlib import Path
from typing import Dict, IO, Iterator, List, Optional, Sequence

from jdkcache.core.exceptions import (
    AcquisitionCancelled,
    ArchiveFormatError,
    InsecureArchiveError,
)
from jdkcache.core.filesystem import (
    make_owner_executable,
    safe_rmtree,
    validate_member_path,
)

logger = logging.getLogger(__name__)

EXECUTABLE_SUFFIXES = (".sh", ".exe", ".bat", ".cmd")
BUNDLE_WRAPPER = "contents"
BUNDLE_HOME = "home"
COPY_BUFFER = 64 * 1024


class ArchiveType(str, Enum):
    """Supported archive containers."""

    ZIP = "zip"
    TAR_GZ = "tar.gz"


# ============================================================================
# Inspection
# ============================================================================


class ArchiveInspector:
    """Read-only queries against an archive file."""

    @staticmethod
    def detect_type(archive: Path) -> ArchiveType:
        """
        Detect the container format of an archive.

        Raises:
            ArchiveFormatError: If the file is neither zip nor gzip+tar
        """
        archive = Path(archive)
        name = archive.name.lower()
        if name.endswith(".zip") and zipfile.is_zipfile(archive):
            return ArchiveType.ZIP
        if name.endswith((".tar.gz", ".tgz")) and _is_tar_gz(archive):
            return ArchiveType.TAR_GZ

        if zipfile.is_zipfile(archive):
            return ArchiveType.ZIP
        if _is_tar_gz(archive):
            return ArchiveType.TAR_GZ
        raise ArchiveFormatError(
            f"Unrecognized archive format: {archive}", archive=str(archive)
        )

    @staticmethod
    def entry_names(archive: Path, archive_type: Optional[ArchiveType] = None) -> Iterator[str]:
        """Yield entry names in archive order."""
        archive_type = archive_type or ArchiveInspector.detect_type(archive)
        try:
            if archive_type is ArchiveType.ZIP:
                with zipfile.ZipFile(archive) as zf:
                    for info in zf.infolist():
                        yield info.filename
            else:
                with tarfile.open(archive, "r:gz") as tf:
                    for member in tf:
                        yield member.name
        except (zipfile.BadZipFile, tarfile.TarError, EOFError) as e:
            raise ArchiveFormatError(
                f"Can't read entries of {archive}: {e}", archive=str(archive)
            ) from e

    @staticmethod
    def find_root(archive: Path, archive_type: Optional[ArchiveType] = None) -> Optional[str]:
        """
        Return the top-level directory of the archive.

        Every entry's first path component (with a leading './' kept) is a
        candidate and the last one seen in archive order wins. Entries
        without a separator do not change the answer.

        Returns:
            Component including its trailing '/', or None if no entry has a
            directory part
        """
        result = None
        for name in ArchiveInspector.entry_names(archive, archive_type):
            prefix = ""
            if name.startswith("./"):
                name = name[2:]
                prefix = "./"
            separator = name.find("/")
            if separator >= 0:
                result = prefix + name[: separator + 1]
        return result


def _is_tar_gz(archive: Path) -> bool:
    try:
        with tarfile.open(archive, "r:gz") as tf:
            tf.next()
        return True
    except (tarfile.TarError, OSError, EOFError):
        return False


# ============================================================================
# Extraction
# ============================================================================


def _normalize_entry(name: str) -> str:
    normalized = posixpath.normpath(name.replace("\\", "/"))
    if normalized == ".":
        return ""
    return normalized


def _normalize_folder(folder: str) -> str:
    normalized = _normalize_entry(folder)
    return f"{normalized}/" if normalized else ""


def _is_executable_name(file_name: str) -> bool:
    lower = file_name.lower()
    return lower.endswith(EXECUTABLE_SUFFIXES) or "." not in file_name


class ArchiveExtractor:
    """
    Extracts an archive into a destination directory.

    Args:
        make_executable: Set the owner execute bit on files whose name ends
            with .sh/.exe/.bat/.cmd or has no extension, if non-empty
        cancel_event: Checked before every entry

    Example:
        >>> extractor = ArchiveExtractor()
        >>> root = ArchiveInspector.find_root(archive)
        >>> extractor.extract(archive, target, [root] if root else [])
    """

    def __init__(
        self,
        make_executable: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.make_executable = make_executable
        self.cancel_event = cancel_event

    def extract(
        self,
        archive: Path,
        destination: Path,
        folders: Sequence[str] = (),
        archive_type: Optional[ArchiveType] = None,
    ) -> int:
        """
        Extract entries under the given folders, stripping the folder prefix.

        Args:
            archive: Archive file
            destination: Target directory, created if missing
            folders: Sub-folders to extract; empty extracts everything
            archive_type: Known container type, detected if omitted

        Returns:
            Number of files written

        Raises:
            ArchiveFormatError: On a corrupt stream, a size mismatch, or when
                nothing was extracted
            InsecureArchiveError: If an entry escapes the destination
        """
        archive = Path(archive)
        destination = Path(destination)
        archive_type = archive_type or ArchiveInspector.detect_type(archive)
        filters = [f for f in (_normalize_folder(x) for x in folders) if f]
        destination.mkdir(parents=True, exist_ok=True)

        logger.info(f"Unpacking {archive.name} into {destination}")
        try:
            if archive_type is ArchiveType.ZIP:
                count = self._extract_zip(archive, destination, filters)
            else:
                count = self._extract_tar(archive, destination, filters)
        except (zipfile.BadZipFile, tarfile.TarError, EOFError) as e:
            raise ArchiveFormatError(
                f"Corrupt archive {archive}: {e}", archive=str(archive)
            ) from e

        if count == 0:
            raise ArchiveFormatError(
                f"Extracted 0 files from {archive}, the archive root "
                f"{filters or '(none)'} may be wrong",
                archive=str(archive),
            )
        logger.info(f"Extracted {count} file(s) from {archive.name}")
        normalize_bundle_layout(destination)
        return count

    def _target_for(self, name: str, filters: List[str]) -> Optional[str]:
        """Relative output path of an entry, None if filtered out."""
        normalized = _normalize_entry(name)
        if normalized.startswith("../") or normalized == ".." or normalized.startswith("/"):
            raise InsecureArchiveError(
                f"Archive member '{name}' attempts directory traversal, "
                "extraction has been blocked"
            )
        if not filters:
            return normalized or None

        as_dir = f"{normalized}/"
        for folder in filters:
            if as_dir.startswith(folder):
                relative = as_dir[len(folder):].rstrip("/")
                return relative or None
        return None

    def _check_cancel(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise AcquisitionCancelled("Extraction cancelled")

    def _write(self, source: IO[bytes], target: Path, expected_size: int, name: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        with open(target, "wb") as out:
            while chunk := source.read(COPY_BUFFER):
                out.write(chunk)
                written += len(chunk)
        if written != expected_size:
            raise ArchiveFormatError(
                f"Illegal unpacked length for '{name}': expected {expected_size}, "
                f"written {written}"
            )
        if self.make_executable and expected_size > 0 and _is_executable_name(target.name):
            make_owner_executable(target)

    def _extract_zip(self, archive: Path, destination: Path, filters: List[str]) -> int:
        count = 0
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                self._check_cancel()
                relative = self._target_for(info.filename, filters)
                if relative is None:
                    continue
                target = validate_member_path(relative, destination)
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                with zf.open(info) as source:
                    self._write(source, target, info.file_size, info.filename)
                count += 1
        return count

    def _extract_tar(self, archive: Path, destination: Path, filters: List[str]) -> int:
        count = 0
        written: Dict[str, Path] = {}
        with tarfile.open(archive, "r:gz") as tf:
            for member in tf:
                self._check_cancel()
                relative = self._target_for(member.name, filters)
                if relative is None:
                    continue
                target = validate_member_path(relative, destination)

                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                elif member.isfile():
                    source = tf.extractfile(member)
                    with source:
                        self._write(source, target, member.size, member.name)
                    written[_normalize_entry(member.name)] = target
                    count += 1
                elif member.issym():
                    if self._link(member, target, destination):
                        count += 1
                elif member.islnk():
                    original = written.get(_normalize_entry(member.linkname))
                    if original is None:
                        logger.warning(f"Skipping hard link {member.name}: target not extracted")
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(original, target)
                    count += 1
                else:
                    logger.debug(f"Skipping special entry {member.name}")
        return count

    @staticmethod
    def _link(member: tarfile.TarInfo, target: Path, destination: Path) -> bool:
        link_target = member.linkname
        resolved = (target.parent / link_target).resolve()
        if os.path.isabs(link_target) or not resolved.is_relative_to(destination.resolve()):
            logger.warning(
                f"Skipping symbolic link {member.name} -> {link_target}: "
                "points outside the archive"
            )
            return False
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.is_symlink() or target.exists():
            target.unlink()
        os.symlink(link_target, target)
        return True


# ============================================================================
# Bundle Normalization
# ============================================================================


def normalize_bundle_layout(root: Path) -> bool:
    """
    Promote Contents/Home to the root of an unpacked platform bundle.

    Applies only when root holds exactly one entry, a directory named
    'Contents' (any case).

    Returns:
        True if the layout was rewritten

    Raises:
        ArchiveFormatError: If the wrapper has no Home directory
    """
    entries = list(root.iterdir())
    if len(entries) != 1:
        return False
    wrapper = entries[0]
    if not wrapper.is_dir() or wrapper.name.lower() != BUNDLE_WRAPPER:
        return False

    home = next(
        (p for p in wrapper.iterdir() if p.is_dir() and p.name.lower() == BUNDLE_HOME),
        None,
    )
    if home is None:
        raise ArchiveFormatError(
            f"Found '{wrapper.name}' bundle folder without Home in {root}"
        )

    logger.info(f"Promoting {wrapper.name}/{home.name} to {root}")
    staging = root.with_name(f".{root.name}_tmp")
    safe_rmtree(staging, require_prefix=root.parent)
    root.rename(staging)
    (staging / wrapper.name / home.name).rename(root)
    safe_rmtree(staging, require_prefix=root.parent)
    return True


__all__ = [
    "ArchiveType",
    "ArchiveInspector",
    "ArchiveExtractor",
    "normalize_bundle_layout",
    "EXECUTABLE_SUFFIXES",
]
