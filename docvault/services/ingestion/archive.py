"""Archive detection and safe extraction (zip and tar families).

Members whose resolved path would land outside the extraction directory
(``../`` entries, absolute names, links) are skipped and reported, never
written.
"""

from __future__ import annotations

import tarfile
import zipfile
from pathlib import Path

import structlog

from docvault.services.extraction import media_types

logger = structlog.get_logger(logger_name=__name__)

_ARCHIVE_SUFFIXES = (".zip", ".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tar.xz")

_MAGIC_PREFIXES = (
    b"PK\x03\x04",  # zip
    b"\x1f\x8b",  # gzip
    b"BZh",  # bzip2
    b"\xfd7zXZ",  # xz
)
_TAR_MAGIC_OFFSET = 257


def is_archive(path: str | Path, mime_type: str | None = None) -> bool:
    """Detect an archive by extension, then declared MIME type, then magic bytes."""
    path = Path(path)
    name = path.name.lower()
    if name.endswith(_ARCHIVE_SUFFIXES):
        return True
    if mime_type is not None and media_types.is_archive_mime(mime_type):
        return True
    # Office files are zip containers; they are documents, not archives.
    if mime_type is not None and media_types.is_document_mime(mime_type):
        return False
    if mime_type in media_types.SPREADSHEET_TYPES:
        return False

    try:
        with open(path, "rb") as fh:
            head = fh.read(_TAR_MAGIC_OFFSET + 5)
    except OSError:
        return False
    if head.startswith(_MAGIC_PREFIXES):
        return True
    return head[_TAR_MAGIC_OFFSET : _TAR_MAGIC_OFFSET + 5] == b"ustar"


def _inside(root: Path, member_name: str) -> Path | None:
    target = (root / member_name).resolve()
    if target == root or root not in target.parents:
        return None
    return target


def extract_archive(archive_path: str | Path, dest: str | Path) -> list[tuple[str, Path]]:
    """Extract regular-file members of *archive_path* into *dest*.

    Returns
    -------
    list[tuple[str, Path]]
        ``(member name, extracted path)`` for every member written, sorted
        by member name.

    Raises
    ------
    OSError
        If the archive cannot be opened, is corrupt or is not a zip/tar file.
    """
    archive_path = Path(archive_path)
    root = Path(dest).resolve()
    extracted: list[tuple[str, Path]] = []

    try:
        if zipfile.is_zipfile(archive_path):
            with zipfile.ZipFile(archive_path) as zf:
                for info in zf.infolist():
                    if info.is_dir():
                        continue
                    target = _inside(root, info.filename)
                    if target is None:
                        logger.warning("archive_member_skipped", archive=str(archive_path), member=info.filename)
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(info) as src, open(target, "wb") as out:
                        while chunk := src.read(1 << 20):
                            out.write(chunk)
                    extracted.append((info.filename, target))
        else:
            with tarfile.open(archive_path, mode="r:*") as tf:
                for member in tf.getmembers():
                    if not member.isfile():
                        continue
                    target = _inside(root, member.name)
                    if target is None:
                        logger.warning("archive_member_skipped", archive=str(archive_path), member=member.name)
                        continue
                    src = tf.extractfile(member)
                    if src is None:
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with src, open(target, "wb") as out:
                        while chunk := src.read(1 << 20):
                            out.write(chunk)
                    extracted.append((member.name, target))
    except (zipfile.BadZipFile, tarfile.TarError) as exc:
        raise OSError(f"Cannot read archive {archive_path}: {exc}") from exc

    extracted.sort(key=lambda item: item[0])
    logger.info("archive_extracted", archive=str(archive_path), members=len(extracted))
    return extracted
