"""
archive.py — read a single entry out of a package zip and fingerprint it.

The zip central directory is scanned in full, so entry order inside the
archive does not matter, and only the requested entry is decompressed.
"""

import hashlib
import io
import logging
import zipfile
import zlib

from .errors import CorruptArchive

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "package.json"

# package.json is small; anything larger is not a manifest we want
MAX_ENTRY_SIZE = 4 * 1024 * 1024

# General purpose flag bit 0: entry is encrypted
_FLAG_ENCRYPTED = 0x1


def _normalize_name(name):
    name = name.replace("\\", "/")
    while name.startswith("./"):
        name = name[2:]
    return name


def extract_entry(archive_bytes, entry_name=MANIFEST_FILENAME):
    """Return the decompressed bytes of one archive entry.

    Args:
        archive_bytes: Raw zip bytes exactly as downloaded.
        entry_name: Path of the entry inside the archive.

    Returns:
        Entry bytes, or None when the archive has no such entry.

    Raises:
        CorruptArchive: The container cannot be opened or the entry
            cannot be decompressed.
    """
    wanted = _normalize_name(entry_name)
    try:
        with zipfile.ZipFile(io.BytesIO(archive_bytes)) as zf:
            info = None
            for candidate in zf.infolist():
                if candidate.is_dir():
                    continue
                if _normalize_name(candidate.filename) == wanted:
                    info = candidate
                    break
            if info is None:
                return None
            if info.file_size > MAX_ENTRY_SIZE:
                raise CorruptArchive(
                    f"Entry {entry_name} is too large ({info.file_size} bytes)")
            if info.flag_bits & _FLAG_ENCRYPTED:
                raise CorruptArchive(f"Entry {entry_name} is encrypted")
            with zf.open(info) as stream:
                return stream.read()
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error,
            EOFError, NotImplementedError, RuntimeError, ValueError) as e:
        raise CorruptArchive(f"Cannot read archive: {e}") from e


def fingerprint(data):
    """SHA-256 hex digest of the raw archive bytes."""
    return hashlib.sha256(data).hexdigest()
