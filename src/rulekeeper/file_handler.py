"""File handler module: encoding-aware reads and the filesystem primitives
used to materialise rules in a project.

All functions are synchronous and raise ``OSError`` subclasses on failure;
the sync engine turns those into per-rule failures.
"""

import logging
import shutil
from pathlib import Path

from charset_normalizer import from_bytes

logger = logging.getLogger(__name__)

# =============================================================================
# Directories
# =============================================================================


def ensure_dir(path: Path) -> Path:
    """Create *path* (and parents) if missing and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, fall back to utf-8
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # Normalize ascii to utf-8 (ascii is a strict subset of utf-8)
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def read_text(path: Path) -> str:
    """Return the decoded content of *path*."""
    content, _ = read_file_with_encoding(path)
    return content


def copy_file(source: Path, dest: Path) -> None:
    """Copy *source* to *dest* byte for byte, creating parent directories.

    Raises:
        FileNotFoundError: If *source* does not exist.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, dest)
    logger.debug("Copied %s -> %s", source, dest)


def delete_file(path: Path) -> bool:
    """Delete *path* if it exists.

    Returns:
        ``True`` if a file was removed, ``False`` if there was nothing to
        delete.
    """
    if not path.exists():
        return False
    path.unlink()
    logger.debug("Deleted %s", path)
    return True


# =============================================================================
# Listing
# =============================================================================


def list_files(directory: Path, extension: str | None = None) -> list[str]:
    """Return the names of regular files directly inside *directory*.

    Args:
        directory: Directory to scan (not recursive).
        extension: Optional suffix filter such as ``".md"``.

    Returns:
        Sorted file names; empty when *directory* does not exist.
    """
    if not directory.is_dir():
        return []

    names = [p.name for p in directory.iterdir() if p.is_file()]
    if extension:
        names = [n for n in names if n.endswith(extension)]
    return sorted(names)
