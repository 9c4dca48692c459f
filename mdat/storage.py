"""
Buffer allocation and atomic persistence of encoded .mdat files.

The target path is only ever replaced by a fully written file: data goes to
a temporary file in the same directory, is flushed to disk, then renamed
over the target.
"""

import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Optional, Union

from mdat.errors import storage_failure

logger = logging.getLogger(__name__)

MDAT_SUFFIX = ".mdat"


def allocate(size: int) -> bytearray:
    """Allocate a zero-filled buffer of exactly ``size`` bytes."""
    if size < 0:
        raise ValueError(f"Buffer size must be non-negative, got {size}")
    return bytearray(size)


def _file_mode(path: Path) -> int:
    """Mode for the committed file: the existing target's, else 0666 minus umask."""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def commit(data: Union[bytes, bytearray], path: Union[str, Path]) -> Path:
    """
    Write a complete buffer to ``path``.

    The file gets the mode a plain write would give it, or keeps the mode
    of the file it replaces.

    Args:
        data: Encoded file contents
        path: Output file path

    Returns:
        Path to the written file

    Raises:
        StorageFailure: If the directory or file cannot be written. The
            original OSError is chained.
    """
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
        try:
            f = os.fdopen(fd, "wb")
        except OSError:
            os.close(fd)
            raise
        with f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, _file_mode(path))
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise storage_failure(path, e) from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)

    logger.info("Wrote %s (%d bytes)", path, len(data))
    return path


def write_mdat(path: Union[str, Path], document, magic: Optional[str] = None) -> Path:
    """
    Encode a document and commit it to ``path``.

    Args:
        path: Output file path (conventionally ending in .mdat)
        document: Document to encode
        magic: Optional override of the header format tag

    Returns:
        Path to the written file

    Example:
        >>> write_mdat("level1.mdat", load_tmx("level1.tmx"))
    """
    from mdat.encoder import MAGIC, encode_map

    data = encode_map(document, magic if magic is not None else MAGIC)
    return commit(data, path)
