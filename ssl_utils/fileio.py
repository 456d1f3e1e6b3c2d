# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
File helpers shared by the command surface and the serial registry.

Outputs are written to a temporary file in the destination directory and
renamed into place, so a failed operation never leaves a partial file.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from .exceptions import FileAccessError

logger = logging.getLogger(__name__)


def read_bytes(path: Union[str, Path]) -> bytes:
    """
    Read an input file.

    Raises:
        FileAccessError: If the file is missing or unreadable (path included)
    """
    path = Path(path)
    try:
        return path.read_bytes()
    except FileNotFoundError:
        raise FileAccessError(path, "No such file")
    except IsADirectoryError:
        raise FileAccessError(path, "Is a directory")
    except OSError as e:
        raise FileAccessError(path, f"Cannot read file: {e.strerror or e}")


def atomic_write(path: Union[str, Path], data: bytes, mode: Optional[int] = None) -> Path:
    """
    Write bytes to path via temp file + rename.

    Args:
        path: Destination file
        data: Content to write
        mode: Optional permission bits applied before the rename

    Returns:
        The destination path

    Raises:
        FileAccessError: If the destination directory is missing or unwritable
    """
    path = Path(path)
    directory = path.parent if str(path.parent) else Path(".")

    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)
    except OSError as e:
        raise FileAccessError(path, f"Cannot create output file: {e.strerror or e}")

    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except OSError as e:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise FileAccessError(path, f"Cannot write output file: {e.strerror or e}")

    logger.info(f"Wrote {len(data)} bytes to {path}")
    return path
