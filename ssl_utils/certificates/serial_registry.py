# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Persistent certificate serial number registry.

File layout:

    1A2B3C              <- next serial, upper-case hex (openssl -CAserial compatible)
    1A2B3A\t2026-01-01T00:00:00+00:00\tCN=first
    1A2B3B\t2026-01-02T00:00:00+00:00\tCN=second

Allocation is read, increment, write under an exclusive flock on a
`<registry>.lock` sidecar file, so concurrent issuers in different threads
or processes never receive the same serial. The new content is written to
a temp file and renamed into place. The file is UTF-8; only the subjects
in the history lines can hold non-ASCII text.
"""

import fcntl
import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Union

from cryptography import x509

from ..config import settings
from ..exceptions import FileAccessError, RegistryIOError, SerialExhaustionError
from ..fileio import atomic_write

logger = logging.getLogger(__name__)

# RFC 5280: serials are positive and at most 20 octets
MAX_SERIAL = 2 ** 159

_LOCK_POLL_INTERVAL = 0.01


@dataclass(frozen=True)
class IssuedSerial:
    """One history line of the registry."""

    serial: int
    issued_at: datetime
    subject: str


class SerialRegistry:
    """
    Serial number allocator backed by a text file.

    Example:
        >>> registry = SerialRegistry("ca.srl")
        >>> registry.allocate(subject="CN=example.com")
        8242153091740351834
    """

    def __init__(
        self,
        path: Union[str, Path],
        create: bool = True,
        lock_timeout: Optional[float] = None,
    ):
        """
        Args:
            path: Registry file
            create: Start a new registry (random first serial) if the file is missing
            lock_timeout: Seconds to wait for the lock (default: settings.registry_lock_timeout)
        """
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.create = create
        self.lock_timeout = settings.registry_lock_timeout if lock_timeout is None else lock_timeout

    def allocate(self, subject: str = "") -> int:
        """
        Reserve the next serial number and record it in the history.

        Raises:
            SerialExhaustionError: Registry content is corrupt or out of serials
            RegistryIOError: Registry or lock file cannot be read or written
        """
        with self._locked():
            next_serial, history = self._read()
            if next_serial >= MAX_SERIAL:
                raise SerialExhaustionError(f"{self.path}: serial space exhausted")

            issued = IssuedSerial(next_serial, datetime.now(timezone.utc).replace(microsecond=0), subject)
            self._write(next_serial + 1, [*history, issued])

        logger.info(f"Allocated serial {next_serial:X} from {self.path}" + (f" for {subject}" if subject else ""))
        return next_serial

    def peek_next(self) -> int:
        """Return the serial the next allocate() call would hand out."""
        with self._locked():
            next_serial, _ = self._read()
        return next_serial

    def issued(self) -> list[IssuedSerial]:
        """Return the allocation history, oldest first."""
        with self._locked():
            _, history = self._read()
        return history

    @contextmanager
    def _locked(self) -> Iterator[None]:
        # flock locks belong to the open file description, so each call
        # opens its own descriptor and threads of one process exclude each other too
        try:
            fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise RegistryIOError(self.lock_path, f"Cannot open lock file: {e.strerror or e}")
        try:
            deadline = time.monotonic() + self.lock_timeout
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise RegistryIOError(
                            self.lock_path,
                            f"Timed out after {self.lock_timeout}s waiting for registry lock",
                        )
                    time.sleep(_LOCK_POLL_INTERVAL)
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    def _read(self) -> tuple[int, list[IssuedSerial]]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            if not self.create:
                raise RegistryIOError(self.path, "Serial registry does not exist")
            first = x509.random_serial_number()
            logger.info(f"Starting new serial registry {self.path} at {first:X}")
            return first, []
        except UnicodeDecodeError:
            raise SerialExhaustionError(f"{self.path}: registry is not UTF-8 text")
        except OSError as e:
            raise RegistryIOError(self.path, f"Cannot read registry: {e.strerror or e}")

        lines = [line for line in text.splitlines() if line.strip()]
        if not lines:
            raise SerialExhaustionError(f"{self.path}: registry is empty")

        next_serial = _parse_serial(lines[0].strip(), self.path, 1)
        history = []
        seen = set()
        for number, line in enumerate(lines[1:], start=2):
            fields = line.split("\t")
            serial = _parse_serial(fields[0].strip(), self.path, number)
            if serial in seen:
                raise SerialExhaustionError(f"{self.path}:{number}: serial {serial:X} recorded twice")
            if serial >= next_serial:
                raise SerialExhaustionError(
                    f"{self.path}:{number}: issued serial {serial:X} is not below next serial {next_serial:X}"
                )
            seen.add(serial)
            issued_at = _parse_timestamp(fields[1] if len(fields) > 1 else "", self.path, number)
            history.append(IssuedSerial(serial, issued_at, fields[2] if len(fields) > 2 else ""))
        return next_serial, history

    def _write(self, next_serial: int, history: list[IssuedSerial]) -> None:
        lines = [format_serial(next_serial)]
        for entry in history:
            subject = entry.subject.replace("\t", " ").replace("\n", " ")
            lines.append(f"{format_serial(entry.serial)}\t{entry.issued_at.isoformat()}\t{subject}")
        try:
            atomic_write(self.path, ("\n".join(lines) + "\n").encode("utf-8"))
        except FileAccessError as e:
            raise RegistryIOError(self.path, str(e))


def format_serial(serial: int) -> str:
    """Upper-case hex with an even number of digits, as openssl writes it."""
    text = f"{serial:X}"
    return text if len(text) % 2 == 0 else "0" + text


def _parse_serial(text: str, path: Path, line: int) -> int:
    try:
        serial = int(text, 16)
    except ValueError:
        raise SerialExhaustionError(f"{path}:{line}: invalid serial {text!r}")
    if serial <= 0:
        raise SerialExhaustionError(f"{path}:{line}: serial must be positive")
    return serial


def _parse_timestamp(text: str, path: Path, line: int) -> datetime:
    try:
        return datetime.fromisoformat(text.strip())
    except ValueError:
        raise SerialExhaustionError(f"{path}:{line}: invalid timestamp {text!r}")
