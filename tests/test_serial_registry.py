# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Unit tests for the persistent serial number registry.

Tests:
- Sequential allocation and history
- Corrupt registry detection
- Exclusive allocation across threads and processes
"""

import fcntl
import multiprocessing
import os
from concurrent.futures import ThreadPoolExecutor

import pytest

from ssl_utils.certificates import SerialRegistry, format_serial
from ssl_utils.exceptions import RegistryIOError, SerialExhaustionError


def _allocate_many(path, count, queue):
    registry = SerialRegistry(path)
    queue.put([registry.allocate() for _ in range(count)])


class TestAllocation:
    """Test serial allocation."""

    def test_new_registry_starts_random(self, tmp_path):
        """Test that a missing registry is created on first use."""
        registry = SerialRegistry(tmp_path / "ca.srl")

        serial = registry.allocate(subject="CN=first")

        assert serial > 0
        assert registry.peek_next() == serial + 1
        assert registry.path.read_text().splitlines()[0] == format_serial(serial + 1)

    def test_sequential(self, tmp_path):
        """Test that serials increase by one and are recorded."""
        path = tmp_path / "ca.srl"
        path.write_text("1000\n")
        registry = SerialRegistry(path)

        serials = [registry.allocate(subject=f"CN=host{i}") for i in range(3)]

        assert serials == [0x1000, 0x1001, 0x1002]
        assert [entry.subject for entry in registry.issued()] == ["CN=host0", "CN=host1", "CN=host2"]
        assert registry.peek_next() == 0x1003

    def test_history_survives_reopen(self, tmp_path):
        """Test that a second registry object sees earlier allocations."""
        path = tmp_path / "ca.srl"
        path.write_text("01\n")
        SerialRegistry(path).allocate(subject="CN=one")

        issued = SerialRegistry(path).issued()

        assert [(entry.serial, entry.subject) for entry in issued] == [(1, "CN=one")]
        assert issued[0].issued_at.tzinfo is not None

    def test_non_ascii_subject_is_kept(self, tmp_path):
        """Test that subjects outside ASCII survive a round trip through the file."""
        path = tmp_path / "ca.srl"
        path.write_text("01\n")
        SerialRegistry(path).allocate(subject="CN=Müller,O=Bücher GmbH")

        assert SerialRegistry(path).issued()[0].subject == "CN=Müller,O=Bücher GmbH"
        assert "CN=Müller" in path.read_text(encoding="utf-8")
        assert path.read_text(encoding="utf-8").splitlines()[0] == "02"

    def test_missing_registry_without_create(self, tmp_path):
        """Test that create=False requires an existing file."""
        registry = SerialRegistry(tmp_path / "ca.srl", create=False)

        with pytest.raises(RegistryIOError):
            registry.allocate()

    def test_format_serial(self):
        """Test even-length upper-case hex."""
        assert format_serial(0xABC) == "0ABC"
        assert format_serial(0x1234) == "1234"


class TestCorruptRegistry:
    """Test that corrupt content never yields a serial."""

    @pytest.mark.parametrize("content", [
        "",
        "\n\n",
        "not-hex\n",
        "0\n",
        "-5\n",
        "10\n05\tnot-a-date\tCN=x\n",
        "10\n05\t2026-01-01T00:00:00+00:00\tCN=x\n05\t2026-01-01T00:00:00+00:00\tCN=y\n",
        "10\n20\t2026-01-01T00:00:00+00:00\tCN=x\n",
    ])
    def test_corrupt_content(self, tmp_path, content):
        """Test each kind of corruption."""
        path = tmp_path / "ca.srl"
        path.write_text(content)

        with pytest.raises(SerialExhaustionError):
            SerialRegistry(path).allocate()

        assert path.read_text() == content

    def test_non_ascii(self, tmp_path):
        """Test that binary content is corrupt."""
        path = tmp_path / "ca.srl"
        path.write_bytes(b"\xff\xfe\n")

        with pytest.raises(SerialExhaustionError):
            SerialRegistry(path).allocate()


class TestConcurrency:
    """Test exclusive allocation."""

    def test_threads_get_distinct_serials(self, tmp_path):
        """Test concurrent allocation from many threads."""
        path = tmp_path / "ca.srl"
        path.write_text("01\n")

        with ThreadPoolExecutor(max_workers=8) as executor:
            serials = list(executor.map(lambda _: SerialRegistry(path).allocate(), range(40)))

        assert sorted(serials) == list(range(1, 41))
        assert SerialRegistry(path).peek_next() == 41

    def test_processes_get_distinct_serials(self, tmp_path):
        """Test concurrent allocation from several processes."""
        path = tmp_path / "ca.srl"
        path.write_text("01\n")
        context = multiprocessing.get_context("fork")
        queue = context.Queue()

        workers = [context.Process(target=_allocate_many, args=(str(path), 10, queue)) for _ in range(4)]
        for worker in workers:
            worker.start()
        serials = [serial for _ in workers for serial in queue.get(timeout=60)]
        for worker in workers:
            worker.join(timeout=60)

        assert sorted(serials) == list(range(1, 41))

    def test_lock_timeout(self, tmp_path):
        """Test that a held lock makes allocation fail after the timeout."""
        registry = SerialRegistry(tmp_path / "ca.srl", lock_timeout=0.1)
        fd = os.open(registry.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            with pytest.raises(RegistryIOError, match="Timed out"):
                registry.allocate()
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

        assert not registry.path.exists()
