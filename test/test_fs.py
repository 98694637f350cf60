import gc
import gzip
import os
import time

import pytest

from clinvar_tsv.exceptions import ReadAheadError
from clinvar_tsv.fs import BinaryOpenMode, ReadAheadReader, fs_open


def _read_all(reader: ReadAheadReader, size: int) -> bytes:
    parts = []
    while chunk := reader.read(size):
        parts.append(chunk)
    return b"".join(parts)


@pytest.fixture
def random_bytes() -> bytes:
    return os.urandom(100_000)


@pytest.mark.parametrize(
    "buffer_size,queue_depth,read_size",
    [(16, 1, 7), (333, 2, 1000), (4096, 5, 100), (256 * 1024, 5, 64 * 1024)],
)
def test_read_ahead_content_matches_file(
    tmp_path, random_bytes, buffer_size, queue_depth, read_size
):
    path = tmp_path / "data.bin"
    path.write_bytes(random_bytes)
    with ReadAheadReader(
        str(path), buffer_size=buffer_size, queue_depth=queue_depth
    ) as reader:
        assert _read_all(reader, read_size) == random_bytes
        assert reader.tell() == len(random_bytes)
        # Stays at end of stream
        assert reader.read(10) == b""


def test_read_ahead_decompresses_gzip(tmp_path, random_bytes):
    path = tmp_path / "data.bin.gz"
    path.write_bytes(gzip.compress(random_bytes))
    with ReadAheadReader(str(path), buffer_size=1000, queue_depth=2) as reader:
        assert reader.read() == random_bytes


def test_read_ahead_does_not_decompress_other_names(tmp_path, random_bytes):
    compressed = gzip.compress(random_bytes)
    path = tmp_path / "data.bin"
    path.write_bytes(compressed)
    with ReadAheadReader(str(path)) as reader:
        assert reader.read() == compressed


def test_read_ahead_empty_file(tmp_path):
    path = tmp_path / "empty.xml"
    path.write_bytes(b"")
    with ReadAheadReader(str(path)) as reader:
        assert reader.read(100) == b""
        assert reader.read() == b""


def test_read_ahead_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        ReadAheadReader(str(tmp_path / "does-not-exist.xml.gz"))


@pytest.mark.parametrize("buffer_size,queue_depth", [(0, 5), (1024, 0)])
def test_read_ahead_rejects_bad_sizes(tmp_path, buffer_size, queue_depth):
    path = tmp_path / "data.bin"
    path.write_bytes(b"abc")
    with pytest.raises(ValueError):
        ReadAheadReader(str(path), buffer_size=buffer_size, queue_depth=queue_depth)


def test_read_ahead_backpressure(tmp_path):
    """
    With a consumer that stops reading, the producer must stop after filling
    the queue instead of reading the whole file.
    """
    data = os.urandom(1024 * 1024)
    path = tmp_path / "big.bin"
    path.write_bytes(data)
    buffer_size, queue_depth = 1024, 4

    with ReadAheadReader(
        str(path), buffer_size=buffer_size, queue_depth=queue_depth
    ) as reader:
        first = reader.read(1)
        time.sleep(0.5)
        # One buffer held by the consumer, queue_depth queued, one waiting on put()
        assert reader.bytes_produced <= buffer_size * (queue_depth + 2)
        assert reader._queue.qsize() <= queue_depth

        # A slow consumer still gets everything, in order
        rest = []
        while chunk := reader.read(50_000):
            rest.append(chunk)
            time.sleep(0.001)
        assert first + b"".join(rest) == data
        assert reader.bytes_produced == len(data)


def test_read_ahead_close_stops_producer(tmp_path):
    path = tmp_path / "big.bin"
    path.write_bytes(os.urandom(1024 * 1024))
    reader = ReadAheadReader(str(path), buffer_size=1024, queue_depth=2)
    assert len(reader.read(10)) == 10
    reader.close()
    assert not reader._thread.is_alive()
    assert reader.bytes_produced < 1024 * 1024
    assert reader.read(10) == b""


def test_read_ahead_truncated_gzip(tmp_path, random_bytes):
    path = tmp_path / "truncated.xml.gz"
    path.write_bytes(gzip.compress(random_bytes)[:-100])
    with ReadAheadReader(str(path), buffer_size=1000, queue_depth=2) as reader:
        delivered = []
        with pytest.raises(ReadAheadError) as exc_info:
            while chunk := reader.read(1000):
                delivered.append(chunk)
        # Everything delivered before the failure is valid content
        assert random_bytes.startswith(b"".join(delivered))
        assert exc_info.value.__cause__ is not None
        # The error is sticky
        with pytest.raises(ReadAheadError):
            reader.read(1)


def test_read_ahead_invalid_gzip(tmp_path):
    path = tmp_path / "not-gzip.xml.gz"
    path.write_bytes(b"<ReleaseSet/>")
    with ReadAheadReader(str(path)) as reader:
        with pytest.raises(ReadAheadError):
            reader.read()


def test_fs_open_makes_parents_and_gzips(tmp_path):
    path = str(tmp_path / "a" / "b" / "out.tsv.gz")
    with fs_open(path, mode=BinaryOpenMode.WRITE) as f:
        f.write(b"hello\n")
    with gzip.open(path, "rb") as f:
        assert f.read() == b"hello\n"


def test_read_ahead_dropped_reader_stops_producer(tmp_path):
    path = tmp_path / "big.bin"
    path.write_bytes(os.urandom(1024 * 1024))
    reader = ReadAheadReader(str(path), buffer_size=1024, queue_depth=2)
    assert len(reader.read(10)) == 10
    thread = reader._thread
    del reader
    gc.collect()
    thread.join(timeout=5)
    assert not thread.is_alive()
