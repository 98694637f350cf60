import gzip
import logging
import os
import queue
import threading
import weakref
from enum import StrEnum
from pathlib import PurePath

from clinvar_tsv.exceptions import ReadAheadError

_logger = logging.getLogger("clinvar_tsv")

GZIP_COMPRESSLEVEL = int(os.environ.get("GZIP_COMPRESSLEVEL", 9))

DEFAULT_BUFFER_SIZE = 256 * 1024
DEFAULT_QUEUE_DEPTH = 5

QUEUE_STOP_VALUE = None


class BinaryOpenMode(StrEnum):
    READ = "rb"
    WRITE = "wb"


def assert_mkdir(db_directory: str):
    if not os.path.exists(db_directory):
        os.mkdir(db_directory)
    elif not os.path.isdir(db_directory):
        raise OSError(f"Path exists but is not a directory!: {db_directory}")


def fs_open(
    filename: str, make_parents=True, mode: BinaryOpenMode = BinaryOpenMode.READ
):
    """
    Opens a file with path `filename`. If `filename` ends in .gz, opens as gzip.

    If `make_parents` is True, creates parent directories if they do not exist.
    """
    if make_parents:
        for parent in reversed(PurePath(filename).parents):
            assert_mkdir(parent)
    if filename.endswith(".gz"):
        if mode == BinaryOpenMode.WRITE:
            return gzip.open(filename, mode, compresslevel=GZIP_COMPRESSLEVEL)
        return gzip.open(filename, mode)
    return open(filename, mode=mode)  # pylint: disable=W1514


class _ProducerFailure:
    """Carries an exception from the producer thread to the consumer."""

    def __init__(self, exc: BaseException):
        self.exc = exc


class _Producer:
    """
    Background side of a ReadAheadReader. Holds no reference to the reader,
    so a reader dropped without close() can still be collected.
    """

    def __init__(self, source, chunks: queue.Queue, buffer_size: int):
        self.source = source
        self.chunks = chunks
        self.buffer_size = buffer_size
        self.stop = threading.Event()
        self.bytes_produced = 0

    def put(self, item) -> bool:
        """Blocking put that gives up once a stop has been requested."""
        while not self.stop.is_set():
            try:
                self.chunks.put(item, timeout=0.1)
                return True
            except queue.Full:
                continue
        return False

    def run(self):
        try:
            while not self.stop.is_set():
                chunk = self.source.read(self.buffer_size)
                if not chunk:
                    break
                self.bytes_produced += len(chunk)
                if not self.put(chunk):
                    return
            self.put(QUEUE_STOP_VALUE)
        except Exception as e:  # pylint: disable=W0718
            self.put(_ProducerFailure(e))
        finally:
            self.source.close()


class ReadAheadReader:
    """
    Binary file reader that decompresses and reads ahead on a background thread.

    A producer thread reads chunks of `buffer_size` bytes from `path` (gunzipping
    when the name ends in .gz) and puts them on a queue holding at most
    `queue_depth` chunks. `read()` consumes the chunks in order. The producer
    blocks while the queue is full, so at most `buffer_size * queue_depth`
    bytes wait in the queue however slow the consumer is.

    An error in the producer is raised from the first `read()` after the
    last chunk that was read successfully, as a ReadAheadError.

    Use as a context manager or call close(). A reader that is garbage
    collected without being closed stops its producer thread.
    """

    def __init__(
        self,
        path: str,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        queue_depth: int = DEFAULT_QUEUE_DEPTH,
    ):
        if buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")
        if queue_depth <= 0:
            raise ValueError(f"queue_depth must be positive, got {queue_depth}")
        self.path = path
        self.buffer_size = buffer_size
        self.queue_depth = queue_depth
        self._queue: queue.Queue = queue.Queue(maxsize=queue_depth)
        # Opened here so a missing or unreadable file fails before any thread starts
        self._producer = _Producer(
            fs_open(path, make_parents=False, mode=BinaryOpenMode.READ),
            self._queue,
            buffer_size,
        )
        self._current = b""
        self._pos = 0
        self._bytes_delivered = 0
        self._exhausted = False
        self._failure: ReadAheadError | None = None
        self._thread = threading.Thread(
            target=self._producer.run, name=f"read-ahead:{path}", daemon=True
        )
        self._finalizer = weakref.finalize(self, self._producer.stop.set)
        _logger.debug(
            f"Starting read-ahead for {path} "
            f"(buffer_size={buffer_size}, queue_depth={queue_depth})"
        )
        self._thread.start()

    @property
    def bytes_produced(self) -> int:
        """Number of bytes the producer has taken from the file so far."""
        return self._producer.bytes_produced

    def _next_chunk(self) -> bool:
        """
        Replaces the current buffer with the next one from the queue.
        Returns False at end of stream.
        """
        if self._failure is not None:
            raise self._failure
        if self._exhausted:
            return False
        item = self._queue.get()
        if item is QUEUE_STOP_VALUE:
            self._exhausted = True
            self._thread.join()
            return False
        if isinstance(item, _ProducerFailure):
            self._exhausted = True
            self._thread.join()
            self._failure = ReadAheadError(
                f"Failed reading {self.path} after {self._bytes_delivered} bytes: "
                f"{item.exc}"
            )
            self._failure.__cause__ = item.exc
            raise self._failure
        self._current = item
        self._pos = 0
        return True

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            parts = [self._current[self._pos :]]
            self._current, self._pos = b"", 0
            while self._next_chunk():
                parts.append(self._current)
                self._current = b""
            result = b"".join(parts)
            self._bytes_delivered += len(result)
            return result

        while self._pos >= len(self._current):
            if not self._next_chunk():
                return b""
        end = min(self._pos + size, len(self._current))
        result = self._current[self._pos : end]
        self._pos = end
        self._bytes_delivered += len(result)
        return result

    def tell(self) -> int:
        """Number of decompressed bytes delivered to the consumer so far."""
        return self._bytes_delivered

    def close(self):
        """Stops the producer and waits for it to exit."""
        self._finalizer()
        # Drain so a producer blocked on put() observes the stop
        while self._thread.is_alive():
            try:
                self._queue.get(timeout=0.1)
            except queue.Empty:
                pass
        self._thread.join()
        self._exhausted = True
        self._current = b""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

