"""Output targets for rendered batches: byte streams, files and callbacks."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Any, BinaryIO, Callable

from dynamo_export.exceptions import SinkConfigurationError, SinkError
from dynamo_export.logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_HIGH_WATER_MARK = 1024 * 1024


def sha256_file(path: Path) -> str:
    """Calculate SHA256 hash of a file."""
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def ensure_dir(path: Path) -> None:
    """Create directory if it doesn't exist."""
    path.mkdir(parents=True, exist_ok=True)


class Sink:
    """Delivers rendered payloads and reports when the consumer is behind."""

    accepts_records = False

    def deliver(self, payload: Any) -> int:
        """Deliver one payload; returns the number of bytes written (0 for callbacks)."""
        raise NotImplementedError

    @property
    def needs_drain(self) -> bool:
        return False

    def drain(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> "Sink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class StreamSink(Sink):
    """Writes UTF-8 bytes to a caller-owned binary stream.

    Bytes written since the last flush are counted; once they reach
    ``high_water_mark`` the sink reports ``needs_drain`` and the engine
    flushes it before fetching the next page.
    """

    def __init__(self, stream: BinaryIO, high_water_mark: int = DEFAULT_HIGH_WATER_MARK, fsync: bool = False):
        if stream is None:
            raise SinkConfigurationError("StreamSink requires a writable stream")
        if high_water_mark < 1:
            raise SinkConfigurationError(f"high_water_mark must be positive, got {high_water_mark}")
        self.stream = stream
        self.high_water_mark = high_water_mark
        self.fsync = fsync
        self.pending_bytes = 0

    def deliver(self, payload: Any) -> int:
        if isinstance(payload, str):
            data = payload.encode("utf-8")
        elif isinstance(payload, (bytes, bytearray)):
            data = bytes(payload)
        else:
            raise SinkError(f"Byte sinks cannot deliver {type(payload).__name__} payloads")

        if not data:
            return 0
        try:
            self.stream.write(data)
        except (OSError, ValueError) as e:
            raise SinkError(f"Failed to write to output stream: {e}") from e

        self.pending_bytes += len(data)
        return len(data)

    @property
    def needs_drain(self) -> bool:
        return self.pending_bytes >= self.high_water_mark

    def drain(self) -> None:
        try:
            self.stream.flush()
            if self.fsync:
                os.fsync(self.stream.fileno())
        except (OSError, ValueError) as e:
            raise SinkError(f"Failed to flush output stream: {e}") from e
        logger.debug("Output stream drained", extra={"bytes_flushed": self.pending_bytes})
        self.pending_bytes = 0

    def close(self) -> None:
        if self.pending_bytes:
            self.drain()


class FileSink(StreamSink):
    """Appends to a file on disk, creating parent directories as needed."""

    def __init__(self, path: Path | str, high_water_mark: int = DEFAULT_HIGH_WATER_MARK, fsync: bool = False):
        self.path = Path(path)
        try:
            ensure_dir(self.path.parent)
            stream = self.path.open("ab")
        except OSError as e:
            raise SinkError(f"Failed to open output file: {e}", details={"path": str(self.path)}) from e
        super().__init__(stream, high_water_mark=high_water_mark, fsync=fsync)

    def close(self) -> None:
        if self.stream.closed:
            return
        try:
            super().close()
        finally:
            self.stream.close()

    def file_metadata(self) -> dict:
        size = self.path.stat().st_size
        return {
            "path": str(self.path),
            "size_bytes": size,
            "size_mb": round(size / (1024 * 1024), 2),
            "sha256": sha256_file(self.path),
        }


class CallbackSink(Sink):
    """Pushes each payload to a callback, synchronously."""

    accepts_records = True

    def __init__(self, callback: Callable[[Any], Any]):
        if not callable(callback):
            raise SinkConfigurationError("CallbackSink requires a callable")
        self.callback = callback

    def deliver(self, payload: Any) -> int:
        try:
            self.callback(payload)
        except Exception as e:
            raise SinkError(f"Output callback failed: {e}", details={"error_type": type(e).__name__}) from e
        return 0


def create_sink(
    path: Path | str | None = None,
    stream: BinaryIO | None = None,
    callback: Callable[[Any], Any] | None = None,
    high_water_mark: int = DEFAULT_HIGH_WATER_MARK,
) -> Sink:
    """Build the one sink a run writes to. Exactly one target must be given."""
    targets = {"path": path, "stream": stream, "callback": callback}
    configured = [name for name, value in targets.items() if value is not None]

    if not configured:
        raise SinkConfigurationError("No output target configured: pass a path, a stream or a callback")
    if len(configured) > 1:
        raise SinkConfigurationError(
            "Exactly one output target may be configured",
            details={"configured": configured},
        )

    if path is not None:
        return FileSink(path, high_water_mark=high_water_mark)
    if stream is not None:
        return StreamSink(stream, high_water_mark=high_water_mark)
    return CallbackSink(callback)
