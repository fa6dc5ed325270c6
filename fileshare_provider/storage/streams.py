"""
Upload and download streams.

Streams report progress through events (``error``, ``finish``, ``success``,
``end``) so the host can attach listeners to whatever a provider returns.
A request rejected before it reached the service still returns a stream of
the same class; ``stream_error`` makes it emit its single ``error`` event on
the next loop iteration, after the caller had a chance to subscribe.
"""

import asyncio
import logging
import tempfile
import weakref
from collections import defaultdict
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from fileshare_provider.common.metrics import (
    active_streams,
    bytes_transferred_total,
    metrics_enabled,
    stream_errors_total,
)
from fileshare_provider.config.settings import get_settings
from fileshare_provider.storage.adapter import StorageError
from fileshare_provider.storage.completion import Completion, track_task
from fileshare_provider.storage.models import File

logger = logging.getLogger(__name__)


def _release_spool(buffer, direction: str) -> None:
    if buffer.closed:
        return
    buffer.close()
    if metrics_enabled():
        active_streams.labels(direction=direction).dec()


class EventEmitter:
    """Minimal synchronous event emitter."""

    def __init__(self):
        self._listeners: Dict[str, List[List[Any]]] = defaultdict(list)

    def on(self, event: str, listener: Callable) -> "EventEmitter":
        self._listeners[event].append([listener, False])
        return self

    def once(self, event: str, listener: Callable) -> "EventEmitter":
        self._listeners[event].append([listener, True])
        return self

    def off(self, event: str, listener: Callable) -> "EventEmitter":
        self._listeners[event] = [
            entry for entry in self._listeners[event] if entry[0] is not listener
        ]
        return self

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def emit(self, event: str, *args) -> bool:
        """Call every listener for ``event``; return False if there were none."""
        entries = list(self._listeners.get(event, ()))
        if not entries:
            return False
        self._listeners[event] = [entry for entry in entries if not entry[1]]
        for listener, _ in entries:
            listener(*args)
        return True


class _Stream(EventEmitter):
    direction = ""

    def __init__(self, callback: Optional[Callable] = None):
        super().__init__()
        self._callback = callback
        self.error: Optional[BaseException] = None
        self._error_emitted = False

    @property
    def failed(self) -> bool:
        return self.error is not None

    def _fail(self, error: BaseException) -> None:
        if self.error is None:
            self.error = error
        self._emit_error()

    def _emit_error(self) -> None:
        if self._error_emitted:
            return
        self._error_emitted = True

        if metrics_enabled():
            stream_errors_total.labels(direction=self.direction).inc()
        if not self.emit("error", self.error):
            logger.warning("Unhandled %s stream error: %s", self.direction, self.error)
        if self._callback is not None:
            Completion(self._callback)(None, self.error)


class UploadStream(_Stream):
    """
    Writable stream to a new file on the share.

    Bytes are spooled locally (in memory up to ``upload_spool_max_bytes``,
    then on disk) and sent when the stream ends.
    """

    direction = "upload"

    def __init__(self, file_client: Any = None, container: Optional[str] = None,
                 name: Optional[str] = None, callback: Optional[Callable] = None,
                 client: Any = None, spool_max_bytes: Optional[int] = None):
        super().__init__(callback)
        self.file_client = file_client
        self.container = container
        self.name = name
        self.client = client
        self.ended = False
        self.result: Optional[File] = None
        self._task: Optional[asyncio.Task] = None
        self._buffer = None
        self._finalizer = None
        if file_client is not None:
            if spool_max_bytes is None:
                spool_max_bytes = get_settings().upload_spool_max_bytes
            self._buffer = tempfile.SpooledTemporaryFile(max_size=spool_max_bytes)
            if metrics_enabled():
                active_streams.labels(direction=self.direction).inc()
            # Runs on release, or when a stream is dropped without end()
            self._finalizer = weakref.finalize(
                self, _release_spool, self._buffer, self.direction)

    def write(self, data) -> bool:
        """Buffer ``data``; returns False if the stream has failed."""
        if self.failed or self._buffer is None:
            return False
        if self.ended:
            raise ValueError("write after end")
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._buffer.write(data)
        return True

    def end(self, data=None) -> None:
        """Finish writing and start the upload."""
        if self.ended or self.failed or self._buffer is None:
            return
        if data is not None:
            self.write(data)
        self.ended = True
        self._task = track_task(asyncio.get_running_loop().create_task(self._flush()))

    async def _flush(self) -> None:
        size = self._buffer.tell()
        self._buffer.seek(0)
        try:
            response = await self.file_client.upload_file(self._buffer, length=size)
        except Exception as exc:
            self._fail(exc)
            return
        finally:
            self._release()

        if metrics_enabled():
            bytes_transferred_total.labels(direction=self.direction).inc(size)
        self.result = File(self.client, {
            "name": self.name,
            "container": self.container,
            "size": size,
            "last_modified": response.get("last_modified"),
            "etag": response.get("etag"),
        })
        logger.debug("Uploaded %s/%s (%d bytes)", self.container, self.name, size)

        self.emit("finish")
        self.emit("success", self.result)

    def _release(self) -> None:
        if self._finalizer is not None:
            self._finalizer()

    async def close(self) -> Optional[File]:
        """End the stream and wait for the upload; raises its error."""
        self.end()
        if self._task is not None:
            await asyncio.shield(self._task)
        if self.error is not None:
            raise self.error
        return self.result

    async def __aenter__(self) -> "UploadStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            # Nothing is sent for an aborted write
            if not self.ended:
                self.ended = True
                self._release()
            return False
        await self.close()
        return False


class DownloadStream(_Stream):
    """
    Readable stream over a file on the share.

    The file is opened on the next loop iteration; consume it with
    ``async for chunk in stream``, ``await stream.read()`` or
    ``await stream.pipe(upload_stream)``.
    """

    direction = "download"

    def __init__(self, file_client: Any = None, callback: Optional[Callable] = None):
        super().__init__(callback)
        self.file_client = file_client
        self.ended = False
        self._opened: Optional[asyncio.Task] = None
        if file_client is not None:
            self._opened = track_task(
                asyncio.get_running_loop().create_task(self._open()))

    async def _open(self):
        try:
            return await self.file_client.download_file()
        except Exception as exc:
            self._fail(exc)
            return None

    async def chunks(self) -> AsyncIterator[bytes]:
        if self._opened is None and self.error is None:
            raise StorageError("Stream has no source")
        downloader = await self._opened if self._opened is not None else None
        if downloader is None:
            raise self.error

        if metrics_enabled():
            active_streams.labels(direction=self.direction).inc()
        try:
            async for chunk in downloader.chunks():
                if metrics_enabled():
                    bytes_transferred_total.labels(direction=self.direction).inc(len(chunk))
                yield chunk
        except Exception as exc:
            self._fail(exc)
            raise
        finally:
            if metrics_enabled():
                active_streams.labels(direction=self.direction).dec()

        self.ended = True
        self.emit("end")

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.chunks()

    async def read(self) -> bytes:
        """Read the whole file."""
        return b"".join([chunk async for chunk in self.chunks()])

    async def pipe(self, destination: UploadStream) -> Optional[File]:
        """Copy this stream into ``destination`` and wait for it to finish."""
        async for chunk in self.chunks():
            destination.write(chunk)
        return await destination.close()


def stream_error(stream: _Stream, error: BaseException,
                 callback: Optional[Callable] = None) -> _Stream:
    """
    Fail ``stream`` with ``error`` on the next loop iteration.

    The ``error`` event is emitted, then ``callback(None, error)`` is called
    if given. The stream is returned immediately.
    """
    stream.error = error
    if callback is not None:
        stream._callback = callback
    asyncio.get_running_loop().call_soon(stream._emit_error)
    return stream


def write_stream_error(error: BaseException, callback: Optional[Callable] = None) -> UploadStream:
    return stream_error(UploadStream(), error, callback)


def read_stream_error(error: BaseException, callback: Optional[Callable] = None) -> DownloadStream:
    return stream_error(DownloadStream(), error, callback)
