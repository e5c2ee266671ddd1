"""Capture adapter contract."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

import structlog

from tally.capture.events import CaptureEvent, CaptureMethod
from tally.capture.media import MediaStream, SymbolDecoder

logger = structlog.get_logger()


class CaptureAdapter(ABC):
    """Wraps one capture capability behind ``start()`` / ``cancel()``.

    ``start()`` returns an async stream of events ending with at most one
    ``Candidates``, ``Failed`` or ``Unsupported``. Media acquired by the
    adapter is released when the stream finishes, is closed, or is cancelled.
    """

    method: CaptureMethod

    def __init__(self) -> None:
        self._cancelled = asyncio.Event()
        self._stream: MediaStream | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @abstractmethod
    def start(self) -> AsyncIterator[CaptureEvent]:
        pass

    async def cancel(self) -> None:
        self._cancelled.set()
        if self._stream is not None:
            self._stream.stop()
            self._stream = None
        logger.debug("Capture adapter cancelled", method=self.method.value)


class ScanningAdapter(CaptureAdapter):
    """Adapter that polls camera frames through a symbol decoder."""

    def __init__(self, decoder: SymbolDecoder, scan_timeout: float, frame_interval: float = 0.1) -> None:
        super().__init__()
        self.decoder = decoder
        self.scan_timeout = scan_timeout
        self.frame_interval = frame_interval

    async def _scan(self, stream: MediaStream) -> str | None:
        """Decode frames until a symbol is found. None on timeout or cancel."""
        try:
            return await asyncio.wait_for(self._decode_loop(stream), self.scan_timeout)
        except asyncio.TimeoutError:
            logger.info("Scan timed out", method=self.method.value, timeout=self.scan_timeout)
            return None

    async def _decode_loop(self, stream: MediaStream) -> str | None:
        while not self.cancelled and stream.active:
            frame = await stream.read_frame()
            text = await asyncio.to_thread(self.decoder.decode, frame)
            if text:
                return text
            await asyncio.sleep(self.frame_interval)
        return None
