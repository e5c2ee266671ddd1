"""Media capabilities used by the capture adapters.

Camera, microphone, symbol decoding and image classification are provided by
the host (browser bridge, native shell, test fakes). Adapters only see these
abstract interfaces, and every stream they open goes through
``acquire_camera`` or ``acquire_microphone`` so it is stopped on every
exit path.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog

logger = structlog.get_logger()


class CaptureUnavailable(Exception):
    """A device or capability could not be acquired (permission denied, no hardware)."""


class MediaStream(ABC):
    """A live camera feed."""

    @abstractmethod
    async def read_frame(self) -> bytes:
        """Return the current frame as an encoded image."""

    @abstractmethod
    def stop(self) -> None:
        """Release the device. Must be idempotent."""

    @property
    @abstractmethod
    def active(self) -> bool:
        """True until ``stop()`` is called."""


class MediaDevices(ABC):
    @abstractmethod
    async def open_camera(self, facing: str = "environment", width: int = 640, height: int = 480) -> MediaStream:
        """Open a camera stream. Raises CaptureUnavailable when access is refused."""


class SymbolDecoder(ABC):
    """Decodes one symbology family (1-D barcodes, QR) from a frame."""

    @abstractmethod
    def decode(self, frame: bytes) -> str | None:
        """Return the decoded text, or None when no symbol is in the frame."""


class ImageClassifier(ABC):
    @abstractmethod
    async def classify(self, image: bytes) -> list[tuple[str, float]]:
        """Return (label, confidence) pairs for an encoded image."""


@dataclass(frozen=True)
class SpeechSegment:
    text: str
    is_final: bool


class SpeechRecognizer(ABC):
    """Continuous speech-to-text over the microphone."""

    @abstractmethod
    def is_supported(self) -> bool:
        pass

    @abstractmethod
    def listen(self) -> AsyncGenerator[SpeechSegment, None]:
        """Stream interim and final segments until the session ends."""

    @abstractmethod
    async def stop(self) -> None:
        """End the session and release the microphone. Must be idempotent."""


@asynccontextmanager
async def acquire_camera(
    devices: MediaDevices,
    facing: str = "environment",
    width: int = 640,
    height: int = 480,
) -> AsyncIterator[MediaStream]:
    """Open a camera stream for the duration of the block."""
    stream = await devices.open_camera(facing=facing, width=width, height=height)
    logger.debug("Camera acquired", facing=facing)
    try:
        yield stream
    finally:
        stream.stop()
        logger.debug("Camera released")


@asynccontextmanager
async def acquire_microphone(recognizer: SpeechRecognizer) -> AsyncIterator[AsyncGenerator[SpeechSegment, None]]:
    """Run a recognition session for the duration of the block."""
    segments = recognizer.listen()
    logger.debug("Microphone acquired")
    try:
        yield segments
    finally:
        await segments.aclose()
        await recognizer.stop()
        logger.debug("Microphone released")
