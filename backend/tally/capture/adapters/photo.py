"""Photo capture: one frame on demand, classified into ranked suggestions."""

import asyncio
from collections.abc import AsyncIterator

from tally.capture.adapters.base import CaptureAdapter
from tally.capture.events import Candidate, Candidates, CaptureEvent, CaptureMethod, Failed, Progress
from tally.capture.media import CaptureUnavailable, ImageClassifier, MediaDevices, acquire_camera
from tally.services.vision import classify_photo


class PhotoCaptureAdapter(CaptureAdapter):
    method = CaptureMethod.PHOTO

    def __init__(self, devices: MediaDevices, classifier: ImageClassifier | None, limit: int = 3) -> None:
        super().__init__()
        self.devices = devices
        self.classifier = classifier
        self.limit = limit
        self._shutter = asyncio.Event()

    def trigger(self) -> None:
        """The user pressed "Scan Object"."""
        self._shutter.set()

    async def cancel(self) -> None:
        await super().cancel()
        self._shutter.set()

    async def start(self) -> AsyncIterator[CaptureEvent]:
        try:
            async with acquire_camera(self.devices) as stream:
                self._stream = stream
                yield Progress("ready")
                await self._shutter.wait()
                if self.cancelled:
                    return
                frame = await stream.read_frame()
        except CaptureUnavailable as e:
            yield Failed("camera_unavailable", str(e) or "Unable to access camera")
            return
        finally:
            self._stream = None

        yield Progress("analyzing")
        analysis = await classify_photo(self.classifier, frame, self.limit)
        yield Candidates(
            options=tuple(Candidate(d.to_prefill(), d) for d in analysis.detections),
            fallback=analysis.fallback,
        )
