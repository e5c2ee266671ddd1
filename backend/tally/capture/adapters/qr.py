"""QR scan: decode a symbol and read it as a Tally payload or as raw text."""

from collections.abc import AsyncIterator

from tally.capture.adapters.base import ScanningAdapter
from tally.capture.events import Candidate, Candidates, CaptureEvent, CaptureMethod, Failed, Progress
from tally.capture.heuristics import parse_qr_text
from tally.capture.media import CaptureUnavailable, MediaDevices, SymbolDecoder, acquire_camera
from tally.config import settings


class QRScanAdapter(ScanningAdapter):
    method = CaptureMethod.QR

    def __init__(
        self,
        devices: MediaDevices,
        decoder: SymbolDecoder,
        scan_timeout: float | None = None,
        frame_interval: float = 0.1,
    ) -> None:
        super().__init__(
            decoder,
            scan_timeout if scan_timeout is not None else settings.capture_scan_timeout_seconds,
            frame_interval,
        )
        self.devices = devices

    async def start(self) -> AsyncIterator[CaptureEvent]:
        try:
            async with acquire_camera(self.devices) as stream:
                self._stream = stream
                yield Progress("scanning")
                text = await self._scan(stream)
        except CaptureUnavailable as e:
            yield Failed("camera_unavailable", str(e) or "Unable to access camera")
            return
        finally:
            self._stream = None

        if self.cancelled:
            return
        if text is None:
            yield Failed("scan_timeout", "No QR code found")
            return

        data = parse_qr_text(text)
        yield Candidates(options=(Candidate(data.to_prefill(), data),))
