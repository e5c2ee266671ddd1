"""Barcode capture: decode the first 1-D symbol, then look the product up."""

from collections.abc import AsyncIterator

from tally.capture.adapters.base import ScanningAdapter
from tally.capture.events import Candidate, Candidates, CaptureEvent, CaptureMethod, Failed, Progress
from tally.capture.media import CaptureUnavailable, MediaDevices, SymbolDecoder, acquire_camera
from tally.config import settings
from tally.services.product_lookup import ProductLookupClient


class BarcodeCaptureAdapter(ScanningAdapter):
    method = CaptureMethod.BARCODE

    def __init__(
        self,
        devices: MediaDevices,
        decoder: SymbolDecoder,
        lookup: ProductLookupClient,
        scan_timeout: float | None = None,
        frame_interval: float = 0.1,
    ) -> None:
        super().__init__(
            decoder,
            scan_timeout if scan_timeout is not None else settings.capture_scan_timeout_seconds,
            frame_interval,
        )
        self.devices = devices
        self.lookup = lookup

    async def start(self) -> AsyncIterator[CaptureEvent]:
        try:
            async with acquire_camera(self.devices) as stream:
                self._stream = stream
                yield Progress("scanning")
                code = await self._scan(stream)
        except CaptureUnavailable as e:
            yield Failed("camera_unavailable", str(e) or "Unable to access camera")
            return
        finally:
            self._stream = None

        if self.cancelled:
            return
        if code is None:
            yield Failed("scan_timeout", "No barcode found")
            return

        yield Progress("looking_up", {"barcode": code})
        product = await self.lookup.lookup(code)
        yield Candidates(options=(Candidate(product.to_prefill(), product),))
