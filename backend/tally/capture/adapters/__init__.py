"""Capture adapters, one per capture method."""

from dataclasses import dataclass

from tally.capture.adapters.barcode import BarcodeCaptureAdapter
from tally.capture.adapters.base import CaptureAdapter, ScanningAdapter
from tally.capture.adapters.photo import PhotoCaptureAdapter
from tally.capture.adapters.qr import QRScanAdapter
from tally.capture.adapters.voice import VoiceCaptureAdapter
from tally.capture.events import CaptureMethod
from tally.capture.media import ImageClassifier, MediaDevices, SpeechRecognizer, SymbolDecoder
from tally.services.product_lookup import ProductLookupClient

__all__ = [
    "AdapterFactory",
    "BarcodeCaptureAdapter",
    "CaptureAdapter",
    "PhotoCaptureAdapter",
    "QRScanAdapter",
    "ScanningAdapter",
    "VoiceCaptureAdapter",
]


@dataclass
class AdapterFactory:
    """Builds a fresh adapter for a capture method from the host's capabilities."""

    devices: MediaDevices
    barcode_decoder: SymbolDecoder
    qr_decoder: SymbolDecoder
    recognizer: SpeechRecognizer
    classifier: ImageClassifier | None = None
    lookup: ProductLookupClient | None = None
    scan_timeout: float | None = None
    frame_interval: float = 0.1

    def __call__(self, method: CaptureMethod) -> CaptureAdapter:
        if method is CaptureMethod.PHOTO:
            return PhotoCaptureAdapter(self.devices, self.classifier)
        if method is CaptureMethod.BARCODE:
            return BarcodeCaptureAdapter(
                self.devices,
                self.barcode_decoder,
                self.lookup or ProductLookupClient(),
                scan_timeout=self.scan_timeout,
                frame_interval=self.frame_interval,
            )
        if method is CaptureMethod.QR:
            return QRScanAdapter(
                self.devices,
                self.qr_decoder,
                scan_timeout=self.scan_timeout,
                frame_interval=self.frame_interval,
            )
        if method is CaptureMethod.VOICE:
            return VoiceCaptureAdapter(self.recognizer)
        raise ValueError(f"No adapter for {method.value}")
