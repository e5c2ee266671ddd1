"""Photo classification through an external image-classification service.

The service is any HTTP endpoint that accepts a multipart ``image`` and
answers ``{"predictions": [{"label": "cup", "confidence": 0.91}, ...]}``.
When it is not configured or fails, photo capture switches to the demo
labels and says so (``fallback=True``).
"""

import httpx
import structlog

from tally.capture.heuristics import demo_detections, rank_detections
from tally.capture.media import ImageClassifier
from tally.config import settings
from tally.schemas.capture import PhotoAnalysis

logger = structlog.get_logger()


class HttpImageClassifier(ImageClassifier):
    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url or settings.vision_classifier_url
        self.timeout = timeout if timeout is not None else settings.vision_timeout
        self._transport = transport

    async def classify(self, image: bytes) -> list[tuple[str, float]]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                self.url,
                files={"image": ("capture.jpg", image, "image/jpeg")},
            )
            response.raise_for_status()
            data = response.json()

        predictions = data.get("predictions", []) if isinstance(data, dict) else data
        return [
            (p["label"], float(p.get("confidence", p.get("probability", 0.0))))
            for p in predictions
        ]


def get_image_classifier() -> ImageClassifier | None:
    """FastAPI dependency: None when no classifier is configured."""
    if not settings.vision_classifier_url:
        return None
    return HttpImageClassifier()


async def classify_photo(
    classifier: ImageClassifier | None, image: bytes, limit: int = 3
) -> PhotoAnalysis:
    """Classify an image, degrading to the flagged demo labels on any failure."""
    if classifier is None:
        logger.warning("No image classifier configured, using demo labels")
        return PhotoAnalysis(detections=demo_detections(), fallback=True)

    try:
        predictions = await classifier.classify(image)
    except Exception as e:
        logger.warning(
            "Image classification failed, using demo labels",
            error=str(e),
            error_type=type(e).__name__,
        )
        return PhotoAnalysis(detections=demo_detections(), fallback=True)

    if not predictions:
        logger.warning("Image classifier returned no labels, using demo labels")
        return PhotoAnalysis(detections=demo_detections(), fallback=True)

    return PhotoAnalysis(detections=rank_detections(predictions, limit))
