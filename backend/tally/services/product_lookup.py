"""Barcode product lookup against the UPCitemdb trial API.

Best effort: one attempt, no retry. Any failure (network, timeout, non-200,
bad JSON, no candidates) produces the placeholder product so a scan always
yields something usable.
"""

import httpx
import structlog

from tally.capture.heuristics import placeholder_product, product_from_lookup
from tally.config import settings
from tally.schemas.capture import ProductData

logger = structlog.get_logger()


class ProductLookupClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.product_lookup_url
        self.timeout = timeout if timeout is not None else settings.product_lookup_timeout
        self._transport = transport

    async def lookup(self, barcode: str) -> ProductData:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.base_url, params={"upc": barcode})
            if response.status_code != 200:
                logger.warning(
                    "Product lookup rejected",
                    barcode=barcode,
                    status=response.status_code,
                )
                return placeholder_product(barcode)
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Product lookup failed", barcode=barcode, error=str(e))
            return placeholder_product(barcode)

        try:
            product = product_from_lookup(barcode, payload if isinstance(payload, dict) else None)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Product lookup returned malformed data", barcode=barcode, error=str(e))
            return placeholder_product(barcode)

        logger.info(
            "Product lookup done",
            barcode=barcode,
            placeholder=product.placeholder,
            category=product.category,
        )
        return product


def get_product_lookup() -> ProductLookupClient:
    """FastAPI dependency."""
    return ProductLookupClient()
