"""Capture API routes: server-side halves of photo, barcode, QR and voice capture."""

from fastapi import APIRouter, Depends, File, UploadFile

from tally.api.deps import get_current_user
from tally.capture.heuristics import parse_qr_text, parse_voice_input
from tally.capture.media import ImageClassifier
from tally.models.user import User
from tally.schemas.capture import (
    PhotoAnalysis,
    ProductData,
    QRGenerateRequest,
    QRGenerateResponse,
    QRItemData,
    QRParseRequest,
    VoiceRequest,
    VoiceResult,
)
from tally.services.product_lookup import ProductLookupClient, get_product_lookup
from tally.services.qr_codes import QRCodeGenerator
from tally.services.uploads import read_image
from tally.services.vision import classify_photo, get_image_classifier

router = APIRouter()


@router.post("/photo", response_model=PhotoAnalysis)
async def analyze_photo(
    image: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    classifier: ImageClassifier | None = Depends(get_image_classifier),
):
    """Up to three labelled suggestions; ``fallback`` marks the demo labels."""
    content = await read_image(image)
    return await classify_photo(classifier, content)


@router.get("/barcode/{code}", response_model=ProductData)
async def lookup_barcode(
    code: str,
    current_user: User = Depends(get_current_user),
    lookup: ProductLookupClient = Depends(get_product_lookup),
):
    """Product data for a scanned code, or a placeholder when nothing is known."""
    return await lookup.lookup(code.strip())


@router.post("/qr/parse", response_model=QRItemData)
async def parse_qr(
    data: QRParseRequest,
    current_user: User = Depends(get_current_user),
):
    return parse_qr_text(data.text)


@router.post("/qr/generate", response_model=QRGenerateResponse)
async def generate_qr(
    data: QRGenerateRequest,
    current_user: User = Depends(get_current_user),
):
    qr = QRCodeGenerator().generate(data.name, data.category, data.description, data.value)
    return QRGenerateResponse(payload=qr.payload, data_url=qr.data_url, filename=qr.filename)


@router.post("/voice", response_model=VoiceResult)
async def parse_voice(
    data: VoiceRequest,
    current_user: User = Depends(get_current_user),
):
    return parse_voice_input(data.transcript)
