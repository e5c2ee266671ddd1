"""Capture heuristics: turn raw capture output into item suggestions.

Pure functions only (no I/O). Each capture method produces something raw:

    photo    → classifier labels         ("cup", 0.91)
    barcode  → product lookup response   {"items": [{"title": ..., "category": ...}]}
    qr       → decoded symbol text       '{"name": "Lamp", "category": "Furniture"}'
    voice    → committed transcript      "Add a red coffee mug worth $15 in the kitchen"

and the functions below map it to a suggested name, category, description
and value.

Examples:
    parse_voice_input("Add a red coffee mug worth $15 in the kitchen")
    → suggested_name="red coffee mug worth $15",
      suggested_category="Kitchen & Dining",
      suggested_description="Worth $15. Located in kitchen"

    parse_qr_text("https://example.com/manual")
    → name="QR Code Item", category="General",
      metadata={"originalQRText": "https://example.com/manual"}
"""

import json
import re
import secrets
from datetime import datetime, timezone
from decimal import Decimal

from tally.schemas.capture import Detection, ProductData, QRItemData, VoiceResult

GENERAL_CATEGORY = "General"

# ── Keyword classifier (priority order: first category with a hit wins) ──
#
# Category names match the default categories seeded for every user so the
# item form can resolve a suggestion to a real category id.

CATEGORY_KEYWORDS: list[tuple[str, list[str]]] = [
    ("Electronics", [
        "phone", "laptop", "computer", "tablet", "camera", "headphones",
        "speaker", "charger", "electronic",
    ]),
    ("Kitchen & Dining", [
        "cup", "mug", "plate", "bowl", "fork", "knife", "spoon", "pot", "pan",
        "kitchen", "dining", "cookware",
    ]),
    ("Furniture", ["chair", "table", "desk", "bed", "sofa", "couch", "shelf", "furniture"]),
    ("Clothing & Accessories", [
        "shirt", "pants", "dress", "jacket", "shoes", "socks", "hat", "clothing",
        "clothes", "fashion", "apparel",
    ]),
    ("Books & Media", ["book", "magazine", "cd", "dvd", "vinyl", "record", "media"]),
    ("Tools & Hardware", ["hammer", "screwdriver", "wrench", "drill", "tool", "hardware"]),
    ("Personal Care", [
        "toothbrush", "shampoo", "soap", "lotion", "perfume", "makeup", "cosmetic",
        "beauty",
    ]),
    ("Sports & Recreation", [
        "ball", "racket", "bike", "bicycle", "sports", "exercise", "game", "recreation",
    ]),
    ("Garden & Outdoor", ["plant", "flower", "garden", "outdoor"]),
    ("Household Items", ["vase", "candle", "decoration", "home decor", "household"]),
    ("Perishables", [
        "food", "snack", "drink", "beverage", "coffee", "tea", "juice", "grocery",
    ]),
]

# ── Photo: classifier label → category ──────────────────────────

LABEL_CATEGORIES: dict[str, str] = {
    "laptop": "Electronics",
    "cell phone": "Electronics",
    "tv": "Electronics",
    "keyboard": "Electronics",
    "book": "Books & Media",
    "bottle": "Kitchen & Dining",
    "wine glass": "Kitchen & Dining",
    "cup": "Kitchen & Dining",
    "fork": "Kitchen & Dining",
    "knife": "Kitchen & Dining",
    "spoon": "Kitchen & Dining",
    "bowl": "Kitchen & Dining",
    "banana": "Perishables",
    "apple": "Perishables",
    "orange": "Perishables",
    "chair": "Furniture",
    "couch": "Furniture",
    "bed": "Furniture",
    "dining table": "Furniture",
    "clock": "Household Items",
    "vase": "Household Items",
    "scissors": "Tools & Hardware",
    "toothbrush": "Personal Care",
    "hair drier": "Personal Care",
    "handbag": "Clothing & Accessories",
    "tie": "Clothing & Accessories",
    "umbrella": "Clothing & Accessories",
    "suitcase": "Clothing & Accessories",
    "backpack": "Clothing & Accessories",
    "bicycle": "Sports & Recreation",
    "motorcycle": "Automotive",
    "car": "Automotive",
    "potted plant": "Garden & Outdoor",
}

# Shown when no classifier is reachable; always flagged as fallback
DEMO_DETECTIONS: list[tuple[str, float]] = [
    ("laptop", 0.85),
    ("book", 0.72),
    ("cup", 0.68),
]

# ── Voice patterns ──────────────────────────────────────────────

# Tried in order, first match wins
_NAME_PATTERNS: list[re.Pattern] = [
    re.compile(r"(?:add|create|new|i have a?)\s+([^.!?]+?)(?:\s+(?:to|in|for)\s+|$)", re.IGNORECASE),
    re.compile(r"(?:this is a?)\s+([^.!?]+?)(?:\s+(?:that|which|in)\s+|$)", re.IGNORECASE),
    re.compile(r"^([^.!?]+?)(?:\s+(?:worth|costs?|priced at)\s+|$)", re.IGNORECASE),
    re.compile(r"^(.+?)(?:\s+(?:in the|from|for)\s+)", re.IGNORECASE),
]

_LEADING_FILLER_RE = re.compile(r"^(?:a|an|the|my|this|that)\s+", re.IGNORECASE)
_TRAILING_FILLER_RE = re.compile(r"\s+(?:item|thing|object)$", re.IGNORECASE)

_PRICE_RE = re.compile(r"(?:worth|costs?|priced at|value)\s*\$?(\d+(?:\.\d{2})?)")
_LOCATION_RE = re.compile(r"(?:in the|from the|located in)\s+([^.!?]+)")

CONDITION_WORDS = ["new", "used", "old", "broken", "mint", "excellent", "good", "fair", "poor"]

# Fixed: the speech engines we wrap do not report a usable score
VOICE_CONFIDENCE = 0.85

QR_DESCRIPTION_LIMIT = 100


# ── Shared ──────────────────────────────────────────────────────


def classify_category(text: str) -> str:
    """Return the first category whose keywords occur in ``text`` (substring match)."""
    lowered = text.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return GENERAL_CATEGORY


# ── Photo ───────────────────────────────────────────────────────


def category_for_label(label: str) -> str:
    return LABEL_CATEGORIES.get(label.strip().lower(), GENERAL_CATEGORY)


def rank_detections(predictions: list[tuple[str, float]], limit: int = 3) -> list[Detection]:
    """Build detections from (label, confidence) pairs, best first."""
    detections = [
        Detection(
            label=label,
            confidence=max(0.0, min(1.0, float(confidence))),
            suggested_category=category_for_label(label),
        )
        for label, confidence in predictions
    ]
    detections.sort(key=lambda d: d.confidence, reverse=True)
    return detections[:limit]


def demo_detections() -> list[Detection]:
    return rank_detections(DEMO_DETECTIONS)


# ── Barcode ─────────────────────────────────────────────────────


def placeholder_product(barcode: str) -> ProductData:
    """Minimal record used whenever the lookup cannot describe the code."""
    return ProductData(
        barcode=barcode,
        name="Scanned Product",
        description=f"Product with barcode: {barcode}",
        category=GENERAL_CATEGORY,
        placeholder=True,
    )


def product_from_lookup(barcode: str, payload: dict | None) -> ProductData:
    """Map a UPCitemdb lookup response to product data (placeholder if empty)."""
    candidates = (payload or {}).get("items") or []
    if not candidates or not isinstance(candidates, list):
        return placeholder_product(barcode)

    item = candidates[0]
    if not isinstance(item, dict):
        return placeholder_product(barcode)
    images = item.get("images") or []
    return ProductData(
        barcode=barcode,
        name=item.get("title") or "Unknown Product",
        brand=item.get("brand") or None,
        description=item.get("description") or None,
        category=classify_category(item.get("category") or item.get("title") or ""),
        price=_format_price(item.get("lowest_recorded_price")),
        image_url=images[0] if images else None,
    )


def _format_price(raw) -> str | None:
    if raw in (None, ""):
        return None
    try:
        return f"{Decimal(str(raw)):.2f}"
    except ArithmeticError:
        return None


# ── QR ──────────────────────────────────────────────────────────


def parse_qr_text(text: str) -> QRItemData:
    """Parse scanned QR text: structured Tally payload, else a wrapped raw-text record."""
    try:
        data = json.loads(text)
    except ValueError:
        data = None

    if isinstance(data, dict) and data.get("name") and data.get("category"):
        try:
            return QRItemData.model_validate(data)
        except ValueError:
            pass

    description = text
    if len(text) > QR_DESCRIPTION_LIMIT:
        description = text[:QR_DESCRIPTION_LIMIT] + "..."
    return QRItemData(
        name="QR Code Item",
        category=GENERAL_CATEGORY,
        description=description,
        metadata={"originalQRText": text},
    )


def new_qr_id() -> str:
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"tally-{millis}-{secrets.token_hex(3)}"


def build_qr_payload(
    name: str,
    category: str,
    description: str | None = None,
    value: Decimal | float | None = None,
) -> str:
    """Serialize an item into the structured payload ``parse_qr_text`` understands."""
    data = {
        "id": new_qr_id(),
        "name": name,
        "category": category,
        "description": description,
        "value": float(value) if value is not None else None,
        "dateAdded": datetime.now(timezone.utc).isoformat(),
    }
    return json.dumps({k: v for k, v in data.items() if v is not None})


# ── Voice ───────────────────────────────────────────────────────


def clean_item_name(name: str) -> str:
    """Strip a leading article/determiner and a trailing filler noun."""
    name = _LEADING_FILLER_RE.sub("", name.strip())
    return _TRAILING_FILLER_RE.sub("", name).strip()


def extract_item_name(text: str) -> str:
    for pattern in _NAME_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1):
            return clean_item_name(match.group(1).strip())
    return clean_item_name(" ".join(text.split(" ")[:3]))


def synthesize_description(transcript: str) -> str:
    """Collect price, location and condition mentions into a short description."""
    lowered = transcript.lower()
    details = []

    price = _PRICE_RE.search(lowered)
    if price:
        details.append(f"Worth ${price.group(1)}")

    location = _LOCATION_RE.search(lowered)
    if location:
        details.append(f"Located in {location.group(1).strip()}")

    condition = next((word for word in CONDITION_WORDS if word in lowered), None)
    if condition:
        details.append(f"Condition: {condition}")

    if details:
        return ". ".join(details)
    return f'Added via voice input: "{transcript}"'


def parse_voice_input(transcript: str) -> VoiceResult:
    lowered = transcript.lower()
    return VoiceResult(
        transcript=transcript,
        confidence=VOICE_CONFIDENCE,
        suggested_name=extract_item_name(lowered),
        suggested_category=classify_category(lowered),
        suggested_description=synthesize_description(transcript),
    )
