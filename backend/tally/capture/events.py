"""Capture methods and the events adapters emit."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel

from tally.schemas.capture import PrefillData


class CaptureMethod(str, Enum):
    PHOTO = "photo"
    BARCODE = "barcode"
    QR = "qr"
    VOICE = "voice"
    MANUAL = "manual"


@dataclass(frozen=True)
class Progress:
    """Adapter is working (scanning, listening, looking up...)."""

    status: str
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Candidate:
    """One result waiting for the user to confirm it."""

    prefill: PrefillData
    source: BaseModel


@dataclass(frozen=True)
class Candidates:
    options: tuple[Candidate, ...]
    fallback: bool = False


@dataclass(frozen=True)
class Failed:
    reason: str
    message: str = ""
    retryable: bool = True


@dataclass(frozen=True)
class Unsupported:
    """Terminal: the capability does not exist here. Only cancel is offered."""

    reason: str


CaptureEvent = Union[Progress, Candidates, Failed, Unsupported]
