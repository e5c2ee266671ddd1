"""Capture adapters and the capture orchestrator, driven by fake devices."""

import asyncio
import json

import pytest

from fakes import CATEGORIES, BrokenClassifier, FakeDecoder, FakeDevices, FakeLookup, FakeRecognizer
from tally.capture.adapters import (
    AdapterFactory,
    BarcodeCaptureAdapter,
    PhotoCaptureAdapter,
    QRScanAdapter,
    VoiceCaptureAdapter,
)
from tally.capture.events import Candidates, CaptureMethod, Failed, Progress, Unsupported
from tally.capture.orchestrator import (
    AdapterRunning,
    CaptureOrchestrator,
    Idle,
    InvalidTransition,
    ManualForm,
    MethodSelected,
)
from tally.schemas.capture import ProductData


async def _collect(adapter):
    return [event async for event in adapter.start()]


def _factory(
    devices=None, barcode=None, qr=None, recognizer=None, classifier=None, lookup=None, scan_timeout=5.0
):
    return AdapterFactory(
        devices=devices or FakeDevices(),
        barcode_decoder=barcode or FakeDecoder(),
        qr_decoder=qr or FakeDecoder(),
        recognizer=recognizer or FakeRecognizer(),
        classifier=classifier,
        lookup=lookup or FakeLookup(),
        scan_timeout=scan_timeout,
        frame_interval=0,
    )


# ── Barcode ───────────────────────────────────────


@pytest.mark.asyncio
async def test_barcode_scan_and_lookup():
    devices = FakeDevices()
    product = ProductData(barcode="0123456789012", name="Acme Kettle", category="Kitchen & Dining")
    lookup = FakeLookup(product)
    adapter = BarcodeCaptureAdapter(
        devices, FakeDecoder(None, None, "0123456789012"), lookup, scan_timeout=5, frame_interval=0
    )

    events = await _collect(adapter)

    assert [e.status for e in events if isinstance(e, Progress)] == ["scanning", "looking_up"]
    assert lookup.calls == ["0123456789012"]
    result = events[-1]
    assert isinstance(result, Candidates)
    assert result.options[0].prefill.name == "Acme Kettle"
    assert result.options[0].prefill.barcode == "0123456789012"
    assert devices.all_released


@pytest.mark.asyncio
async def test_barcode_unknown_product_gives_placeholder():
    adapter = BarcodeCaptureAdapter(
        FakeDevices(), FakeDecoder("999"), FakeLookup(), scan_timeout=5, frame_interval=0
    )
    result = (await _collect(adapter))[-1]
    assert result.options[0].source.placeholder is True
    assert result.options[0].prefill.name == "Scanned Product"


@pytest.mark.asyncio
async def test_barcode_scan_timeout():
    devices = FakeDevices()
    adapter = BarcodeCaptureAdapter(
        devices, FakeDecoder(), FakeLookup(), scan_timeout=0.05, frame_interval=0.01
    )
    events = await _collect(adapter)
    assert isinstance(events[-1], Failed)
    assert events[-1].reason == "scan_timeout"
    assert devices.all_released


@pytest.mark.asyncio
async def test_camera_refused():
    adapter = QRScanAdapter(FakeDevices(refuse=True), FakeDecoder(), scan_timeout=1)
    events = await _collect(adapter)
    assert events == [Failed("camera_unavailable", "Permission denied")]


# ── QR ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_qr_scan_structured_payload():
    payload = json.dumps({"name": "Lamp", "category": "Furniture", "value": 45})
    adapter = QRScanAdapter(FakeDevices(), FakeDecoder(payload), scan_timeout=5, frame_interval=0)
    result = (await _collect(adapter))[-1]
    prefill = result.options[0].prefill
    assert (prefill.name, prefill.category) == ("Lamp", "Furniture")


# ── Photo ─────────────────────────────────────────


@pytest.mark.asyncio
async def test_photo_without_classifier_uses_flagged_demo_labels():
    devices = FakeDevices()
    adapter = PhotoCaptureAdapter(devices, classifier=None)
    adapter.trigger()

    events = await _collect(adapter)

    assert [e.status for e in events if isinstance(e, Progress)] == ["ready", "analyzing"]
    result = events[-1]
    assert result.fallback is True
    assert [c.prefill.name for c in result.options] == ["Laptop", "Book", "Cup"]
    assert devices.all_released


@pytest.mark.asyncio
async def test_photo_with_broken_classifier_uses_flagged_demo_labels():
    devices = FakeDevices()
    adapter = PhotoCaptureAdapter(devices, classifier=BrokenClassifier())
    adapter.trigger()

    result = (await _collect(adapter))[-1]

    assert isinstance(result, Candidates)
    assert result.fallback is True
    assert result.options[0].prefill.name == "Laptop"
    assert devices.all_released


# ── Voice ─────────────────────────────────────────


@pytest.mark.asyncio
async def test_voice_unsupported():
    recognizer = FakeRecognizer(supported=False)
    events = await _collect(VoiceCaptureAdapter(recognizer))
    assert len(events) == 1
    assert isinstance(events[0], Unsupported)


@pytest.mark.asyncio
async def test_voice_commits_only_final_segments():
    recognizer = FakeRecognizer([
        ("kettle", False),
        ("add a red coffee mug", True),
        ("worth fif", False),
        ("worth $15 in the kitchen", True),
    ])
    adapter = VoiceCaptureAdapter(recognizer)

    events = await _collect(adapter)

    result = events[-1]
    assert isinstance(result, Candidates)
    voice = result.options[0].source
    assert voice.transcript == "add a red coffee mug worth $15 in the kitchen"
    assert "kettle" not in voice.transcript
    assert result.options[0].prefill.category == "Kitchen & Dining"
    assert recognizer.stopped

    interim = [e.detail["interim"] for e in events if isinstance(e, Progress) and e.detail]
    assert "kettle" in interim


@pytest.mark.asyncio
async def test_voice_with_only_interim_speech_fails():
    adapter = VoiceCaptureAdapter(FakeRecognizer([("hmm", False)]))
    events = await _collect(adapter)
    assert isinstance(events[-1], Failed)
    assert events[-1].reason == "no_speech"


# ── Orchestrator ──────────────────────────────────


@pytest.mark.asyncio
async def test_photo_capture_to_prefilled_form():
    devices = FakeDevices()
    orchestrator = CaptureOrchestrator(_factory(devices=devices), categories=CATEGORIES)

    assert isinstance(orchestrator.select(CaptureMethod.PHOTO), MethodSelected)
    adapter = await orchestrator.start()
    adapter.trigger()
    state = await orchestrator.wait()

    assert isinstance(state, AdapterRunning)
    assert state.fallback is True
    form = await orchestrator.confirm(state.candidates[0])

    assert isinstance(orchestrator.state, ManualForm)
    assert orchestrator.state.source is CaptureMethod.PHOTO
    assert form.name == "Laptop"
    assert form.category_id == "2"
    assert devices.all_released
    assert orchestrator.adapter is None


@pytest.mark.asyncio
async def test_voice_capture_to_prefilled_form():
    recognizer = FakeRecognizer([("add a brass desk lamp worth $45", True)])
    seen = []
    orchestrator = CaptureOrchestrator(
        _factory(recognizer=recognizer), categories=CATEGORIES, listener=seen.append
    )
    orchestrator.select(CaptureMethod.VOICE)
    await orchestrator.start()
    state = await orchestrator.wait()

    form = await orchestrator.confirm(state.candidates[0])
    assert form.name == "brass desk lamp worth $45"
    assert form.description == "Worth $45"
    assert isinstance(seen[-1], Candidates)


@pytest.mark.asyncio
async def test_back_releases_camera_during_scan():
    devices = FakeDevices()
    orchestrator = CaptureOrchestrator(_factory(devices=devices))
    orchestrator.select(CaptureMethod.BARCODE)
    await orchestrator.start()
    await asyncio.sleep(0.05)
    assert devices.streams and not devices.streams[0].stopped

    state = await orchestrator.back()

    assert state == Idle()
    assert devices.all_released
    assert orchestrator.adapter is None


@pytest.mark.asyncio
async def test_close_releases_camera_before_shutter():
    devices = FakeDevices()
    orchestrator = CaptureOrchestrator(_factory(devices=devices))
    orchestrator.select(CaptureMethod.PHOTO)
    await orchestrator.start()
    await asyncio.sleep(0.01)

    state = await orchestrator.close()

    assert state == Idle(dismissed=True)
    assert devices.all_released


@pytest.mark.asyncio
async def test_unsupported_voice_leaves_manual_entry():
    orchestrator = CaptureOrchestrator(_factory(recognizer=FakeRecognizer(supported=False)))
    orchestrator.select(CaptureMethod.VOICE)
    await orchestrator.start()
    state = await orchestrator.wait()

    assert isinstance(state, AdapterRunning)
    assert state.unsupported is not None
    assert state.candidates == ()

    form = await orchestrator.use_manual_entry()
    assert isinstance(orchestrator.state, ManualForm)
    assert form.name == ""


@pytest.mark.asyncio
async def test_scan_failure_keeps_manual_entry_reachable():
    orchestrator = CaptureOrchestrator(_factory(scan_timeout=0.05))
    orchestrator.select(CaptureMethod.QR)
    await orchestrator.start()
    state = await orchestrator.wait()

    assert state.failure.reason == "scan_timeout"
    await orchestrator.use_manual_entry()
    assert isinstance(orchestrator.state, ManualForm)


def test_manual_selection_opens_empty_form():
    orchestrator = CaptureOrchestrator(_factory())
    state = orchestrator.select(CaptureMethod.MANUAL)
    assert isinstance(state, ManualForm)
    assert state.form.to_form_data() == {}


@pytest.mark.asyncio
async def test_one_capture_at_a_time():
    orchestrator = CaptureOrchestrator(_factory())
    orchestrator.select(CaptureMethod.BARCODE)
    with pytest.raises(InvalidTransition):
        orchestrator.select(CaptureMethod.QR)
    await orchestrator.start()
    with pytest.raises(InvalidTransition):
        await orchestrator.start()
    await orchestrator.close()


def test_factory_has_no_manual_adapter():
    with pytest.raises(ValueError):
        _factory()(CaptureMethod.MANUAL)


@pytest.mark.asyncio
async def test_broken_classifier_still_reaches_candidates():
    orchestrator = CaptureOrchestrator(_factory(classifier=BrokenClassifier()), categories=CATEGORIES)
    orchestrator.select(CaptureMethod.PHOTO)
    adapter = await orchestrator.start()
    adapter.trigger()
    state = await orchestrator.wait()

    assert state.fallback is True
    assert state.failure is None
    assert [c.prefill.name for c in state.candidates] == ["Laptop", "Book", "Cup"]


@pytest.mark.asyncio
async def test_adapter_crash_becomes_failure():
    seen = []
    orchestrator = CaptureOrchestrator(
        _factory(barcode=FakeDecoder("0123456789012"), lookup=FakeLookup(error=RuntimeError("boom"))),
        listener=seen.append,
    )
    orchestrator.select(CaptureMethod.BARCODE)
    await orchestrator.start()
    state = await orchestrator.wait()

    assert isinstance(state, AdapterRunning)
    assert state.failure == Failed("adapter_error", "boom")
    assert seen[-1] == state.failure

    await orchestrator.use_manual_entry()
    assert isinstance(orchestrator.state, ManualForm)


@pytest.mark.asyncio
async def test_confirm_stops_adapter_before_returning():
    recognizer = FakeRecognizer([("add a lamp", True)])
    orchestrator = CaptureOrchestrator(_factory(recognizer=recognizer))
    orchestrator.select(CaptureMethod.VOICE)
    await orchestrator.start()
    state = await orchestrator.wait()

    await orchestrator.confirm(state.candidates[0])

    assert orchestrator.adapter is None
    assert orchestrator._task is None
    assert recognizer.stopped
