"""Capture orchestrator: method selection → capture → confirmation → item form.

State is a tagged union, one of:

    Idle                      method picker (or dismissed)
    MethodSelected(method)    a capture method was chosen, adapter not started
    AdapterRunning(method)    adapter is streaming events; holds candidates
    ManualForm(form)          item form, possibly prefilled from a capture

Only one adapter runs at a time. Leaving ``AdapterRunning`` for any reason
cancels the adapter and closes its event stream, which releases the camera
or microphone it holds.
"""

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Union

import structlog

from tally.capture.adapters.base import CaptureAdapter
from tally.capture.events import (
    Candidate,
    Candidates,
    CaptureEvent,
    CaptureMethod,
    Failed,
    Unsupported,
)
from tally.capture.form import CategoryOption, ItemEntryForm

logger = structlog.get_logger()


@dataclass(frozen=True)
class Idle:
    dismissed: bool = False


@dataclass(frozen=True)
class MethodSelected:
    method: CaptureMethod


@dataclass(frozen=True)
class AdapterRunning:
    method: CaptureMethod
    candidates: tuple[Candidate, ...] = ()
    fallback: bool = False
    failure: Failed | None = None
    unsupported: Unsupported | None = None


@dataclass(frozen=True)
class ManualForm:
    form: ItemEntryForm
    source: CaptureMethod = CaptureMethod.MANUAL


CaptureState = Union[Idle, MethodSelected, AdapterRunning, ManualForm]

AdapterFactory = Callable[[CaptureMethod], CaptureAdapter]
EventListener = Callable[[CaptureEvent], None]


class InvalidTransition(Exception):
    pass


class CaptureOrchestrator:
    def __init__(
        self,
        adapter_factory: AdapterFactory,
        categories: Sequence[CategoryOption] = (),
        listener: EventListener | None = None,
    ) -> None:
        self.adapter_factory = adapter_factory
        self.categories = categories
        self.listener = listener
        self.state: CaptureState = Idle()
        self._adapter: CaptureAdapter | None = None
        self._task: asyncio.Task | None = None

    @property
    def adapter(self) -> CaptureAdapter | None:
        return self._adapter

    def select(self, method: CaptureMethod) -> CaptureState:
        if not isinstance(self.state, Idle):
            raise InvalidTransition(f"Cannot select {method.value} while {type(self.state).__name__}")
        if method is CaptureMethod.MANUAL:
            self.state = ManualForm(ItemEntryForm())
        else:
            self.state = MethodSelected(method)
        logger.debug("Capture method selected", method=method.value)
        return self.state

    async def start(self) -> CaptureAdapter:
        if not isinstance(self.state, MethodSelected):
            raise InvalidTransition("No capture method selected")
        method = self.state.method
        self._adapter = self.adapter_factory(method)
        self.state = AdapterRunning(method)
        self._task = asyncio.create_task(self._pump(self._adapter))
        return self._adapter

    async def wait(self) -> CaptureState:
        """Wait until the running adapter's event stream is finished."""
        if self._task is not None:
            await asyncio.shield(self._task)
        return self.state

    async def confirm(self, candidate: Candidate) -> ItemEntryForm:
        state = self.state
        if not isinstance(state, AdapterRunning) or candidate not in state.candidates:
            raise InvalidTransition("Nothing to confirm")
        form = ItemEntryForm()
        form.apply_prefill(candidate.prefill, self.categories)
        await self._stop_adapter()
        self.state = ManualForm(form, source=state.method)
        logger.info("Capture confirmed", method=state.method.value, name=form.name)
        return form

    async def use_manual_entry(self) -> ItemEntryForm:
        """Escape hatch from any capture state (failure, unsupported, slow scan)."""
        if isinstance(self.state, ManualForm):
            return self.state.form
        await self._stop_adapter()
        form = ItemEntryForm()
        self.state = ManualForm(form)
        return form

    async def back(self) -> CaptureState:
        await self._stop_adapter()
        self.state = Idle()
        return self.state

    async def close(self) -> CaptureState:
        await self._stop_adapter()
        self.state = Idle(dismissed=True)
        return self.state

    # ── internals ───────────────────────────────────

    async def _pump(self, adapter: CaptureAdapter) -> None:
        events = adapter.start()
        try:
            async for event in events:
                if self._adapter is not adapter:
                    break
                self._on_event(event)
        except Exception as e:
            logger.exception("Capture adapter crashed", method=adapter.method.value)
            if self._adapter is adapter:
                self._on_event(Failed("adapter_error", str(e) or type(e).__name__))
        finally:
            await events.aclose()

    def _on_event(self, event: CaptureEvent) -> None:
        if isinstance(self.state, AdapterRunning):
            if isinstance(event, Candidates):
                self.state = replace(self.state, candidates=event.options, fallback=event.fallback)
            elif isinstance(event, Failed):
                self.state = replace(self.state, failure=event)
                logger.info("Capture failed", method=self.state.method.value, reason=event.reason)
            elif isinstance(event, Unsupported):
                self.state = replace(self.state, unsupported=event)
        if self.listener is not None:
            self.listener(event)

    def _release(self) -> None:
        self._adapter = None
        self._task = None

    async def _stop_adapter(self) -> None:
        adapter, task = self._adapter, self._task
        self._release()
        if adapter is not None:
            await adapter.cancel()
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
