"""Voice capture: accumulate final speech segments, then run the voice heuristics."""

from collections.abc import AsyncIterator

import structlog

from tally.capture.adapters.base import CaptureAdapter
from tally.capture.events import (
    Candidate,
    Candidates,
    CaptureEvent,
    CaptureMethod,
    Failed,
    Progress,
    Unsupported,
)
from tally.capture.heuristics import parse_voice_input
from tally.capture.media import CaptureUnavailable, SpeechRecognizer, acquire_microphone

logger = structlog.get_logger()


class VoiceCaptureAdapter(CaptureAdapter):
    method = CaptureMethod.VOICE

    def __init__(self, recognizer: SpeechRecognizer) -> None:
        super().__init__()
        self.recognizer = recognizer
        self.transcript = ""
        self.interim = ""

    async def finish(self) -> None:
        """The user pressed "Stop Listening": end the session normally."""
        await self.recognizer.stop()

    async def cancel(self) -> None:
        await super().cancel()
        await self.recognizer.stop()

    async def start(self) -> AsyncIterator[CaptureEvent]:
        if not self.recognizer.is_supported():
            yield Unsupported("Speech recognition is not supported on this device")
            return

        self.transcript = ""
        self.interim = ""
        try:
            async with acquire_microphone(self.recognizer) as segments:
                yield Progress("listening")
                async for segment in segments:
                    if self.cancelled:
                        break
                    if segment.is_final:
                        # Only stable segments are committed
                        self.transcript += segment.text + " "
                        self.interim = ""
                    else:
                        self.interim = segment.text
                    yield Progress(
                        "transcribing",
                        {"transcript": self.transcript, "interim": self.interim},
                    )
        except CaptureUnavailable as e:
            yield Failed("microphone_unavailable", str(e) or "Could not start voice recognition")
            return
        finally:
            self.interim = ""

        if self.cancelled:
            return

        committed = self.transcript.strip()
        if not committed:
            yield Failed("no_speech", "Nothing was heard")
            return

        result = parse_voice_input(committed)
        logger.info(
            "Voice input processed",
            name=result.suggested_name,
            category=result.suggested_category,
        )
        yield Candidates(options=(Candidate(result.to_prefill(), result),))
