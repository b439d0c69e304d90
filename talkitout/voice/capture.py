"""
Speech capture for a practice session.

Mirrors how browser speech recognition behaves: a recording produces a
sequence of recognition results whose texts are joined in order to form the
working transcript. Locally a result comes from recording the microphone and
sending the audio to the transcription gateway.
"""

import logging
from typing import Iterable, List, Optional

from .speech_to_text import MicrophoneRecorder, TranscriptionGateway, to_wav_bytes

logger = logging.getLogger(__name__)


def join_results(results: Iterable[str]) -> str:
    """Join interim recognition results in order."""
    return "".join(results).strip()


class SpeechCapture:
    """
    Produces a transcript from microphone input.

    ``request_permission`` answers whether a microphone is usable. Between
    ``start`` and ``stop`` results accumulate; ``stop`` returns the joined
    transcript (possibly empty).
    """

    def __init__(
        self,
        recorder: Optional[MicrophoneRecorder] = None,
        transcriber: Optional[TranscriptionGateway] = None,
    ):
        self.recorder = recorder or MicrophoneRecorder()
        self.transcriber = transcriber
        self.permission_granted = False
        self.listening = False
        self._results: List[str] = []

    def request_permission(self) -> bool:
        self.permission_granted = self.recorder.has_microphone()
        if not self.permission_granted:
            logger.warning("No microphone available")
        return self.permission_granted

    def start(self):
        self._results = []
        self.listening = True

    def add_result(self, text: str) -> str:
        """Append one recognition result and return the working transcript."""
        if self.listening and text:
            self._results.append(text)
        return self.transcript

    def set_results(self, results: Iterable[str]) -> str:
        """Replace all results, as a browser recognition event does."""
        if self.listening:
            self._results = [r for r in results if r]
        return self.transcript

    @property
    def transcript(self) -> str:
        return join_results(self._results)

    def listen(self) -> str:
        """
        Record one utterance and transcribe it.

        Blocks until silence follows speech. Requires a transcriber.
        """
        if self.transcriber is None:
            raise RuntimeError("SpeechCapture.listen() needs a transcription gateway")
        samples = self.recorder.record_until_silence()
        if samples.size == 0:
            return self.transcript
        result = self.transcriber.transcribe(
            to_wav_bytes(samples, self.recorder.sample_rate),
            filename="audio.wav",
            mime_type="audio/wav",
        )
        return self.add_result(result.text)

    def stop(self) -> str:
        self.listening = False
        return self.transcript
