"""
Optional capture side-channels for the report wizard.

Audio recording with live speech transcription, and a one-shot location
request. Both run independently of the wizard's main flow and are joined
into the submission payload only at submit time. Device hardware is reached
through small injected interfaces.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class MicrophoneUnavailableError(Exception):
    """Microphone access was denied or no microphone exists."""


class SpeechRecognitionUnsupportedError(Exception):
    """The device cannot transcribe speech."""


class LocationUnavailableError(Exception):
    """Location could not be determined."""


class Microphone(Protocol):
    """Audio input that pushes encoded chunks while open."""

    content_type: str

    def open(self, on_chunk: Callable[[bytes], None]) -> None:
        ...

    def close(self) -> None:
        ...


class SpeechRecognizer(Protocol):
    """Streaming speech-to-text that reports the partial transcript so far."""

    def start(self, on_result: Callable[[str], None]) -> None:
        ...

    def stop(self) -> None:
        ...


# Receives a timeout in seconds, returns (latitude, longitude)
LocationProvider = Callable[[float], Tuple[float, float]]


@dataclass
class AudioClip:
    """Finished recording."""
    data: bytes
    content_type: str = "audio/webm"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class Coordinates:
    latitude: float
    longitude: float


class AudioRecorder:
    """
    Start/stop audio recorder with optional live transcript.

    The microphone is held only between start and stop; `cancel` and `close`
    release it on every other exit path.
    """

    def __init__(
        self,
        microphone: Microphone,
        recognizer: Optional[SpeechRecognizer] = None
    ):
        self.microphone = microphone
        self.recognizer = recognizer

        self._chunks: List[bytes] = []
        self._recording = False
        self._recognizing = False
        self.transcript = ""
        self.transcription_supported = recognizer is not None

    @property
    def is_recording(self) -> bool:
        return self._recording

    def _on_chunk(self, chunk: bytes) -> None:
        if self._recording and chunk:
            self._chunks.append(chunk)

    def _on_result(self, text: str) -> None:
        self.transcript = text.strip()

    def start(self) -> None:
        """
        Acquire the microphone and begin recording.

        Raises:
            MicrophoneUnavailableError: Access denied or no device
        """
        if self._recording:
            return

        self._chunks = []
        self.transcript = ""
        self._recording = True
        try:
            self.microphone.open(self._on_chunk)
        except (PermissionError, OSError) as e:
            self._recording = False
            raise MicrophoneUnavailableError(str(e)) from e

        if self.recognizer is not None:
            try:
                self.recognizer.start(self._on_result)
                self._recognizing = True
            except SpeechRecognitionUnsupportedError as e:
                logger.info(f"Live transcription unavailable: {e}")
                self.transcription_supported = False

        logger.debug("Recording started")

    def _release(self) -> None:
        if self._recognizing:
            self._recognizing = False
            try:
                self.recognizer.stop()
            except Exception as e:
                logger.warning(f"Speech recognizer did not stop cleanly: {e}")
        if self._recording:
            self._recording = False
            self.microphone.close()

    def stop(self) -> Optional[AudioClip]:
        """
        Stop recording and release the microphone.

        Returns:
            AudioClip with all chunks joined, or None if nothing was captured
        """
        if not self._recording:
            return None

        self._release()
        data = b"".join(self._chunks)
        self._chunks = []
        logger.debug(f"Recording stopped ({len(data)} bytes)")

        if not data:
            return None
        return AudioClip(data=data, content_type=self.microphone.content_type)

    def cancel(self) -> None:
        """Release the microphone and discard captured audio."""
        self._release()
        self._chunks = []

    def close(self) -> None:
        self.cancel()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class LocationCapture:
    """
    One-shot location request bounded by a timeout.

    Denial, timeout and missing hardware all produce None.
    """

    def __init__(self, provider: LocationProvider, timeout: float = 10.0):
        self.provider = provider
        self.timeout = timeout
        self.last_error: Optional[str] = None

    def request(self) -> Optional[Coordinates]:
        """
        Ask the device for its position.

        Returns:
            Coordinates or None when unavailable
        """
        self.last_error = None
        try:
            latitude, longitude = self.provider(self.timeout)
        except PermissionError:
            self.last_error = "Location permission denied"
        except TimeoutError:
            self.last_error = "Location request timed out"
        except (LocationUnavailableError, OSError) as e:
            self.last_error = f"Location unavailable: {e}"
        else:
            if -90 <= latitude <= 90 and -180 <= longitude <= 180:
                return Coordinates(latitude=latitude, longitude=longitude)
            self.last_error = "Location out of range"

        logger.info(self.last_error)
        return None
