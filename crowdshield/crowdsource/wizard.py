"""
Incident capture wizard.

Linear, resettable flow that turns one tap on "report danger" into a single
stored report:

    idle -> category_selection (optional) -> details_capture
         -> submitting -> submitted -> idle

Audio, live transcript, location and AI classification are optional
side-channels. None of them can block a submission; only a failed store
insert stops it.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

from crowdshield.ai.client import ClassificationClient
from crowdshield.ai.heuristics import classify_keywords
from crowdshield.core.config import settings
from crowdshield.core.constants import ZONES, Category
from crowdshield.core.exceptions import BlobStorageError, ReportStoreError
from crowdshield.crowdsource.capture import (
    AudioClip,
    AudioRecorder,
    Coordinates,
    LocationCapture,
    LocationProvider,
    MicrophoneUnavailableError,
)
from crowdshield.crowdsource.report import Report
from crowdshield.device.identity import DeviceIdentity
from crowdshield.device.rate_limiter import SubmissionRateLimiter
from crowdshield.device.storage import JsonFileKeyValueStore, KeyValueStore
from crowdshield.storage.blob_store import BlobStorage, extension_for

logger = logging.getLogger(__name__)


class WizardStep(str, Enum):
    """Wizard states."""
    IDLE = "idle"
    CATEGORY_SELECTION = "category_selection"
    DETAILS_CAPTURE = "details_capture"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notice:
    """Transient user-visible message."""
    level: NoticeLevel
    message: str


class WizardStateError(Exception):
    """Operation not allowed in the current step."""


class RateLimitExceeded(Exception):
    """The device submitted too recently."""

    def __init__(self, seconds_remaining: int):
        self.seconds_remaining = seconds_remaining
        super().__init__(f"Please wait {seconds_remaining}s before submitting another report")


class SubmissionError(Exception):
    """The report could not be stored; the user may retry."""


class ReportInserter(Protocol):
    def insert(self, fields: Dict[str, Any]) -> Report:
        ...


@dataclass
class Suggestion:
    """Urgency and category proposed by the classifier or keyword fallback."""
    urgency: str
    ai_category: str
    transcript: Optional[str] = None
    source: str = "keywords"


@dataclass
class CaptureDraft:
    """Everything collected so far for the report being built."""
    category: Optional[str] = None
    zone: str = ZONES[0]
    text: str = ""
    audio: Optional[AudioClip] = None
    transcript: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    suggestion: Optional[Suggestion] = None


class IncidentCaptureWizard:
    """
    State machine behind the attendee report page.

    Call `refresh()` from a one-second timer: it updates the cooldown
    shown on the report button and returns to idle a few seconds after a
    successful submission.
    """

    def __init__(
        self,
        device_identity: DeviceIdentity,
        rate_limiter: SubmissionRateLimiter,
        report_store: ReportInserter,
        classifier: Optional[ClassificationClient] = None,
        blob_storage: Optional[BlobStorage] = None,
        recorder: Optional[AudioRecorder] = None,
        location: Optional[LocationCapture] = None,
        auto_locate: bool = True,
        text_max_length: int = 100,
        reset_delay_seconds: float = 3.0,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the wizard.

        Args:
            device_identity: Source of the device id
            rate_limiter: Per-device submission limiter
            report_store: Destination of submitted reports
            classifier: Classification endpoint client
            blob_storage: Storage for recorded audio
            recorder: Audio recorder, None when the device has no microphone
            location: Location capture, None when unsupported
            auto_locate: Request location on entering the details step
            text_max_length: Maximum reporter text length
            reset_delay_seconds: Time the confirmation stays visible
            clock: Returns current time in epoch seconds
        """
        self.device_identity = device_identity
        self.rate_limiter = rate_limiter
        self.report_store = report_store
        self.classifier = classifier
        self.blob_storage = blob_storage
        self.recorder = recorder
        self.location = location
        self.auto_locate = auto_locate
        self.text_max_length = text_max_length
        self.reset_delay_seconds = reset_delay_seconds
        self.clock = clock

        self.step = WizardStep.IDLE
        self.draft = CaptureDraft()
        self.notices: List[Notice] = []
        self.cooldown_seconds = rate_limiter.seconds_until_next_allowed()
        self.last_report: Optional[Report] = None

        self._category_skipped = False
        self._submitted_at: Optional[float] = None

    @classmethod
    def from_settings(
        cls,
        report_store: ReportInserter,
        state_store: Optional[KeyValueStore] = None,
        location_provider: Optional[LocationProvider] = None,
        **kwargs
    ) -> "IncidentCaptureWizard":
        """
        Build a wizard wired with the configured defaults.

        Args:
            report_store: Destination of submitted reports
            state_store: Client state; defaults to the JSON file at DEVICE_STATE_PATH
            location_provider: Device geolocation, bounded by the configured timeout
            **kwargs: Overrides for any constructor argument
        """
        if state_store is None:
            state_store = JsonFileKeyValueStore(settings.device_state_path)
        if location_provider is not None:
            kwargs.setdefault(
                "location",
                LocationCapture(location_provider, timeout=settings.geolocation_timeout_seconds),
            )
        kwargs.setdefault(
            "classifier",
            ClassificationClient(
                url=settings.ai_analysis_url,
                api_key=settings.ai_analysis_api_key,
                timeout=settings.classification_timeout_seconds,
            ),
        )
        kwargs.setdefault("auto_locate", settings.auto_locate)
        kwargs.setdefault("text_max_length", settings.report_text_max_length)
        kwargs.setdefault("reset_delay_seconds", settings.submitted_display_seconds)

        clock = kwargs.get("clock", time.time)
        return cls(
            device_identity=DeviceIdentity(state_store),
            rate_limiter=SubmissionRateLimiter(
                state_store,
                window_seconds=settings.rate_limit_seconds,
                clock=clock,
            ),
            report_store=report_store,
            **kwargs
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _notify(self, level: NoticeLevel, message: str) -> None:
        self.notices.append(Notice(level=level, message=message))

    def drain_notices(self) -> List[Notice]:
        """Return and clear pending notices."""
        notices, self.notices = self.notices, []
        return notices

    def _require(self, *steps: WizardStep) -> None:
        if self.step not in steps:
            allowed = ", ".join(s.value for s in steps)
            raise WizardStateError(f"Not allowed in step {self.step.value} (needs {allowed})")

    def _check_rate_limit(self) -> None:
        if not self.rate_limiter.can_submit():
            seconds = self.rate_limiter.seconds_until_next_allowed()
            self.cooldown_seconds = seconds
            error = RateLimitExceeded(seconds)
            self._notify(NoticeLevel.WARNING, str(error))
            raise error

    def _release_recorder(self) -> None:
        if self.recorder is not None:
            self.recorder.cancel()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def start(self, category: Optional[str] = None) -> WizardStep:
        """
        Leave idle after the report button is tapped.

        Args:
            category: Preselected category; skips category selection

        Returns:
            New step
        """
        self._require(WizardStep.IDLE)
        self._check_rate_limit()

        if category is not None:
            self.draft.category = Category(category).value
            self._category_skipped = True
            self._enter_details()
        else:
            self._category_skipped = False
            self.step = WizardStep.CATEGORY_SELECTION
        return self.step

    def select_category(self, category: str) -> WizardStep:
        """Pick the incident category and move on to details."""
        self._require(WizardStep.CATEGORY_SELECTION)
        self.draft.category = Category(category).value
        self._enter_details()
        return self.step

    def _enter_details(self) -> None:
        self.step = WizardStep.DETAILS_CAPTURE
        if self.auto_locate and self.location is not None and self.draft.coordinates is None:
            self.request_location()

    def back(self) -> WizardStep:
        """Move one step backward from details or category selection."""
        self._require(WizardStep.DETAILS_CAPTURE, WizardStep.CATEGORY_SELECTION)

        if self.step == WizardStep.DETAILS_CAPTURE and not self._category_skipped:
            self._release_recorder()
            self.step = WizardStep.CATEGORY_SELECTION
        else:
            self.reset()
        return self.step

    # ------------------------------------------------------------------
    # Details
    # ------------------------------------------------------------------

    def select_zone(self, zone: str) -> None:
        if zone not in ZONES:
            raise ValueError(f"Unknown zone: {zone}")
        self.draft.zone = zone

    def set_text(self, text: str) -> str:
        """Set the optional description, truncated to the character budget."""
        self._require(WizardStep.DETAILS_CAPTURE)
        self.draft.text = (text or "")[:self.text_max_length]
        self.draft.suggestion = None
        return self.draft.text

    def toggle_recording(self) -> bool:
        """
        Start or stop the audio recording.

        Returns:
            True if recording after the call
        """
        self._require(WizardStep.DETAILS_CAPTURE)

        if self.recorder is None:
            self._notify(NoticeLevel.WARNING, "Audio recording is not available on this device")
            return False

        if self.recorder.is_recording:
            self._finish_recording()
            return False

        try:
            self.recorder.start()
        except MicrophoneUnavailableError as e:
            logger.info(f"Microphone unavailable: {e}")
            self._notify(NoticeLevel.WARNING, "Microphone access denied")
            return False

        if not self.recorder.transcription_supported:
            self._notify(NoticeLevel.INFO, "Live transcription is not supported on this device")
        return True

    def _finish_recording(self) -> None:
        clip = self.recorder.stop()
        if clip is not None:
            self.draft.audio = clip
        if self.recorder.transcript:
            self.draft.transcript = self.recorder.transcript
        self.draft.suggestion = None

    def live_transcript(self) -> Optional[str]:
        """Transcript so far, including a recording still in progress."""
        if self.recorder is not None and self.recorder.is_recording and self.recorder.transcript:
            return self.recorder.transcript
        return self.draft.transcript

    def request_location(self) -> Optional[Coordinates]:
        """One-shot location request; failure leaves coordinates unset."""
        if self.location is None:
            self._notify(NoticeLevel.INFO, "Location is not available on this device")
            return None

        coordinates = self.location.request()
        if coordinates is None:
            self._notify(NoticeLevel.INFO, self.location.last_error or "Location unavailable")
            return None

        self.draft.coordinates = coordinates
        return coordinates

    def analyze(self, audio_url: Optional[str] = None) -> Suggestion:
        """
        Classify the report, falling back to keywords.

        Uses the reporter text, else the live transcript. A transcript
        returned by the classifier replaces the locally captured one; the
        reporter text is never changed.

        Args:
            audio_url: Uploaded recording, if any

        Returns:
            Suggestion stored on the draft
        """
        self._require(WizardStep.DETAILS_CAPTURE, WizardStep.SUBMITTING)

        source_text = self.draft.text.strip() or self.live_transcript() or None

        result = None
        if self.classifier is not None and self.classifier.is_configured and (source_text or audio_url):
            result = self.classifier.classify(text=source_text, audio_url=audio_url)

        fallback = classify_keywords(source_text)
        if result is None:
            suggestion = Suggestion(
                urgency=fallback.urgency,
                ai_category=fallback.ai_category,
                source="keywords",
            )
        else:
            suggestion = Suggestion(
                urgency=result.urgency or fallback.urgency,
                ai_category=result.ai_category or fallback.ai_category,
                transcript=result.transcript,
                source="classifier",
            )
            if result.transcript:
                self.draft.transcript = result.transcript

        self.draft.suggestion = suggestion
        return suggestion

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _upload_audio(self, device_id: str) -> Optional[str]:
        clip = self.draft.audio
        if clip is None or self.blob_storage is None:
            return None

        key = f"{device_id}-{int(self.clock() * 1000)}.{extension_for(clip.content_type)}"
        try:
            self.blob_storage.upload(key, clip.data, clip.content_type)
            return self.blob_storage.get_public_url(key)
        except BlobStorageError as e:
            logger.warning(f"Audio upload failed, submitting without audio: {e}")
            self._notify(NoticeLevel.WARNING, "Audio upload failed; report sent without audio")
            return None

    def _build_fields(self, device_id: str, audio_url: Optional[str]) -> Dict[str, Any]:
        draft = self.draft
        suggestion = draft.suggestion
        return {
            "zone": draft.zone,
            "category": draft.category,
            "text": draft.text.strip() or None,
            "device_id": device_id,
            "audio_url": audio_url,
            "transcript": draft.transcript or None,
            "urgency": suggestion.urgency if suggestion else None,
            "ai_category": suggestion.ai_category if suggestion else None,
            "latitude": draft.coordinates.latitude if draft.coordinates else None,
            "longitude": draft.coordinates.longitude if draft.coordinates else None,
        }

    def _send(self) -> Report:
        if self.recorder is not None and self.recorder.is_recording:
            self._finish_recording()

        device_id = self.device_identity.get_device_id()
        audio_url = self._upload_audio(device_id)

        if self.draft.suggestion is None:
            self.analyze(audio_url=audio_url)

        return self.report_store.insert(self._build_fields(device_id, audio_url))

    def submit(self) -> Report:
        """
        Store the report.

        The rate limit is checked again here, before any upload,
        classification or insert.

        Returns:
            Stored report

        Raises:
            RateLimitExceeded: Submitted too recently
            SubmissionError: Store rejected the report
        """
        self._require(WizardStep.DETAILS_CAPTURE)
        if self.draft.category is None:
            raise WizardStateError("A category must be selected before submitting")
        self._check_rate_limit()

        self.step = WizardStep.SUBMITTING
        try:
            report = self._send()
        except ReportStoreError as e:
            self.step = WizardStep.DETAILS_CAPTURE
            logger.error(f"Report submission failed: {e}")
            self._notify(NoticeLevel.ERROR, "Failed to submit report. Try again.")
            raise SubmissionError(str(e)) from e
        except Exception:
            self.step = WizardStep.DETAILS_CAPTURE
            raise

        self.rate_limiter.mark_submitted()
        self.last_report = report
        self.step = WizardStep.SUBMITTED
        self._submitted_at = self.clock()
        self.cooldown_seconds = self.rate_limiter.seconds_until_next_allowed()

        logger.info(f"Report {report.id} submitted from zone {report.zone}")
        return report

    # ------------------------------------------------------------------
    # Timer and teardown
    # ------------------------------------------------------------------

    def refresh(self) -> int:
        """
        Timer tick.

        Returns:
            Seconds until the next report is allowed
        """
        self.cooldown_seconds = self.rate_limiter.seconds_until_next_allowed()
        if (
            self.step == WizardStep.SUBMITTED
            and self._submitted_at is not None
            and self.clock() - self._submitted_at >= self.reset_delay_seconds
        ):
            self.reset()
        return self.cooldown_seconds

    def reset(self) -> None:
        """Return to idle and clear everything captured. The zone is kept."""
        self._release_recorder()
        self.draft = CaptureDraft(zone=self.draft.zone)
        self.step = WizardStep.IDLE
        self._category_skipped = False
        self._submitted_at = None

    def close(self) -> None:
        """Release device resources."""
        self._release_recorder()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
