"""
CrowdShield - Crowdsource Module
Attendee danger reports and the capture flow that produces them.
"""

from crowdshield.crowdsource.report import Report
from crowdshield.crowdsource.capture import (
    AudioClip,
    AudioRecorder,
    Coordinates,
    LocationCapture,
    LocationUnavailableError,
    MicrophoneUnavailableError,
    SpeechRecognitionUnsupportedError,
)
from crowdshield.crowdsource.wizard import (
    IncidentCaptureWizard,
    WizardStep,
    Notice,
    NoticeLevel,
    RateLimitExceeded,
    SubmissionError,
    WizardStateError,
)

__all__ = [
    # Report
    "Report",
    # Capture
    "AudioClip",
    "AudioRecorder",
    "Coordinates",
    "LocationCapture",
    "LocationUnavailableError",
    "MicrophoneUnavailableError",
    "SpeechRecognitionUnsupportedError",
    # Wizard
    "IncidentCaptureWizard",
    "WizardStep",
    "Notice",
    "NoticeLevel",
    "RateLimitExceeded",
    "SubmissionError",
    "WizardStateError",
]
