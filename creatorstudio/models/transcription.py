"""Speech recognition data models."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class RecognitionAlternative:
    """One hypothesis for a recognized segment."""
    transcript: str
    confidence: float = 0.0


@dataclass
class RecognitionResult:
    """A recognized segment, final or still subject to revision."""
    alternatives: List[RecognitionAlternative]
    is_final: bool = False

    @property
    def transcript(self) -> str:
        return self.alternatives[0].transcript if self.alternatives else ""


@dataclass
class RecognitionEvent:
    """Results delivered by a continuous recognition stream.

    Only ``results[result_index:]`` changed since the previous event.
    """
    results: List[RecognitionResult]
    result_index: int = 0


@dataclass
class RecognitionErrorEvent:
    """An error reported by a recognition stream."""
    error: str  # "no-speech", "network", "not-allowed", "service-error", ...
    message: str = ""


@dataclass
class TranscriptState:
    """Finalized text only grows; interim text is replaced wholesale."""
    finalized: str = ""
    interim: str = ""

    @property
    def live(self) -> str:
        return self.finalized + self.interim
