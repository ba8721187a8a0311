"""Resilience store record."""

from dataclasses import dataclass, field
from typing import List

from .audio import AudioChunk


@dataclass
class CheckpointRecord:
    """Durable snapshot of the in-flight chunks of one session."""
    session_id: str
    chunks: List[AudioChunk] = field(default_factory=list)
    timestamp: float = 0.0
    synced: bool = False
