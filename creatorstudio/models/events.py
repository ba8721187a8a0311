"""Event models published on the session topics."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Any, Dict


@dataclass
class SessionEvent:
    """Session lifecycle, duration, transcript or warning event."""
    event_type: str  # "state", "duration", "transcript", "warning"
    session_id: Optional[str]
    state: str
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
