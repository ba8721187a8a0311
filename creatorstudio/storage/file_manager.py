"""File management for finished recordings."""

import json
import logging
import shutil
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional, List
from dataclasses import asdict

from ..audio.encoding import OPUS, WAV
from ..models.session import RecordingResult, SessionInfo

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    OPUS.mime_type: OPUS.extension,
    WAV.mime_type: WAV.extension,
}


class FileManager:
    """Manages session directories holding recorded audio, transcripts and metadata."""

    def __init__(self, data_dir: str = "./data"):
        """Initialize file manager with data directory.

        Args:
            data_dir: Base directory for storing all data
        """
        self.data_dir = Path(data_dir)
        self.sessions_dir = self.data_dir / "sessions"
        self.checkpoints_dir = self.data_dir / "checkpoints"
        self.logs_dir = self.data_dir / "logs"

        self._ensure_directories()

        logger.info(f"FileManager initialized with data_dir: {self.data_dir}")

    def _ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        for directory in [self.data_dir, self.sessions_dir, self.checkpoints_dir, self.logs_dir]:
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory exists: {directory}")

    def save_recording(self, result: RecordingResult, started_at: Optional[datetime] = None) -> SessionInfo:
        """Write audio, transcript and session_info.json for a finished recording.

        Args:
            result: Result returned by the session controller's stop()
            started_at: When the session started; defaults to the result's start time, then now

        Returns:
            The saved SessionInfo
        """
        if not result.session_id:
            raise ValueError("Cannot save a recording without a session id")

        session_path = self.get_session_path(result.session_id)
        session_path.mkdir(parents=True, exist_ok=True)

        blob = result.audio_blob
        audio_file = ""
        if blob is not None and blob.data:
            audio_file = "recording" + _EXTENSIONS.get(blob.mime_type, ".bin")
            (session_path / audio_file).write_bytes(blob.data)
            logger.info(f"Audio saved: {session_path / audio_file} ({blob.size} bytes)")

        transcript_file = "transcript.txt"
        (session_path / transcript_file).write_text(result.transcript, encoding='utf-8')

        session_info = SessionInfo(
            session_id=result.session_id,
            start_time=started_at or result.started_at or datetime.now(),
            duration_seconds=result.duration,
            audio_file=audio_file,
            mime_type=blob.mime_type if blob else "",
            file_size_bytes=blob.size if blob else 0,
            sample_rate=blob.sample_rate if blob else 0,
            total_chunks=blob.chunk_count if blob else 0,
            transcript_file=transcript_file,
            transcript_chars=len(result.transcript),
        )
        self.save_session_info(session_info)
        return session_info

    def save_session_info(self, session_info: SessionInfo) -> str:
        """Save session information to JSON file.

        Returns:
            Path to saved session info file
        """
        session_path = self.get_session_path(session_info.session_id)
        session_path.mkdir(parents=True, exist_ok=True)

        info_file = session_path / "session_info.json"

        info_dict = asdict(session_info)
        info_dict['start_time'] = session_info.start_time.isoformat()

        with open(info_file, 'w', encoding='utf-8') as f:
            json.dump(info_dict, f, indent=2)

        logger.info(f"Session info saved: {info_file}")
        return str(info_file)

    def load_session_info(self, session_id: str) -> Optional[SessionInfo]:
        """Load session information from JSON file.

        Returns:
            SessionInfo object or None if not found or unreadable
        """
        info_file = self.get_session_path(session_id) / "session_info.json"

        if not info_file.exists():
            logger.warning(f"Session info file not found: {info_file}")
            return None

        try:
            with open(info_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            data['start_time'] = datetime.fromisoformat(data['start_time'])
            return SessionInfo(**data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Error loading session info: {e}")
            return None

    def list_sessions(self) -> List[str]:
        """List saved session IDs sorted chronologically."""
        sessions = [
            path.name for path in self.sessions_dir.iterdir()
            if path.is_dir() and (path / "session_info.json").exists()
        ]
        sessions.sort()
        logger.debug(f"Found {len(sessions)} sessions")
        return sessions

    def get_session_path(self, session_id: str) -> Path:
        return self.sessions_dir / session_id

    def cleanup_old_sessions(self, max_age_days: int = 30) -> int:
        """Remove session directories older than ``max_age_days``.

        Returns:
            Number of sessions cleaned up
        """
        cutoff_time = datetime.now().timestamp() - (max_age_days * 24 * 60 * 60)
        cleaned_count = 0

        for session_path in self.sessions_dir.iterdir():
            if session_path.is_dir() and session_path.stat().st_mtime < cutoff_time:
                shutil.rmtree(session_path)
                cleaned_count += 1
                logger.info(f"Cleaned up old session: {session_path}")

        logger.info(f"Cleaned up {cleaned_count} old sessions")
        return cleaned_count

    def get_storage_stats(self) -> Dict[str, Any]:
        """Get storage usage statistics."""
        total_size = 0
        session_count = 0
        audio_files = 0
        audio_suffixes = set(_EXTENSIONS.values())

        for session_path in self.sessions_dir.iterdir():
            if session_path.is_dir():
                session_count += 1
                for file_path in session_path.rglob("*"):
                    if file_path.is_file():
                        total_size += file_path.stat().st_size
                        if file_path.suffix in audio_suffixes:
                            audio_files += 1

        return {
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "session_count": session_count,
            "audio_files": audio_files,
            "data_directory": str(self.data_dir),
        }
