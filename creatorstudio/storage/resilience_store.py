"""Durable checkpoints of in-flight audio chunks."""

import asyncio
import copy
import json
import logging
import os
import re
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..errors import CheckpointWriteFailure
from ..models.audio import AudioChunk
from ..models.checkpoint import CheckpointRecord

logger = logging.getLogger(__name__)

_SESSION_ID_PATTERN = re.compile(r"[A-Za-z0-9_.-]+")


def _check_session_id(session_id: str) -> None:
    if not session_id or not _SESSION_ID_PATTERN.fullmatch(session_id) or session_id in (".", ".."):
        raise ValueError(f"Invalid session id: {session_id!r}")


class ResilienceStore(ABC):
    """Key-value mapping from session id to its latest checkpoint.

    Writes and deletes run on one worker thread, so they take effect in the
    order they were issued: the last checkpoint wins, and a clear issued
    after a checkpoint removes it. Failures raise ``CheckpointWriteFailure``.
    """

    def __init__(self):
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def is_open(self) -> bool:
        return self._executor is not None

    def open(self) -> "ResilienceStore":
        if self._executor is None:
            self._open()
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ResilienceStore")
            logger.info(f"{self.__class__.__name__} opened")
        return self

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            logger.info(f"{self.__class__.__name__} closed")

    def __enter__(self) -> "ResilienceStore":
        return self.open()

    def __exit__(self, *args) -> None:
        self.close()

    async def checkpoint(self, session_id: str, chunks: Sequence[AudioChunk]) -> None:
        """Replace the session's record with a snapshot of ``chunks``."""
        _check_session_id(session_id)
        record = CheckpointRecord(
            session_id=session_id,
            chunks=list(chunks),
            timestamp=time.time(),
            synced=False,
        )
        await self._submit(self._put, record)
        logger.debug(f"Checkpointed {len(record.chunks)} chunks for {session_id}")

    async def clear(self, session_id: str) -> None:
        _check_session_id(session_id)
        await self._submit(self._delete, session_id)
        logger.debug(f"Cleared checkpoint for {session_id}")

    async def _submit(self, func, *args) -> None:
        if self._executor is None:
            raise CheckpointWriteFailure(f"{self.__class__.__name__} is not open")
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(self._executor, func, *args)
        except (OSError, RuntimeError) as e:
            # RuntimeError: the executor was shut down by a concurrent close()
            raise CheckpointWriteFailure(str(e)) from e

    def _open(self) -> None:
        """Hook for subclasses to prepare their backing storage."""

    @abstractmethod
    def _put(self, record: CheckpointRecord) -> None:
        pass

    @abstractmethod
    def _delete(self, session_id: str) -> None:
        pass

    @abstractmethod
    def get(self, session_id: str) -> Optional[CheckpointRecord]:
        """Return the stored record, for inspection only."""
        pass

    @abstractmethod
    def session_ids(self) -> List[str]:
        pass


class MemoryResilienceStore(ResilienceStore):
    """In-memory store; nothing survives the process."""

    def __init__(self):
        super().__init__()
        self.records: Dict[str, CheckpointRecord] = {}

    def _put(self, record: CheckpointRecord) -> None:
        self.records[record.session_id] = copy.deepcopy(record)

    def _delete(self, session_id: str) -> None:
        self.records.pop(session_id, None)

    def get(self, session_id: str) -> Optional[CheckpointRecord]:
        record = self.records.get(session_id)
        return copy.deepcopy(record) if record else None

    def session_ids(self) -> List[str]:
        return sorted(self.records)


class FileResilienceStore(ResilienceStore):
    """Stores each session as ``<id>.json`` metadata plus a ``<id>.pcm`` payload.

    Both files are written to a temporary name and moved into place, payload
    first, so a reader never sees metadata describing a half-written payload.
    """

    def __init__(self, directory: str):
        super().__init__()
        self.directory = Path(directory)

    def _open(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def _paths(self, session_id: str):
        return self.directory / f"{session_id}.json", self.directory / f"{session_id}.pcm"

    def _put(self, record: CheckpointRecord) -> None:
        meta_path, data_path = self._paths(record.session_id)
        metadata = {
            "session_id": record.session_id,
            "timestamp": record.timestamp,
            "synced": record.synced,
            "chunks": [
                {
                    "sequence": chunk.sequence,
                    "size": chunk.size,
                    "timestamp": chunk.timestamp,
                    "duration_seconds": chunk.duration_seconds,
                }
                for chunk in record.chunks
            ],
        }

        tmp_data = data_path.with_suffix(".pcm.tmp")
        with open(tmp_data, 'wb') as f:
            for chunk in record.chunks:
                f.write(chunk.data)
        os.replace(tmp_data, data_path)

        tmp_meta = meta_path.with_suffix(".json.tmp")
        with open(tmp_meta, 'w', encoding='utf-8') as f:
            json.dump(metadata, f, indent=2)
        os.replace(tmp_meta, meta_path)

    def _delete(self, session_id: str) -> None:
        for path in self._paths(session_id):
            try:
                path.unlink()
            except FileNotFoundError:
                pass

    def get(self, session_id: str) -> Optional[CheckpointRecord]:
        _check_session_id(session_id)
        meta_path, data_path = self._paths(session_id)
        if not meta_path.exists() or not data_path.exists():
            return None

        with open(meta_path, 'r', encoding='utf-8') as f:
            metadata = json.load(f)
        payload = data_path.read_bytes()

        chunks = []
        offset = 0
        for entry in metadata["chunks"]:
            size = entry["size"]
            chunks.append(AudioChunk(
                sequence=entry["sequence"],
                data=payload[offset:offset + size],
                timestamp=entry["timestamp"],
                duration_seconds=entry["duration_seconds"],
            ))
            offset += size

        return CheckpointRecord(
            session_id=metadata["session_id"],
            chunks=chunks,
            timestamp=metadata["timestamp"],
            synced=metadata["synced"],
        )

    def session_ids(self) -> List[str]:
        if not self.directory.exists():
            return []
        return sorted(path.stem for path in self.directory.glob("*.json"))
