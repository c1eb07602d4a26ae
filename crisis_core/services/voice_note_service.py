# =============================================================================
# crisis_core/services/voice_note_service.py
# Local storage for recorded voice check-ins
# =============================================================================
"""
Stores recorded audio blobs under the local data directory and hands back a
playable reference (the file path). Audio is stored as recorded; no
transcoding.
"""

from __future__ import annotations
import uuid
from pathlib import Path
from typing import Tuple, Union

from crisis_core.errors import PersistenceError

from .base_service import BaseService

MIME_EXTENSIONS = {
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/mpeg": ".mp3",
}


class VoiceNoteService(BaseService):

    def __init__(self, directory: Union[str, Path]):
        super().__init__()
        self.directory = Path(directory)

    def save(self, member_id: str, audio: bytes, mime_type: str = "audio/wav") -> Tuple[str, str]:
        """
        Persist one recording.

        Returns:
            (note_id, url) where url is a playable local reference

        Raises:
            PersistenceError: empty audio or the file cannot be written
        """
        if not audio:
            raise PersistenceError("No audio was recorded", key=member_id)

        note_id = f"vn_{uuid.uuid4().hex[:12]}"
        extension = MIME_EXTENSIONS.get(mime_type, ".wav")
        member_dir = self.directory / member_id
        path = member_dir / f"{note_id}{extension}"
        try:
            member_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(audio)
        except OSError as e:
            raise PersistenceError(f"Could not store voice note: {e}", key=member_id)

        self.logger.info(f"Stored voice note {note_id} for {member_id} ({len(audio)} bytes)")
        return note_id, str(path)

    def delete(self, url: str) -> bool:
        """Remove a stored recording. Returns False when it was already gone."""
        path = Path(url)
        if self.directory.resolve() not in path.resolve().parents:
            self.logger.warning(f"Refusing to delete voice note outside storage: {url}")
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceError(f"Could not delete voice note: {e}", key=url)
        return True
