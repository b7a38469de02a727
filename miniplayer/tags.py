"""
Tag Reader

Best-effort metadata pre-fill for the Add Song form, read from a media
file's embedded tags with mutagen. Failures are never raised.
"""

from typing import Optional

from loguru import logger
from mutagen import File as MutagenFile

from .models import Song


def format_length(seconds: float) -> str:
    """Format a duration in seconds as M:SS."""
    total = int(seconds) if seconds and seconds > 0 else 0
    minutes = total // 60
    secs = total % 60
    return f"{minutes}:{secs:02d}"


def _first(tags, key: str) -> str:
    values = tags.get(key) or []
    return str(values[0]) if values else ""


def read_song_details(filename: str) -> Optional[Song]:
    """
    Read song metadata from a media file's tags.

    Returns an unsaved Song (id 0) with filename set, or None if the file
    could not be read.
    """
    try:
        audio = MutagenFile(filename, easy=True)
        if audio is None:
            logger.debug(f"Unrecognised media file: {filename}")
            return None

        tags = audio.tags or {}
        artist = _first(tags, "albumartist") or _first(tags, "artist")
        length = float(audio.info.length) if getattr(audio, "info", None) else 0.0

        return Song(
            title=_first(tags, "title"),
            artist=artist,
            album=_first(tags, "album"),
            genre=_first(tags, "genre"),
            length=format_length(length),
            filename=filename,
        )
    except Exception as e:  # noqa: BLE001 - any tag problem means "no details"
        logger.debug(f"Could not read tags from {filename}: {e}")
        return None
