"""
Player Session

Headless control flow for a MiniPlayer front end: keeps the list of song
ids a view shows, tracks the selected song, and hands the selected song's
file to a playback engine. Every catalog change goes through the store.
"""

from typing import List, Optional, Protocol

from loguru import logger

from .catalog_store import CatalogStore
from .config import StorageConfig
from .models import Song
from .tags import read_song_details


class MediaPlayer(Protocol):
    """Playback engine: opens, plays and stops a media file by path."""

    def open(self, path: str) -> None: ...

    def play(self) -> None: ...

    def stop(self) -> None: ...


class PlayerSession:
    """Binds a CatalogStore to a MediaPlayer for one front-end session."""

    def __init__(self, store: CatalogStore, player: MediaPlayer) -> None:
        self.store = store
        self.player = player
        self.song_ids: List[int] = store.song_ids
        self.selected: Optional[Song] = None

    @classmethod
    def start(cls, player: MediaPlayer, config: Optional[StorageConfig] = None) -> "PlayerSession":
        """
        Open the catalog and select the first song.

        LoadError propagates: a front end must not continue without a catalog.
        """
        session = cls(CatalogStore.from_config(config), player)
        if session.song_ids:
            session.select(session.song_ids[0])
        return session

    def select(self, song_id: int) -> Optional[Song]:
        """Select a song and open its file. Unknown ids leave the selection alone."""
        song = self.store.get_song(song_id)
        if song is None:
            return None
        self.selected = song
        if song.filename:
            try:
                self.player.open(song.filename)
            except OSError as e:
                logger.warning(f"Could not open {song.filename}: {e}")
        return song

    def play(self) -> None:
        if self.selected is not None:
            self.player.play()

    def stop(self) -> None:
        if self.selected is not None:
            self.player.stop()

    # ------------------------------------------------------------------
    # Catalog edits
    # ------------------------------------------------------------------

    def add_song(self, song: Song) -> int:
        song_id = self.store.add_song(song)
        self.song_ids.append(song_id)
        return song_id

    def add_song_from_file(self, filename: str) -> Optional[int]:
        """Add a song pre-filled from the file's tags. None if they can't be read."""
        song = read_song_details(filename)
        if song is None:
            return None
        return self.add_song(song)

    def update_selected(self, song: Song) -> bool:
        if self.selected is None:
            return False
        if not self.store.update_song(self.selected.id, song):
            return False
        self.selected = self.store.get_song(self.selected.id)
        return True

    def delete_selected(self) -> bool:
        if self.selected is None:
            return False
        song_id = self.selected.id
        if not self.store.delete_song(song_id):
            return False
        self.player.stop()
        self.song_ids.remove(song_id)
        self.selected = None
        return True

    def save(self) -> None:
        self.store.save()
