"""
Catalog Store for MiniPlayer

Loads the song catalog from a schema + data file pair into memory, answers
queries, applies add/update/delete, keeps playlist links consistent with
songs, and writes the whole catalog back on save().

Nothing is persisted until save() is called.

Usage:
    store = CatalogStore.open("music.xsd", "music.xml")
    for song_id in store.song_ids:
        print(store.get_song(song_id))
    new_id = store.add_song(Song(title="Intro", artist="Someone"))
    store.delete_song(new_id)
    store.save()
"""

from __future__ import annotations

import io
import os
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from loguru import logger
from pydantic import ValidationError

from .config import StorageConfig
from .errors import LoadError, StorageError
from .models import PLAYLIST_SONG_TABLE, SONG_TABLE, PlaylistSong, Song
from .schema import CatalogSchema, Source, load_schema, parse_xml

Row = Dict[str, Optional[str]]
XML_DECLARATION = "<?xml version='1.0' encoding='utf-8'?>\n"


class CatalogStore:
    """
    Sole owner of the in-memory catalog and its persisted form.

    Two states: uninitialized and ready. initialize() is the only way into
    the ready state; every other operation raises RuntimeError before it.
    Not thread-safe; callers issue one operation at a time.
    """

    def __init__(self) -> None:
        self.schema: Optional[CatalogSchema] = None
        self.data_source: Optional[Source] = None
        self._songs: Dict[int, Song] = {}
        self._links: List[PlaylistSong] = []
        self._other_rows: List[Tuple[str, Row]] = []  # tables the store does not own
        self._next_id = 1
        self._id_step = 1
        self._ready = False

    @classmethod
    def open(cls, schema_source: Source, data_source: Source) -> "CatalogStore":
        store = cls()
        store.initialize(schema_source, data_source)
        return store

    @classmethod
    def from_config(cls, config: Optional[StorageConfig] = None) -> "CatalogStore":
        """Open the store at the configured locations (environment if not given)."""
        config = config or StorageConfig.from_env()
        return cls.open(config.schema_path, config.data_path)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def initialize(self, schema_source: Source, data_source: Source) -> None:
        """
        Read the schema, then the data, into memory.

        Raises:
            LoadError: if either source is missing, malformed, or the data
                does not match the schema. The store stays uninitialized.
        """
        if self._ready:
            raise RuntimeError("Catalog store already initialized")

        try:
            schema = load_schema(schema_source)
            songs, links, other_rows = self._read_catalog(schema, data_source)
        except LoadError as e:
            logger.error(f"Failed to load catalog: {e}")
            raise

        id_column = schema.table(SONG_TABLE).column("id")
        self._id_step = id_column.auto_increment_step
        seed = id_column.auto_increment_seed
        self._next_id = max(seed, max(songs) + self._id_step) if songs else seed

        self.schema = schema
        self.data_source = data_source
        self._songs = songs
        self._links = links
        self._other_rows = other_rows
        self._ready = True
        logger.info(
            f"Catalog loaded: {len(songs)} songs, {len(links)} playlist links "
            f"from {self._describe(data_source)}"
        )

    def _read_catalog(
        self, schema: CatalogSchema, data_source: Source
    ) -> Tuple[Dict[int, Song], List[PlaylistSong], List[Tuple[str, Row]]]:
        root = parse_xml(data_source, "catalog data").getroot()
        if root.tag != schema.root:
            raise LoadError(f"Data root <{root.tag}> does not match schema root <{schema.root}>")

        songs: Dict[int, Song] = {}
        links: List[PlaylistSong] = []
        other_rows: List[Tuple[str, Row]] = []
        seen_keys: Dict[str, Set[str]] = {}
        for element in root:
            if element.tag not in schema.tables:
                raise LoadError(f"Data contains rows for undeclared table '{element.tag}'")
            values = schema.parse_row(element.tag, element)
            self._check_unique_key(schema, element.tag, values, seen_keys)
            if element.tag == SONG_TABLE:
                song = self._song_from_row(values)
                if song.id in songs:
                    raise LoadError(f"Duplicate song id {song.id} in catalog data")
                songs[song.id] = song
            elif element.tag == PLAYLIST_SONG_TABLE:
                links.append(PlaylistSong(
                    playlist_id=int(values["playlist_id"]),
                    song_id=int(values["song_id"]),
                ))
            else:
                other_rows.append((element.tag, values))

        dangling = [link for link in links if link.song_id not in songs]
        if dangling:
            raise LoadError(
                f"{len(dangling)} playlist link(s) reference missing songs, "
                f"first: playlist {dangling[0].playlist_id} -> song {dangling[0].song_id}"
            )
        return songs, links, other_rows

    @staticmethod
    def _check_unique_key(
        schema: CatalogSchema, table_name: str, values: Row, seen_keys: Dict[str, Set[str]]
    ) -> None:
        """Enforce the primary key the schema declares for a table."""
        key = schema.table(table_name).primary_key
        if key is None or values[key] is None:
            return
        seen = seen_keys.setdefault(table_name, set())
        if values[key] in seen:
            raise LoadError(f"Duplicate {table_name} {key} {values[key]} in catalog data")
        seen.add(values[key])

    @staticmethod
    def _song_from_row(values: Row) -> Song:
        try:
            return Song(
                id=int(values["id"]),
                title=values["title"] or "",
                artist=values["artist"] or "",
                album=values["album"] or "",
                genre=values["genre"] or "",
                length=values["length"] or "",
                filename=values["filename"],
            )
        except ValidationError as e:
            raise LoadError(f"Invalid song row (id={values.get('id')}): {e}") from e

    @property
    def is_ready(self) -> bool:
        return self._ready

    def _require_ready(self) -> None:
        if not self._ready:
            raise RuntimeError("Catalog store not initialized")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_song_ids(self) -> List[int]:
        """Every song id in ascending order. A new list on every call."""
        self._require_ready()
        return sorted(self._songs)

    @property
    def song_ids(self) -> List[int]:
        return self.list_song_ids()

    def get_song(self, song_id: int) -> Optional[Song]:
        """Return a copy of the song with this id, or None if there is none."""
        self._require_ready()
        song = self._songs.get(song_id)
        return song.model_copy() if song is not None else None

    @property
    def links(self) -> List[PlaylistSong]:
        self._require_ready()
        return list(self._links)

    def playlist_song_ids(self, playlist_id: int) -> List[int]:
        """Song ids in a playlist, in link order."""
        self._require_ready()
        return [link.song_id for link in self._links if link.playlist_id == playlist_id]

    # ------------------------------------------------------------------
    # Mutations (in memory until save())
    # ------------------------------------------------------------------

    def add_song(self, song: Song) -> int:
        """
        Add a song and return its newly assigned id.

        Any id already on the song is ignored. The song's id is updated to
        the assigned one so the caller can use it straight away.
        """
        self._require_ready()
        song_id = self._next_id
        self._next_id += self._id_step

        song.id = song_id
        self._songs[song_id] = song.model_copy()
        logger.debug(f"Added song {song}")
        return song_id

    def update_song(self, song_id: int, song: Song) -> bool:
        """Overwrite every field but the id. False if no song has this id."""
        self._require_ready()
        if song_id not in self._songs:
            return False
        self._songs[song_id] = song.model_copy(update={"id": song_id})
        logger.debug(f"Updated song {song_id}")
        return True

    def delete_song(self, song_id: int) -> bool:
        """
        Delete a song and every playlist link that references it.

        Returns False, touching nothing, if no song has this id.
        """
        self._require_ready()
        if song_id not in self._songs:
            return False
        del self._songs[song_id]

        # Collect first, then remove
        doomed = [i for i, link in enumerate(self._links) if link.song_id == song_id]
        for i in reversed(doomed):
            del self._links[i]

        logger.debug(f"Deleted song {song_id} and {len(doomed)} playlist link(s)")
        return True

    def add_link(self, playlist_id: int, song_id: int) -> bool:
        """Put a song in a playlist. False if the song does not exist."""
        self._require_ready()
        if song_id not in self._songs:
            return False
        self._links.append(PlaylistSong(playlist_id=playlist_id, song_id=song_id))
        return True

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save(self) -> None:
        """
        Write the whole catalog to the data source, replacing its contents.

        Raises:
            StorageError: if the data source cannot be written. The in-memory
                catalog is unaffected.
        """
        self._require_ready()
        text = self._serialize()

        target = self.data_source
        logger.info(f"Saving catalog to {self._describe(target)}")
        tmp: Optional[Path] = None
        try:
            if isinstance(target, (str, os.PathLike)):
                path = Path(target)
                tmp = path.with_suffix(path.suffix + ".tmp")
                with tmp.open("w", encoding="utf-8", newline="") as fh:
                    fh.write(XML_DECLARATION + text)
                tmp.replace(path)
            else:
                target.seek(0)
                target.truncate()
                if isinstance(target, io.TextIOBase):
                    target.write(text)
                else:
                    target.write((XML_DECLARATION + text).encode("utf-8"))
                target.flush()
        except (OSError, ValueError) as e:
            if tmp is not None:
                tmp.unlink(missing_ok=True)
            logger.error(f"Failed to save catalog: {e}")
            raise StorageError(f"Failed to save catalog: {e}") from e

    def _serialize(self) -> str:
        root = self._build_document()
        ET.indent(root, space="  ")
        # ElementTree leaves carriage returns raw; parsers normalise those to \n
        return ET.tostring(root, encoding="unicode").replace("\r", "&#13;") + "\n"

    def _build_document(self) -> ET.Element:
        """Lay out every table's rows in schema table order."""
        schema = self.schema
        root = ET.Element(schema.root)
        for table_name in schema.tables:
            if table_name == SONG_TABLE:
                rows = [self._song_row(self._songs[i]) for i in sorted(self._songs)]
            elif table_name == PLAYLIST_SONG_TABLE:
                rows = [
                    {"playlist_id": str(link.playlist_id), "song_id": str(link.song_id)}
                    for link in self._links
                ]
            else:
                rows = [values for name, values in self._other_rows if name == table_name]
            for values in rows:
                root.append(schema.build_row(table_name, values))
        return root

    @staticmethod
    def _song_row(song: Song) -> Row:
        return {"id": str(song.id), **song.descriptive_fields()}

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def dump_tables(self) -> None:
        """Log every table and row at DEBUG level."""
        self._require_ready()
        for row in self._build_document():
            cells = " ".join(f"{col.tag}={col.text or ''}" for col in row)
            logger.debug(f"{row.tag}: {cells}")

    @staticmethod
    def _describe(source: Optional[Source]) -> str:
        if isinstance(source, (str, os.PathLike)):
            return str(source)
        return type(source).__name__

    def __repr__(self) -> str:
        status = f"{len(self._songs)} songs, {len(self._links)} links" if self._ready else "not loaded"
        return f"CatalogStore({status}, data={self._describe(self.data_source)})"
