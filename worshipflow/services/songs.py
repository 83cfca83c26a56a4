"""
WorshipFlow Song Manager - Song Service

Query and mutation logic for the ``songs`` collection:

- listing with free-text search, tag filter and title ordering
- fetch by id with tags resolved
- creation with required-field validation and duplicate detection
- full-overwrite updates
- idempotent deletion (single and bulk)

The catalog is small, so listing loads both collections in full and filters
in memory.  Nothing here is transactional: two concurrent creates of the
same title/artist can both pass the duplicate check.
"""

from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from worshipflow.database import SERVER_TIMESTAMP, DocumentStore, require_store
from worshipflow.errors import ConflictError, NotFoundError, ValidationError
from worshipflow.services.tags import TAGS_COLLECTION, index_tags, with_resolved_tags
from worshipflow.utils import as_text, collation_key, normalize_key

SONGS_COLLECTION = "songs"

# Fields matched by the free-text search, besides tag names
SEARCHABLE_FIELDS = ("title", "artist", "lyrics", "chords")


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------
def matches_search(song: Dict[str, Any], term: str) -> bool:
    """
    True if *term* occurs, case-insensitively, in the song's title, artist,
    lyrics or chords, or in the name of one of its resolved tags.
    """
    needle = term.lower()
    for field in SEARCHABLE_FIELDS:
        if needle in as_text(song.get(field)).lower():
            return True
    return any(needle in as_text(tag.get("name")).lower() for tag in song.get("tags", []))


def has_tag(song: Dict[str, Any], tag_id: str) -> bool:
    """True if *tag_id* is in the song's stored ``tagIds``."""
    tag_ids = song.get("tagIds") or []
    return isinstance(tag_ids, list) and tag_id in tag_ids


def filter_songs(
    songs: List[Dict[str, Any]],
    search: Optional[str] = None,
    tag_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Apply the search filter, then the tag filter, then sort by title."""
    result = songs
    if search:
        result = [s for s in result if matches_search(s, search)]
    if tag_id:
        result = [s for s in result if has_tag(s, tag_id)]
    # sorted() is stable, so songs with equal titles keep their store order
    return sorted(result, key=lambda s: collation_key(s.get("title")))


def missing_required_fields(
    title: Any, artist: Any, lyrics: Any, tag_ids: Any
) -> List[str]:
    """Labels of every required field that is absent or blank."""
    missing: List[str] = []
    if not as_text(title).strip():
        missing.append("Title")
    if not as_text(artist).strip():
        missing.append("Artist")
    if not as_text(lyrics).strip():
        missing.append("Lyrics")
    if not tag_ids:
        missing.append("Tags (at least one)")
    return missing


def find_duplicate(
    songs: Iterable[Dict[str, Any]], title: str, artist: str
) -> Optional[Dict[str, Any]]:
    """Return the first song whose trimmed, lowercased title and artist match."""
    key = (normalize_key(title), normalize_key(artist))
    for song in songs:
        if (normalize_key(song.get("title")), normalize_key(song.get("artist"))) == key:
            return song
    return None


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class SongService:
    """CRUD operations over songs, with tags resolved on every read."""

    def __init__(self, store: Optional[DocumentStore]):
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return require_store(self._store)

    async def _tag_index(self) -> Dict[str, Dict[str, Any]]:
        return index_tags(await self.store.list_documents(TAGS_COLLECTION))

    async def list_songs(
        self,
        search: Optional[str] = None,
        tag_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return songs matching *search* and *tag_id*, sorted by title."""
        songs = await self.store.list_documents(SONGS_COLLECTION)
        tags_by_id = await self._tag_index()
        resolved = [with_resolved_tags(song, tags_by_id) for song in songs]
        return filter_songs(resolved, search=search, tag_id=tag_id)

    async def get_song(self, song_id: str) -> Dict[str, Any]:
        """Fetch a single song with its tags resolved."""
        song = await self.store.get_document(SONGS_COLLECTION, song_id)
        if song is None:
            raise NotFoundError("Song not found")
        return with_resolved_tags(song, await self._tag_index())

    async def create_song(
        self,
        title: Any = None,
        artist: Any = None,
        lyrics: Any = None,
        chords: Optional[str] = None,
        tag_ids: Optional[List[str]] = None,
        video_url: Optional[str] = None,
    ) -> str:
        """
        Validate and store a new song, returning its id.

        Title, artist, lyrics and at least one tag are required; all missing
        fields are reported together.  A song whose trimmed, case-folded
        title and artist match an existing song is rejected.
        """
        missing = missing_required_fields(title, artist, lyrics, tag_ids)
        if missing:
            raise ValidationError(
                f"The following required fields are missing: {', '.join(missing)}."
            )

        store = self.store
        existing = await store.list_documents(SONGS_COLLECTION)
        if find_duplicate(existing, title, artist) is not None:
            logger.warning("⚠️ Duplicate song rejected: {} - {}", title, artist)
            raise ConflictError(
                f'Duplicate song detected! "{title}" by "{artist}" '
                "already exists in the database."
            )

        song_id = await store.add_document(
            SONGS_COLLECTION,
            {
                "title": title.strip(),
                "artist": artist.strip(),
                "lyrics": lyrics.strip(),
                "chords": chords or "",
                "tagIds": list(tag_ids),
                "video_url": video_url or "",
                "created_at": SERVER_TIMESTAMP,
                "updated_at": SERVER_TIMESTAMP,
            },
        )
        logger.success(f"✅ Song added (id={song_id}): {title.strip()} - {artist.strip()}")
        return song_id

    async def update_song(
        self,
        song_id: str,
        title: Optional[str] = None,
        artist: Optional[str] = None,
        lyrics: Optional[str] = None,
        chords: Optional[str] = None,
        tag_ids: Optional[List[str]] = None,
        video_url: Optional[str] = None,
    ) -> None:
        """
        Overwrite every editable field of an existing song.

        No validation and no duplicate check: omitted fields become empty.
        ``created_at`` is kept, ``updated_at`` is refreshed.  Raises
        NotFoundError if the song does not exist.
        """
        updated = await self.store.update_document(
            SONGS_COLLECTION,
            song_id,
            {
                "title": title or "",
                "artist": artist or "",
                "lyrics": lyrics or "",
                "chords": chords or "",
                "tagIds": list(tag_ids or []),
                "video_url": video_url or "",
                "updated_at": SERVER_TIMESTAMP,
            },
        )
        if not updated:
            raise NotFoundError("Song not found")
        logger.info(f"✏️ Song id={song_id} updated")

    async def delete_song(self, song_id: str) -> None:
        """Delete a song.  Deleting an unknown id is not an error."""
        deleted = await self.store.delete_document(SONGS_COLLECTION, song_id)
        if deleted:
            logger.info(f"🗑️ Song id={song_id} deleted")
        else:
            logger.debug(f"Song id={song_id} already absent")

    async def delete_songs(self, song_ids: Iterable[str]) -> int:
        """Delete several songs.  Unknown ids are ignored.  Returns the count removed."""
        deleted = await self.store.delete_documents(SONGS_COLLECTION, song_ids)
        logger.info("🗑️ Bulk delete removed {} song(s)", deleted)
        return deleted
