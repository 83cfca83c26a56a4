"""
WorshipFlow Song Manager - Tag Service

Tags are labels (name + presentation color) applied to songs through the
song's ``tagIds`` list.  Two rules hold for the tag collection:

- names are unique (exact, case-sensitive match)
- the four default tags (Joyful, Solemn, English, Tagalog) always exist

Neither rule is enforced when tags are written.  Instead, every listing
walks the collection, deletes later duplicates and recreates any missing
default tag before returning.  Tag-set changes are rare and made by a
handful of people, so the lazy repair is enough.

This module also owns tag resolution: turning a song's stored ``tagIds``
into the Tag records they point at.
"""

from typing import Any, Dict, List, Optional

from loguru import logger

from worshipflow.config import DEFAULT_TAG_COLOR, DEFAULT_TAGS
from worshipflow.database import DocumentStore, require_store
from worshipflow.errors import ValidationError
from worshipflow.utils import collation_key

TAGS_COLLECTION = "tags"


# ---------------------------------------------------------------------------
# Tag resolution
# ---------------------------------------------------------------------------
def index_tags(tags: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Map tag id -> tag record."""
    return {tag["id"]: tag for tag in tags}


def resolve_song_tags(
    song: Dict[str, Any], tags_by_id: Dict[str, Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """
    Return the Tag records referenced by ``song["tagIds"]``, in that order.

    Ids that no longer match an existing tag are dropped silently.  The
    result is computed on every read and never written back.
    """
    tag_ids = song.get("tagIds") or []
    if not isinstance(tag_ids, list):
        return []
    return [tags_by_id[tid] for tid in tag_ids if tid in tags_by_id]


def with_resolved_tags(
    song: Dict[str, Any], tags_by_id: Dict[str, Dict[str, Any]]
) -> Dict[str, Any]:
    """Copy of *song* with its derived ``tags`` field filled in."""
    return {**song, "tags": resolve_song_tags(song, tags_by_id)}


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class TagService:
    """List, create and delete tags.  Listing also repairs the collection."""

    def __init__(self, store: Optional[DocumentStore]):
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return require_store(self._store)

    async def list_tags(self) -> List[Dict[str, Any]]:
        """
        Return all tags sorted by name, after repairing the collection.

        1. Fetch tags ordered by ``name``.
        2. Delete every tag whose name was already seen earlier in that
           order; the first one wins.
        3. Create any default tag that is still missing.
        4. Re-sort by name if anything was added.
        """
        store = self.store
        tags = await store.list_documents(TAGS_COLLECTION, order_by="name")

        seen_names: set = set()
        unique_tags: List[Dict[str, Any]] = []
        for tag in tags:
            name = tag.get("name")
            if name in seen_names:
                await store.delete_document(TAGS_COLLECTION, tag["id"])
                logger.warning(
                    "🧹 Removed duplicate tag '{}' (id={})", name, tag["id"]
                )
                continue
            seen_names.add(name)
            unique_tags.append(tag)

        added = False
        for default in DEFAULT_TAGS:
            if default["name"] in seen_names:
                continue
            tag_id = await store.add_document(TAGS_COLLECTION, dict(default))
            unique_tags.append({"id": tag_id, **default})
            seen_names.add(default["name"])
            added = True
            logger.info("🏷️ Seeded default tag '{}' (id={})", default["name"], tag_id)

        if added:
            unique_tags.sort(key=lambda t: collation_key(t.get("name")))

        return unique_tags

    async def create_tag(self, name: Any, color: Optional[str] = None) -> str:
        """
        Store a new tag and return its id.

        Duplicate names are accepted here; the next listing removes them.
        """
        if not isinstance(name, str):
            raise ValidationError("Tag name is required")
        tag_id = await self.store.add_document(
            TAGS_COLLECTION, {"name": name, "color": color or DEFAULT_TAG_COLOR}
        )
        logger.success("✅ Tag created (id={}): {}", tag_id, name)
        return tag_id

    async def delete_tag(self, tag_id: str) -> None:
        """
        Delete a tag.  Deleting an unknown id is not an error.

        Songs that reference the tag keep the id in ``tagIds``; resolution
        simply skips it from now on.
        """
        deleted = await self.store.delete_document(TAGS_COLLECTION, tag_id)
        if deleted:
            logger.info("🗑️ Tag id={} deleted", tag_id)
        else:
            logger.debug("Tag id={} already absent", tag_id)
