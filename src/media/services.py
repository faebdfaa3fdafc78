"""Media asset lifecycle: add, caption, remove and purge story media.

The coordinator is the only component that adds or drops MediaItems, and
it keeps each story's media list in step with the object store.  There
is no transaction spanning the two: uploads happen before the record is
saved and deletions happen before the filtered list is saved, so a
failure between the steps leaves an orphaned object or a dangling entry.
The per-story folder purge on deletion reclaims whatever is left over.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from storyhub.content.models import (
    ItemOutcome,
    MediaItem,
    MediaKind,
    Outcome,
    Story,
    UploadedFile,
)
from storyhub.content.store import StoryStore, update_story
from storyhub.errors import NotFoundError, UpstreamStorageError
from storyhub.integrations.storage import DEFAULT_PREVIEW_WIDTH, ObjectStorage
from storyhub.media.models import CaptionUpdate, MediaAttachments, MediaRemovalResult
from storyhub.media.payload import align_media
from storyhub.media.validation import validate_media_file

logger = logging.getLogger(__name__)


class MediaCoordinator:
    """Orchestrates media changes across validator, object store and story store."""

    def __init__(
        self,
        store: StoryStore,
        storage: ObjectStorage,
        *,
        max_save_retries: int = 3,
        preview_width: int = DEFAULT_PREVIEW_WIDTH,
    ) -> None:
        self.store = store
        self.storage = storage
        self.max_save_retries = max_save_retries
        self.preview_width = preview_width

    # ── Private helpers ──────────────────────────────────────────

    def _update(self, story_id: str, change: Callable[[Story], None]) -> Story:
        return update_story(self.store, story_id, change, attempts=self.max_save_retries)

    @staticmethod
    def _placeholder_caption(story: Story, kind: MediaKind) -> str:
        return f"{kind.value} for story {story.title.en or story.id}"

    def _delete_assets(self, item: MediaItem) -> None:
        """Delete an item's primary object and its thumbnail object, if any."""
        self.storage.delete(item.public_id, resource_type=item.kind.value)
        if item.thumbnail_public_id:
            self.storage.delete(item.thumbnail_public_id, resource_type="image")

    # ── Additions ────────────────────────────────────────────────

    def add_one(
        self,
        story_id: str,
        file: UploadedFile | None,
        kind: MediaKind,
        caption: str | None = None,
    ) -> Story:
        """Validate, upload and append one media item.

        Raises:
            NotFoundError: If the story does not exist.
            ValidationError: If the file is missing or violates the rules
                for ``kind``; nothing is uploaded or saved.
            UpstreamStorageError: If the upload fails.
        """
        story = self.store.find_by_id(story_id)
        validate_media_file(file, kind)

        uploaded = self.storage.upload(story_id, file, kind)
        if kind == MediaKind.VIDEO:
            thumbnail_url = self.storage.derive_preview_url(
                uploaded.public_id, width=self.preview_width, format="jpg"
            )
        else:
            thumbnail_url = uploaded.url

        item = MediaItem(
            url=uploaded.url,
            public_id=uploaded.public_id,
            kind=kind,
            caption=caption or self._placeholder_caption(story, kind),
            thumbnail_url=thumbnail_url,
        )
        try:
            saved = self._update(story_id, lambda s: s.media.append(item.model_copy()))
        except Exception:
            logger.error(
                "Uploaded %s but story %s was not saved; object is orphaned",
                uploaded.public_id, story_id,
            )
            raise

        logger.info("Attached %s %s to story %s", kind.value, uploaded.public_id, story_id)
        return saved

    def add_many(
        self,
        story_id: str,
        files: Sequence[UploadedFile],
        kinds: Sequence[MediaKind],
        captions: Sequence[str],
    ) -> Story:
        """Add files one after another, in order.

        Earlier uploads are kept when a later file fails; the first failure
        propagates and the story is left partially updated.
        """
        return self.add_attachments(story_id, align_media(files, kinds, captions))

    def add_attachments(self, story_id: str, attachments: MediaAttachments) -> Story:
        """Add already-aligned attachments one after another."""
        story: Story | None = None
        for attachment in attachments.items:
            story = self.add_one(story_id, attachment.file, attachment.kind, attachment.caption)
        return story if story is not None else self.store.find_by_id(story_id)

    # ── Removals ─────────────────────────────────────────────────

    def _remove_item(self, story_id: str, item: MediaItem) -> Story:
        self._delete_assets(item)
        saved = self._update(
            story_id,
            lambda s: setattr(s, "media", [m for m in s.media if m.public_id != item.public_id]),
        )
        logger.info("Removed %s %s from story %s", item.kind.value, item.public_id, story_id)
        return saved

    def remove_one(self, story_id: str, public_id: str) -> Story:
        """Delete one item's objects, then drop it from the story.

        Raises:
            NotFoundError: If the story or the media item does not exist.
            UpstreamStorageError: If the object store refuses the delete;
                the story is left unchanged.
        """
        story = self.store.find_by_id(story_id)
        item = story.find_media(public_id)
        if item is None:
            raise NotFoundError(f"Media with publicId {public_id} not found")
        return self._remove_item(story_id, item)

    def remove_by_url(self, story_id: str, url: str) -> Story:
        """Same as ``remove_one`` but looks the item up by its primary URL."""
        story = self.store.find_by_id(story_id)
        item = next((m for m in story.media if m.url == url), None)
        if item is None:
            raise NotFoundError(f"Media with URL {url} not found")
        return self._remove_item(story_id, item)

    def remove_many(self, story_id: str, public_ids: Sequence[str]) -> MediaRemovalResult:
        """Best-effort removal of several items with a single save.

        Unknown ids are reported as ``not_found``.  A failed storage delete
        is logged and reported as ``failed``; the item is still dropped
        from the story, leaving the object for the folder purge.
        """
        story = self.store.find_by_id(story_id)
        outcomes: list[ItemOutcome] = []
        for public_id in dict.fromkeys(public_ids):
            item = story.find_media(public_id)
            if item is None:
                outcomes.append(ItemOutcome(id=public_id, outcome=Outcome.NOT_FOUND))
                continue
            try:
                self._delete_assets(item)
            except UpstreamStorageError as exc:
                logger.warning(
                    "Could not delete %s for story %s; dropping it anyway",
                    public_id, story_id, exc_info=True,
                )
                outcomes.append(ItemOutcome(id=public_id, outcome=Outcome.FAILED, detail=str(exc)))
            else:
                outcomes.append(ItemOutcome(id=public_id, outcome=Outcome.OK))

        doomed = {o.id for o in outcomes if o.outcome != Outcome.NOT_FOUND}
        if doomed:
            story = self._update(
                story_id,
                lambda s: setattr(s, "media", [m for m in s.media if m.public_id not in doomed]),
            )
            logger.info("Removed %d media item(s) from story %s", len(doomed), story_id)
        return MediaRemovalResult(story=story, outcomes=outcomes)

    # ── Captions ─────────────────────────────────────────────────

    def update_caption(self, story_id: str, public_id: str, caption: str) -> Story:
        """Change the caption of one item.

        Raises NotFoundError if the story or the item does not exist.
        """

        def change(story: Story) -> None:
            item = story.find_media(public_id)
            if item is None:
                raise NotFoundError(f"Media with publicId {public_id} not found")
            item.caption = caption

        return self._update(story_id, change)

    def update_captions(self, story_id: str, updates: Sequence[CaptionUpdate]) -> Story:
        """Change several captions in one save; unknown ids are ignored."""
        if not updates:
            return self.store.find_by_id(story_id)

        def change(story: Story) -> None:
            for update in updates:
                item = story.find_media(update.public_id)
                if item is not None:
                    item.caption = update.caption

        return self._update(story_id, change)

    # ── Purge ────────────────────────────────────────────────────

    def purge_all(self, story_id: str) -> None:
        """Delete every object belonging to a story, best-effort.

        Deletes each item's objects, then the whole story folder so that
        stragglers from earlier failed operations go too.  Storage failures
        are logged and skipped.  The story record itself is not modified.
        """
        story = self.store.find_by_id(story_id)
        for item in story.media:
            try:
                self._delete_assets(item)
            except UpstreamStorageError:
                logger.warning(
                    "Could not delete %s while purging story %s",
                    item.public_id, story_id, exc_info=True,
                )

        folder = self.storage.folder_for(story_id)
        try:
            self.storage.delete_folder(folder)
        except UpstreamStorageError:
            logger.warning("Could not delete folder %s", folder, exc_info=True)
        logger.info("Purged media for story %s", story_id)
