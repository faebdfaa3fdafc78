"""Story service — creation, composite updates, counters and deletion.

A composite update runs its sub-operations in a fixed order: field
edits, media removals, caption edits, media additions, then a fresh
read.  Removals land before caption edits so an id named in both is
simply gone, and additions land last so they are always present in the
final read.  Nothing is rolled back when a later step fails.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import date

from storyhub.content.models import (
    ItemOutcome,
    Language,
    Outcome,
    Story,
    StoryMetadata,
)
from storyhub.content.store import StoryStore, update_story
from storyhub.errors import NotFoundError, ValidationError
from storyhub.media.models import MediaAttachments
from storyhub.media.services import MediaCoordinator
from storyhub.stories.models import (
    BulkDeleteResult,
    CreateStoryRequest,
    ResolvedStory,
    StoryMetadataPatch,
    StoryWithStats,
    UpdateStoryCommand,
    UpdateStoryRequest,
)
from storyhub.stories.references import Reference, ReferenceDirectory

logger = logging.getLogger(__name__)

# Scalar fields copied verbatim when present in an update request.
_PLAIN_FIELDS = (
    "title",
    "body",
    "author_name",
    "author_role",
    "is_featured",
    "is_published",
    "language",
)


def check_published_date(published: date, *, today: date | None = None) -> None:
    """Reject publish dates later than today."""
    today = today or date.today()
    if published > today:
        raise ValidationError("Published date cannot be in the future")


def merge_metadata(existing: StoryMetadata | None, patch: StoryMetadataPatch) -> StoryMetadata:
    """Shallow-merge supplied metadata fields over the existing ones.

    ``tags`` is replaced wholesale when supplied, inherited otherwise.
    """
    base = (existing or StoryMetadata()).model_dump()
    updates = patch.model_dump(include=patch.model_fields_set, exclude_none=True)
    return StoryMetadata.model_validate({**base, **updates})


class StoryService:
    """Entry point for every story operation."""

    def __init__(
        self,
        store: StoryStore,
        coordinator: MediaCoordinator,
        *,
        programs: ReferenceDirectory | None = None,
        beneficiaries: ReferenceDirectory | None = None,
        max_save_retries: int = 3,
    ) -> None:
        self.store = store
        self.coordinator = coordinator
        self.programs = programs or ReferenceDirectory("program")
        self.beneficiaries = beneficiaries or ReferenceDirectory("beneficiary")
        self.max_save_retries = max_save_retries
        self._executor: ThreadPoolExecutor | None = None

    def __enter__(self) -> StoryService:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Wait for background work to finish."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # ── Private helpers ──────────────────────────────────────────

    def _update(self, story_id: str, change: Callable[[Story], None]) -> Story:
        return update_story(self.store, story_id, change, attempts=self.max_save_retries)

    @staticmethod
    def _require(directory: ReferenceDirectory, ref_id: str | None) -> Reference | None:
        return directory.get(ref_id) if ref_id else None

    @staticmethod
    def _lookup(directory: ReferenceDirectory, ref_id: str | None) -> Reference | None:
        if not ref_id:
            return None
        try:
            return directory.get(ref_id)
        except NotFoundError:
            logger.warning("Story references unknown %s %s", directory.kind, ref_id)
            return None

    # ── Creation ─────────────────────────────────────────────────

    def create_story(self, request: CreateStoryRequest) -> Story:
        """Validate references and dates, then save a new story without media.

        Raises:
            NotFoundError: If the program or beneficiary does not exist.
            ValidationError: If the publish date is in the future.
        """
        program = self._require(self.programs, request.program_id)
        beneficiary = self._require(self.beneficiaries, request.beneficiary_id)

        published_date = request.published_date or date.today()
        check_published_date(published_date)

        meta = request.metadata or StoryMetadataPatch()
        story = Story(
            title=request.title,
            body=request.body,
            author_name=request.author_name,
            author_role=request.author_role,
            program_id=program.id if program else None,
            beneficiary_id=beneficiary.id if beneficiary else None,
            is_featured=bool(request.is_featured),
            is_published=True if request.is_published is None else request.is_published,
            published_date=published_date,
            language=request.language or Language.EN,
            metadata=StoryMetadata(
                tags=meta.tags or [],
                location=meta.location or "",
                duration_seconds=meta.duration_seconds or 0,
            ),
        )
        saved = self.store.save(story)
        logger.info("Created story %s", saved.id)
        return saved

    def create_story_with_media(
        self,
        request: CreateStoryRequest,
        attachments: MediaAttachments | None = None,
    ) -> ResolvedStory:
        """Create a story, attach its media in order, and return it resolved.

        A media failure leaves the story created with the media added so far.
        """
        story = self.create_story(request)
        if attachments:
            self.coordinator.add_attachments(story.id, attachments)
        return self.get_story(story.id)

    # ── Updates ──────────────────────────────────────────────────

    def update_story(self, story_id: str, request: UpdateStoryRequest) -> Story:
        """Apply the fields present in ``request``; everything else is untouched.

        Raises:
            NotFoundError: If the story, program or beneficiary does not exist.
            ValidationError: If the publish date is in the future.
        """
        self.store.find_by_id(story_id)
        fields = request.model_fields_set

        program = self._require(self.programs, request.program_id)
        beneficiary = self._require(self.beneficiaries, request.beneficiary_id)
        if "published_date" in fields and request.published_date is not None:
            check_published_date(request.published_date)

        def change(story: Story) -> None:
            if "program_id" in fields:
                story.program_id = program.id if program else None
            if "beneficiary_id" in fields:
                story.beneficiary_id = beneficiary.id if beneficiary else None
            for name in _PLAIN_FIELDS:
                value = getattr(request, name)
                if name in fields and value is not None:
                    setattr(story, name, value)
            if "published_date" in fields and request.published_date is not None:
                story.published_date = request.published_date
            if "metadata" in fields and request.metadata is not None:
                story.metadata = merge_metadata(story.metadata, request.metadata)

        saved = self._update(story_id, change)
        logger.info("Updated story %s fields: %s", story_id, ", ".join(sorted(fields)) or "none")
        return saved

    def update_story_with_media(self, story_id: str, command: UpdateStoryCommand) -> ResolvedStory:
        """Run a composite update in its fixed order and return the fresh story.

        Steps already completed are kept when a later step raises.
        """
        if command.request.model_fields_set:
            self.update_story(story_id, command.request)
        else:
            self.store.find_by_id(story_id)

        if command.removals:
            result = self.coordinator.remove_many(story_id, command.removals)
            skipped = [o.id for o in result.outcomes if o.outcome != Outcome.OK]
            if skipped:
                logger.info("Story %s: removal incomplete for %s", story_id, ", ".join(skipped))

        if command.caption_updates:
            self.coordinator.update_captions(story_id, command.caption_updates)

        if command.attachments:
            self.coordinator.add_attachments(story_id, command.attachments)

        return self.get_story(story_id)

    def toggle_featured(self, story_id: str) -> Story:
        return self._update(story_id, lambda s: setattr(s, "is_featured", not s.is_featured))

    def toggle_published(self, story_id: str) -> Story:
        return self._update(story_id, lambda s: setattr(s, "is_published", not s.is_published))

    def bulk_update_flags(
        self,
        story_ids: Sequence[str],
        *,
        is_published: bool | None = None,
        is_featured: bool | None = None,
        language: Language | None = None,
    ) -> int:
        """Set publication flags on many stories; returns how many were updated.

        Unknown ids are skipped.
        """
        updates = {
            k: v
            for k, v in (
                ("is_published", is_published),
                ("is_featured", is_featured),
                ("language", language),
            )
            if v is not None
        }
        if not updates:
            return 0

        def change(story: Story) -> None:
            for name, value in updates.items():
                setattr(story, name, value)

        updated = 0
        for story_id in dict.fromkeys(story_ids):
            try:
                self._update(story_id, change)
            except NotFoundError:
                logger.debug("Skipping unknown story %s in bulk update", story_id)
                continue
            updated += 1
        return updated

    # ── Counters ─────────────────────────────────────────────────

    def increment_view_count(self, story_id: str) -> Story:
        return self._update(story_id, lambda s: setattr(s, "view_count", s.view_count + 1))

    def increment_share_count(self, story_id: str) -> Story:
        return self._update(story_id, lambda s: setattr(s, "share_count", s.share_count + 1))

    def record_view(self, story_id: str) -> Future[Story]:
        """Increment the view count in the background without waiting.

        Failures are logged and otherwise ignored.
        """
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="storyhub-views")
        future = self._executor.submit(self.increment_view_count, story_id)
        future.add_done_callback(lambda f: self._log_view_failure(story_id, f))
        return future

    @staticmethod
    def _log_view_failure(story_id: str, future: Future[Story]) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning("Failed to record view for story %s: %s", story_id, exc)

    # ── Reads ────────────────────────────────────────────────────

    def get_story(self, story_id: str) -> ResolvedStory:
        """Return the story with its program and beneficiary resolved.

        Raises NotFoundError if the story does not exist.
        """
        story = self.store.find_by_id(story_id)
        return ResolvedStory(
            story=story,
            program=self._lookup(self.programs, story.program_id),
            beneficiary=self._lookup(self.beneficiaries, story.beneficiary_id),
        )

    def get_story_with_stats(self, story_id: str) -> StoryWithStats:
        resolved = self.get_story(story_id)
        story = resolved.story
        duration = story.metadata.duration_seconds if story.metadata else 0
        return StoryWithStats(
            **dict(resolved),
            reading_time_minutes=math.ceil(duration / 60),
            media_count=len(story.media),
            engagement=story.view_count + story.share_count * 2,
        )

    # ── Deletion ─────────────────────────────────────────────────

    def delete_story(self, story_id: str) -> None:
        """Purge a story's media from storage, then delete the record.

        Raises NotFoundError if the story does not exist.
        """
        self.store.find_by_id(story_id)
        self.coordinator.purge_all(story_id)
        self.store.delete(story_id)
        logger.info("Deleted story %s", story_id)

    def bulk_delete_stories(self, story_ids: Sequence[str]) -> BulkDeleteResult:
        """Delete each story in turn, logging and skipping failures."""
        outcomes: list[ItemOutcome] = []
        for story_id in story_ids:
            try:
                self.delete_story(story_id)
            except NotFoundError as exc:
                logger.warning("Failed to delete story %s: %s", story_id, exc)
                outcomes.append(
                    ItemOutcome(id=story_id, outcome=Outcome.NOT_FOUND, detail=str(exc))
                )
            except Exception as exc:
                logger.warning("Failed to delete story %s", story_id, exc_info=True)
                outcomes.append(ItemOutcome(id=story_id, outcome=Outcome.FAILED, detail=str(exc)))
            else:
                outcomes.append(ItemOutcome(id=story_id, outcome=Outcome.OK))

        result = BulkDeleteResult(outcomes=outcomes)
        logger.info("Bulk delete removed %d of %d stories", result.deleted_count, len(story_ids))
        return result
