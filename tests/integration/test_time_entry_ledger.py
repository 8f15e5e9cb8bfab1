"""
Integration tests for the time entry ledger: bounds, provenance,
tag replacement and filtered listing.
"""

from datetime import datetime, timedelta, timezone

import pytest

from timebill.database.models import TimeEntryDB
from timebill.database.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from timebill.models.schemas import TimeEntryUpdate

USER_ID = "user-1"
T0 = datetime(2026, 10, 14, 9, 0)


class TestCreateEntry:
    """Manual entries."""

    @pytest.mark.asyncio
    async def test_manual_entry(self, repos, project):
        entry = await repos.entries.create_entry(
            USER_ID, project.id, T0, T0 + timedelta(minutes=90), task_name="  Site visit  "
        )
        assert entry.id is not None
        assert entry.source == "manual"
        assert entry.task_name == "Site visit"
        assert entry.duration_minutes == 90

    @pytest.mark.parametrize("offset", [timedelta(0), timedelta(minutes=-1), timedelta(hours=-5)])
    @pytest.mark.asyncio
    async def test_non_positive_bounds_rejected(self, repos, project, offset):
        with pytest.raises(ValidationError, match="end before start"):
            await repos.entries.create_entry(USER_ID, project.id, T0, T0 + offset)
        assert await repos.entries.list_entries(user_id=USER_ID) == []

    @pytest.mark.asyncio
    async def test_one_second_entry_accepted(self, repos, project):
        entry = await repos.entries.create_entry(USER_ID, project.id, T0, T0 + timedelta(seconds=1))
        assert entry.duration_minutes == pytest.approx(1 / 60)

    @pytest.mark.asyncio
    async def test_invalid_source_rejected(self, repos, project):
        with pytest.raises(ValidationError):
            await repos.entries.create_entry(
                USER_ID, project.id, T0, T0 + timedelta(minutes=5), source="imported"
            )

    @pytest.mark.asyncio
    async def test_foreign_project_rejected(self, repos, other_project):
        with pytest.raises(AuthorizationError):
            await repos.entries.create_entry(USER_ID, other_project.id, T0, T0 + timedelta(minutes=5))

    @pytest.mark.asyncio
    async def test_task_from_other_project_rejected(self, repos, project, client):
        other = await repos.projects.create(USER_ID, client.id, "Gatehouse")
        task = await repos.tasks.create(USER_ID, other.id, {"name": "Paint"})
        with pytest.raises(ValidationError):
            await repos.entries.create_entry(
                USER_ID, project.id, T0, T0 + timedelta(minutes=5), task_id=task.id
            )

    @pytest.mark.asyncio
    async def test_foreign_tags_rejected(self, repos, project):
        foreign_tag = await repos.tags.create("user-2", "Theirs")
        with pytest.raises(AuthorizationError):
            await repos.entries.create_entry(
                USER_ID, project.id, T0, T0 + timedelta(minutes=5), tag_ids=[foreign_tag.id]
            )


    @pytest.mark.asyncio
    async def test_aware_start_with_naive_end(self, repos, project):
        start = datetime(2026, 10, 14, 9, 0, tzinfo=timezone.utc)
        entry = await repos.entries.create_entry(USER_ID, project.id, start, T0 + timedelta(hours=1))

        assert entry.start_time == T0
        assert entry.start_time.tzinfo is None
        assert entry.duration_minutes == 60

    @pytest.mark.asyncio
    async def test_aware_bounds_stored_in_local_time(self, repos, project, monkeypatch):
        from config import settings

        monkeypatch.setattr(settings, "timezone", "Europe/Oslo")
        start = datetime(2026, 10, 14, 8, 0, tzinfo=timezone.utc)
        entry = await repos.entries.create_entry(USER_ID, project.id, start, start + timedelta(minutes=30))

        assert entry.start_time == datetime(2026, 10, 14, 10, 0)
        assert entry.end_time == datetime(2026, 10, 14, 10, 30)

    @pytest.mark.asyncio
    async def test_mixed_bounds_in_wrong_order_rejected(self, repos, project):
        start = datetime(2026, 10, 14, 9, 0, tzinfo=timezone.utc)
        with pytest.raises(ValidationError, match="end before start"):
            await repos.entries.create_entry(USER_ID, project.id, start, T0 - timedelta(minutes=1))

class TestUpdateEntry:
    """Patches and provenance."""

    async def _automatic_entry(self, repos, project):
        return await repos.entries.create_entry(
            USER_ID, project.id, T0, T0 + timedelta(minutes=30), source="automatic"
        )

    @pytest.mark.asyncio
    async def test_bounds_edit_marks_corrected(self, repos, project):
        entry = await self._automatic_entry(repos, project)
        updated = await repos.entries.update_entry(
            USER_ID, entry.id, TimeEntryUpdate(end_time=T0 + timedelta(minutes=45))
        )
        assert updated.source == "corrected"
        assert updated.duration_minutes == 45

    @pytest.mark.asyncio
    async def test_start_edit_marks_corrected(self, repos, project):
        entry = await self._automatic_entry(repos, project)
        updated = await repos.entries.update_entry(
            USER_ID, entry.id, {"start_time": T0 - timedelta(minutes=5)}
        )
        assert updated.source == "corrected"

    @pytest.mark.asyncio
    async def test_tag_and_name_edit_keep_source(self, repos, project):
        tag = await repos.tags.create(USER_ID, "Billable")
        entry = await self._automatic_entry(repos, project)

        updated = await repos.entries.update_entry(
            USER_ID, entry.id, {"task_name": "Review", "tag_ids": [tag.id]}
        )
        assert updated.source == "automatic"
        assert updated.task_name == "Review"
        assert [t.id for t in updated.tags] == [tag.id]

    @pytest.mark.asyncio
    async def test_unchanged_bounds_keep_source(self, repos, project):
        entry = await self._automatic_entry(repos, project)
        updated = await repos.entries.update_entry(USER_ID, entry.id, {"start_time": T0})
        assert updated.source == "automatic"

    @pytest.mark.asyncio
    async def test_aware_patch_normalized(self, repos, project):
        entry = await self._automatic_entry(repos, project)
        updated = await repos.entries.update_entry(
            USER_ID, entry.id, {"start_time": datetime(2026, 10, 14, 9, 0, tzinfo=timezone.utc)}
        )
        assert updated.start_time == T0
        assert updated.source == "automatic"

    @pytest.mark.asyncio
    async def test_manual_entry_stays_manual(self, repos, project):
        entry = await repos.entries.create_entry(USER_ID, project.id, T0, T0 + timedelta(minutes=30))
        updated = await repos.entries.update_entry(USER_ID, entry.id, {"end_time": T0 + timedelta(hours=1)})
        assert updated.source == "manual"

    @pytest.mark.asyncio
    async def test_update_rejects_inverted_bounds(self, repos, project):
        entry = await self._automatic_entry(repos, project)
        with pytest.raises(ValidationError):
            await repos.entries.update_entry(USER_ID, entry.id, {"end_time": T0 - timedelta(minutes=1)})

        unchanged = await repos.entries.get_entry(USER_ID, entry.id)
        assert unchanged.source == "automatic"
        assert unchanged.end_time == T0 + timedelta(minutes=30)

    @pytest.mark.asyncio
    async def test_tags_replaced_wholesale(self, repos, project):
        a = await repos.tags.create(USER_ID, "A")
        b = await repos.tags.create(USER_ID, "B")
        entry = await repos.entries.create_entry(
            USER_ID, project.id, T0, T0 + timedelta(minutes=30), tag_ids=[a.id]
        )

        updated = await repos.entries.update_entry(USER_ID, entry.id, {"tag_ids": [b.id]})
        assert [t.id for t in updated.tags] == [b.id]

        cleared = await repos.entries.update_entry(USER_ID, entry.id, {"tag_ids": []})
        assert cleared.tags == []

    @pytest.mark.asyncio
    async def test_clear_task(self, repos, project):
        task = await repos.tasks.create(USER_ID, project.id, {"name": "Paint"})
        entry = await repos.entries.create_entry(
            USER_ID, project.id, T0, T0 + timedelta(minutes=30), task_id=task.id
        )
        updated = await repos.entries.update_entry(USER_ID, entry.id, TimeEntryUpdate(task_id=None))
        assert updated.task_id is None

    @pytest.mark.asyncio
    async def test_missing_entry(self, repos, project):
        with pytest.raises(NotFoundError):
            await repos.entries.update_entry(USER_ID, 9999, {"task_name": "x"})

    @pytest.mark.asyncio
    async def test_foreign_entry(self, repos, project):
        entry = await repos.entries.create_entry(USER_ID, project.id, T0, T0 + timedelta(minutes=30))
        with pytest.raises(AuthorizationError):
            await repos.entries.update_entry("user-2", entry.id, {"task_name": "x"})


class TestDeleteAndList:
    """Deletion and listing."""

    @pytest.mark.asyncio
    async def test_delete_removes_entry_and_links(self, repos, project):
        tag = await repos.tags.create(USER_ID, "Billable")
        entry = await repos.entries.create_entry(
            USER_ID, project.id, T0, T0 + timedelta(minutes=30), tag_ids=[tag.id]
        )

        assert await repos.entries.delete_entry(USER_ID, entry.id) is True
        assert await repos.entries.get_entry_tag_ids([entry.id]) == {}
        with pytest.raises(NotFoundError):
            await repos.entries.get_entry(USER_ID, entry.id)

    @pytest.mark.asyncio
    async def test_list_overlap_filter(self, repos, project):
        await repos.entries.create_entry(USER_ID, project.id, T0, T0 + timedelta(hours=1))
        await repos.entries.create_entry(
            USER_ID, project.id, T0 + timedelta(days=1), T0 + timedelta(days=1, hours=1)
        )

        # Window starts inside the first entry
        found = await repos.entries.list_entries(
            user_id=USER_ID, range_start=T0 + timedelta(minutes=30), range_end=T0 + timedelta(hours=2)
        )
        assert len(found) == 1
        assert found[0].start_time == T0

    @pytest.mark.asyncio
    async def test_list_reversed_range_is_empty(self, repos, project):
        await repos.entries.create_entry(USER_ID, project.id, T0, T0 + timedelta(hours=1))
        assert await repos.entries.list_entries(
            user_id=USER_ID, range_start=T0 + timedelta(days=1), range_end=T0
        ) == []

    @pytest.mark.asyncio
    async def test_list_empty_project_filter(self, repos, project):
        await repos.entries.create_entry(USER_ID, project.id, T0, T0 + timedelta(hours=1))
        assert await repos.entries.list_entries(user_id=USER_ID, project_ids=[]) == []

    @pytest.mark.asyncio
    async def test_list_is_chronological(self, repos, project):
        later = await repos.entries.create_entry(
            USER_ID, project.id, T0 + timedelta(hours=2), T0 + timedelta(hours=3)
        )
        earlier = await repos.entries.create_entry(USER_ID, project.id, T0, T0 + timedelta(hours=1))

        found = await repos.entries.list_entries(user_id=USER_ID)
        assert [e.id for e in found] == [earlier.id, later.id]
        assert all(isinstance(e, TimeEntryDB) for e in found)
