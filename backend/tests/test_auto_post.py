"""Auto-post scheduler tests"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.db.helpers import create_queue_item
from app.models.video_queue import VideoQueueItem
from app.services.social.social_service import PostResult
from app.tasks.auto_post import AutoPostScheduler


class FakeSocial:
    """post_video answers per platform: True, False, or an exception to raise"""

    def __init__(self, outcomes=None):
        self.outcomes = outcomes or {}
        self.calls = []

    async def post_video(self, video, platforms, db=None):
        self.calls.append((video.id, list(platforms)))
        results = []
        for platform in platforms:
            outcome = self.outcomes.get(platform, True)
            if isinstance(outcome, Exception):
                results.append(PostResult(platform, False, error=str(outcome)))
            elif outcome:
                results.append(PostResult(platform, True, post_id=f"{platform}_1"))
            else:
                results.append(PostResult(platform, False, error=f"Failed to post to {platform}"))
        return results


def past(minutes=5):
    return datetime.now(timezone.utc) - timedelta(minutes=minutes)


def future(minutes=60):
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


def reload(db_session, item) -> VideoQueueItem:
    db_session.expire_all()
    return db_session.query(VideoQueueItem).filter(VideoQueueItem.id == item.id).one()


@pytest.fixture
def queue_item(make_video, db_session, test_user):
    """Factory: a video plus a queue row for it"""

    def _make(scheduled_at=None, platforms=("youtube", "instagram"), status="queued"):
        video = make_video(video_url="/renders/final.mp4")
        item = create_queue_item(video.id, test_user.id, scheduled_at or past(), list(platforms), db=db_session)
        if status != "queued":
            item.status = status
            db_session.commit()
        return item

    return _make


@pytest.mark.critical
class TestAutoPostTick:

    async def test_due_item_posted_to_all_platforms(self, queue_item, db_session, session_factory, mock_redis):
        item = queue_item()
        social = FakeSocial()
        scheduler = AutoPostScheduler(social, session_factory=session_factory)

        await scheduler.tick()

        row = reload(db_session, item)
        assert row.status == "posted"
        assert row.queue_metadata == []
        assert social.calls == [(item.video_id, ["youtube", "instagram"])]

    async def test_future_and_non_queued_items_are_skipped(self, queue_item, session_factory, mock_redis):
        queue_item(scheduled_at=future())
        queue_item(status="posted")
        queue_item(status="failed")
        social = FakeSocial()

        await AutoPostScheduler(social, session_factory=session_factory).tick()

        assert social.calls == []

    async def test_items_processed_oldest_first(self, queue_item, session_factory, mock_redis):
        newer = queue_item(scheduled_at=past(1))
        older = queue_item(scheduled_at=past(30))
        social = FakeSocial()

        await AutoPostScheduler(social, session_factory=session_factory).tick()

        assert [video_id for video_id, _ in social.calls] == [older.video_id, newer.video_id]

    async def test_partial_failure_marks_failed_with_only_failures(self, queue_item, db_session,
                                                                   session_factory, mock_redis):
        item = queue_item()
        social = FakeSocial({"instagram": False})

        await AutoPostScheduler(social, session_factory=session_factory).tick()

        row = reload(db_session, item)
        assert row.status == "failed"
        assert row.queue_metadata == [
            {"platform": "instagram", "success": False, "error": "Failed to post to instagram"}
        ]

    async def test_exception_on_one_platform_keeps_others(self, queue_item, db_session, session_factory, mock_redis):
        item = queue_item()
        social = FakeSocial({"youtube": RuntimeError("quota exceeded")})

        await AutoPostScheduler(social, session_factory=session_factory).tick()

        row = reload(db_session, item)
        assert row.status == "failed"
        assert [f["platform"] for f in row.queue_metadata] == ["youtube"]
        assert row.queue_metadata[0]["error"] == "quota exceeded"

    async def test_locked_item_is_skipped(self, queue_item, db_session, session_factory, mock_redis):
        item = queue_item()
        mock_redis.set(f"queue_post_lock:{item.id}", "1")
        social = FakeSocial()

        await AutoPostScheduler(social, session_factory=session_factory).tick()

        assert social.calls == []
        assert reload(db_session, item).status == "queued"


@pytest.mark.critical
class TestPostNow:

    async def test_posts_future_item_immediately(self, queue_item, db_session, test_user,
                                                 session_factory, mock_redis):
        item = queue_item(scheduled_at=future())
        scheduler = AutoPostScheduler(FakeSocial(), session_factory=session_factory)

        result = await scheduler.post_now(item.id, test_user.id)

        assert result["success"] is True
        assert reload(db_session, item).status == "posted"
        assert mock_redis.get(f"queue_post_lock:{item.id}") is None

    async def test_missing_item(self, test_user, session_factory, mock_redis):
        scheduler = AutoPostScheduler(FakeSocial(), session_factory=session_factory)
        result = await scheduler.post_now("missing", test_user.id)
        assert result == {"success": False, "error": "Queue item not found"}

    async def test_other_users_item_is_not_found(self, queue_item, test_user_2, session_factory, mock_redis):
        item = queue_item()
        scheduler = AutoPostScheduler(FakeSocial(), session_factory=session_factory)
        result = await scheduler.post_now(item.id, test_user_2.id)
        assert result["error"] == "Queue item not found"

    async def test_already_posted_is_not_published_twice(self, queue_item, test_user, session_factory, mock_redis):
        item = queue_item(status="posted")
        social = FakeSocial()
        scheduler = AutoPostScheduler(social, session_factory=session_factory)

        result = await scheduler.post_now(item.id, test_user.id)

        assert result == {"success": False, "error": "Queue item already posted"}
        assert social.calls == []

    async def test_failure_reports_platform_errors(self, queue_item, test_user, session_factory, mock_redis):
        item = queue_item(platforms=["youtube"])
        scheduler = AutoPostScheduler(FakeSocial({"youtube": False}), session_factory=session_factory)

        result = await scheduler.post_now(item.id, test_user.id)

        assert result["success"] is False
        assert result["error"] == "youtube: Failed to post to youtube"


class BlockingSocial(FakeSocial):
    """Holds the post of one video until released"""

    def __init__(self, blocked_video_id):
        super().__init__()
        self.blocked_video_id = blocked_video_id
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def post_video(self, video, platforms, db=None):
        if video.id == self.blocked_video_id:
            self.entered.set()
            await self.release.wait()
        return await super().post_video(video, platforms, db=db)


@pytest.mark.critical
class TestTickAndPostNowOverlap:

    async def test_row_posted_manually_during_tick_is_not_posted_again(self, queue_item, db_session, test_user,
                                                                       session_factory, mock_redis):
        first = queue_item(scheduled_at=past(30))
        second = queue_item(scheduled_at=past(1))
        social = BlockingSocial(first.video_id)
        scheduler = AutoPostScheduler(social, session_factory=session_factory)

        tick = asyncio.create_task(scheduler.tick())
        await social.entered.wait()
        manual = await scheduler.post_now(second.id, test_user.id)
        social.release.set()
        await tick

        assert manual["success"] is True
        posted_videos = [video_id for video_id, _ in social.calls]
        assert posted_videos.count(second.video_id) == 1
        assert posted_videos.count(first.video_id) == 1
        assert reload(db_session, second).status == "posted"

    async def test_failed_row_can_be_retried_manually(self, queue_item, db_session, test_user,
                                                      session_factory, mock_redis):
        item = queue_item(status="failed")
        social = FakeSocial()

        result = await AutoPostScheduler(social, session_factory=session_factory).post_now(item.id, test_user.id)

        assert result["success"] is True
        assert reload(db_session, item).status == "posted"
