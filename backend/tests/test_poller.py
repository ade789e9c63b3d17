"""Status poller tests"""
import pytest

from app.models.video import Video
from app.services.providers.base import ProviderResult
from app.tasks.video_poller import TIMEOUT_ERROR, DEFAULT_ERROR, VideoPollingService


class FakeUnified:
    """check_status answers from a per-request-id table and records calls"""

    def __init__(self, results=None, raises=None):
        self.results = results or {}
        self.raises = raises
        self.calls = []

    async def check_status(self, provider, request_id):
        self.calls.append((provider, request_id))
        if self.raises:
            raise self.raises
        return self.results.get(request_id, ProviderResult.processing(request_id))


def ai_metadata(request_id="req_1", provider="fal", **extra):
    return {"kind": "ai_video", "aiVideoProvider": provider, "aiVideoRequestId": request_id, "prompt": "x", **extra}


def reload(db_session, video) -> Video:
    db_session.expire_all()
    return db_session.query(Video).filter(Video.id == video.id).one()


@pytest.mark.critical
class TestPollerSelection:

    async def test_only_processing_rows_with_provider_and_request_id(self, make_video, db_session, session_factory):
        eligible = make_video(status="processing", metadata=ai_metadata("a"))
        make_video(status="completed", metadata=ai_metadata("b"))
        make_video(status="processing", metadata={"kind": "generated"})
        make_video(status="processing", metadata=ai_metadata("c", pollingAttempts=5))
        make_video(status="processing", metadata=ai_metadata("d", pollingAttempts=120))

        unified = FakeUnified()
        poller = VideoPollingService(unified, max_attempts=120, session_factory=session_factory)
        await poller.tick()

        polled = sorted(request_id for _, request_id in unified.calls)
        assert polled == ["a", "c"]
        assert reload(db_session, eligible).job_metadata["pollingAttempts"] == 1


@pytest.mark.critical
class TestPollerTransitions:

    async def test_success_completes_with_local_path(self, make_video, db_session, session_factory):
        video = make_video(status="processing", metadata=ai_metadata(pollingAttempts=7))
        result = ProviderResult.success("req_1", "https://cdn/v.mp4", local_path="/renders/video_fal_1.mp4")
        poller = VideoPollingService(FakeUnified({"req_1": result}), session_factory=session_factory)

        await poller.tick()

        row = reload(db_session, video)
        assert row.status == "completed"
        assert row.video_url == "/renders/video_fal_1.mp4"
        assert row.job_metadata["pollingAttempts"] == 0
        assert row.job_metadata["aiVideoUrl"] == "https://cdn/v.mp4"
        assert row.job_metadata["completedAt"]

    async def test_success_without_download_stores_remote_url(self, make_video, db_session, session_factory):
        video = make_video(status="processing", metadata=ai_metadata())
        result = ProviderResult.success("req_1", "https://cdn/v.mp4")
        poller = VideoPollingService(FakeUnified({"req_1": result}), session_factory=session_factory)

        await poller.tick()

        assert reload(db_session, video).video_url == "https://cdn/v.mp4"

    async def test_error_fails_with_provider_message(self, make_video, db_session, session_factory):
        video = make_video(status="processing", metadata=ai_metadata())
        poller = VideoPollingService(FakeUnified({"req_1": ProviderResult.failure("NSFW prompt", "req_1")}),
                                     session_factory=session_factory)

        await poller.tick()

        row = reload(db_session, video)
        assert row.status == "failed"
        assert row.job_metadata["error"] == "NSFW prompt"

    async def test_error_without_message_uses_default(self, make_video, db_session, session_factory):
        video = make_video(status="processing", metadata=ai_metadata())
        failure = ProviderResult.failure("", "req_1")
        poller = VideoPollingService(FakeUnified({"req_1": failure}), session_factory=session_factory)

        await poller.tick()

        assert reload(db_session, video).job_metadata["error"] == DEFAULT_ERROR

    async def test_processing_increments_attempts(self, make_video, db_session, session_factory):
        video = make_video(status="processing", metadata=ai_metadata(pollingAttempts=3))
        poller = VideoPollingService(FakeUnified(), session_factory=session_factory)

        await poller.tick()

        row = reload(db_session, video)
        assert row.status == "processing"
        assert row.job_metadata["pollingAttempts"] == 4

    async def test_reaching_max_attempts_times_out(self, make_video, db_session, session_factory):
        video = make_video(status="processing", metadata=ai_metadata(pollingAttempts=119))
        poller = VideoPollingService(FakeUnified(), max_attempts=120, session_factory=session_factory)

        await poller.tick()

        row = reload(db_session, video)
        assert row.status == "failed"
        assert row.job_metadata["error"] == TIMEOUT_ERROR
        assert row.job_metadata["pollingAttempts"] == 120

    async def test_exception_counts_as_processing(self, make_video, db_session, session_factory):
        video = make_video(status="processing", metadata=ai_metadata())
        poller = VideoPollingService(FakeUnified(raises=RuntimeError("network")), session_factory=session_factory)

        await poller.tick()

        row = reload(db_session, video)
        assert row.status == "processing"
        assert row.job_metadata["pollingAttempts"] == 1

    async def test_row_is_never_polled_past_the_bound(self, make_video, db_session, session_factory):
        video = make_video(status="processing", metadata=ai_metadata())
        unified = FakeUnified()
        poller = VideoPollingService(unified, max_attempts=3, session_factory=session_factory)

        for _ in range(5):
            await poller.tick()

        assert len(unified.calls) == 3
        assert reload(db_session, video).status == "failed"


@pytest.mark.high
class TestCheckVideoNow:

    async def test_polls_single_processing_row(self, make_video, session_factory):
        video = make_video(status="processing", metadata=ai_metadata())
        result = ProviderResult.success("req_1", "https://cdn/v.mp4")
        poller = VideoPollingService(FakeUnified({"req_1": result}), session_factory=session_factory)

        status = await poller.check_video_now(video.id, user_id=video.user_id)

        assert status["status"] == "completed"
        assert status["videoUrl"] == "https://cdn/v.mp4"

    async def test_finished_row_is_not_polled(self, make_video, session_factory):
        video = make_video(status="completed", metadata=ai_metadata(), video_url="/renders/v.mp4")
        unified = FakeUnified()
        poller = VideoPollingService(unified, session_factory=session_factory)

        status = await poller.check_video_now(video.id)

        assert status["status"] == "completed"
        assert unified.calls == []

    async def test_other_users_video_is_not_found(self, make_video, test_user_2, session_factory):
        video = make_video(status="processing", metadata=ai_metadata())
        poller = VideoPollingService(FakeUnified(), session_factory=session_factory)

        assert await poller.check_video_now(video.id, user_id=test_user_2.id) is None
