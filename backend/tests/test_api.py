"""API route tests"""
import base64
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi import status

from app.core.config import settings
from app.core.security import get_client_identifier, rate_limit_group
from app.db.helpers import create_queue_item, get_connected_account, upsert_connected_account
from app.db.redis import set_oauth_state
from app.models.connected_account import ConnectedAccount
from app.models.video import Video
from app.models.video_queue import VideoQueueItem
from app.services.providers.base import ProviderName, ProviderResult
from app.services.providers.skyreels import SKYREELS_MODELS
from app.services.social.social_service import PostResult


def scheduled(minutes=60):
    return (datetime.now(timezone.utc) + timedelta(minutes=minutes)).isoformat()


@pytest.mark.critical
class TestAuthentication:
    """Sessions, registration and protected routes"""

    def test_protected_routes_require_auth(self, client):
        for path in ["/api/videos", "/api/queue", "/api/auth/me", "/api/social/accounts"]:
            response = client.get(path)
            assert response.status_code == status.HTTP_401_UNAUTHORIZED
            assert response.json()["success"] is False

    def test_register_logs_in(self, client):
        response = client.post("/api/auth/register", json={
            "email": "New@Example.com", "password": "longenough", "name": "New"
        })
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["user"]["email"] == "new@example.com"

        me = client.get("/api/auth/me")
        assert me.status_code == status.HTTP_200_OK
        assert me.json()["user"]["name"] == "New"

    def test_register_short_password(self, client):
        response = client.post("/api/auth/register", json={"email": "a@example.com", "password": "short"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "at least 8" in response.json()["message"]

    def test_register_duplicate_email(self, client, test_user):
        response = client.post("/api/auth/register", json={"email": test_user.email, "password": "longenough"})
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_login_wrong_password(self, client, test_user):
        response = client.post("/api/auth/login", json={"email": test_user.email, "password": "wrong-password"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {
            "success": False, "message": "Invalid email or password", "error": "Invalid email or password"
        }

    def test_logout_ends_session(self, authenticated_client):
        assert authenticated_client.post("/api/auth/logout").status_code == status.HTTP_200_OK
        assert authenticated_client.get("/api/auth/me").status_code == status.HTTP_401_UNAUTHORIZED

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


@pytest.mark.critical
class TestOAuth:

    def test_start_without_credentials_is_server_error(self, authenticated_client):
        with patch.object(settings, "GOOGLE_CLIENT_ID", None):
            response = authenticated_client.get("/api/auth/youtube")
        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR

    def test_instagram_start_returns_auth_url_and_stores_state(self, authenticated_client, mock_redis):
        with patch.object(settings, "INSTAGRAM_APP_ID", "app-id"), \
                patch.object(settings, "INSTAGRAM_APP_SECRET", "app-secret"):
            response = authenticated_client.get("/api/auth/instagram")

        assert response.status_code == status.HTTP_200_OK
        assert "client_id=app-id" in response.json()["authUrl"]
        assert len(mock_redis.keys("oauth_state:*")) == 1

    def test_callback_requires_code(self, client):
        response = client.get("/api/auth/callback/youtube")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Authorization code is required"

    def test_callback_without_user_writes_nothing(self, client, container, db_session):
        container.youtube.complete_oauth = AsyncMock()

        response = client.get("/api/auth/callback/youtube", params={"code": "abc", "state": "unknown"},
                              follow_redirects=False)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        container.youtube.complete_oauth.assert_not_called()
        assert db_session.query(ConnectedAccount).count() == 0

    def test_callback_resolves_user_from_state(self, client, container, test_user):
        set_oauth_state("nonce-1", test_user.id, "instagram")
        container.instagram.complete_oauth = AsyncMock(return_value={"accountId": "ig", "username": "me"})

        response = client.get("/api/auth/callback/instagram", params={"code": "abc", "state": "nonce-1"},
                              follow_redirects=False)

        assert response.status_code == status.HTTP_302_FOUND
        assert "connected=true" in response.headers["location"]
        assert container.instagram.complete_oauth.call_args.args[:2] == (test_user.id, "abc")

    def test_state_is_single_use(self, client, container, test_user):
        set_oauth_state("nonce-2", test_user.id, "youtube")
        container.youtube.complete_oauth = AsyncMock(return_value={})

        first = client.get("/api/auth/callback/youtube", params={"code": "abc", "state": "nonce-2"},
                           follow_redirects=False)
        second = client.get("/api/auth/callback/youtube", params={"code": "abc", "state": "nonce-2"},
                            follow_redirects=False)

        assert first.status_code == status.HTTP_302_FOUND
        assert second.status_code == status.HTTP_401_UNAUTHORIZED

    def test_provider_failure_redirects_with_error(self, authenticated_client, container):
        container.youtube.complete_oauth = AsyncMock(side_effect=RuntimeError("boom"))

        response = authenticated_client.get("/api/auth/callback/youtube", params={"code": "abc"},
                                            follow_redirects=False)

        assert response.status_code == status.HTTP_302_FOUND
        assert "connected=false" in response.headers["location"]
        assert "error=boom" in response.headers["location"]

    def test_disconnect(self, authenticated_client, test_user, db_session):
        upsert_connected_account(test_user.id, "youtube", "token", db=db_session)

        response = authenticated_client.delete("/api/auth/account/youtube")

        assert response.status_code == status.HTTP_200_OK
        assert get_connected_account(test_user.id, "youtube", db=db_session) is None

    def test_disconnect_invalid_platform(self, authenticated_client):
        response = authenticated_client.delete("/api/auth/account/tiktok")
        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.critical
class TestAIVideoRoutes:

    def test_prompt_is_required(self, authenticated_client):
        response = authenticated_client.post("/api/videos/ai-video", json={"prompt": "  "})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Prompt is required"

    def test_unknown_provider(self, authenticated_client):
        response = authenticated_client.post("/api/videos/ai-video", json={"prompt": "a cat", "provider": "sora"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"].startswith("Unknown provider: sora. Available: bytez")

    def test_unconfigured_provider_fails_without_row(self, authenticated_client, db_session):
        response = authenticated_client.post("/api/videos/ai-video", json={"prompt": "a cat", "provider": "fal"})

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["message"] == "Video generation failed"
        assert db_session.query(Video).count() == 0

    def test_async_job_is_stored_as_processing(self, authenticated_client, container, db_session):
        container.unified.generate = AsyncMock(return_value=ProviderResult.processing("req_9"))

        response = authenticated_client.post("/api/videos/ai-video/generate",
                                             json={"prompt": "a cat surfing", "provider": "replicate"})

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["status"] == "processing"
        assert body["requestId"] == "req_9"

        video = db_session.query(Video).filter(Video.id == body["videoId"]).one()
        assert video.job_metadata["aiVideoProvider"] == "replicate"
        assert video.job_metadata["aiVideoRequestId"] == "req_9"
        assert video.video_url is None

    def test_completed_job_stores_local_copy(self, authenticated_client, container, db_session):
        result = ProviderResult.success("req_1", "https://cdn/v.mp4", local_path="/renders/video_bytez_1.mp4")
        container.unified.generate = AsyncMock(return_value=result)

        response = authenticated_client.post("/api/videos/ai-video", json={"prompt": "a cat"})

        body = response.json()
        assert body["status"] == "completed"
        assert body["videoUrl"] == "/renders/video_bytez_1.mp4"
        assert body["provider"] == "bytez"

    def test_providers_listing(self, authenticated_client):
        providers = authenticated_client.get("/api/videos/ai-video/providers").json()["providers"]
        assert [p["id"] for p in providers][:2] == ["bytez", "fal"]


@pytest.mark.high
class TestAvatarRoutes:

    @pytest.mark.parametrize("body,message", [
        ({}, "Audio source is required"),
        ({"audioSource": "tts"}, "Script is required for TTS"),
        ({"audioSource": "upload"}, "Audio file URL is required for upload source"),
        ({"audioSource": "upload", "customAudioUrl": "https://a/x.mp3"},
         "Avatar image is required for Image-to-Video generation"),
    ])
    def test_validation(self, authenticated_client, body, message):
        response = authenticated_client.post("/api/videos/avatar", json=body)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == message

    def test_no_configured_provider(self, authenticated_client, db_session):
        response = authenticated_client.post("/api/videos/avatar", json={
            "audioSource": "upload", "customAudioUrl": "https://a/x.mp3", "avatarId": "avatar_1"
        })

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert "HEYGEN_API_KEY" in response.json()["error"]
        assert db_session.query(Video).count() == 0

    def test_failed_narration_aborts(self, authenticated_client, container):
        container.tts.synthesize = AsyncMock(return_value={"audioUrl": "", "isMock": True})

        response = authenticated_client.post("/api/videos/avatar", json={
            "audioSource": "tts", "script": "Hello there", "avatarId": "avatar_1"
        })

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["error"] == "TTS generation failed"

    def test_skyreels_failure_falls_back_to_heygen(self, authenticated_client, container, db_session):
        container.tts.synthesize = AsyncMock(return_value={"audioUrl": "http://x/a.mp3", "isMock": False})
        for name in ("skyreels", "heygen"):
            container.registry.get(name).is_available = lambda: True
        container.unified.generate = AsyncMock(side_effect=[
            ProviderResult.failure("skyreels down"),
            ProviderResult.processing("hg_1"),
        ])

        response = authenticated_client.post("/api/videos/avatar", json={
            "audioSource": "tts", "script": "Hello there", "avatarImage": "https://a/face.png",
            "provider": "skyreels",
        })

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["provider"] == "heygen"
        assert body["requestId"] == "hg_1"
        video = db_session.query(Video).filter(Video.id == body["videoId"]).one()
        assert video.status == "processing"
        assert video.job_metadata["kind"] == "avatar"


@pytest.mark.high
class TestVideoLibrary:

    def test_generate_builds_draft_with_narrated_scenes(self, authenticated_client, container):
        container.tts.synthesize = AsyncMock(return_value={"audioUrl": "http://x/a.mp3", "duration": 2500})

        response = authenticated_client.post("/api/videos/generate", json={"niche": "technology"})

        assert response.status_code == status.HTTP_201_CREATED
        video = response.json()["video"]
        assert video["status"] == "draft"
        assert video["scenes"][0]["audioUrl"] == "http://x/a.mp3"
        assert video["scenes"][0]["audioDuration"] == 2500

    def test_generate_requires_niche(self, authenticated_client):
        response = authenticated_client.post("/api/videos/generate", json={})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_list_is_scoped_to_user(self, authenticated_client, make_video, test_user_2):
        make_video(title="Mine")
        make_video(user_id=test_user_2.id, title="Theirs")

        body = authenticated_client.get("/api/videos").json()

        assert [v["title"] for v in body["videos"]] == ["Mine"]
        assert body["pagination"]["total"] == 1

    def test_other_users_video_is_not_found(self, authenticated_client, make_video, test_user_2):
        video = make_video(user_id=test_user_2.id)
        assert authenticated_client.get(f"/api/videos/{video.id}").status_code == status.HTTP_404_NOT_FOUND
        assert authenticated_client.delete(f"/api/videos/{video.id}").status_code == status.HTTP_404_NOT_FOUND

    def test_status_of_finished_video(self, authenticated_client, make_video):
        video = make_video(video_url="/renders/v.mp4")
        body = authenticated_client.get(f"/api/videos/{video.id}/status").json()
        assert body["status"] == "completed"

    def test_delete(self, authenticated_client, make_video, db_session):
        video = make_video()
        assert authenticated_client.delete(f"/api/videos/{video.id}").status_code == status.HTTP_200_OK
        assert db_session.query(Video).count() == 0


@pytest.mark.critical
class TestQueueRoutes:

    def test_add_to_queue(self, authenticated_client, make_video, db_session):
        video = make_video()

        response = authenticated_client.post(f"/api/queue/{video.id}", json={
            "scheduledAt": scheduled(), "platforms": ["youtube"]
        })

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["queueItem"]["status"] == "queued"
        assert db_session.query(VideoQueueItem).count() == 1

    def test_add_to_queue_from_video_route(self, authenticated_client, make_video, db_session):
        video = make_video()

        response = authenticated_client.post(f"/api/videos/{video.id}/queue", json={
            "scheduledAt": scheduled(), "platforms": ["instagram"]
        })

        assert response.status_code == status.HTTP_201_CREATED
        assert db_session.query(VideoQueueItem).one().platforms == ["instagram"]

    @pytest.mark.parametrize("body,message", [
        ({"scheduledAt": "2030-01-01T00:00:00Z", "platforms": []}, "At least one platform is required"),
        ({"platforms": ["youtube"]}, "Scheduled date/time is required"),
        ({"scheduledAt": "2030-01-01T00:00:00Z", "platforms": ["tiktok"]}, "Unsupported platform: tiktok"),
    ])
    def test_add_validation(self, authenticated_client, make_video, body, message):
        video = make_video()
        response = authenticated_client.post(f"/api/queue/{video.id}", json=body)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == message

    def test_video_can_only_be_queued_once(self, authenticated_client, make_video):
        video = make_video()
        body = {"scheduledAt": scheduled(), "platforms": ["youtube"]}
        authenticated_client.post(f"/api/queue/{video.id}", json=body)

        response = authenticated_client.post(f"/api/queue/{video.id}", json=body)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"].startswith("Video is already in queue")

    def test_cannot_queue_other_users_video(self, authenticated_client, make_video, test_user_2):
        video = make_video(user_id=test_user_2.id)
        response = authenticated_client.post(f"/api/queue/{video.id}", json={
            "scheduledAt": scheduled(), "platforms": ["youtube"]
        })
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_list_update_and_remove(self, authenticated_client, make_video, test_user):
        video = make_video()
        item = create_queue_item(video.id, test_user.id, datetime.now(timezone.utc), ["youtube"])

        listed = authenticated_client.get("/api/queue").json()
        assert [q["id"] for q in listed["queuedVideos"]] == [item.id]
        assert listed["pagination"]["limit"] == 10

        updated = authenticated_client.put(f"/api/queue/{item.id}", json={"platforms": ["instagram"]})
        assert updated.json()["queueItem"]["platforms"] == ["instagram"]

        assert authenticated_client.put(f"/api/queue/{item.id}", json={}).status_code == status.HTTP_400_BAD_REQUEST
        assert authenticated_client.put(f"/api/queue/{item.id}",
                                        json={"status": "bogus"}).status_code == status.HTTP_400_BAD_REQUEST

        assert authenticated_client.delete(f"/api/queue/{item.id}").status_code == status.HTTP_200_OK
        assert authenticated_client.delete(f"/api/queue/{item.id}").status_code == status.HTTP_404_NOT_FOUND

    def test_post_now_success(self, authenticated_client, container, make_video, test_user):
        video = make_video(video_url="/renders/v.mp4")
        item = create_queue_item(video.id, test_user.id, datetime.now(timezone.utc) + timedelta(days=1),
                                 ["youtube"])
        container.auto_post.social.post_video = AsyncMock(return_value=[PostResult("youtube", True, post_id="yt")])

        response = authenticated_client.post(f"/api/queue/{item.id}/post-now")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["message"] == "Video posted successfully"

    def test_post_now_not_connected_fails(self, authenticated_client, make_video, test_user):
        video = make_video(video_url="/renders/v.mp4")
        item = create_queue_item(video.id, test_user.id, datetime.now(timezone.utc), ["youtube"])

        response = authenticated_client.post(f"/api/queue/{item.id}/post-now")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["message"] == "Failed to post video"

    def test_post_now_conflicts(self, authenticated_client, make_video, test_user, db_session, mock_redis):
        video = make_video(video_url="/renders/v.mp4")
        item = create_queue_item(video.id, test_user.id, datetime.now(timezone.utc), ["youtube"], db=db_session)

        mock_redis.set(f"queue_post_lock:{item.id}", "1")
        locked = authenticated_client.post(f"/api/queue/{item.id}/post-now")
        assert locked.status_code == status.HTTP_409_CONFLICT

        mock_redis.delete(f"queue_post_lock:{item.id}")
        item.status = "posted"
        db_session.commit()
        posted = authenticated_client.post(f"/api/queue/{item.id}/post-now")
        assert posted.status_code == status.HTTP_409_CONFLICT
        assert posted.json()["message"] == "Queue item already posted"

    def test_post_now_missing(self, authenticated_client):
        response = authenticated_client.post("/api/queue/missing/post-now")
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.high
class TestTopicRoutes:

    def test_topic_too_short(self, client):
        response = client.post("/api/topic/script", json={"topic": "ai"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unconfigured_service(self, client, container):
        container.topics.is_available = lambda: False
        response = client.post("/api/topic/script", json={"topic": "morning routines"})
        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["error"] == "Groq API key required for AI script generation"

    def test_script_saved_as_draft_for_logged_in_user(self, authenticated_client, container, db_session):
        script = {
            "title": "Morning Wins",
            "sections": {"hook": "Stop scrolling", "mainContent": "...", "callToAction": "Follow"},
            "hashtags": ["#morning"],
            "estimatedDuration": 45,
        }
        container.topics.is_available = lambda: True
        container.topics.generate_script = AsyncMock(return_value=script)

        response = authenticated_client.post("/api/topic/generate", json={"topic": "morning routines"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"] == script
        draft = db_session.query(Video).one()
        assert draft.status == "draft"
        assert draft.caption == "Stop scrolling"
        assert draft.job_metadata["kind"] == "script"

    def test_anonymous_script_is_not_saved(self, client, container, db_session):
        container.topics.is_available = lambda: True
        container.topics.generate_script = AsyncMock(return_value={"title": "T", "sections": {}, "hashtags": []})

        assert client.post("/api/topic/script", json={"topic": "budget travel"}).status_code == status.HTTP_200_OK
        assert db_session.query(Video).count() == 0

    def test_suggestions_fall_back_to_defaults(self, client, container):
        container.topics.get_suggested_topics = AsyncMock(side_effect=RuntimeError("down"))
        body = client.get("/api/topic/suggestions", params={"niche": "fitness"}).json()
        assert body["message"] == "Default topics returned"
        assert body["data"]["topics"]

    def test_niches(self, client):
        assert client.get("/api/topic/niches").json()["data"]["niches"]


@pytest.mark.medium
class TestMediaAndSocialRoutes:

    def test_image_validation(self, authenticated_client):
        assert authenticated_client.post("/api/images/generate", json={}).status_code == status.HTTP_400_BAD_REQUEST
        response = authenticated_client.post("/api/images/generate", json={"prompt": "a cat", "style": "vaporwave"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"].startswith("Invalid style")

    def test_tts_requires_text(self, authenticated_client):
        response = authenticated_client.post("/api/tts/synthesize", json={"text": " "})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_social_status_not_connected(self, authenticated_client):
        body = authenticated_client.get("/api/social/status/instagram").json()
        assert body == {"success": True, "platform": "instagram", "connected": False}

    def test_social_post_reports_per_platform(self, authenticated_client, container, make_video):
        video = make_video(video_url="/renders/v.mp4")

        body = authenticated_client.post("/api/social/post", json={
            "videoId": video.id, "platforms": ["youtube", "instagram"]
        }).json()

        assert body["success"] is False
        assert [r["success"] for r in body["results"]] == [False, False]


    def test_disconnect_platform(self, authenticated_client, test_user, db_session):
        upsert_connected_account(test_user.id, "instagram", "token", db=db_session)

        response = authenticated_client.post("/api/social/disconnect/instagram")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["message"] == "instagram account disconnected successfully"
        assert get_connected_account(test_user.id, "instagram", db=db_session) is None

    def test_disconnect_platform_without_account(self, authenticated_client):
        response = authenticated_client.post("/api/social/disconnect/youtube")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "No connected youtube account to disconnect"

    def test_disconnect_unknown_platform(self, authenticated_client):
        response = authenticated_client.post("/api/social/disconnect/tiktok")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Invalid platform"


@pytest.mark.high
class TestAvatarOptions:

    def enable(self, container, *names):
        for name in names:
            container.registry.get(name).is_available = lambda: True

    def test_uploaded_audio_goes_to_provider(self, authenticated_client, container):
        self.enable(container, "heygen")
        container.tts.synthesize = AsyncMock()
        container.unified.generate = AsyncMock(return_value=ProviderResult.processing("hg_2"))

        response = authenticated_client.post("/api/videos/avatar", json={
            "audioSource": "upload", "customAudioUrl": "https://a/voice.mp3", "avatarId": "avatar_1"
        })

        assert response.status_code == status.HTTP_201_CREATED
        assert container.unified.generate.call_args.args[1]["audioUrl"] == "https://a/voice.mp3"
        container.tts.synthesize.assert_not_called()

    def test_voice_settings_reach_narration(self, authenticated_client, container, db_session):
        self.enable(container, "heygen")
        container.tts.synthesize = AsyncMock(return_value={"audioUrl": "http://x/a.mp3", "isMock": False})
        container.unified.generate = AsyncMock(return_value=ProviderResult.processing("hg_3"))

        response = authenticated_client.post("/api/videos/avatar", json={
            "audioSource": "tts", "script": "Hello there", "avatarId": "avatar_1",
            "voiceName": "en-GB-SoniaNeural", "speakingRate": 1.2,
        })

        kwargs = container.tts.synthesize.call_args.kwargs
        assert kwargs["voice_name"] == "en-GB-SoniaNeural"
        assert kwargs["speaking_rate"] == 1.2
        video = db_session.query(Video).filter(Video.id == response.json()["videoId"]).one()
        assert video.job_metadata["voiceName"] == "en-GB-SoniaNeural"

    def test_skyreels_text_uses_text_to_video_model(self, authenticated_client, container):
        self.enable(container, "skyreels")
        container.tts.synthesize = AsyncMock(return_value={"audioUrl": "http://x/a.mp3", "isMock": False})
        container.unified.generate = AsyncMock(return_value=ProviderResult.processing("sk_1"))

        response = authenticated_client.post("/api/videos/avatar", json={
            "audioSource": "tts", "script": "Hello there", "provider": "skyreels-text",
        })

        assert response.status_code == status.HTTP_201_CREATED
        name, options = container.unified.generate.call_args.args
        assert name == ProviderName.SKYREELS
        assert options["model"] == SKYREELS_MODELS["TEXT_TO_VIDEO"]

    @pytest.mark.parametrize("body,message", [
        ({"audioSource": "tts"}, "Text is required for text-to-avatar"),
        ({"text": "Hi"}, "Audio source is required"),
        ({"text": "Hi", "audioSource": "upload"}, "Audio file URL is required for upload source"),
    ])
    def test_text_to_avatar_validation(self, authenticated_client, body, message):
        response = authenticated_client.post("/api/videos/avatar/text-to-avatar", json=body)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == message

    def test_text_to_avatar(self, authenticated_client, container, db_session):
        container.tts.synthesize = AsyncMock(return_value={"audioUrl": "http://x/a.mp3", "isMock": False})
        container.unified.generate = AsyncMock(return_value=ProviderResult.processing("sk_2"))

        response = authenticated_client.post("/api/videos/avatar/text-to-avatar", json={
            "text": "Welcome to the channel", "audioSource": "tts",
        })

        assert response.status_code == status.HTTP_201_CREATED
        assert container.unified.generate.call_args.args[1]["model"] == SKYREELS_MODELS["TEXT_TO_VIDEO"]
        video = db_session.query(Video).filter(Video.id == response.json()["videoId"]).one()
        assert video.job_metadata["generationType"] == "text-to-avatar"
        assert video.job_metadata["aiVideoRequestId"] == "sk_2"
        assert video.status == "processing"

    def test_text_to_avatar_provider_failure(self, authenticated_client, container, db_session):
        container.unified.generate = AsyncMock(return_value=ProviderResult.failure("quota"))

        response = authenticated_client.post("/api/videos/avatar/text-to-avatar", json={
            "text": "Welcome", "audioSource": "upload", "customAudioUrl": "https://a/voice.mp3",
        })

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["message"] == "Failed to generate text-to-avatar video"
        assert db_session.query(Video).count() == 0

    def test_result_of_unknown_request(self, authenticated_client):
        response = authenticated_client.get("/api/videos/avatar/result/nope")
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_result_not_ready(self, authenticated_client, container, make_video):
        make_video(status="processing", metadata={"aiVideoProvider": "skyreels", "aiVideoRequestId": "sk_5"})
        container.unified.check_status = AsyncMock(return_value=ProviderResult.processing("sk_5"))

        response = authenticated_client.get("/api/videos/avatar/result/sk_5")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Video not ready"

    def test_result_of_finished_job(self, authenticated_client, container, make_video):
        make_video(status="processing", metadata={"aiVideoProvider": "heygen", "aiVideoRequestId": "hg_7"})
        container.unified.check_status = AsyncMock(
            return_value=ProviderResult.success("hg_7", "https://cdn/v.mp4", local_path="/renders/v.mp4"))

        body = authenticated_client.get("/api/videos/avatar/result/hg_7").json()

        assert body["videoUrl"] == "/renders/v.mp4"
        assert body["provider"] == "heygen"
        assert container.unified.check_status.call_args.args == ("heygen", "hg_7")


PIXEL = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake pixel").decode()


@pytest.mark.high
class TestSceneVideoRoutes:

    def test_text_to_video_requires_prompt(self, authenticated_client):
        response = authenticated_client.post("/api/videos/text-to-video", json={"prompt": ""})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Prompt is required"

    def test_text_to_video_rejects_bad_image(self, authenticated_client, db_session):
        response = authenticated_client.post("/api/videos/text-to-video", json={
            "prompt": "a day at the beach", "images": ["not-a-data-uri"]
        })

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Invalid image data"
        assert db_session.query(Video).count() == 0

    def test_text_to_video_uses_uploaded_images(self, authenticated_client, container, db_session):
        container.tts.synthesize = AsyncMock(return_value={"audioUrl": "http://x/a.mp3", "duration": 1200})

        response = authenticated_client.post("/api/videos/text-to-video", json={
            "prompt": "a day at the beach", "images": [PIXEL], "voiceName": "en-US-GuyNeural",
        })

        assert response.status_code == status.HTTP_201_CREATED
        scenes = response.json()["content"]["scenes"]
        assert all(scene["background"]["type"] == "image" for scene in scenes)
        assert scenes[0]["background"]["source"].endswith(".png")
        assert scenes[0]["audioUrl"] == "http://x/a.mp3"

        video = db_session.query(Video).filter(Video.id == response.json()["videoId"]).one()
        assert video.status == "draft"
        assert video.job_metadata["generationType"] == "text-to-video"

    def test_preview_stores_nothing(self, authenticated_client, db_session):
        response = authenticated_client.post("/api/videos/preview", json={"niche": "technology"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["preview"]["title"] == "Top 5 AI Breakthroughs You Need to Know"
        assert db_session.query(Video).count() == 0

    def test_preview_requires_niche(self, authenticated_client):
        assert authenticated_client.post("/api/videos/preview", json={}).status_code == status.HTTP_400_BAD_REQUEST

    def test_provider_catalog(self, authenticated_client):
        body = authenticated_client.get("/api/videos/providers").json()

        assert body["defaults"]["avatar"] == "skyreels"
        assert {p["name"] for p in body["providers"]["image"]} >= {"craiyon", "deepai", "leonardo"}
        assert all(p["isAvatar"] for p in body["providers"]["avatar"])

    def test_provider_test_validation(self, authenticated_client):
        response = authenticated_client.post("/api/videos/ai-video/test", json={"provider": "sora"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Unknown provider: sora"
        response = authenticated_client.post("/api/videos/ai-video/test", json={})
        assert response.json()["message"] == "Provider is required"

    def test_regenerate_rewrites_scenes_as_draft(self, authenticated_client, container, make_video):
        container.tts.synthesize = AsyncMock(return_value={"audioUrl": "http://x/b.mp3", "duration": 900})
        video = make_video(niche="fitness", video_url="/renders/old.mp4",
                           metadata={"kind": "generated", "voiceName": "en-US-GuyNeural"})

        body = authenticated_client.post(f"/api/videos/{video.id}/regenerate").json()

        assert body["status"] == "draft"
        assert body["content"]["title"] == "7-Minute Full Body Workout at Home"
        assert container.tts.synthesize.call_args.kwargs["voice_name"] == "en-US-GuyNeural"

    def test_regenerate_avatar_video_is_rejected(self, authenticated_client, make_video):
        video = make_video(metadata={"kind": "avatar"})
        response = authenticated_client.post(f"/api/videos/{video.id}/regenerate")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_regenerate_missing_video(self, authenticated_client):
        response = authenticated_client.post("/api/videos/missing/regenerate")
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.medium
class TestPlatformRoutes:

    def test_youtube_upload_requires_connection(self, authenticated_client):
        response = authenticated_client.post("/api/youtube/upload", json={"videoPath": "/renders/v.mp4",
                                                                          "title": "T"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"].startswith("YouTube account not connected")

    def test_youtube_upload_status_not_found(self, authenticated_client):
        assert authenticated_client.get("/api/youtube/status/999").status_code == status.HTTP_404_NOT_FOUND

    def test_youtube_channel_requires_connection(self, authenticated_client):
        assert authenticated_client.get("/api/youtube/channel").status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.parametrize("body,message", [
        ({"caption": "hi"}, "Video URL is required"),
        ({"videoUrl": "https://cdn/v.mp4"}, "Caption is required"),
    ])
    def test_instagram_upload_validation(self, authenticated_client, body, message):
        response = authenticated_client.post("/api/instagram/upload", json=body)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == message

    def test_instagram_upload_without_account(self, authenticated_client):
        response = authenticated_client.post("/api/instagram/upload", json={
            "videoUrl": "https://cdn/v.mp4", "caption": "hi"
        })
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_instagram_account(self, authenticated_client, test_user, db_session):
        assert authenticated_client.get("/api/instagram/account").status_code == status.HTTP_404_NOT_FOUND

        upsert_connected_account(test_user.id, "instagram", "ig-token", db=db_session)
        account = authenticated_client.get("/api/instagram/account").json()["account"]

        # the test transport rejects every Graph call
        assert account["tokenValid"] is False

    def test_instagram_refresh_without_account(self, authenticated_client):
        response = authenticated_client.post("/api/instagram/refresh")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["message"].startswith("Failed to refresh token")

    def test_instagram_reel_status_without_account(self, authenticated_client):
        assert authenticated_client.get("/api/instagram/status/123").status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.critical
class TestRateLimiting:

    def test_tts_budget_is_enforced(self, authenticated_client):
        with patch.object(settings, "TTS_MAX_REQUESTS", 2):
            codes = [authenticated_client.post("/api/tts/synthesize", json={"text": " "}).status_code
                     for _ in range(3)]

        assert codes == [400, 400, 429]

    def test_limited_response_uses_error_envelope(self, authenticated_client):
        with patch.object(settings, "IMAGE_MAX_REQUESTS", 1):
            authenticated_client.post("/api/images/generate", json={})
            response = authenticated_client.post("/api/images/generate", json={})

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.json() == {"success": False, "message": "Too many requests. Please try again later.",
                                   "error": "Rate limit exceeded"}
        assert response.headers["Retry-After"] == str(settings.RATE_LIMIT_WINDOW_SECONDS)

    def test_unlimited_routes_are_untouched(self, authenticated_client):
        with patch.object(settings, "TTS_MAX_REQUESTS", 1):
            codes = {authenticated_client.get("/api/videos").status_code for _ in range(3)}
        assert codes == {200}

    def test_budgets_are_per_group(self, authenticated_client):
        with patch.object(settings, "TTS_MAX_REQUESTS", 1):
            authenticated_client.post("/api/tts/synthesize", json={"text": " "})
            assert authenticated_client.post("/api/tts/synthesize", json={"text": " "}).status_code == 429
            assert authenticated_client.post("/api/images/generate", json={}).status_code == 400

    def test_redis_outage_allows_requests(self, authenticated_client):
        with patch("app.db.redis.increment_rate_limit", side_effect=ConnectionError("redis down")), \
                patch.object(settings, "TTS_MAX_REQUESTS", 0):
            response = authenticated_client.post("/api/tts/synthesize", json={"text": " "})
        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.medium
class TestClientIdentifier:

    def test_session_takes_precedence(self):
        request = Mock()
        request.headers = {"X-Forwarded-For": "10.0.0.1"}
        assert get_client_identifier(request, "abc") == "session:abc"

    def test_forwarded_for_first_hop(self):
        request = Mock()
        request.headers = {"X-Forwarded-For": "10.0.0.1, 172.16.0.2"}
        assert get_client_identifier(request) == "ip:10.0.0.1"

    def test_client_host_fallback(self):
        request = Mock()
        request.headers = {}
        request.client.host = "127.0.0.1"
        assert get_client_identifier(request) == "ip:127.0.0.1"

    def test_route_groups(self):
        assert rate_limit_group("/api/auth/login") == "auth"
        assert rate_limit_group("/api/tts/synthesize") == "tts"
        assert rate_limit_group("/api/authors") is None
        assert rate_limit_group("/api/videos") is None
