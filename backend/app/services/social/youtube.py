"""YouTube OAuth and resumable upload"""
import asyncio
import logging
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload
from sqlalchemy.orm import Session

from app.core.config import (
    settings, YOUTUBE_SCOPES, GOOGLE_TOKEN_URL, YOUTUBE_CHANNELS_URL, YOUTUBE_REDIRECT_URI
)
from app.db.helpers import (
    get_connected_account, upsert_connected_account, update_account_tokens,
    deactivate_connected_account, create_youtube_upload, finish_youtube_upload, as_utc
)
from app.services.providers.downloads import download_media, media_filename
from app.services.social.errors import AccountNotConnectedError, TokenExpiredError, PlatformAPIError
from app.services.social.media import is_remote, local_media_path

youtube_logger = logging.getLogger("youtube")

PLATFORM = "youtube"
PEOPLE_AND_BLOGS_CATEGORY = "22"
MAX_TITLE_LENGTH = 100


def get_google_client_config() -> Optional[Dict[str, Any]]:
    """OAuth client config in the shape google_auth_oauthlib expects"""
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        return None
    return {
        "web": {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET,
            "project_id": settings.GOOGLE_PROJECT_ID,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": GOOGLE_TOKEN_URL,
            "redirect_uris": [YOUTUBE_REDIRECT_URI],
        }
    }


class YouTubeService:
    """Connected-account backed YouTube client. Raises SocialPlatformError subclasses."""

    def __init__(self, refresh_buffer_seconds: int = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.refresh_buffer = timedelta(seconds=refresh_buffer_seconds or settings.TOKEN_REFRESH_BUFFER_SECONDS)
        self._transport = transport

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def build_auth_url(self, state: str) -> str:
        config = get_google_client_config()
        if not config:
            raise ValueError("Google OAuth credentials not configured. Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET.")

        flow = Flow.from_client_config(config, scopes=YOUTUBE_SCOPES, redirect_uri=YOUTUBE_REDIRECT_URI)
        # prompt=consent makes Google return a refresh token on every authorization
        url, _ = flow.authorization_url(
            access_type="offline",
            include_granted_scopes="true",
            prompt="consent",
            state=state,
        )
        return url

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            response = await client.post(GOOGLE_TOKEN_URL, data={
                "code": code,
                "client_id": settings.GOOGLE_CLIENT_ID,
                "client_secret": settings.GOOGLE_CLIENT_SECRET,
                "redirect_uri": YOUTUBE_REDIRECT_URI,
                "grant_type": "authorization_code",
            })
            if response.status_code != 200:
                raise PlatformAPIError(PLATFORM, f"Token exchange failed: {response.text}",
                                       status_code=response.status_code, stage="exchange_code")
            tokens = response.json()

        if not tokens.get("access_token"):
            raise PlatformAPIError(PLATFORM, "No access token in token response", stage="exchange_code")
        return tokens

    async def fetch_channel(self, access_token: str) -> Optional[Dict[str, Any]]:
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            response = await client.get(YOUTUBE_CHANNELS_URL, headers={"Authorization": f"Bearer {access_token}"})
            if response.status_code != 200:
                raise PlatformAPIError(PLATFORM, f"Failed to fetch channel: {response.text}",
                                       status_code=response.status_code, stage="fetch_channel")
            items = response.json().get("items") or []
        return items[0] if items else None

    async def complete_oauth(self, user_id: int, code: str, db: Session = None) -> Dict[str, Any]:
        """Exchange the code, look up the channel and store the account"""
        tokens = await self.exchange_code(code)
        channel = await self.fetch_channel(tokens["access_token"])

        expires_at = None
        if tokens.get("expires_in"):
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(tokens["expires_in"]))

        snippet = (channel or {}).get("snippet", {})
        upsert_connected_account(
            user_id=user_id,
            platform=PLATFORM,
            access_token=tokens["access_token"],
            refresh_token=tokens.get("refresh_token"),
            expires_at=expires_at,
            platform_user_id=(channel or {}).get("id"),
            platform_username=snippet.get("title"),
            extra_data={"channel_name": snippet.get("title"), "scope": tokens.get("scope")},
            db=db,
        )
        youtube_logger.info(f"✅ YouTube connected for user {user_id}: {snippet.get('title')}")
        return {"channelId": (channel or {}).get("id"), "channelName": snippet.get("title")}

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def get_credentials(self, user_id: int, db: Session = None) -> Credentials:
        """Credentials for the user's channel, refreshed when they expire within the buffer window"""
        account = get_connected_account(user_id, PLATFORM, db=db)
        if not account:
            raise AccountNotConnectedError(PLATFORM)

        expires_at = as_utc(account.token_expires_at)
        creds = Credentials(
            token=account.access_token,
            refresh_token=account.refresh_token,
            token_uri=GOOGLE_TOKEN_URL,
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            scopes=YOUTUBE_SCOPES,
            # google-auth compares expiry as naive UTC
            expiry=expires_at.replace(tzinfo=None) if expires_at else None,
        )

        if expires_at and expires_at - datetime.now(timezone.utc) <= self.refresh_buffer:
            if not account.refresh_token:
                raise TokenExpiredError(PLATFORM, "Refresh token is missing. Please disconnect and reconnect YouTube.")
            try:
                youtube_logger.debug(f"Refreshing YouTube token for user {user_id}")
                creds.refresh(GoogleRequest())
            except RefreshError as e:
                youtube_logger.error(f"❌ YouTube token refresh failed for user {user_id}: {e}",
                                     extra={"user_id": user_id, "platform": PLATFORM})
                raise TokenExpiredError(PLATFORM) from e

            new_expiry = creds.expiry.replace(tzinfo=timezone.utc) if creds.expiry else None
            update_account_tokens(user_id, PLATFORM, creds.token, new_expiry,
                                  refresh_token=creds.refresh_token, db=db)
            youtube_logger.info(f"YouTube token refreshed for user {user_id}")

        return creds

    def is_connected(self, user_id: int, db: Session = None) -> bool:
        return get_connected_account(user_id, PLATFORM, db=db) is not None

    def disconnect(self, user_id: int, db: Session = None) -> bool:
        return deactivate_connected_account(user_id, PLATFORM, db=db)

    def get_channel_info(self, user_id: int, db: Session = None) -> Optional[Dict[str, Any]]:
        creds = self.get_credentials(user_id, db=db)
        youtube = build("youtube", "v3", credentials=creds, cache_discovery=False)
        try:
            response = youtube.channels().list(part="snippet,statistics", mine=True).execute()
        except HttpError as e:
            raise PlatformAPIError(PLATFORM, f"Failed to fetch channel: {e}",
                                   status_code=e.resp.status, stage="channel_info") from e

        items = response.get("items") or []
        if not items:
            return None
        channel = items[0]
        snippet = channel.get("snippet", {})
        return {
            "id": channel.get("id"),
            "title": snippet.get("title"),
            "description": snippet.get("description"),
            "thumbnail": snippet.get("thumbnails", {}).get("default", {}).get("url"),
            "subscriberCount": channel.get("statistics", {}).get("subscriberCount"),
        }

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload_video(self, user_id: int, video_path: str, metadata: Dict[str, Any],
                           db: Session = None) -> Dict[str, Any]:
        """Resumable upload of a local or remote video. Returns {video_id, url, upload_id}."""
        # A token refresh is a blocking HTTP call
        creds = await asyncio.to_thread(self.get_credentials, user_id, db)

        title = (metadata.get("title") or "Untitled")[:MAX_TITLE_LENGTH]
        snippet = {
            "title": title,
            "description": metadata.get("description") or "",
            "categoryId": PEOPLE_AND_BLOGS_CATEGORY,
        }
        tags = [str(t).lstrip("#") for t in metadata.get("tags") or [] if str(t).strip()]
        if tags:
            snippet["tags"] = tags
        body = {
            "snippet": snippet,
            "status": {"privacyStatus": metadata.get("privacyStatus") or "private"},
        }

        upload = create_youtube_upload(user_id, title, video_id=metadata.get("videoId"), db=db)

        try:
            with tempfile.TemporaryDirectory() as tmp_dir:
                path = await self._resolve_video(video_path, Path(tmp_dir))
                youtube_logger.info(f"Uploading {path.name} to YouTube for user {user_id}: {title[:50]}")
                response = await asyncio.to_thread(self._insert_video, creds, path, body)
        except Exception as e:
            error = getattr(e, "message", None) or str(e)
            finish_youtube_upload(upload.id, "failed", error=error, db=db)
            youtube_logger.error(f"❌ YouTube upload FAILED - User {user_id}: {error}",
                                 extra={"user_id": user_id, "platform": PLATFORM, "video_path": video_path})
            if isinstance(e, HttpError):
                raise PlatformAPIError(PLATFORM, f"Upload failed: {e}",
                                       status_code=e.resp.status, stage="upload") from e
            raise

        youtube_video_id = response["id"]
        finish_youtube_upload(upload.id, "completed", youtube_video_id=youtube_video_id, db=db)
        youtube_logger.info(f"✅ Uploaded to YouTube: {youtube_video_id}")
        return {
            "video_id": youtube_video_id,
            "url": f"https://www.youtube.com/watch?v={youtube_video_id}",
            "upload_id": upload.id,
        }

    async def _resolve_video(self, video_path: str, tmp_dir: Path) -> Path:
        """Local file for the upload; remote URLs are downloaded into tmp_dir"""
        if is_remote(video_path):
            saved = await download_media(video_path, tmp_dir, media_filename("upload", "mp4"),
                                         transport=self._transport)
            if saved is None:
                raise PlatformAPIError(PLATFORM, f"Could not download video from {video_path}", stage="download")
            return saved

        path = local_media_path(video_path)
        if path is None or not path.exists():
            raise FileNotFoundError(f"Video file not found: {video_path}")
        return path.resolve()

    @staticmethod
    def _insert_video(creds: Credentials, path: Path, body: Dict[str, Any]) -> Dict[str, Any]:
        youtube = build("youtube", "v3", credentials=creds, cache_discovery=False)
        request = youtube.videos().insert(
            part="snippet,status",
            body=body,
            media_body=MediaFileUpload(str(path), resumable=True),
        )

        response = None
        while response is None:
            status, response = request.next_chunk()
            if status:
                youtube_logger.debug(f"Upload progress: {int(status.progress() * 100)}%")
        return response
