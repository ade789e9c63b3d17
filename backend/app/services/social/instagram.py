"""Instagram Reels publishing through the Facebook Graph API"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from app.core.config import (
    settings, INSTAGRAM_GRAPH_URL, INSTAGRAM_AUTH_URL, INSTAGRAM_TOKEN_URL,
    INSTAGRAM_REDIRECT_URI, INSTAGRAM_SCOPES
)
from app.db.helpers import (
    StoredAccount, get_connected_account, upsert_connected_account, update_account_tokens,
    deactivate_connected_account, record_social_upload, as_utc
)
from app.services.social.errors import AccountNotConnectedError, TokenExpiredError, PlatformAPIError
from app.services.social.media import build_caption

instagram_logger = logging.getLogger("instagram")

PLATFORM = "instagram"
LONG_LIVED_TOKEN_DAYS = 60
REFRESH_WINDOW = timedelta(hours=24)
EXPIRED_TOKEN_CODE = 190


class InstagramService:
    """Graph API client for a user's Instagram business account"""

    def __init__(self, graph_url: str = INSTAGRAM_GRAPH_URL,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 status_poll_interval: float = 5.0, max_status_checks: int = 30):
        self.graph_url = graph_url
        self._transport = transport
        self.status_poll_interval = status_poll_interval
        self.max_status_checks = max_status_checks

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=60.0, transport=self._transport)

    @staticmethod
    def _raise_for_error(response: httpx.Response, stage: str) -> Dict[str, Any]:
        """JSON body of a successful response; Graph errors become SocialPlatformError"""
        try:
            data = response.json()
        except ValueError:
            data = {"error": {"message": response.text}}

        if response.status_code == 200 and not (isinstance(data, dict) and data.get("error")):
            return data

        error = data.get("error", {}) if isinstance(data, dict) else {}
        if error.get("code") == EXPIRED_TOKEN_CODE:
            instagram_logger.error(f"❌ Instagram token expired during {stage}", extra={"stage": stage})
            raise TokenExpiredError(PLATFORM)

        message = error.get("message") or response.reason_phrase or "Unknown error"
        instagram_logger.error(
            f"❌ Instagram {stage} failed: HTTP {response.status_code} - {message}",
            extra={"stage": stage, "http_status": response.status_code, "error_code": error.get("code")}
        )
        raise PlatformAPIError(PLATFORM, f"Instagram {stage} failed: {message}",
                               status_code=response.status_code, stage=stage)

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def build_auth_url(self, state: str) -> str:
        if not settings.INSTAGRAM_APP_ID or not settings.INSTAGRAM_APP_SECRET:
            raise ValueError("Instagram OAuth credentials not configured. Set INSTAGRAM_APP_ID and INSTAGRAM_APP_SECRET.")
        params = {
            "client_id": settings.INSTAGRAM_APP_ID,
            "redirect_uri": INSTAGRAM_REDIRECT_URI,
            "scope": ",".join(INSTAGRAM_SCOPES),
            "response_type": "code",
            "state": state,
        }
        return f"{INSTAGRAM_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.get(INSTAGRAM_TOKEN_URL, params={
                "client_id": settings.INSTAGRAM_APP_ID,
                "client_secret": settings.INSTAGRAM_APP_SECRET,
                "redirect_uri": INSTAGRAM_REDIRECT_URI,
                "code": code,
            })
            return self._raise_for_error(response, "exchange_code")

    async def get_long_lived_token(self, access_token: str) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.get(INSTAGRAM_TOKEN_URL, params={
                "grant_type": "fb_exchange_token",
                "client_id": settings.INSTAGRAM_APP_ID,
                "client_secret": settings.INSTAGRAM_APP_SECRET,
                "fb_exchange_token": access_token,
            })
            return self._raise_for_error(response, "long_lived_token")

    async def find_business_account(self, access_token: str) -> Optional[Dict[str, Any]]:
        """First Facebook page with a linked Instagram business account, as {id, username, page_id}"""
        async with self._client() as client:
            response = await client.get(f"{self.graph_url}/me/accounts", params={
                "fields": "id,name,access_token,instagram_business_account",
                "access_token": access_token,
            })
            pages = self._raise_for_error(response, "get_pages").get("data") or []

            for page in pages:
                business = page.get("instagram_business_account")
                if not business:
                    continue
                details = await client.get(f"{self.graph_url}/{business['id']}", params={
                    "fields": "id,username",
                    "access_token": access_token,
                })
                account = self._raise_for_error(details, "get_account")
                return {"id": account.get("id"), "username": account.get("username"), "page_id": page.get("id")}
        return None

    async def complete_oauth(self, user_id: int, code: str, db: Session = None) -> Dict[str, Any]:
        """Exchange the code for a long-lived token and store the business account"""
        short_lived = await self.exchange_code(code)
        access_token = short_lived["access_token"]
        try:
            long_lived = await self.get_long_lived_token(access_token)
            access_token = long_lived.get("access_token") or access_token
        except PlatformAPIError as e:
            instagram_logger.warning(f"Keeping short-lived Instagram token for user {user_id}: {e}")

        account = await self.find_business_account(access_token)
        if not account:
            raise PlatformAPIError(
                PLATFORM,
                "No Instagram Business account found. Link an Instagram Business or Creator account to a Facebook Page.",
                stage="get_pages",
            )

        upsert_connected_account(
            user_id=user_id,
            platform=PLATFORM,
            access_token=access_token,
            expires_at=datetime.now(timezone.utc) + timedelta(days=LONG_LIVED_TOKEN_DAYS),
            platform_user_id=account["id"],
            platform_username=account.get("username"),
            extra_data={"business_account_id": account["id"], "page_id": account.get("page_id")},
            db=db,
        )
        instagram_logger.info(f"✅ Instagram connected for user {user_id}: @{account.get('username')}")
        return {"accountId": account["id"], "username": account.get("username")}

    # ------------------------------------------------------------------
    # Account state
    # ------------------------------------------------------------------

    def get_stored_account(self, user_id: int, db: Session = None) -> Optional[StoredAccount]:
        return get_connected_account(user_id, PLATFORM, db=db)

    def is_connected(self, user_id: int, db: Session = None) -> bool:
        return self.get_stored_account(user_id, db=db) is not None

    def disconnect(self, user_id: int, db: Session = None) -> bool:
        return deactivate_connected_account(user_id, PLATFORM, db=db)

    async def refresh_token_if_needed(self, user_id: int, db: Session = None) -> Optional[str]:
        """Current access token, swapped for a new long-lived one when it expires within 24h"""
        account = self.get_stored_account(user_id, db=db)
        if not account:
            return None

        expires_at = as_utc(account.token_expires_at)
        if expires_at and expires_at - datetime.now(timezone.utc) < REFRESH_WINDOW:
            try:
                refreshed = await self.get_long_lived_token(account.access_token)
            except PlatformAPIError as e:
                instagram_logger.error(f"❌ Failed to refresh Instagram token for user {user_id}: {e}",
                                       extra={"user_id": user_id})
                return None

            expires_in = int(refreshed.get("expires_in") or LONG_LIVED_TOKEN_DAYS * 24 * 60 * 60)
            new_expiry = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
            update_account_tokens(user_id, PLATFORM, refreshed["access_token"], new_expiry, db=db)
            instagram_logger.info(f"Instagram token refreshed for user {user_id}")
            return refreshed["access_token"]

        return account.access_token

    async def validate_token(self, access_token: str) -> bool:
        try:
            async with self._client() as client:
                response = await client.get(f"{self.graph_url}/me", params={"access_token": access_token})
        except httpx.HTTPError as e:
            instagram_logger.warning(f"Could not validate Instagram token: {e}")
            return False
        return response.status_code == 200

    async def check_container_status(self, container_id: str, access_token: str) -> Dict[str, Any]:
        """Processing state of a reel container as {status, status_code}"""
        async with self._client() as client:
            response = await client.get(f"{self.graph_url}/{container_id}", params={
                "fields": "status_code",
                "access_token": access_token,
            })
            status_code = self._raise_for_error(response, "container_status").get("status_code") or "UNKNOWN"
        return {"status": status_code.lower(), "status_code": status_code}

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def publish_reel(self, user_id: int, video_url: str, caption: str = "",
                           hashtags: List[str] = None, video_id: str = None,
                           db: Session = None) -> Dict[str, Any]:
        """Container-create, wait for processing, then publish. Returns {media_id, container_id}."""
        account = self.get_stored_account(user_id, db=db)
        if not account:
            raise AccountNotConnectedError(PLATFORM)

        access_token = await self.refresh_token_if_needed(user_id, db=db) or account.access_token
        business_account_id = account.extra_data.get("business_account_id") or account.platform_user_id
        if not business_account_id:
            raise PlatformAPIError(PLATFORM, "No Business Account ID. Please reconnect your Instagram account.")

        full_caption = build_caption(caption, hashtags)

        try:
            async with self._client() as client:
                container_response = await client.post(f"{self.graph_url}/{business_account_id}/media", data={
                    "media_type": "REELS",
                    "video_url": video_url,
                    "caption": full_caption,
                    "share_to_feed": "true",
                    "access_token": access_token,
                })
                container_id = self._raise_for_error(container_response, "create_container").get("id")
                if not container_id:
                    raise PlatformAPIError(PLATFORM, "No container ID in response", stage="create_container")
                instagram_logger.info(f"Created Instagram reel container {container_id}")

                await self._wait_for_container(client, container_id, access_token)

                publish_response = await client.post(f"{self.graph_url}/{business_account_id}/media_publish", data={
                    "creation_id": container_id,
                    "access_token": access_token,
                })
                media_id = self._raise_for_error(publish_response, "publish_media").get("id")
                if not media_id:
                    raise PlatformAPIError(PLATFORM, "No media ID in publish response", stage="publish_media")
        except httpx.HTTPError as e:
            record_social_upload(user_id, PLATFORM, "failed", error=str(e), video_id=video_id, db=db)
            raise PlatformAPIError(PLATFORM, f"Instagram request failed: {e}") from e
        except (TokenExpiredError, PlatformAPIError) as e:
            record_social_upload(user_id, PLATFORM, "failed", error=e.message, video_id=video_id, db=db)
            raise

        record_social_upload(user_id, PLATFORM, "completed", platform_post_id=media_id, video_id=video_id, db=db)
        instagram_logger.info(f"✅ Published Instagram reel {media_id} for user {user_id}")
        return {"media_id": media_id, "container_id": container_id}

    async def _wait_for_container(self, client: httpx.AsyncClient, container_id: str, access_token: str) -> None:
        for attempt in range(self.max_status_checks):
            response = await client.get(f"{self.graph_url}/{container_id}", params={
                "fields": "status_code",
                "access_token": access_token,
            })
            status_code = self._raise_for_error(response, "container_status").get("status_code")
            instagram_logger.debug(f"Container {container_id} status (attempt {attempt + 1}): {status_code}")

            if status_code == "FINISHED":
                return
            if status_code == "ERROR":
                raise PlatformAPIError(PLATFORM, "Container processing failed", stage="container_status")
            if status_code == "EXPIRED":
                raise PlatformAPIError(PLATFORM, "Container expired", stage="container_status")
            await asyncio.sleep(self.status_poll_interval)

        raise PlatformAPIError(PLATFORM, "Timed out waiting for Instagram to process the video",
                               stage="container_status")
