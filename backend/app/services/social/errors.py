"""Exceptions raised by the social platform adapters"""


class SocialPlatformError(Exception):
    """Base error for a platform call. Callers catch this and record the failure."""

    def __init__(self, platform: str, message: str):
        super().__init__(message)
        self.platform = platform
        self.message = message


class AccountNotConnectedError(SocialPlatformError):
    def __init__(self, platform: str):
        super().__init__(platform, f"{platform.capitalize()} account is not connected")


class TokenExpiredError(SocialPlatformError):
    def __init__(self, platform: str, message: str = None):
        super().__init__(
            platform,
            message or f"{platform.capitalize()} access token is invalid or expired. Please reconnect your account.",
        )


class PlatformAPIError(SocialPlatformError):
    def __init__(self, platform: str, message: str, status_code: int = None, stage: str = None):
        super().__init__(platform, message)
        self.status_code = status_code
        self.stage = stage
