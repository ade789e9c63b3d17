"""Download generated media to the public directory"""
import logging
import secrets
import time
from pathlib import Path
from typing import Optional

import httpx

providers_logger = logging.getLogger("providers")


def media_filename(prefix: str, extension: str) -> str:
    """Unique file name like video_fal_1700000000000_k3j9x2.mp4"""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(3)}.{extension}"


async def download_media(
    url: str,
    dest_dir: Path,
    filename: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    headers: Optional[dict] = None,
    timeout: float = 300.0,
) -> Optional[Path]:
    """Fetch url into dest_dir/filename. Returns the path, or None on failure."""
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        output_path = dest_dir / filename

        async with httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True) as client:
            response = await client.get(url, headers=headers)
            response.raise_for_status()
            output_path.write_bytes(response.content)

        providers_logger.info(f"Downloaded media to {output_path} ({len(response.content)} bytes)")
        return output_path

    except (httpx.HTTPError, OSError) as e:
        providers_logger.error(f"❌ Failed to download media from {url[:80]}: {e}")
        return None
