"""VSCodium release number lookup.

VSCodium tags builds as ``<version>.<release>`` (``1.96.4.25026``). When the
release part is not configured, the newest published build for the
configured version is looked up on GitHub.
"""

import asyncio
import logging
from typing import Any

import aiohttp

logger = logging.getLogger(__name__)

GITHUB_RELEASES_URL = "https://api.github.com/repos/VSCodium/vscodium/releases"
GITHUB_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
}


def match_release(releases: list[dict[str, Any]], version: str) -> str:
    """Release number of the first (newest) build of a version.

    Args:
        releases: GitHub release objects, newest first
        version: Server version, e.g. ``1.96.4``

    Returns:
        The release part (``25026``), or "" if no build matches
    """
    prefix = f"{version}."
    for info in releases:
        name = info.get("name") if isinstance(info, dict) else None
        if isinstance(name, str) and name.startswith(prefix):
            logger.info("Found release version: %s", name)
            return name[len(prefix) :]
    return ""


async def fetch_release(
    version: str, url: str = GITHUB_RELEASES_URL, timeout: float = 30.0
) -> str:
    """Look up the newest VSCodium release number for a version.

    Lookup failures are logged and reported as no match.

    Returns:
        The release part, or "" if none was found
    """
    logger.info("Fetching the last VSCodium release number for version %s", version)
    try:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=timeout)
        ) as session:
            async with session.get(url, headers=GITHUB_HEADERS) as resp:
                resp.raise_for_status()
                data = await resp.json()
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        logger.error("Error fetching releases: %s", e)
        return ""

    if not isinstance(data, list):
        logger.error("Unexpected releases payload from %s", url)
        return ""
    return match_release(data, version)
