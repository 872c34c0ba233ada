"""Direct audio stream resolution for naat source videos.

Asks Piped-style proxy instances for a video's audio-only streams and picks
the highest-bitrate one. Resolution is best-effort: every failure degrades
to None and the next instance is tried.
"""

import asyncio
import re
from typing import Any, Optional, Sequence
from urllib.parse import parse_qs, urlparse

import requests
from loguru import logger

DEFAULT_INSTANCES = (
    "https://piped.video",
    "https://piped.video/api/v1",
)
DEFAULT_TIMEOUT_SECONDS = 15.0

_PATH_ID_PATTERNS = (
    re.compile(r"/embed/([\w-]+)"),
    re.compile(r"/shorts/([\w-]+)"),
)


def extract_video_id(url: str) -> Optional[str]:
    """Extract the video id from a source URL.

    Recognized shapes:
    - Short link: youtu.be/ID
    - Query parameter: ...?v=ID
    - Embed: /embed/ID
    - Shorts: /shorts/ID

    Args:
        url: Source video URL

    Returns:
        Video id, or None for any other shape
    """
    if not url:
        return None

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None

    if not parsed.scheme or not parsed.netloc:
        return None

    host = (parsed.hostname or "").lower()
    if "youtu.be" in host:
        video_id = parsed.path[1:] if parsed.path.startswith("/") else parsed.path
        return video_id or None

    v_values = parse_qs(parsed.query).get("v")
    if v_values and v_values[0]:
        return v_values[0]

    for pattern in _PATH_ID_PATTERNS:
        match = pattern.search(parsed.path)
        if match:
            return match.group(1)

    return None


def build_streams_endpoint(instance: str, video_id: str) -> str:
    """Streams endpoint for an instance base URL."""
    base = instance.rstrip("/")
    if "/api/v1" in base:
        return f"{base}/streams/{video_id}"
    return f"{base}/api/v1/streams/{video_id}"


def _bitrate(stream: dict[str, Any]) -> float:
    value = stream.get("bitrate")
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def pick_best_stream(streams: Sequence[Any]) -> Optional[str]:
    """Pick the URL of the highest-bitrate audio stream.

    Ties keep list order. If the top candidate has no URL, the first stream
    in the original order that has one is used instead.

    Args:
        streams: audioStreams entries from a proxy response

    Returns:
        Stream URL, or None if no entry carries one
    """
    candidates = [s for s in streams if isinstance(s, dict)]
    if not candidates:
        return None

    # sorted() is stable, so equal bitrates keep their original order
    ranked = sorted(candidates, key=_bitrate, reverse=True)
    best_url = ranked[0].get("url")
    if isinstance(best_url, str) and best_url:
        return best_url

    for stream in candidates:
        url = stream.get("url")
        if isinstance(url, str) and url:
            return url
    return None


class StreamResolver:
    """Resolves source URLs to direct audio URLs via proxy instances.

    Instances are tried one at a time in priority order, never retried.
    Instances that map to an endpoint already tried are skipped.
    """

    def __init__(
        self,
        instances: Sequence[str] = DEFAULT_INSTANCES,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.instances = list(instances)
        self.timeout = timeout

    async def resolve(self, source_url: str) -> Optional[str]:
        """Resolve a source URL to a direct audio stream URL.

        Args:
            source_url: Source video URL

        Returns:
            Direct audio URL, or None if no instance yields one
        """
        video_id = extract_video_id(source_url)
        if not video_id:
            logger.debug(f"No video id in {source_url!r}, skipping resolution")
            return None

        tried: set[str] = set()
        for instance in self.instances:
            endpoint = build_streams_endpoint(instance, video_id)
            # "host" and "host/api/v1" share an endpoint
            if endpoint in tried:
                continue
            tried.add(endpoint)
            streams = await asyncio.to_thread(self._fetch_audio_streams, endpoint)
            if not streams:
                continue

            stream_url = pick_best_stream(streams)
            if stream_url:
                logger.debug(f"Resolved {video_id} via {instance}")
                return stream_url
            logger.warning(f"No usable audio stream URL from {instance} for {video_id}")

        logger.warning(f"Could not resolve audio stream for {source_url}")
        return None

    def _fetch_audio_streams(self, endpoint: str) -> list[Any]:
        """GET one instance's streams endpoint. Returns [] on any failure."""
        try:
            response = requests.get(endpoint, timeout=self.timeout)
            if not response.ok:
                logger.debug(f"{endpoint} returned HTTP {response.status_code}")
                return []
            data = response.json()
        except requests.RequestException as e:
            logger.debug(f"Request to {endpoint} failed: {e}")
            return []
        except ValueError as e:
            logger.debug(f"Malformed JSON from {endpoint}: {e}")
            return []
        except Exception:
            logger.exception(f"Unexpected error querying {endpoint}")
            return []

        if not isinstance(data, dict):
            return []
        streams = data.get("audioStreams") or []
        return streams if isinstance(streams, list) else []
