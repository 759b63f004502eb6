"""
Engine Asset Loader - Fetch runtime assets the map engine needs before it starts.

Today that is the engine's rendering worker script. Bodies are cached in
memory for the life of the process, so a remount does not refetch.
"""

import logging
from typing import Dict, Optional

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from render.engine import AssetLoadError

log = logging.getLogger(__name__)

# Connection-level faults are worth retrying, HTTP errors are not
_TRANSIENT = (requests.ConnectionError, requests.Timeout)


class EngineAssetLoader:
    """
    Fetch engine assets over HTTP.

    Usage:
        loader = get_asset_loader()
        source = loader.fetch_text("https://unpkg.com/.../mapbox-gl-csp-worker.js")
    """

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self.session = requests.Session()
        self._cache: Dict[str, str] = {}

    @retry(
        retry=retry_if_exception_type(_TRANSIENT),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    def _get(self, url: str) -> requests.Response:
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response

    def fetch_text(self, url: str) -> str:
        """
        Fetch an asset body as text.

        Raises:
            AssetLoadError: If the asset could not be fetched or was empty.
        """
        if url in self._cache:
            return self._cache[url]

        try:
            response = self._get(url)
        except requests.RequestException as e:
            log.error(f"Asset request failed for {url}: {e}")
            raise AssetLoadError(f"Could not fetch {url}: {e}") from e

        body = response.text
        if not body:
            raise AssetLoadError(f"Empty response for {url}")

        self._cache[url] = body
        log.info(f"Fetched engine asset {url} ({len(body)} bytes)")
        return body

    def clear_cache(self) -> None:
        self._cache.clear()


# Singleton
_loader: Optional[EngineAssetLoader] = None


def get_asset_loader() -> EngineAssetLoader:
    """Get the shared asset loader instance."""
    global _loader
    if _loader is None:
        _loader = EngineAssetLoader()
    return _loader
