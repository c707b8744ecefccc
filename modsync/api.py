"""API client for the repository hosting service (GitHub REST API)."""

import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from . import __version__
from .cache import SnapshotCache
from .config import config
from .exceptions import (
    ModSyncAPIError,
    ModSyncAuthenticationError,
    ModSyncInvalidResponseError,
    ModSyncNetworkError,
    ModSyncPermissionError,
    ModSyncRateLimitError,
)
from .models import ReleaseInfo, RemoteRepository
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_PAGE_SIZE, DEFAULT_RETRY_DELAY

logger = logging.getLogger(__name__)


class CatalogClient:
    """Lists an organization's repositories with caching and quota tracking.

    The repository listing is cached for an hour. When a refresh fails
    (network error, rate limit, unexpected status) the last good listing is
    returned instead, or an empty list if there never was one.
    """

    def __init__(
        self,
        organization: Optional[str] = None,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        page_size: int = DEFAULT_PAGE_SIZE,
        cache: Optional[SnapshotCache[list[RemoteRepository]]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize catalog client.

        Args:
            organization: Organization name (uses config if not provided)
            token: Optional bearer token (uses GITHUB_TOKEN if not provided)
            api_url: Optional API URL (uses config if not provided)
            timeout: Request timeout in seconds (default: 30.0)
            max_retries: Retries for network and server errors (default: 2)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            page_size: Repositories requested per page (default: 100)
            cache: Snapshot cache for the repository listing
            transport: Optional httpx transport (used by tests)
        """
        self.organization = organization or config.organization
        self.token = token if token is not None else config.github_token
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.page_size = page_size
        self.cache: SnapshotCache[list[RemoteRepository]] = cache or SnapshotCache()

        self.rate_limit_remaining: Optional[int] = None
        """Requests left in the current quota window, from the last response"""

        self.rate_limit_reset: Optional[datetime] = None
        """When the quota window resets, from the last response"""

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            headers = {
                "Accept": "application/vnd.github+json",
                "User-Agent": f"modsync/{__version__}",
            }
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # =========================
    # Request handling
    # =========================

    def _update_rate_limit(self, response: httpx.Response) -> None:
        """Record quota information from response headers."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                self.rate_limit_remaining = int(remaining)
            except ValueError:
                logger.debug(f"Ignoring malformed X-RateLimit-Remaining: {remaining!r}")

        reset = response.headers.get("X-RateLimit-Reset")
        if reset is not None:
            try:
                self.rate_limit_reset = datetime.fromtimestamp(int(reset), timezone.utc)
            except (ValueError, OverflowError, OSError):
                logger.debug(f"Ignoring malformed X-RateLimit-Reset: {reset!r}")

    def _error_for_response(self, response: httpx.Response) -> ModSyncAPIError:
        """Map a non-success response onto the exception hierarchy."""
        status_code = response.status_code

        if status_code == 401:
            return ModSyncAuthenticationError(
                "Invalid API token or unauthorized access", status_code
            )
        if status_code == 403 and self.rate_limit_remaining == 0:
            return ModSyncRateLimitError(
                "API rate limit exceeded - set GITHUB_TOKEN or try again later",
                status_code,
            )
        if status_code == 429:
            return ModSyncRateLimitError(
                "Rate limit exceeded - please try again later", status_code
            )
        if status_code == 403:
            return ModSyncPermissionError(
                "Access forbidden - check your permissions", status_code
            )
        if status_code == 404:
            return ModSyncAPIError("Resource not found", status_code)

        error_msg = f"API request failed with status {status_code}"
        try:
            if response.content:
                error_data = response.json()
                if isinstance(error_data, dict) and error_data.get("message"):
                    error_msg = f"{error_msg}: {error_data['message']}"
        except ValueError:
            # Not JSON, keep the status-based message
            pass
        return ModSyncAPIError(error_msg, status_code)

    def _should_retry(self, error: Exception, attempt: int) -> bool:
        """Retry network errors and 5xx responses until attempts run out."""
        if attempt >= self.max_retries:
            return False
        if isinstance(error, ModSyncNetworkError):
            return True
        if isinstance(error, ModSyncAPIError) and error.status_code is not None:
            return 500 <= error.status_code < 600
        return False

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Exponential backoff with +/- 25% jitter."""
        base_delay = self.retry_delay * (2**attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    async def _get(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Make a GET request with retry logic.

        Args:
            endpoint: API path, e.g. "/orgs/Name/repos"
            params: Query parameters

        Returns:
            Parsed JSON body

        Raises:
            ModSyncAPIError: If the request fails after all retries
        """
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                response = await client.get(endpoint, params=params)
            except httpx.RequestError as e:
                error: ModSyncAPIError = ModSyncNetworkError(f"Network error: {e}")
                if self._should_retry(error, attempt):
                    await asyncio.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e

            self._update_rate_limit(response)

            if response.is_success:
                try:
                    return response.json()
                except ValueError as e:
                    raise ModSyncInvalidResponseError(
                        "Invalid JSON response from server"
                    ) from e

            error = self._error_for_response(response)
            if self._should_retry(error, attempt):
                logger.debug(
                    f"Retrying {endpoint} after status {response.status_code} "
                    f"(attempt {attempt + 1})"
                )
                await asyncio.sleep(self._calculate_retry_delay(attempt))
                continue
            raise error

        # Only reachable with a negative max_retries
        raise ModSyncAPIError("Request failed after all retry attempts")

    # =========================
    # Catalog
    # =========================

    async def organization_repositories(self) -> list[RemoteRepository]:
        """List all repositories of the organization.

        Returns:
            Repositories in API order. A fresh cached listing is returned
            without a request; on failure the last good listing (or an empty
            list) is returned.
        """
        cached = self.cache.fresh()
        if cached is not None:
            logger.debug(f"Using cached repository list for {self.organization}")
            return list(cached)

        repositories: list[RemoteRepository] = []
        page = 1

        try:
            while True:
                data = await self._get(
                    f"/orgs/{self.organization}/repos",
                    params={"per_page": self.page_size, "page": page},
                )
                if not isinstance(data, list):
                    raise ModSyncInvalidResponseError(
                        "Expected a list of repositories from the API"
                    )

                repositories.extend(
                    RemoteRepository.from_api(item)
                    for item in data
                    if isinstance(item, dict) and item.get("name")
                )

                # A short page is the last one
                if len(data) < self.page_size:
                    break
                page += 1
        except ModSyncAPIError as e:
            fallback = self.cache.last()
            if fallback is not None:
                logger.warning(
                    f"Could not refresh repositories for {self.organization} "
                    f"({e}), using cached list"
                )
                return list(fallback)
            logger.warning(f"Could not list repositories for {self.organization}: {e}")
            return []

        if repositories:
            self.cache.store(repositories)
            return list(repositories)

        return list(self.cache.last() or [])

    async def repository_by_name(self, name: str) -> Optional[RemoteRepository]:
        """Find a catalog repository by name, ignoring case."""
        wanted = name.casefold()
        for repository in await self.organization_repositories():
            if repository.name.casefold() == wanted:
                return repository
        return None

    async def releases(
        self, owner: str, repo: str, per_page: int = 15
    ) -> list[ReleaseInfo]:
        """List the most recent releases of a repository.

        Raises:
            ModSyncAPIError: If the request fails
        """
        data = await self._get(
            f"/repos/{owner}/{repo}/releases", params={"per_page": per_page}
        )
        if not isinstance(data, list):
            raise ModSyncInvalidResponseError(
                "Expected a list of releases from the API"
            )
        return [ReleaseInfo.from_api(item) for item in data if isinstance(item, dict)]
