"""
Repository Discovery — List every repository in a Bitbucket workspace.

Walks the paginated ``/2.0/repositories/{workspace}`` collection, following
``next`` links until the collection is exhausted, and returns repository
slugs in the order the API returned them.

Any non-200 response aborts discovery: a partial repository list would
silently shrink the backup. Transport errors (DNS, resets, timeouts) are
retried first.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Dict, List, Optional, Tuple

import httpx

from ..config.loader import WorkspaceConfig
from ..errors import DiscoveryError, redact
from ..logging_config import log_success
from ..reliability.retry import DEFAULT_POLICY, RetryPolicy, retry_call

logger = logging.getLogger(__name__)

PAGE_LENGTH = 100

_SLUG_RE = re.compile(r'"slug"\s*:\s*"([^"]+)"')
_WORKSPACE_RE = re.compile(r'"workspace"\s*:\s*\{')
_NEXT_RE = re.compile(r'"next"\s*:\s*"([^"]+)"')


def parse_page(body: str) -> Tuple[List[str], Optional[str]]:
    """
    Extract (slugs, next_url) from one page of the listing.

    Uses the JSON structure when the body parses. Otherwise falls back to
    pulling ``"slug": "<value>"`` pairs out of the raw text, which yields
    the same slugs for a well-formed page.
    """
    try:
        data = json.loads(body)
    except ValueError:
        logger.debug("Listing page is not valid JSON, using text extraction")
        return _parse_page_text(body)

    if not isinstance(data, dict):
        raise DiscoveryError("Unexpected listing payload: not a JSON object")

    slugs = [
        repo["slug"]
        for repo in data.get("values", [])
        if isinstance(repo, dict) and repo.get("slug")
    ]
    return slugs, data.get("next") or None


def _strip_workspace_objects(body: str) -> str:
    """Cut every embedded ``"workspace": {...}`` object out of the text."""
    kept = []
    pos = 0
    while True:
        match = _WORKSPACE_RE.search(body, pos)
        if match is None:
            kept.append(body[pos:])
            return "".join(kept)

        kept.append(body[pos:match.start()])
        depth = 0
        pos = len(body)  # unterminated object runs to the end
        for i in range(match.end() - 1, len(body)):
            if body[i] == "{":
                depth += 1
            elif body[i] == "}":
                depth -= 1
                if depth == 0:
                    pos = i + 1
                    break


def _parse_page_text(body: str) -> Tuple[List[str], Optional[str]]:
    # Workspace objects carry a slug of their own
    slugs = _SLUG_RE.findall(_strip_workspace_objects(body))
    match = _NEXT_RE.search(body)
    next_url = match.group(1).replace("\\/", "/") if match else None
    return slugs, next_url


class BitbucketClient:
    """
    Authenticated reader for the workspace repository listing.

    Pass ``http_client`` to reuse a configured ``httpx.Client`` (tests use
    one built on ``httpx.MockTransport``).
    """

    def __init__(
        self,
        config: WorkspaceConfig,
        http_client: Optional[httpx.Client] = None,
        retry_policy: RetryPolicy = DEFAULT_POLICY,
    ):
        self.config = config
        self.retry_policy = retry_policy
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=config.http_timeout)
        self.pages_fetched = 0

    def __enter__(self) -> "BitbucketClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    def _get(self, url: str, params: Optional[Dict[str, int]]) -> httpx.Response:
        return self._http.get(
            url,
            params=params,
            headers=self._headers(),
            auth=(self.config.account_email, self.config.api_token),
            timeout=self.config.http_timeout,
        )

    def _fetch_page(self, url: str, params: Optional[Dict[str, int]]) -> httpx.Response:
        try:
            return retry_call(
                lambda: self._get(url, params),
                policy=self.retry_policy,
                description=f"GET {url}",
            )
        except httpx.HTTPError as e:
            raise DiscoveryError(
                f"Could not reach Bitbucket API: {redact(str(e), *self.config.secrets)}"
            ) from e

    def list_repositories(self) -> List[str]:
        """
        Return every repository slug in the workspace, in API order.

        Raises:
            DiscoveryError: non-200 status, unreachable API, or more pages
                than ``max_pages``.
        """
        workspace = self.config.workspace
        logger.info(f"Fetching repository list from Bitbucket workspace: {workspace}")

        slugs: List[str] = []
        seen = set()
        url: Optional[str] = self.config.repositories_url
        params: Optional[Dict[str, int]] = {"pagelen": PAGE_LENGTH}
        self.pages_fetched = 0

        while url:
            if self.pages_fetched >= self.config.max_pages:
                raise DiscoveryError(
                    f"Repository listing exceeded {self.config.max_pages} pages; "
                    "raise MAX_PAGES if the workspace really is that large"
                )

            response = self._fetch_page(url, params)
            self.pages_fetched += 1

            if response.status_code != 200:
                raise DiscoveryError(
                    "Failed to fetch repositories from Bitbucket API "
                    f"(HTTP {response.status_code})"
                )

            page_slugs, url = parse_page(response.text)
            params = None  # next links already carry the query

            for slug in page_slugs:
                if slug not in seen:
                    seen.add(slug)
                    slugs.append(slug)

            logger.debug(
                f"Page {self.pages_fetched}: {len(page_slugs)} repositories"
            )

        log_success(
            logger,
            f"Successfully connected to Bitbucket API "
            f"({len(slugs)} repositories in {self.pages_fetched} page(s))",
        )
        return slugs
