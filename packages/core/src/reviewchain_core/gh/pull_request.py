from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

import httpx
from github import Github

from reviewchain_core.errors import DiffFetchError
from reviewchain_core.models import PullRequestInfo

logger = logging.getLogger(__name__)


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


_PR_PATH_RE = re.compile(r"^/([^/]+)/([^/]+)/pull/(\d+)(?:/([^/]+))?/?$")


def _match(url: str):
    parsed = urlparse(url)
    if parsed.netloc and parsed.netloc.lower() not in ("github.com", "www.github.com"):
        return None
    return _PR_PATH_RE.match(parsed.path)


def is_pr_page(url: str) -> bool:
    """True for a pull request URL, including its /files and /commits tabs."""
    return _match(url) is not None


def is_diff_page(url: str) -> bool:
    match = _match(url)
    return match is not None and match.group(4) == "files"


def parse_pr_url(url: str) -> PullRequestInfo | None:
    """Extract owner, repo and number from a pull request URL, or None."""
    match = _match(url)
    if match is None:
        return None
    return PullRequestInfo(owner=match.group(1), repo=match.group(2), number=int(match.group(3)))


def parse_repo(repo: str) -> tuple[str, str]:
    """Split ``owner/name``."""
    owner, sep, name = repo.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ValueError(f"Repository must be in owner/name format, got {repo!r}.")
    return owner, name


def fetch_pr_diff(
    owner: str,
    repo: str,
    number: int,
    token: str | None = None,
    client: httpx.Client | None = None,
) -> str:
    """Download the unified diff of a pull request as plain text."""
    url = PullRequestInfo(owner=owner, repo=repo, number=number).diff_url
    headers = {"Accept": "text/plain"}
    if token:
        headers["Authorization"] = f"token {token}"

    http = client or httpx.Client(timeout=30.0, follow_redirects=True)
    try:
        response = http.get(url, headers=headers)
    except httpx.HTTPError as e:
        raise DiffFetchError(f"Could not fetch {url}: {e}") from e
    finally:
        if client is None:
            http.close()

    if not response.is_success:
        raise DiffFetchError(f"{response.status_code} {response.text}".strip())
    logger.debug("Fetched %d bytes of diff from %s", len(response.text), url)
    return response.text
