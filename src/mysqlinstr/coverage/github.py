"""Post the coverage summary as a pull request comment."""

from __future__ import annotations

import httpx
import structlog

from mysqlinstr.core.errors import ReportError

log = structlog.get_logger(__name__)

DEFAULT_API_URL = "https://api.github.com"


def split_repository(repo: str) -> tuple[str, str]:
    owner, sep, name = repo.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ReportError.publish_failed(
            f"invalid repository format, expected 'owner/repo', got {repo!r}"
        )
    return owner, name


def post_pr_comment(
    body: str,
    *,
    repo: str,
    pr_number: int,
    token: str,
    api_url: str = DEFAULT_API_URL,
    timeout: float = 30.0,
    client: httpx.Client | None = None,
) -> str:
    """Create an issue comment on ``pr_number`` and return its URL.

    Raises:
        ReportError: The repository is malformed, the request fails or
            GitHub answers with a non-2xx status.
    """
    owner, name = split_repository(repo)
    url = f"{api_url.rstrip('/')}/repos/{owner}/{name}/issues/{pr_number}/comments"
    headers = {
        "Accept": "application/vnd.github+json",
        "Authorization": f"Bearer {token}",
        "X-GitHub-Api-Version": "2022-11-28",
    }

    owns_client = client is None
    http = client or httpx.Client(timeout=timeout)
    try:
        response = http.post(url, json={"body": body}, headers=headers)
    except httpx.RequestError as e:
        raise ReportError.publish_failed(f"request to {url} failed: {e}") from e
    finally:
        if owns_client:
            http.close()

    if response.is_error:
        raise ReportError.publish_failed(
            f"GitHub API returned {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )

    comment_url = str(response.json().get("html_url", ""))
    log.info("pr_comment_posted", repo=repo, pr=pr_number, url=comment_url)
    return comment_url
