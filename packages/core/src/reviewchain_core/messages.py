"""Request messages accepted by the pipeline and the router that answers them.

Inbound messages are plain dicts ``{"type": ..., "data": ...}``. They are
validated into one of a closed set of request types before any handler runs,
so handlers never see an untyped payload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, Union

from reviewchain_core.errors import MessageValidationError
from reviewchain_core.gh.pull_request import fetch_pr_diff
from reviewchain_core.models import PullRequestInfo, ReviewRequest

if TYPE_CHECKING:
    from reviewchain_core.config import ConfigStore
    from reviewchain_core.notify import ActiveTargets, Observer
    from reviewchain_core.pipeline import ReviewPipeline

logger = logging.getLogger(__name__)

START_REVIEW = "START_REVIEW"
GET_CONFIG = "GET_CONFIG"
FETCH_PR_DIFF = "FETCH_PR_DIFF"


@dataclass(frozen=True)
class StartReview:
    request: ReviewRequest


@dataclass(frozen=True)
class GetConfig:
    pass


@dataclass(frozen=True)
class FetchPrDiff:
    pr_info: PullRequestInfo


Request = Union[StartReview, GetConfig, FetchPrDiff]


def _parse_pr_info(data) -> PullRequestInfo:
    if not isinstance(data, dict):
        raise MessageValidationError("Pull request info must be an object.")
    owner, repo, number = data.get("owner"), data.get("repo"), data.get("number")
    if not isinstance(owner, str) or not owner or not isinstance(repo, str) or not repo:
        raise MessageValidationError("Pull request info needs non-empty 'owner' and 'repo'.")
    if isinstance(number, bool):
        raise MessageValidationError("Pull request 'number' must be a positive integer.")
    try:
        number = int(number)
    except (TypeError, ValueError):
        raise MessageValidationError("Pull request 'number' must be a positive integer.")
    if number <= 0:
        raise MessageValidationError("Pull request 'number' must be a positive integer.")
    return PullRequestInfo(owner=owner, repo=repo, number=number)


def parse_request(message) -> Request:
    """Validate a raw message into a typed request. Raises MessageValidationError."""
    if not isinstance(message, dict):
        raise MessageValidationError("Message must be an object.")
    kind = message.get("type")
    data = message.get("data")

    if kind == START_REVIEW:
        if not isinstance(data, dict):
            raise MessageValidationError("START_REVIEW needs {prInfo, diff}.")
        diff = data.get("diff")
        if not isinstance(diff, str) or not diff.strip():
            raise MessageValidationError("START_REVIEW needs a non-empty 'diff'.")
        return StartReview(ReviewRequest(pr_info=_parse_pr_info(data.get("prInfo")), diff=diff))
    if kind == GET_CONFIG:
        return GetConfig()
    if kind == FETCH_PR_DIFF:
        return FetchPrDiff(_parse_pr_info(data))
    raise MessageValidationError("Unknown message type")


class MessageRouter:
    """Dispatches validated requests and wraps every answer as ``{success, data?, error?}``."""

    def __init__(
        self,
        pipeline: ReviewPipeline,
        config_store: ConfigStore,
        active_targets: Optional[ActiveTargets] = None,
        diff_fetcher: Callable[..., str] = fetch_pr_diff,
        github_token: Optional[str] = None,
    ):
        self._pipeline = pipeline
        self._config_store = config_store
        self._active_targets = active_targets
        self._diff_fetcher = diff_fetcher
        self._github_token = github_token

    def handle(self, message, sender: Optional[Observer] = None) -> dict:
        """Answer one message. Never raises."""
        try:
            request = parse_request(message)
        except MessageValidationError as e:
            logger.warning("Rejected message: %s", e)
            return {"success": False, "error": str(e)}

        if sender is not None and self._active_targets is not None:
            self._active_targets.activate(sender)

        try:
            if isinstance(request, StartReview):
                self._pipeline.start_review(request.request, target=sender)
                return {"success": True}
            if isinstance(request, GetConfig):
                return {"success": True, "data": self._config_store.get().to_dict()}
            info = request.pr_info
            diff = self._diff_fetcher(info.owner, info.repo, info.number, token=self._github_token)
            return {"success": True, "data": diff}
        except Exception as e:
            logger.warning("%s failed: %s", type(request).__name__, e)
            return {"success": False, "error": str(e) or type(e).__name__}
