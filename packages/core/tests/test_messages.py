"""Tests for message validation and MessageRouter dispatch."""

from unittest.mock import MagicMock

import pytest

from reviewchain_core.config import default_config
from reviewchain_core.errors import ConfigurationError, DiffFetchError, MessageValidationError
from reviewchain_core.messages import (
    FetchPrDiff,
    GetConfig,
    MessageRouter,
    StartReview,
    parse_request,
)
from reviewchain_core.models import PullRequestInfo
from reviewchain_core.notify import ActiveTargets

PR = {"owner": "acme", "repo": "widgets", "number": 5}


class TestParseRequest:
    def test_start_review(self):
        request = parse_request({"type": "START_REVIEW", "data": {"prInfo": PR, "diff": "+x"}})
        assert isinstance(request, StartReview)
        assert request.request.pr_info == PullRequestInfo("acme", "widgets", 5)
        assert request.request.diff == "+x"

    def test_get_config_ignores_data(self):
        assert isinstance(parse_request({"type": "GET_CONFIG"}), GetConfig)

    def test_fetch_pr_diff(self):
        request = parse_request({"type": "FETCH_PR_DIFF", "data": PR})
        assert request == FetchPrDiff(PullRequestInfo("acme", "widgets", 5))

    def test_numeric_string_number_is_accepted(self):
        request = parse_request({"type": "FETCH_PR_DIFF", "data": {**PR, "number": "5"}})
        assert request.pr_info.number == 5

    @pytest.mark.parametrize(
        "message, match",
        [
            ({"type": "DELETE_EVERYTHING"}, "Unknown message type"),
            ({"data": {}}, "Unknown message type"),
            ("START_REVIEW", "object"),
            ({"type": "START_REVIEW", "data": {"prInfo": PR, "diff": "   "}}, "diff"),
            ({"type": "START_REVIEW", "data": {"prInfo": PR}}, "diff"),
            ({"type": "START_REVIEW", "data": {"prInfo": {"owner": "acme"}, "diff": "+x"}}, "owner"),
            ({"type": "FETCH_PR_DIFF", "data": {**PR, "number": 0}}, "positive"),
            ({"type": "FETCH_PR_DIFF", "data": {**PR, "number": "five"}}, "positive"),
            ({"type": "FETCH_PR_DIFF", "data": {**PR, "number": True}}, "positive"),
        ],
    )
    def test_rejects_invalid(self, message, match):
        with pytest.raises(MessageValidationError, match=match):
            parse_request(message)


def _router(**kwargs):
    pipeline = MagicMock()
    config_store = MagicMock()
    config_store.get.return_value = default_config()
    router = MessageRouter(pipeline, config_store, **kwargs)
    return router, pipeline, config_store


class TestMessageRouter:
    def test_unknown_type_is_an_error_response(self):
        router, pipeline, _ = _router()
        assert router.handle({"type": "NOPE"}) == {"success": False, "error": "Unknown message type"}
        pipeline.start_review.assert_not_called()

    def test_start_review_passes_sender_as_target(self):
        router, pipeline, _ = _router()
        sender = MagicMock()

        response = router.handle({"type": "START_REVIEW", "data": {"prInfo": PR, "diff": "+x"}}, sender=sender)

        assert response == {"success": True}
        request = pipeline.start_review.call_args.args[0]
        assert request.pr_info.run_id == "acme-widgets-5"
        assert pipeline.start_review.call_args.kwargs["target"] is sender

    def test_start_review_configuration_error(self):
        router, pipeline, _ = _router()
        pipeline.start_review.side_effect = ConfigurationError("No API key configured for the 'openai' provider.")

        response = router.handle({"type": "START_REVIEW", "data": {"prInfo": PR, "diff": "+x"}})

        assert response["success"] is False
        assert "No API key" in response["error"]

    def test_get_config_returns_camel_case_document(self):
        router, _, _ = _router()
        response = router.handle({"type": "GET_CONFIG"})
        assert response["success"] is True
        assert response["data"]["selectedProvider"] == "openai"
        assert {s["id"] for s in response["data"]["reviewSteps"]} == {"step1", "step2", "step3"}

    def test_fetch_pr_diff_uses_fetcher_and_token(self):
        fetcher = MagicMock(return_value="diff --git a/x b/x")
        router, _, _ = _router(diff_fetcher=fetcher, github_token="gh-tok")

        response = router.handle({"type": "FETCH_PR_DIFF", "data": PR})

        assert response == {"success": True, "data": "diff --git a/x b/x"}
        fetcher.assert_called_once_with("acme", "widgets", 5, token="gh-tok")

    def test_fetch_pr_diff_failure(self):
        fetcher = MagicMock(side_effect=DiffFetchError("404 Not Found"))
        router, _, _ = _router(diff_fetcher=fetcher)

        assert router.handle({"type": "FETCH_PR_DIFF", "data": PR}) == {"success": False, "error": "404 Not Found"}

    def test_sender_becomes_active_target(self):
        targets = ActiveTargets()
        router, _, _ = _router(active_targets=targets)
        sender = MagicMock()

        router.handle({"type": "GET_CONFIG"}, sender=sender)

        assert targets.current() is sender

    def test_rejected_message_does_not_activate_sender(self):
        targets = ActiveTargets()
        router, _, _ = _router(active_targets=targets)

        router.handle({"type": "NOPE"}, sender=MagicMock())

        assert targets.current() is None
