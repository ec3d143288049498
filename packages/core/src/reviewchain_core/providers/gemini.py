from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import httpx

from reviewchain_core.errors import ProviderResponseError, ProviderTransportError
from reviewchain_core.models import GEMINI
from reviewchain_core.providers.base import MAX_TOKENS, TEMPERATURE, build_user_prompt, make_result, register_provider

if TYPE_CHECKING:
    from reviewchain_core.models import ReviewRequest, ReviewResult

_API_ROOT = "https://generativelanguage.googleapis.com/v1beta/models"


@register_provider(GEMINI)
class GeminiClient:
    """generateContent over plain HTTP; the key travels as a ``?key=`` query parameter.

    Gemini has no separate system slot in this envelope, so the step prompt and
    the user prompt are joined into a single text part.
    """

    TIMEOUT = 120.0

    def __init__(self, api_key: str, model: str, http_client: httpx.Client | None = None):
        self.api_key = api_key
        self.model = model
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=self.TIMEOUT)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    @property
    def api_url(self) -> str:
        return f"{_API_ROOT}/{self.model}:generateContent"

    def execute_review(
        self,
        request: ReviewRequest,
        step_id: str,
        step_name: str,
        prompt: str,
        prior_results: Sequence[ReviewResult] = (),
    ) -> ReviewResult:
        full_prompt = prompt + "\n\n" + build_user_prompt(request, prior_results)
        body = {
            "contents": [{"parts": [{"text": full_prompt}]}],
            "generationConfig": {"temperature": TEMPERATURE, "maxOutputTokens": MAX_TOKENS},
        }
        try:
            response = self._http.post(self.api_url, params={"key": self.api_key}, json=body)
        except httpx.HTTPError as e:
            raise ProviderTransportError(None, str(e), provider="Gemini") from e

        if not response.is_success:
            raise ProviderTransportError(response.status_code, response.text, provider="Gemini")

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderResponseError("Gemini API returned a non-JSON body.") from e
        return make_result("Gemini", step_id, step_name, _extract_text(data))


def _extract_text(data) -> str | None:
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
