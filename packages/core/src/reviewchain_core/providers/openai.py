from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

try:
    import openai as _openai
except ImportError:
    _openai = None  # type: ignore[assignment]

from reviewchain_core.errors import ProviderResponseError, ProviderTransportError
from reviewchain_core.models import OPENAI, OPENAI_COMPATIBLE
from reviewchain_core.providers.base import MAX_TOKENS, TEMPERATURE, build_user_prompt, make_result, register_provider

if TYPE_CHECKING:
    from reviewchain_core.models import ReviewRequest, ReviewResult


def _require_sdk():
    if _openai is None:
        raise ImportError(
            "The 'openai' package is required for this provider. "
            "Install it with: pip install 'reviewchain[openai]'"
        )
    return _openai


def _chat_completion(client, provider: str, model: str, system_prompt: str, user_prompt: str) -> str | None:
    """One chat-completions call; SDK errors are mapped to provider errors."""
    sdk = _require_sdk()
    try:
        response = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=TEMPERATURE,
            max_tokens=MAX_TOKENS,
        )
    except sdk.APIStatusError as e:
        raise ProviderTransportError(e.status_code, e.response.text, provider=provider) from e
    except sdk.APIError as e:
        # Connection failures and timeouts carry no status.
        raise ProviderTransportError(None, str(e), provider=provider) from e

    if not response.choices:
        raise ProviderResponseError(f"{provider} API returned no choices.")
    return response.choices[0].message.content


@register_provider(OPENAI)
class OpenAIClient:
    """Chat completions against api.openai.com with bearer auth."""

    def __init__(self, api_key: str, model: str):
        self.model = model
        self.client = _require_sdk().OpenAI(api_key=api_key)

    def execute_review(
        self,
        request: ReviewRequest,
        step_id: str,
        step_name: str,
        prompt: str,
        prior_results: Sequence[ReviewResult] = (),
    ) -> ReviewResult:
        user_prompt = build_user_prompt(request, prior_results)
        content = _chat_completion(self.client, "OpenAI", self.model, prompt, user_prompt)
        return make_result("OpenAI", step_id, step_name, content)


@register_provider(OPENAI_COMPATIBLE, requires_base_url=True)
class OpenAICompatibleClient:
    """Same envelope as OpenAIClient, sent to ``{base_url}/chat/completions``."""

    def __init__(self, api_key: str, model: str, base_url: str):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.client = _require_sdk().OpenAI(api_key=api_key, base_url=self.base_url)

    def execute_review(
        self,
        request: ReviewRequest,
        step_id: str,
        step_name: str,
        prompt: str,
        prior_results: Sequence[ReviewResult] = (),
    ) -> ReviewResult:
        user_prompt = build_user_prompt(request, prior_results)
        content = _chat_completion(self.client, "OpenAI-compatible", self.model, prompt, user_prompt)
        return make_result("OpenAI-compatible", step_id, step_name, content)
