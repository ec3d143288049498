from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from reviewchain_core.errors import ProviderTransportError
from reviewchain_core.models import CLAUDE
from reviewchain_core.providers.base import TEMPERATURE, build_user_prompt, make_result, register_provider

if TYPE_CHECKING:
    from reviewchain_core.models import ReviewRequest, ReviewResult


@register_provider(CLAUDE)
class ClaudeClient:
    """Messages API with x-api-key auth; the SDK adds the anthropic-version header."""

    # Review steps can produce long write-ups.
    MAX_TOKENS = 20000

    def __init__(self, api_key: str, model: str):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'reviewchain[anthropic]'"
            )
        self.model = model
        self.client = Anthropic(api_key=api_key)

    def execute_review(
        self,
        request: ReviewRequest,
        step_id: str,
        step_name: str,
        prompt: str,
        prior_results: Sequence[ReviewResult] = (),
    ) -> ReviewResult:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        import anthropic
        from anthropic.types import TextBlock

        try:
            response = self.client.messages.create(
                model=self.model,
                system=prompt,
                messages=[{"role": "user", "content": build_user_prompt(request, prior_results)}],
                temperature=TEMPERATURE,
                max_tokens=self.MAX_TOKENS,
            )
        except anthropic.APIStatusError as e:
            raise ProviderTransportError(e.status_code, e.response.text, provider="Claude") from e
        except anthropic.APIError as e:
            raise ProviderTransportError(None, str(e), provider="Claude") from e

        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return make_result("Claude", step_id, step_name, "".join(text_blocks))
