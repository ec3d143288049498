"""Provider contract, shared prompt assembly and the client registry.

Every backend implements the same small capability:
    execute_review(request, step_id, step_name, prompt, prior_results) -> ReviewResult

Adapters are independent classes (no shared base class) registered under
their provider tag with @register_provider. create_client() looks the tag up
in the registry, so adding a backend never touches the pipeline.

What is shared lives here as plain functions:
  - build_user_prompt: the diff plus the most recent prior result
  - make_result:       strip content, raise ProviderResponseError when blank
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Protocol, Sequence, runtime_checkable

from reviewchain_core.errors import ConfigurationError, ProviderResponseError
from reviewchain_core.models import ReviewResult

if TYPE_CHECKING:
    from reviewchain_core.models import ReviewRequest

logger = logging.getLogger(__name__)

# Shared request parameters. Adapters may override as class attributes.
TEMPERATURE = 0.3
MAX_TOKENS = 2000

DIFF_HEADING = "# diff"
SINGLE_PRIOR_HEADING = "# Points to watch"
MULTIPLE_PRIOR_HEADING = "# Review results"


@runtime_checkable
class ProviderClient(Protocol):
    tag: str

    def execute_review(
        self,
        request: ReviewRequest,
        step_id: str,
        step_name: str,
        prompt: str,
        prior_results: Sequence[ReviewResult] = (),
    ) -> ReviewResult: ...


def build_user_prompt(request: ReviewRequest, prior_results: Sequence[ReviewResult] = ()) -> str:
    """Build the user message sent with every step.

    Only the most recent prior result is forwarded, never the whole history.
    The heading tells the model whether it is looking at the first step's
    findings or at an already refined review.
    """
    user_prompt = f"{DIFF_HEADING}\n{request.diff}\n\n"
    if prior_results:
        heading = SINGLE_PRIOR_HEADING if len(prior_results) == 1 else MULTIPLE_PRIOR_HEADING
        user_prompt += f"{heading}\n{prior_results[-1].content}"
    return user_prompt


def make_result(provider: str, step_id: str, step_name: str, content: str | None) -> ReviewResult:
    if not content or not content.strip():
        raise ProviderResponseError(f"{provider} API returned no usable content.")
    return ReviewResult(step_id=step_id, step_name=step_name, content=content.strip())


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

ClientBuilder = Callable[..., ProviderClient]

_REGISTRY: dict[str, ClientBuilder] = {}
_REQUIRES_BASE_URL: set[str] = set()


def register_provider(tag: str, requires_base_url: bool = False):
    """Class decorator adding an adapter to the registry under ``tag``."""

    def decorator(cls):
        _REGISTRY[tag] = cls
        if requires_base_url:
            _REQUIRES_BASE_URL.add(tag)
        cls.tag = tag
        return cls

    return decorator


def registered_providers() -> list[str]:
    _load_builtin_providers()
    return sorted(_REGISTRY)


def create_client(tag: str, api_key: str, model: str, base_url: str | None = None) -> ProviderClient:
    """Construct the adapter registered for ``tag``. Makes no network call."""
    _load_builtin_providers()
    builder = _REGISTRY.get(tag)
    if builder is None:
        raise ConfigurationError(f"Unsupported AI provider: {tag!r}. Choose one of {', '.join(sorted(_REGISTRY))}.")
    if tag in _REQUIRES_BASE_URL:
        if not base_url:
            raise ConfigurationError(f"The {tag!r} provider requires a base URL.")
        return builder(api_key=api_key, model=model, base_url=base_url)
    logger.debug("Creating %s client for model %s", tag, model)
    return builder(api_key=api_key, model=model)


def _load_builtin_providers() -> None:
    # Importing the adapter modules runs their @register_provider decorators.
    from reviewchain_core.providers import anthropic, gemini, openai  # noqa: F401
