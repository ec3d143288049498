"""Review pipeline data models.

Python attributes are snake_case; to_dict()/from_dict() translate to and from
the camelCase JSON documents kept in the key-value backend, so persisted data
stays readable by any other client of the same store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

OPENAI = "openai"
CLAUDE = "claude"
GEMINI = "gemini"
OPENAI_COMPATIBLE = "openai-compatible"

PROVIDER_TAGS: tuple[str, ...] = (OPENAI, CLAUDE, GEMINI, OPENAI_COMPATIBLE)

DEFAULT_MODELS: dict[str, str] = {
    OPENAI: "gpt-4o",
    CLAUDE: "claude-sonnet-4-20250514",
    GEMINI: "gemini-2.0-flash",
    OPENAI_COMPATIBLE: "gpt-4o-mini",
}


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class StepConfig:
    """One configured prompt in the review pipeline."""

    id: str
    name: str
    order: int
    enabled: bool
    prompt: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "order": self.order,
            "enabled": self.enabled,
            "prompt": self.prompt,
        }

    @classmethod
    def from_dict(cls, d: dict) -> StepConfig:
        return cls(
            id=str(d.get("id", "")),
            name=d.get("name", ""),
            order=int(d.get("order", 0)),
            enabled=bool(d.get("enabled", True)),
            prompt=d.get("prompt", ""),
        )


@dataclass
class ProviderConfig:
    api_key: str = ""
    model: str | None = None
    base_url: str | None = None  # only used by openai-compatible

    def to_dict(self) -> dict:
        d: dict = {"apiKey": self.api_key}
        if self.model is not None:
            d["model"] = self.model
        if self.base_url is not None:
            d["baseUrl"] = self.base_url
        return d

    @classmethod
    def from_dict(cls, d: dict) -> ProviderConfig:
        model, base_url = d.get("model"), d.get("baseUrl")
        return cls(
            api_key=str(d.get("apiKey") or ""),
            model=str(model) if model is not None else None,
            base_url=str(base_url) if base_url is not None else None,
        )


@dataclass
class ExtensionConfig:
    """The single global configuration document."""

    selected_provider: str
    providers: dict[str, ProviderConfig]
    review_steps: list[StepConfig]

    def provider(self, tag: str | None = None) -> ProviderConfig:
        """Return the slot for ``tag`` (default: the selected provider)."""
        return self.providers.get(tag or self.selected_provider) or ProviderConfig()

    def enabled_steps(self) -> list[StepConfig]:
        """Enabled steps by ascending order; ties keep their list position."""
        return sorted((s for s in self.review_steps if s.enabled), key=lambda s: s.order)

    def to_dict(self) -> dict:
        return {
            "selectedProvider": self.selected_provider,
            "providers": {tag: cfg.to_dict() for tag, cfg in self.providers.items()},
            "reviewSteps": [s.to_dict() for s in self.review_steps],
        }

    @classmethod
    def from_dict(cls, d: dict) -> ExtensionConfig:
        return cls(
            selected_provider=d.get("selectedProvider", OPENAI),
            providers={tag: ProviderConfig.from_dict(p or {}) for tag, p in (d.get("providers") or {}).items()},
            review_steps=[StepConfig.from_dict(s) for s in d.get("reviewSteps", [])],
        )


@dataclass
class PullRequestInfo:
    owner: str
    repo: str
    number: int

    @property
    def run_id(self) -> str:
        return f"{self.owner}-{self.repo}-{self.number}"

    @property
    def diff_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/pull/{self.number}.diff"

    def to_dict(self) -> dict:
        return {"owner": self.owner, "repo": self.repo, "number": self.number}


@dataclass
class ReviewRequest:
    pr_info: PullRequestInfo
    diff: str


@dataclass
class ReviewResult:
    """Outcome of one successful step. Upserted by step_id within a run."""

    step_id: str
    step_name: str
    content: str
    timestamp: str = field(default_factory=utc_now)  # ISO-8601 UTC

    def to_dict(self) -> dict:
        return {
            "stepId": self.step_id,
            "stepName": self.step_name,
            "content": self.content,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: dict) -> ReviewResult:
        return cls(
            step_id=d.get("stepId", ""),
            step_name=d.get("stepName", ""),
            content=d.get("content", ""),
            timestamp=d.get("timestamp", ""),
        )


@dataclass
class DisplayedResult:
    """The single surfaced outcome of a run."""

    content: str
    timestamp: str = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {"content": self.content, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, d: dict) -> DisplayedResult:
        return cls(content=d.get("content", ""), timestamp=d.get("timestamp", ""))
