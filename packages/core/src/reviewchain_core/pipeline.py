"""Core review pipeline orchestration.

A run walks the enabled steps in order:

    Idle -> Starting -> (StepRunning -> StepSucceeded | StepFailed)* -> Completed
                     \\-> Aborted   (configuration problems, before any step)

Each call to start_review() builds its own RunContext (run id, notification
channel, accumulated results) and passes it explicitly to every helper.
ReviewPipeline itself holds no per-run state, so overlapping runs cannot
overwrite each other's target or results.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional

from reviewchain_core.errors import ConfigurationError, PersistenceError
from reviewchain_core.models import DEFAULT_MODELS, ReviewResult
from reviewchain_core.notify import EventType, NotificationChannel
from reviewchain_core.providers.base import create_client

if TYPE_CHECKING:
    from reviewchain_core.config import ConfigStore
    from reviewchain_core.models import ReviewRequest, StepConfig
    from reviewchain_core.notify import Observer
    from reviewchain_core.providers.base import ProviderClient
    from reviewchain_core.results import ResultStore

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "The review could not be completed: every review step failed."


class RunState(str, enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    STEP_RUNNING = "step_running"
    STEP_SUCCEEDED = "step_succeeded"
    STEP_FAILED = "step_failed"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class RunContext:
    """In-memory state of one run. Never shared between runs, never persisted."""

    run_id: str
    channel: NotificationChannel
    state: RunState = RunState.IDLE
    results: list[ReviewResult] = field(default_factory=list)
    failed_steps: list[str] = field(default_factory=list)

    def transition(self, state: RunState) -> None:
        logger.debug("Run %s: %s -> %s", self.run_id, self.state.value, state.value, extra={"run_id": self.run_id})
        self.state = state

    def emit(self, event_type: EventType, payload: dict) -> bool:
        return self.channel.send(event_type, payload)


@dataclass
class RunOutcome:
    """What start_review() hands back once every step has been attempted."""

    run_id: str
    content: str
    steps: list[ReviewResult]
    failed_steps: list[str]
    state: RunState = RunState.COMPLETED


class ReviewPipeline:
    def __init__(
        self,
        config_store: ConfigStore,
        result_store: ResultStore,
        client_factory: Callable[..., ProviderClient] = create_client,
        fallback_target: Optional[Callable[[], Optional[Observer]]] = None,
    ):
        self._config_store = config_store
        self._result_store = result_store
        self._client_factory = client_factory
        self._fallback_target = fallback_target

    def start_review(self, request: ReviewRequest, target: Optional[Observer] = None) -> RunOutcome:
        """Run every enabled step against the selected provider.

        Raises ConfigurationError (after emitting REVIEW_ERROR) when the run
        cannot start. Step failures never escape: they become STEP_ERROR events
        and the run moves on to the next step.
        """
        ctx = RunContext(
            run_id=request.pr_info.run_id,
            channel=NotificationChannel(target, fallback=self._fallback_target),
        )
        ctx.transition(RunState.STARTING)

        try:
            steps, client = self._prepare(ctx)
        except ConfigurationError as e:
            ctx.transition(RunState.ABORTED)
            logger.error("Run %s aborted: %s", ctx.run_id, e, extra={"run_id": ctx.run_id})
            if ctx.channel.bound:
                ctx.emit(EventType.REVIEW_ERROR, {"error": str(e)})
            raise

        try:
            self._clear_previous(ctx)
            ctx.emit(EventType.REVIEW_STARTED, {"runId": ctx.run_id})
            logger.info("Run %s started with %d step(s)", ctx.run_id, len(steps), extra={"run_id": ctx.run_id})

            for step in steps:
                self._run_step(ctx, client, request, step)

            return self._finish(ctx)
        finally:
            self._close_client(ctx, client)

    # ------------------------------------------------------------------ #

    def _prepare(self, ctx: RunContext) -> tuple[list[StepConfig], ProviderClient]:
        config = self._config_store.get()
        tag = config.selected_provider
        provider = config.provider()
        if not isinstance(provider.api_key, str) or not provider.api_key.strip():
            raise ConfigurationError(f"No API key configured for the {tag!r} provider.")

        ids = [s.id for s in config.review_steps]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate review step id(s): {', '.join(duplicates)}")

        model = provider.model or DEFAULT_MODELS.get(tag, "")
        try:
            client = self._client_factory(tag, provider.api_key, model, provider.base_url)
        except ImportError as e:
            raise ConfigurationError(str(e)) from e
        return config.enabled_steps(), client

    @staticmethod
    def _close_client(ctx: RunContext, client: ProviderClient) -> None:
        close = getattr(client, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception as e:
            logger.warning("Could not close provider client: %s", e, extra={"run_id": ctx.run_id})

    def _clear_previous(self, ctx: RunContext) -> None:
        # Results from an earlier run of the same PR would otherwise mix with
        # this run's steps.
        try:
            self._result_store.clear_results(ctx.run_id)
        except PersistenceError as e:
            logger.warning("Could not clear earlier results: %s", e, extra={"run_id": ctx.run_id})

    def _run_step(self, ctx: RunContext, client: ProviderClient, request: ReviewRequest, step: StepConfig) -> None:
        ctx.transition(RunState.STEP_RUNNING)
        ctx.emit(EventType.STEP_STARTED, {"stepId": step.id, "stepName": step.name})

        try:
            result = client.execute_review(request, step.id, step.name, step.prompt, list(ctx.results))
        except Exception as e:
            ctx.transition(RunState.STEP_FAILED)
            ctx.failed_steps.append(step.id)
            logger.warning(
                "Step %s failed (%s): %s",
                step.id,
                type(e).__name__,
                e,
                extra={"run_id": ctx.run_id, "step_id": step.id},
            )
            ctx.emit(EventType.STEP_ERROR, {"stepId": step.id, "stepName": step.name, "error": str(e)})
            return

        ctx.results.append(result)
        try:
            self._result_store.save_result(ctx.run_id, result)
        except PersistenceError as e:
            # The in-memory pipeline keeps going; only this step's durability is lost.
            logger.warning("Could not persist step %s: %s", step.id, e, extra={"run_id": ctx.run_id, "step_id": step.id})

        ctx.transition(RunState.STEP_SUCCEEDED)
        ctx.emit(
            EventType.STEP_COMPLETED,
            {"stepId": result.step_id, "stepName": result.step_name, "content": result.content},
        )

    def _finish(self, ctx: RunContext) -> RunOutcome:
        # The last result actually produced, which is not necessarily the last
        # configured step.
        content = ctx.results[-1].content if ctx.results else FALLBACK_MESSAGE
        try:
            self._result_store.save_displayed(ctx.run_id, content)
        except PersistenceError as e:
            logger.warning("Could not persist displayed result: %s", e, extra={"run_id": ctx.run_id})

        ctx.transition(RunState.COMPLETED)
        ctx.emit(
            EventType.REVIEW_COMPLETED,
            {"runId": ctx.run_id, "content": content, "steps": [r.to_dict() for r in ctx.results]},
        )
        logger.info(
            "Run %s completed: %d succeeded, %d failed",
            ctx.run_id,
            len(ctx.results),
            len(ctx.failed_steps),
            extra={"run_id": ctx.run_id},
        )
        return RunOutcome(
            run_id=ctx.run_id,
            content=content,
            steps=list(ctx.results),
            failed_steps=list(ctx.failed_steps),
            state=ctx.state,
        )
