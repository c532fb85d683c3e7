"""Hybrid composer.

Single entry point for plan composition. Builds one blueprint per call, tries
remote generation within a validation retry budget, and falls back to the
local composer on any absorbable failure. The only error that escapes is
NoCompatibleContentError. Cancellation is never intercepted.

States:
    BUILDING_BLUEPRINT -> ATTEMPTING_REMOTE -> VALIDATING
        -> ACCEPTED
        -> RETRYING -> ATTEMPTING_REMOTE
        -> FALLING_BACK
    -> DONE
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum

from loguru import logger
from pydantic import ValidationError

from fitcompose.config.settings import Settings
from fitcompose.domain.blueprint import Blueprint
from fitcompose.domain.models import DailyCheckIn, IntensityAdjustment, UserProfile, WorkoutBlock, WorkoutPlan
from fitcompose.llm.client import RemoteGenerationClient
from fitcompose.llm.prompt_assembler import PromptAssembler, WorkoutPrompt
from fitcompose.planning.blueprint_engine import BlueprintEngine, variation_seed
from fitcompose.planning.errors import (
    ConfigurationMissingError,
    DiversityRejectedError,
    GenerationError,
    NoCompatibleContentError,
    SchemaInvalidError,
)
from fitcompose.planning.events import CompositionEventSink, LoguruEventSink
from fitcompose.planning.local_composer import LocalFallbackComposer
from fitcompose.planning.validation import DEFAULT_MIN_DIVERSITY_RATIO, DiversityResult, DiversityValidator, ResponseValidator
from fitcompose.providers import CatalogProvider, FeedbackProvider, HistoryProvider, JsonCatalogProvider
from fitcompose.storage.response_cache import ResponseCache, utc_now
from fitcompose.storage.usage_limiter import UsageLimiter

DEFAULT_MAX_ATTEMPTS = 2
DEFAULT_HISTORY_LIMIT = 7

SeedFactory = Callable[[UserProfile, DailyCheckIn, datetime], int]


class CompositionState(StrEnum):
    BUILDING_BLUEPRINT = "building_blueprint"
    ATTEMPTING_REMOTE = "attempting_remote"
    VALIDATING = "validating"
    RETRYING = "retrying"
    ACCEPTED = "accepted"
    FALLING_BACK = "falling_back"
    DONE = "done"


@dataclass
class CompositionOutcome:
    plan: WorkoutPlan
    blueprint: Blueprint
    states: list[CompositionState] = field(default_factory=list)
    attempts: int = 0
    fallback_reason: str | None = None

    @property
    def used_remote(self) -> bool:
        return CompositionState.ACCEPTED in self.states


class HybridComposer:
    def __init__(
        self,
        *,
        usage_limiter: UsageLimiter,
        client: RemoteGenerationClient | None = None,
        catalog: CatalogProvider | None = None,
        history: HistoryProvider | None = None,
        feedback: FeedbackProvider | None = None,
        engine: BlueprintEngine | None = None,
        assembler: PromptAssembler | None = None,
        validator: ResponseValidator | None = None,
        diversity: DiversityValidator | None = None,
        local_composer: LocalFallbackComposer | None = None,
        events: CompositionEventSink | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], datetime] = utc_now,
        seed_factory: SeedFactory = variation_seed,
    ):
        self.usage_limiter = usage_limiter
        self.client = client
        self.catalog = catalog
        self.history = history
        self.feedback = feedback
        self.engine = engine or BlueprintEngine()
        self.assembler = assembler or PromptAssembler()
        self.validator = validator or ResponseValidator()
        self.diversity = diversity or DiversityValidator(DEFAULT_MIN_DIVERSITY_RATIO)
        self.local_composer = local_composer or LocalFallbackComposer(self.engine, clock=clock)
        self.events: CompositionEventSink = events or LoguruEventSink()
        self.max_attempts = max(1, max_attempts)
        self.history_limit = history_limit
        self._clock = clock
        self._seed_factory = seed_factory

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        history: HistoryProvider | None = None,
        feedback: FeedbackProvider | None = None,
        events: CompositionEventSink | None = None,
    ) -> "HybridComposer":
        cache = ResponseCache(ttl_seconds=config.response_cache_ttl_seconds, path=config.response_cache_path or None)
        return cls(
            usage_limiter=UsageLimiter(daily_limit=config.usage_daily_limit, path=config.usage_store_path or None),
            client=RemoteGenerationClient.from_settings(config, cache=cache),
            catalog=JsonCatalogProvider(config.catalog_path or None),
            history=history,
            feedback=feedback,
            assembler=PromptAssembler(prohibited_window=config.prohibited_history_window),
            diversity=DiversityValidator(config.diversity_min_ratio),
            events=events,
            max_attempts=config.max_generation_attempts,
            history_limit=config.history_limit,
        )

    async def compose_plan(
        self,
        profile: UserProfile,
        check_in: DailyCheckIn,
        blocks: list[WorkoutBlock] | None = None,
    ) -> WorkoutPlan:
        """Compose a workout plan; always returns a plan unless the catalog is unusable.

        Raises:
            NoCompatibleContentError: No catalog content fits the profile and check-in.
        """
        outcome = await self.compose(profile, check_in, blocks)
        return outcome.plan

    async def compose(
        self,
        profile: UserProfile,
        check_in: DailyCheckIn,
        blocks: list[WorkoutBlock] | None = None,
    ) -> CompositionOutcome:
        now = self._clock()
        today = now.date()
        states = [CompositionState.BUILDING_BLUEPRINT]

        if blocks is None:
            if self.catalog is None:
                raise NoCompatibleContentError("No catalog blocks supplied and no catalog provider configured")
            blocks = await self.catalog.load_blocks()

        blueprint = self.engine.generate_blueprint(profile, check_in, self._seed_factory(profile, check_in, now))
        recent_plans = await self._recent_plans()
        adjustment = await self._intensity_adjustment()

        plan: WorkoutPlan | None = None
        attempts = 0
        reason: str | None = None

        if self.client is None:
            reason = "configuration_missing"
            self.events.on_fallback(reason, ConfigurationMissingError("No remote generation client configured"))
        elif not await self.usage_limiter.can_use(profile.user_id, today):
            reason = "quota_exhausted"
            self.events.on_fallback(reason)
        else:
            prompt = self.assembler.assemble(blueprint, blocks, profile, check_in, recent_plans, adjustment)
            plan, attempts, reason = await self._attempt_remote(
                prompt, blueprint, blocks, recent_plans, profile, today, now, states
            )

        if plan is None:
            states.append(CompositionState.FALLING_BACK)
            plan = self.local_composer.compose(
                blocks,
                profile,
                check_in,
                blueprint=blueprint,
                feedback=adjustment,
                now=now,
            )

        states.append(CompositionState.DONE)
        return CompositionOutcome(plan=plan, blueprint=blueprint, states=states, attempts=attempts, fallback_reason=reason)

    async def _attempt_remote(
        self,
        prompt: WorkoutPrompt,
        blueprint: Blueprint,
        blocks: list[WorkoutBlock],
        recent_plans: list[WorkoutPlan],
        profile: UserProfile,
        today: date,
        now: datetime,
        states: list[CompositionState],
    ) -> tuple[WorkoutPlan | None, int, str | None]:
        current = prompt
        last_error: GenerationError | None = None

        for attempt in range(1, self.max_attempts + 1):
            states.append(CompositionState.ATTEMPTING_REMOTE)
            self.events.on_attempt(attempt, self.max_attempts, current.cache_key)
            try:
                # Retries must reach the generator again, never a cached failure.
                plan, diversity = await self._generate_once(
                    current, blueprint, blocks, recent_plans, now, states, use_cache=attempt == 1
                )
            except GenerationError as e:
                if not e.retryable_at_orchestrator:
                    self.events.on_fallback("generation_error", e)
                    return None, attempt, "generation_error"
                self.events.on_validation_failure(attempt, e)
                last_error = e
                if attempt < self.max_attempts:
                    states.append(CompositionState.RETRYING)
                    current = prompt.with_correction(*self._correction_details(e))
                continue

            states.append(CompositionState.ACCEPTED)
            await self.usage_limiter.register_usage(profile.user_id, today)
            self.events.on_accepted(attempt, plan.id, diversity.ratio)
            return plan, attempt, None

        self.events.on_fallback("attempts_exhausted", last_error)
        return None, self.max_attempts, "attempts_exhausted"

    async def _generate_once(
        self,
        prompt: WorkoutPrompt,
        blueprint: Blueprint,
        blocks: list[WorkoutBlock],
        recent_plans: list[WorkoutPlan],
        now: datetime,
        states: list[CompositionState],
        use_cache: bool,
    ) -> tuple[WorkoutPlan, DiversityResult]:
        raw = await self.client.generate(prompt, use_cache=use_cache)
        states.append(CompositionState.VALIDATING)
        draft = self.validator.decode(raw)
        try:
            assembly = self.validator.assemble(draft, blueprint, blocks, now)
        except ValidationError as e:
            issues = [f"{e.title}.{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise SchemaInvalidError(issues) from e
        schema_error = self.validator.validate_schema(assembly, blueprint)
        if schema_error is not None:
            raise schema_error
        diversity = self.diversity.evaluate(assembly.plan.exercise_names(), recent_plans)
        if not diversity.accepted:
            raise DiversityRejectedError(diversity.ratio, diversity.threshold, list(diversity.repeated))
        return assembly.plan, diversity

    @staticmethod
    def _correction_details(error: GenerationError) -> tuple[list[str], list[str]]:
        if isinstance(error, DiversityRejectedError):
            return error.repeated, [f"only {error.ratio:.0%} of exercises were new, at least {error.threshold:.0%} required"]
        if isinstance(error, SchemaInvalidError):
            return [], error.issues
        return [], [str(error)]

    async def _recent_plans(self) -> list[WorkoutPlan]:
        if self.history is None:
            return []
        try:
            return await self.history.recent_plans(self.history_limit)
        except Exception as e:
            logger.warning("hybrid_composer: History unavailable, continuing without it", error=str(e))
            return []

    async def _intensity_adjustment(self) -> IntensityAdjustment:
        if self.feedback is None:
            return IntensityAdjustment.neutral()
        try:
            return await self.feedback.intensity_adjustment()
        except Exception as e:
            logger.warning("hybrid_composer: Feedback unavailable, using neutral adjustment", error=str(e))
            return IntensityAdjustment.neutral()
