"""Client-side quota enforcement against NotebookLM plan limits.

The server enforces its own limits and answers with opaque rate-limit
codes; checking locally first gives callers a precise error (resource,
used, limit, reset time) before any request is made.

One governor is constructed per client and passed to every service that
performs tracked operations.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from notebooklm_wire.exceptions import ConfigurationError, InvalidInputError, RateLimitError
from notebooklm_wire.quota.plans import (
    PLAN_LIMITS,
    QUOTA_RULES,
    RULES_BY_RESOURCE,
    WINDOW_LENGTH_MS,
    Operation,
    Plan,
    PlanLimits,
    QuotaRule,
    WindowKind,
)

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class UsageWindow(BaseModel):
    """Counter for one resource and the time its window started."""

    count: int = Field(default=0, ge=0)
    window_start_ms: int = 0


class UsageState(BaseModel):
    """Persistable usage counters."""

    windows: dict[str, UsageWindow] = Field(default_factory=dict)
    sources: dict[str, int] = Field(default_factory=dict)


class UsageSnapshot(BaseModel):
    """Point-in-time copy of usage returned by ``get_usage``."""

    plan: Plan
    enabled: bool
    windows: dict[str, UsageWindow]
    sources: dict[str, int]


class QuotaGovernor:
    """Enforce and record plan-scoped usage.

    ``check_quota`` before a tracked operation, ``record_usage`` only after
    it succeeded. The pair is not atomic; concurrent callers can overshoot
    by the number of in-flight operations. Individual calls are serialized
    with a lock.
    """

    def __init__(
        self,
        enabled: bool = False,
        plan: Plan | str = Plan.STANDARD,
        *,
        time_func: Callable[[], float] | None = None,
        state_path: str | Path | None = None,
    ):
        """Initialize the governor.

        Args:
            enabled: When False every check and record is a no-op
            plan: Subscription plan whose limits apply
            time_func: Callable returning current time in seconds (default: time.time).
                       Inject a mock clock for deterministic testing.
            state_path: Optional JSON file to load usage from and save it to
        """
        self._enabled = enabled
        self._plan = Plan(plan)
        self._time_func = time_func or time.time
        self._state_path = Path(state_path) if state_path else None
        self._lock = threading.Lock()
        self._state = self._load_state()

    # ─── Plan & switches ──────────────────────────────────────────────────────

    @property
    def plan(self) -> Plan:
        return self._plan

    def set_plan(self, plan: Plan | str) -> None:
        with self._lock:
            self._plan = Plan(plan)
        logger.info("Quota plan set to %s", self._plan.value)

    @property
    def limits(self) -> PlanLimits:
        return PLAN_LIMITS[self._plan]

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    # ─── Check / record ───────────────────────────────────────────────────────

    def check_quota(self, operation: Operation | str, scope_id: str | None = None) -> None:
        """Raise RateLimitError if ``operation`` would exceed its ceiling.

        Untracked operations, and ``add_source`` without a scope id, pass.

        Raises:
            RateLimitError: The counter is at or over the plan ceiling
        """
        if not self._enabled:
            return
        rule = _rule_for(operation)
        if rule is None:
            return

        with self._lock:
            now_ms = self._now_ms()
            self._roll_windows(now_ms)
            used = self._used(rule, scope_id)
            if used is None:
                return
            limit = self._limit(rule)
            if used >= limit:
                reset_time = self._reset_time(rule)
                raise RateLimitError(
                    f"{rule.label} limit exceeded: {used}/{limit} ({self._plan.value} plan)",
                    resource=rule.resource,
                    used=used,
                    limit=limit,
                    reset_time=reset_time,
                )

    def record_usage(self, operation: Operation | str, scope_id: str | None = None) -> None:
        """Count one successful ``operation``."""
        if not self._enabled:
            return
        rule = _rule_for(operation)
        if rule is None:
            return

        with self._lock:
            if rule.window is WindowKind.PER_SCOPE:
                if not scope_id:
                    return
                self._state.sources[scope_id] = self._state.sources.get(scope_id, 0) + 1
            else:
                self._roll_windows(self._now_ms())
                self._window(rule.resource).count += 1
            self._save_locked()

    @contextmanager
    def track(self, operation: Operation | str, scope_id: str | None = None) -> Iterator[None]:
        """Check before the block and record only if it completes without raising."""
        self.check_quota(operation, scope_id)
        yield
        self.record_usage(operation, scope_id)

    # ─── Introspection ────────────────────────────────────────────────────────

    def get_remaining(self, resource: str, scope_id: str | None = None) -> int | None:
        """Remaining allowance for ``resource``; None if it is not tracked here."""
        rule = RULES_BY_RESOURCE.get(resource)
        if rule is None:
            return None
        with self._lock:
            self._roll_windows(self._now_ms())
            used = self._used(rule, scope_id)
            if used is None:
                return None
            return max(0, self._limit(rule) - used)

    def get_usage(self) -> UsageSnapshot:
        with self._lock:
            self._roll_windows(self._now_ms())
            state = self._state.model_copy(deep=True)
        return UsageSnapshot(
            plan=self._plan,
            enabled=self._enabled,
            windows=state.windows,
            sources=state.sources,
        )

    def reset_usage(self) -> None:
        """Zero every counter and restart every window now."""
        with self._lock:
            self._state = UsageState()
            self._save_locked()

    # ─── Source validation ────────────────────────────────────────────────────

    def validate_text_source(self, text: str) -> None:
        """Reject text sources over the plan's word limit.

        Raises:
            InvalidInputError: Too many words
        """
        if not self._enabled:
            return
        words = len(text.split())
        limit = self.limits.words_per_source
        if words > limit:
            raise InvalidInputError(
                f"Text source exceeds {limit} word limit: {words} words ({self._plan.value} plan)"
            )

    def validate_file_size(self, size_bytes: int) -> None:
        """Reject files over the plan's size limit.

        Raises:
            InvalidInputError: File too large
        """
        if not self._enabled:
            return
        size_mb = size_bytes / BYTES_PER_MB
        limit = self.limits.file_size_mb
        if size_mb > limit:
            raise InvalidInputError(
                f"File size exceeds {limit}MB limit: {size_mb:.2f}MB ({self._plan.value} plan)"
            )

    # ─── Persistence ──────────────────────────────────────────────────────────

    def save(self) -> None:
        with self._lock:
            self._save_locked()

    def _save_locked(self) -> None:
        if self._state_path is None:
            return
        self._state_path.parent.mkdir(parents=True, exist_ok=True)
        self._state_path.write_text(self._state.model_dump_json(indent=2), encoding="utf-8")

    def _load_state(self) -> UsageState:
        if self._state_path is None or not self._state_path.exists():
            return UsageState()
        try:
            state = UsageState.model_validate_json(self._state_path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid quota state file {self._state_path}: {e}") from e
        logger.debug("Loaded quota usage from %s", self._state_path)
        return state

    # ─── Internals ────────────────────────────────────────────────────────────

    def _now_ms(self) -> int:
        return int(self._time_func() * 1000)

    def _window(self, resource: str) -> UsageWindow:
        window = self._state.windows.get(resource)
        if window is None:
            window = UsageWindow(window_start_ms=self._now_ms())
            self._state.windows[resource] = window
        return window

    def _roll_windows(self, now_ms: int) -> None:
        """Reset every rolling window whose length has fully elapsed."""
        rolled = False
        for resource, window in self._state.windows.items():
            rule = RULES_BY_RESOURCE.get(resource)
            length = WINDOW_LENGTH_MS.get(rule.window) if rule else None
            if length is not None and now_ms - window.window_start_ms >= length:
                logger.debug("Quota window for %s rolled over", resource)
                window.count = 0
                window.window_start_ms = now_ms
                rolled = True
        if rolled:
            self._save_locked()

    def _used(self, rule: QuotaRule, scope_id: str | None) -> int | None:
        if rule.window is WindowKind.PER_SCOPE:
            if not scope_id:
                return None
            return self._state.sources.get(scope_id, 0)
        return self._window(rule.resource).count

    def _limit(self, rule: QuotaRule) -> int:
        return getattr(self.limits, rule.limit_field)

    def _reset_time(self, rule: QuotaRule) -> datetime | None:
        length = WINDOW_LENGTH_MS.get(rule.window)
        if length is None:
            return None
        start = self._window(rule.resource).window_start_ms
        return datetime.fromtimestamp((start + length) / 1000, tz=UTC)


def _rule_for(operation: Operation | str) -> QuotaRule | None:
    try:
        return QUOTA_RULES[Operation(operation)]
    except ValueError:
        logger.debug("Operation %s is not quota-tracked", operation)
        return None
