"""Cost ledger: token accounting, per-model breakdown and budget checks."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from agentsession.core.llm.provider import LLMProvider, Usage
from agentsession.events import EventEmitter
from agentsession.logging import get_logger

log = get_logger("cost")

DEFAULT_WARNING_THRESHOLDS = (0.5, 0.75, 0.9)


class CostLimitExceededError(Exception):
    """Accumulated cost went over the configured limit."""

    def __init__(self, current_cost: float, limit: float, currency: str = "USD") -> None:
        self.current_cost = current_cost
        self.limit = limit
        self.currency = currency
        super().__init__(
            f"Cost limit exceeded: {currency} {current_cost:.4f} > {currency} {limit:.2f}. "
            "Consider increasing cost_limit or optimizing prompts to reduce token usage."
        )


@dataclass
class ModelCost:
    """Usage and spend attributed to one model."""

    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    input_cost: float = 0.0
    output_cost: float = 0.0

    @property
    def total_cost(self) -> float:
        return self.input_cost + self.output_cost

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "input_cost": self.input_cost,
            "output_cost": self.output_cost,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModelCost:
        return cls(
            model=data["model"],
            input_tokens=data.get("input_tokens", 0),
            output_tokens=data.get("output_tokens", 0),
            input_cost=data.get("input_cost", 0.0),
            output_cost=data.get("output_cost", 0.0),
        )


@dataclass
class ChildSessionCost:
    """Cost summary contributed by a sub-agent session."""

    session_id: str
    agent: str
    command: str
    total_cost: float
    input_tokens: int
    output_tokens: int
    api_calls: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "agent": self.agent,
            "command": self.command,
            "total_cost": self.total_cost,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "api_calls": self.api_calls,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChildSessionCost:
        return cls(
            session_id=data["session_id"],
            agent=data["agent"],
            command=data.get("command", ""),
            total_cost=data.get("total_cost", 0.0),
            input_tokens=data.get("input_tokens", 0),
            output_tokens=data.get("output_tokens", 0),
            api_calls=data.get("api_calls", 0),
        )


@dataclass
class CostReport:
    """Point-in-time projection of a ledger."""

    total_cost: float = 0.0
    currency: str = "USD"
    input_tokens: int = 0
    output_tokens: int = 0
    api_calls: int = 0
    breakdown: list[ModelCost] = field(default_factory=list)
    child_sessions: list[ChildSessionCost] = field(default_factory=list)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_cost": self.total_cost,
            "currency": self.currency,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "api_calls": self.api_calls,
            "breakdown": [m.to_dict() for m in self.breakdown],
            "child_sessions": [c.to_dict() for c in self.child_sessions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CostReport:
        return cls(
            total_cost=data.get("total_cost", 0.0),
            currency=data.get("currency", "USD"),
            input_tokens=data.get("input_tokens", 0),
            output_tokens=data.get("output_tokens", 0),
            api_calls=data.get("api_calls", 0),
            breakdown=[ModelCost.from_dict(m) for m in data.get("breakdown", [])],
            child_sessions=[ChildSessionCost.from_dict(c) for c in data.get("child_sessions", [])],
        )


@dataclass(frozen=True)
class CostWarning:
    """Payload of a ``cost-warning`` event; ``percentage`` is the crossed threshold."""

    current_cost: float
    limit: float
    percentage: float


class CostTracker:
    """Accumulates usage for one session and enforces its budget.

    Events (via ``events``):
        cost-warning(CostWarning): a threshold was crossed for the first time
        cost-limit-exceeded(CostLimitExceededError): the limit was breached
    """

    def __init__(
        self,
        provider: LLMProvider,
        *,
        cost_limit: float | None = None,
        warning_thresholds: tuple[float, ...] | list[float] = DEFAULT_WARNING_THRESHOLDS,
        currency: str = "USD",
    ) -> None:
        self._provider = provider
        self._cost_limit = math.inf if cost_limit is None else cost_limit
        self._thresholds = tuple(sorted(warning_thresholds))
        self._currency = currency
        self.events = EventEmitter()

        self._input_tokens = 0
        self._output_tokens = 0
        self._total_cost = 0.0
        self._api_calls = 0
        self._breakdown: dict[str, ModelCost] = {}
        self._child_sessions: list[ChildSessionCost] = []
        self._emitted_warnings: set[float] = set()

    @property
    def currency(self) -> str:
        return self._currency

    @property
    def cost_limit(self) -> float:
        return self._cost_limit

    @property
    def total_cost(self) -> float:
        return self._total_cost

    @property
    def api_calls(self) -> int:
        return self._api_calls

    @property
    def emitted_warnings(self) -> frozenset[float]:
        return frozenset(self._emitted_warnings)

    def record_usage(self, usage: Usage, model: str) -> float:
        """Add one call's usage; returns its cost.

        Raises:
            CostLimitExceededError: If the running total is now over the limit.
        """
        cost = self._provider.calculate_cost(usage)
        info = self._provider.get_model_info()

        self._input_tokens += usage.input_tokens
        self._output_tokens += usage.output_tokens
        self._api_calls += 1
        self._total_cost += cost

        entry = self._breakdown.setdefault(model, ModelCost(model=model))
        entry.input_tokens += usage.input_tokens
        entry.output_tokens += usage.output_tokens
        entry.input_cost += (usage.input_tokens / 1000) * info.input_cost_per_1k
        entry.output_cost += (usage.output_tokens / 1000) * info.output_cost_per_1k

        log.debug(
            "Usage recorded model=%s in=%d out=%d cost=%.4f total=%.4f",
            model,
            usage.input_tokens,
            usage.output_tokens,
            cost,
            self._total_cost,
        )

        self._check_warnings()
        self._check_limit()
        return cost

    def add_child_session(self, child: ChildSessionCost) -> None:
        self._child_sessions.append(child)
        log.debug("Child session %s (%s) cost %.4f", child.session_id, child.agent, child.total_cost)

    def _check_warnings(self) -> None:
        if math.isinf(self._cost_limit) or self._cost_limit <= 0:
            return

        ratio = self._total_cost / self._cost_limit
        for threshold in self._thresholds:
            if ratio >= threshold and threshold not in self._emitted_warnings:
                self._emitted_warnings.add(threshold)
                warning = CostWarning(
                    current_cost=self._total_cost,
                    limit=self._cost_limit,
                    percentage=threshold,
                )
                log.warning(
                    "Cost warning: %s %.4f is %d%% of limit %.2f",
                    self._currency,
                    self._total_cost,
                    round(threshold * 100),
                    self._cost_limit,
                )
                self.events.emit("cost-warning", warning)

    def _check_limit(self) -> None:
        if math.isinf(self._cost_limit):
            return
        if self._total_cost > self._cost_limit:
            error = CostLimitExceededError(self._total_cost, self._cost_limit, self._currency)
            log.error("%s", error)
            self.events.emit("cost-limit-exceeded", error)
            raise error

    def get_report(self) -> CostReport:
        """Snapshot of totals; the returned object is detached from the ledger."""
        return CostReport(
            total_cost=self._total_cost,
            currency=self._currency,
            input_tokens=self._input_tokens,
            output_tokens=self._output_tokens,
            api_calls=self._api_calls,
            breakdown=[ModelCost(**vars(m)) for m in self._breakdown.values()],
            child_sessions=list(self._child_sessions),
        )

    def get_total_cost_with_children(self) -> float:
        return self._total_cost + sum(c.total_cost for c in self._child_sessions)

    def get_remaining_budget(self) -> float:
        if math.isinf(self._cost_limit):
            return math.inf
        return max(0.0, self._cost_limit - self._total_cost)

    def get_budget_percentage(self) -> float:
        if math.isinf(self._cost_limit) or self._cost_limit <= 0:
            return 0.0
        return (self._total_cost / self._cost_limit) * 100

    def update_cost_limit(self, new_limit: float | None) -> None:
        """Change the limit and let thresholds fire again against it.

        Raises:
            CostLimitExceededError: If spend already exceeds the new limit.
        """
        self._cost_limit = math.inf if new_limit is None else new_limit
        log.info("Cost limit updated to %s", new_limit)
        self._emitted_warnings.clear()
        self._check_warnings()
        self._check_limit()

    def restore(self, report: CostReport, emitted_warnings: list[float] | None = None) -> None:
        """Load totals from a snapshot without firing events."""
        self._input_tokens = report.input_tokens
        self._output_tokens = report.output_tokens
        self._total_cost = report.total_cost
        self._api_calls = report.api_calls
        self._currency = report.currency
        self._breakdown = {m.model: ModelCost(**vars(m)) for m in report.breakdown}
        self._child_sessions = list(report.child_sessions)
        self._emitted_warnings = set(emitted_warnings or [])

    def reset(self) -> None:
        self._input_tokens = 0
        self._output_tokens = 0
        self._total_cost = 0.0
        self._api_calls = 0
        self._breakdown.clear()
        self._child_sessions.clear()
        self._emitted_warnings.clear()
