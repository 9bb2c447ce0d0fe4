"""Pre-flight cost estimates from history or conservative defaults."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from agentsession.core.llm.provider import LLMProvider
from agentsession.logging import get_logger

log = get_logger("cost.estimator")

MAX_HISTORY_PER_COMMAND = 100


class Complexity(Enum):
    SIMPLE = "simple"
    DOCUMENT = "document"
    COMPLEX = "complex"


class DocumentSize(Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


# (input_tokens, output_tokens)
DEFAULT_TOKEN_PROFILES: dict[Complexity, tuple[int, int]] = {
    Complexity.SIMPLE: (2000, 1000),
    Complexity.DOCUMENT: (5000, 10000),
    Complexity.COMPLEX: (10000, 20000),
}

_SIZE_MULTIPLIERS = {
    DocumentSize.SMALL: 0.5,
    DocumentSize.MEDIUM: 1.0,
    DocumentSize.LARGE: 2.0,
}

_SIMPLE_COMMAND = re.compile(r"^\*?(help|status|list)$", re.IGNORECASE)
_DOCUMENT_COMMAND = re.compile(r"^\*?create-", re.IGNORECASE)
_COMPLEX_AGENT = re.compile(r"^(bmad-orchestrator|orchestrator|architect|sm)$", re.IGNORECASE)


@dataclass(frozen=True)
class CostEstimate:
    min: float
    max: float
    average: float
    currency: str
    confidence: str  # low, medium, high
    based_on: str


@dataclass(frozen=True)
class HistoricalUsage:
    """One finished execution used to calibrate estimates."""

    agent_id: str
    command: str
    input_tokens: int
    output_tokens: int
    cost: float
    timestamp: float


class CostEstimator:
    """Estimates what an agent command will cost before running it."""

    def __init__(self, provider: LLMProvider, currency: str = "USD") -> None:
        self._provider = provider
        self._currency = currency
        self._history: list[HistoricalUsage] = []

    def estimate(
        self,
        agent_id: str,
        command: str,
        complexity: Complexity | None = None,
        document_size: DocumentSize | None = None,
    ) -> CostEstimate:
        history = [h for h in self._history if h.agent_id == agent_id and h.command == command]
        if history:
            return self._from_history(history)
        return self._from_defaults(agent_id, command, complexity, document_size)

    def add_historical_data(self, usage: HistoricalUsage) -> None:
        self._history.append(usage)
        same = [
            h for h in self._history if h.agent_id == usage.agent_id and h.command == usage.command
        ]
        if len(same) > MAX_HISTORY_PER_COMMAND:
            stale = {id(h) for h in same[: len(same) - MAX_HISTORY_PER_COMMAND]}
            self._history = [h for h in self._history if id(h) not in stale]
        log.debug("History added for %s %s: %.4f", usage.agent_id, usage.command, usage.cost)

    def clear_history(self) -> None:
        self._history = []

    def get_history(self) -> list[HistoricalUsage]:
        return list(self._history)

    def load_history(self, entries: list[HistoricalUsage]) -> None:
        self._history = list(entries)
        log.info("Loaded %d historical usage entries", len(entries))

    def _from_history(self, history: list[HistoricalUsage]) -> CostEstimate:
        costs = [h.cost for h in history]
        if len(history) >= 10:
            confidence = "high"
        elif len(history) >= 5:
            confidence = "medium"
        else:
            confidence = "low"
        return CostEstimate(
            min=min(costs),
            max=max(costs),
            average=sum(costs) / len(costs),
            currency=self._currency,
            confidence=confidence,
            based_on=f"{len(history)} historical executions",
        )

    def _from_defaults(
        self,
        agent_id: str,
        command: str,
        complexity: Complexity | None,
        document_size: DocumentSize | None,
    ) -> CostEstimate:
        complexity = complexity or infer_complexity(agent_id, command)
        input_tokens, output_tokens = DEFAULT_TOKEN_PROFILES[complexity]
        multiplier = _SIZE_MULTIPLIERS[document_size or DocumentSize.MEDIUM]

        info = self._provider.get_model_info()
        total = (input_tokens * multiplier / 1000) * info.input_cost_per_1k + (
            output_tokens * multiplier / 1000
        ) * info.output_cost_per_1k

        return CostEstimate(
            min=total * 0.7,
            max=total * 1.3,
            average=total,
            currency=self._currency,
            confidence="low",
            based_on="Conservative default estimates (no historical data)",
        )


def infer_complexity(agent_id: str, command: str) -> Complexity:
    if _SIMPLE_COMMAND.match(command):
        return Complexity.SIMPLE
    if _DOCUMENT_COMMAND.match(command):
        return Complexity.DOCUMENT
    if _COMPLEX_AGENT.match(agent_id):
        return Complexity.COMPLEX
    return Complexity.DOCUMENT
