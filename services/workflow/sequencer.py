from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


class WorkflowError(RuntimeError):
    """Workflow action attempted from a state that does not allow it."""


@dataclass(frozen=True)
class Step:
    position: int  # 1-based
    label: str


StepGate = Callable[[Step], bool]


def build_steps(labels: Sequence[str]) -> List[Step]:
    return [Step(position=i, label=label) for i, label in enumerate(labels, start=1)]


class StepSequencer:
    """
    Linear cursor over an ordered list of steps.
    - advance() moves forward one step when the current step's gate holds
    - retreat() moves back one step, never gated
    - both clamp at the ends instead of raising
    """

    def __init__(
        self,
        steps: Sequence[Step],
        gates: Optional[Dict[int, StepGate]] = None,
    ) -> None:
        if not steps:
            raise ValueError("a workflow needs at least one step")
        positions = [s.position for s in steps]
        if positions != list(range(1, len(steps) + 1)):
            raise ValueError(f"step positions must be 1..N in order, got {positions}")
        self.steps = tuple(steps)
        self.gates = dict(gates or {})
        self._cursor = 1

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def total(self) -> int:
        return len(self.steps)

    @property
    def current(self) -> Step:
        return self.steps[self._cursor - 1]

    @property
    def is_first(self) -> bool:
        return self._cursor == 1

    @property
    def is_last(self) -> bool:
        return self._cursor == self.total

    @property
    def progress_percent(self) -> float:
        return self._cursor / self.total * 100.0

    def is_step_complete(self, position: int) -> bool:
        gate = self.gates.get(position)
        if gate is None:
            return True
        return bool(gate(self.steps[position - 1]))

    def can_advance(self) -> bool:
        if self.is_last:
            return False
        return self.is_step_complete(self._cursor)

    def advance(self) -> bool:
        if not self.can_advance():
            logger.debug("advance refused at step %s/%s", self._cursor, self.total)
            return False
        self._cursor += 1
        return True

    def retreat(self) -> bool:
        if self.is_first:
            return False
        self._cursor -= 1
        return True

    def describe(self) -> Dict[str, object]:
        return {
            "step": self._cursor,
            "label": self.current.label,
            "total": self.total,
            "can_advance": self.can_advance(),
            "can_retreat": not self.is_first,
            "steps": [
                {"position": s.position, "label": s.label, "complete": self.is_step_complete(s.position)}
                for s in self.steps
            ],
        }
