from __future__ import annotations
from typing import TYPE_CHECKING

from .errors import StepLimitExceeded

if TYPE_CHECKING:
    from .schemas import Element

DEFAULT_STEP_LIMIT = 10_000


class StepBudget:
    """Bounded step counter guarding recursive walks over a possibly cyclic board.

    A fresh budget is handed to every compile pass, every setup run and every
    loop tick, so concurrently running windows never share one.
    """

    def __init__(self, limit: int = DEFAULT_STEP_LIMIT):
        self.limit = limit
        self.used = 0

    def step(self, at: "Element") -> None:
        self.used += 1
        if self.used >= self.limit:
            raise StepLimitExceeded(at)
