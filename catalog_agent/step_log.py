from __future__ import annotations

import logging
from typing import List

logger = logging.getLogger(__name__)


class StepLog:
    """Ordered, human-readable trace of one agent run."""

    def __init__(self) -> None:
        self.lines: List[str] = []
        self.current_step = 0

    def step(self, title: str) -> None:
        self.current_step += 1
        line = f"{self.current_step}. {title}"
        self.lines.append(line)
        logger.debug(line)

    def note(self, message: str) -> None:
        self.lines.append(f"   ├─ {message}")
        logger.debug(message)

    def render(self) -> str:
        return "\n".join(self.lines)

    def __contains__(self, text: str) -> bool:
        return any(text in line for line in self.lines)
