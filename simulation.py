"""Background walk over the question bank, run beside a real session.

The task only reads the (immutable) questions and the participant's name, so it
can run on its own thread without any locking against the session engine.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Sequence

from quiz_core import Question

logger = logging.getLogger(__name__)


def summarize(participant_name: str, questions: Sequence[Question], walked: int) -> str:
    points = sum(q.points for q in questions[:walked])
    return f"Simulation for {participant_name} walked {walked} questions ({points} points available)."


class SimulationTask(threading.Thread):
    def __init__(
        self,
        questions: Sequence[Question],
        participant_name: str,
        delay: float = 1.0,
        on_complete: Optional[Callable[[str], None]] = None,
    ):
        super().__init__(name=f"simulation-{participant_name}", daemon=True)
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self.questions = tuple(questions)
        self.participant_name = participant_name
        self.delay = delay
        self.on_complete = on_complete
        self.summary: Optional[str] = None
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def run(self) -> None:
        walked = 0
        for idx, q in enumerate(self.questions, start=1):
            # wait() doubles as an interruptible sleep
            if self._stop_event.wait(self.delay):
                logger.debug("Simulation for %s stopped at question %d", self.participant_name, idx)
                break
            walked = idx
            logger.debug("Simulation for %s at question %d/%d", self.participant_name, idx, len(self.questions))

        self.summary = summarize(self.participant_name, self.questions, walked)
        logger.info(self.summary)
        if self.on_complete is not None:
            self.on_complete(self.summary)
