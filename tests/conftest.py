import sys
from pathlib import Path

import pytest

# Add the repo root to sys.path so the top-level modules import without installing
ROOT = Path(__file__).resolve().parent.parent
if ROOT.as_posix() not in sys.path:
    sys.path.insert(0, ROOT.as_posix())

from quiz_core import Participant, question  # noqa: E402


class RecordingSink:
    """Result sink double that remembers every call."""

    def __init__(self):
        self.calls = []

    def record(self, participant_name, score, total_possible):
        self.calls.append((participant_name, score, total_possible))


@pytest.fixture
def two_question_bank():
    return [
        question("2+2?", 5, "4"),
        question("Capital of France?", 5, "Paris"),
    ]


@pytest.fixture
def participant():
    return Participant("Ada")


@pytest.fixture
def sink():
    return RecordingSink()
