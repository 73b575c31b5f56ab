"""
Unit tests for answer validation, grading and the quiz session engine.
"""

import sqlite3

import pytest

from quiz_core import (
    EmptyAnswer,
    ExactMatch,
    Participant,
    Question,
    QuizSession,
    SessionAlreadyComplete,
    ValidationError,
    evaluate,
    expected_answer,
    extract_mc_options,
    load_questions,
    question,
    resolve_option_letter,
    validate,
)
from result_sinks import SinkError


class FailingSink:
    def __init__(self):
        self.calls = 0

    def record(self, participant_name, score, total_possible):
        self.calls += 1
        raise SinkError("disk full")


def assert_invariants(session):
    assert 0 <= session.position <= session.total_questions
    assert len(session.history) == session.position
    assert session.participant.score == sum(r.question.points for r in session.history if r.correct)


class TestValidate:
    def test_validate_when_padded_then_returns_trimmed(self):
        assert validate("  Paris \n") == "Paris"

    @pytest.mark.parametrize("raw", ["", "   ", "\t\n", None])
    def test_validate_when_blank_then_raises_empty_answer(self, raw):
        with pytest.raises(EmptyAnswer):
            validate(raw)

    def test_empty_answer_is_a_validation_error(self):
        assert issubclass(EmptyAnswer, ValidationError)
        assert issubclass(EmptyAnswer, ValueError)


class TestEvaluate:
    @pytest.mark.parametrize("answer", ["Paris", "paris", "  Paris  ", "PARIS"])
    def test_evaluate_when_case_or_padding_differs_then_correct(self, answer):
        q = question("Capital of France?", 5, "Paris")
        assert evaluate(q, answer.strip()) is True

    def test_evaluate_when_different_answer_then_incorrect(self):
        q = question("Capital of France?", 5, "Paris")
        assert evaluate(q, "London") is False

    def test_evaluate_when_inner_whitespace_differs_then_incorrect(self):
        q = question("City?", 1, "New York")
        assert evaluate(q, "New  York") is False

    def test_evaluate_when_unknown_rule_then_raises(self):
        q = Question(prompt="?", points=1, rule=object())
        with pytest.raises(TypeError):
            evaluate(q, "x")

    def test_expected_answer_returns_reference(self):
        assert expected_answer(question("?", 1, "Paris")) == "Paris"


class TestQuestion:
    def test_init_when_negative_points_then_raises(self):
        with pytest.raises(ValueError, match="points must be >= 0"):
            question("?", -1, "x")

    def test_init_when_non_integer_points_then_raises(self):
        with pytest.raises(ValueError):
            question("?", 1.5, "x")

    def test_init_when_blank_reference_then_raises(self):
        with pytest.raises(ValueError):
            ExactMatch("  ")

    def test_question_is_immutable(self):
        q = question("?", 1, "x")
        with pytest.raises(AttributeError):
            q.points = 10


class TestParticipant:
    def test_init_when_blank_name_then_raises(self):
        with pytest.raises(ValueError):
            Participant("   ")

    def test_score_starts_at_zero_and_is_read_only(self):
        p = Participant(" Ada ")
        assert p.name == "Ada"
        assert p.score == 0
        with pytest.raises(AttributeError):
            p.score = 10


class TestQuizSession:
    def test_init_when_empty_bank_then_raises(self, participant):
        with pytest.raises(ValueError, match="0 questions"):
            QuizSession([], participant)

    def test_scenario_correct_then_incorrect(self, two_question_bank, participant, sink):
        session = QuizSession(two_question_bank, participant, sink)

        first = session.submit_answer("4")
        assert (first.correct, first.score, first.completed) == (True, 5, False)
        assert sink.calls == []
        assert_invariants(session)

        second = session.submit_answer("london")
        assert (second.correct, second.score, second.completed) == (False, 5, True)
        assert second.sink_warning is None
        assert sink.calls == [("Ada", 5, 10)]
        assert_invariants(session)

    def test_submit_when_empty_then_state_unchanged(self, two_question_bank, participant, sink):
        session = QuizSession(two_question_bank, participant, sink)
        first = session.current_question()

        with pytest.raises(EmptyAnswer):
            session.submit_answer("")
        with pytest.raises(EmptyAnswer):
            session.submit_answer("   ")
        with pytest.raises(EmptyAnswer):
            session.submit_answer(None)

        assert session.position == 0
        assert participant.score == 0
        assert session.current_question() is first
        assert session.history == ()

    def test_current_question_when_called_repeatedly_then_no_side_effects(self, two_question_bank, participant):
        session = QuizSession(two_question_bank, participant)
        seen = [session.current_question() for _ in range(3)]
        assert seen[0] is seen[1] is seen[2] is two_question_bank[0]
        assert session.position == 0

    def test_submit_when_completed_then_raises_and_state_unchanged(self, two_question_bank, participant, sink):
        session = QuizSession(two_question_bank, participant, sink)
        session.submit_answer("4")
        session.submit_answer("Paris")

        assert session.is_completed
        assert session.current_question() is None

        with pytest.raises(SessionAlreadyComplete):
            session.submit_answer("4")
        with pytest.raises(SessionAlreadyComplete):
            session.submit_answer("")

        assert session.position == 2
        assert participant.score == 10
        assert sink.calls == [("Ada", 10, 10)]

    def test_submit_advances_in_bank_order_regardless_of_correctness(self, participant):
        bank = [question(f"Q{i}?", i, str(i)) for i in range(1, 5)]
        session = QuizSession(bank, participant)

        for i, answer in enumerate(["1", "wrong", "3", "nope"], start=1):
            assert session.current_question() is bank[i - 1]
            session.submit_answer(answer)
            assert session.position == i
            assert_invariants(session)

        assert participant.score == 1 + 3
        assert session.correct_count == 2
        assert [r.answer for r in session.history] == ["1", "wrong", "3", "nope"]

    def test_submit_when_all_wrong_then_sink_gets_zero(self, two_question_bank, participant, sink):
        session = QuizSession(two_question_bank, participant, sink)
        session.submit_answer("5")
        outcome = session.submit_answer("Rome")
        assert outcome.score == 0
        assert sink.calls == [("Ada", 0, 10)]

    def test_submit_when_sink_fails_then_completion_and_score_stand(self, two_question_bank, participant):
        failing = FailingSink()
        session = QuizSession(two_question_bank, participant, failing)
        session.submit_answer("4")
        outcome = session.submit_answer(" PARIS ")

        assert outcome.completed is True
        assert outcome.score == 10
        assert "disk full" in outcome.sink_warning
        assert session.is_completed
        assert participant.score == 10
        assert failing.calls == 1

    def test_submit_when_sink_raises_unexpected_error_then_reported(self, two_question_bank, participant):
        class BrokenSink:
            def record(self, participant_name, score, total_possible):
                raise RuntimeError("boom")

        session = QuizSession(two_question_bank, participant, BrokenSink())
        session.submit_answer("4")
        outcome = session.submit_answer("Paris")

        assert outcome.completed is True
        assert outcome.score == 10
        assert "boom" in outcome.sink_warning
        assert session.is_completed

    def test_submit_when_no_sink_then_completes(self, two_question_bank, participant):
        session = QuizSession(two_question_bank, participant)
        session.submit_answer("4")
        outcome = session.submit_answer("Paris")
        assert outcome.completed is True
        assert outcome.sink_warning is None

    def test_zero_point_question_scores_nothing_when_correct(self, participant, sink):
        session = QuizSession([question("Warm-up?", 0, "yes"), question("2+2?", 3, "4")], participant, sink)
        assert session.submit_answer("YES").score == 0
        assert session.submit_answer("4").score == 3
        assert sink.calls == [("Ada", 3, 3)]

    def test_stored_answer_is_trimmed(self, two_question_bank, participant):
        session = QuizSession(two_question_bank, participant)
        session.submit_answer("  4  ")
        assert session.history[0].answer == "4"

    def test_total_possible_sums_points(self, participant):
        session = QuizSession([question("a", 2, "a"), question("b", 7, "b")], participant)
        assert session.total_possible == 9
        assert session.total_questions == 2


class TestOptions:
    PROMPT = "What is 2 + 2?\nA - 3\nB - 4\nC – 5"
    QUESTION = question(PROMPT, 5, "4")

    def test_extract_mc_options_when_lettered_lines_then_returns_pairs(self):
        assert extract_mc_options(self.PROMPT) == [("A", "3"), ("B", "4"), ("C", "5")]

    def test_extract_mc_options_when_no_options_then_empty(self):
        assert extract_mc_options("Capital of France?") == []

    def test_resolve_option_letter_when_letter_then_option_text(self):
        assert resolve_option_letter(self.QUESTION, " b ") == "4"

    def test_resolve_option_letter_when_not_a_letter_then_unchanged(self):
        assert resolve_option_letter(self.QUESTION, "4") == "4"
        assert resolve_option_letter(self.QUESTION, "") == ""
        assert resolve_option_letter(self.QUESTION, None) is None

    def test_resolve_option_letter_when_unknown_letter_then_unchanged(self):
        assert resolve_option_letter(self.QUESTION, "Z") == "Z"

    def test_resolve_option_letter_when_letter_is_the_answer_then_unchanged(self):
        q = question("Which grade is a fail?\nA - Excellent\nB - Good\nC - Pass\nD - Below pass", 1, "D")
        assert resolve_option_letter(q, "d") == "d"
        assert resolve_option_letter(q, "C") == "Pass"

    def test_letter_answer_grades_correct_in_session(self, participant):
        q = question("Which grade is a fail?\nA - Excellent\nB - Good\nC - Pass\nD - Below pass", 1, "D")
        session = QuizSession([q], participant)
        assert session.submit_answer(resolve_option_letter(q, "D")).correct is True


class TestLoadQuestions:
    def _make_db(self, path, rows):
        with sqlite3.connect(str(path)) as conn:
            conn.execute(
                "CREATE TABLE questions (id INTEGER PRIMARY KEY AUTOINCREMENT, qnum INTEGER UNIQUE NOT NULL,"
                " prompt TEXT NOT NULL, answer TEXT NOT NULL, points INTEGER NOT NULL DEFAULT 1)"
            )
            conn.executemany("INSERT INTO questions (qnum, prompt, answer, points) VALUES (?, ?, ?, ?)", rows)
            conn.commit()

    def test_load_questions_when_rows_then_ordered_by_qnum(self, tmp_path):
        db = tmp_path / "bank.db"
        self._make_db(db, [(2, "Capital of France?", "Paris", 5), (1, "2+2?", "4", 3)])

        qs = load_questions(db)

        assert [q.qnum for q in qs] == [1, 2]
        assert qs[0].prompt == "2+2?"
        assert qs[0].points == 3
        assert evaluate(qs[1], "paris")

    def test_load_questions_when_empty_then_raises(self, tmp_path):
        db = tmp_path / "bank.db"
        self._make_db(db, [])
        with pytest.raises(ValueError, match="0 questions"):
            load_questions(db)
