#!/usr/bin/env python3
"""
Interactive quiz runner.

Behavior:
- Presents every question of the bank, in order.
- Prompts the participant for an answer per question (blank answers are re-prompted).
- Reports score and missed questions at the end, and records the result once.

Important: Question/answer verbiage shown is stored verbatim from the source document.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Callable, Optional

from colorama import Fore, Style, init as colorama_init

from greeter import Greeter
from quiz_core import (
    DEFAULT_QUESTIONS,
    EmptyAnswer,
    Participant,
    QuizSession,
    expected_answer,
    load_questions,
    resolve_option_letter,
)
from result_sinks import FileResultSink, ResultSink, SqliteResultSink, read_results
from simulation import SimulationTask

colorama_init(autoreset=True)


def build_sink(results_log: Optional[Path], results_db: Optional[Path]) -> Optional[ResultSink]:
    if results_log is not None:
        return FileResultSink(results_log)
    if results_db is not None:
        return SqliteResultSink(results_db)
    return None


def run_session(session: QuizSession, ask: Callable[[str], str] = input, show_answer: bool = False) -> None:
    total = session.total_questions

    print(f"Loaded {total} questions for {session.participant.name}. Type your answer and press Enter.\n")

    while not session.is_completed:
        q = session.current_question()
        idx = session.position + 1

        print("=" * 80)
        if q.qnum is not None:
            print(f"Question {idx}/{total} (Source question #{q.qnum}, {q.points} pts)")
        else:
            print(f"Question {idx}/{total} ({q.points} pts)")
        print()
        print(q.prompt)
        print()

        ua = ask("Your answer> ")
        try:
            outcome = session.submit_answer(resolve_option_letter(q, ua))
        except EmptyAnswer as e:
            print(f"{Fore.YELLOW}{e} Try again.{Style.RESET_ALL}\n")
            continue

        if show_answer or not outcome.correct:
            print()
            print(f"{Fore.GREEN}[+] Answer>{Style.RESET_ALL}")
            print(f"{Fore.GREEN}{expected_answer(q)}{Style.RESET_ALL}")

        print(
            f"\n{Fore.GREEN if outcome.correct else Fore.RED}"
            f"Result: {'CORRECT' if outcome.correct else 'INCORRECT'}{Style.RESET_ALL}"
            f"  (score {outcome.score})\n"
        )

        if outcome.sink_warning:
            print(f"{Fore.YELLOW}Warning: {outcome.sink_warning}{Style.RESET_ALL}\n")


def print_summary(session: QuizSession) -> None:
    score = session.participant.score
    possible = session.total_possible
    pct = (score / possible) * 100 if possible else 0.0

    print("=" * 80)
    print("Round Summary")
    print(f"Participant: {session.participant.name}")
    print(f"Correct: {session.correct_count}/{session.total_questions}")
    print(f"Score: {score}/{possible} ({pct:.2f}%)")

    missed = [r for r in session.history if not r.correct]
    if missed:
        print("\nMissed Questions:")
        for r in missed:
            print("-" * 80)
            if r.question.qnum is not None:
                print(f"Source question #{r.question.qnum}")
            print(r.question.prompt)
            print(f"{Fore.RED}\nYour answer: {r.answer!r}{Style.RESET_ALL}")
            print(f"{Fore.GREEN}[+] Answer>{Style.RESET_ALL}")
            print(f"{Fore.GREEN}{expected_answer(r.question)}{Style.RESET_ALL}")


def print_history(results_db: Path) -> None:
    rows = read_results(results_db)
    if not rows:
        return
    print("\nRecorded results:")
    for r in rows:
        print(f"  {r['recorded_at']}  {r['participant']}: {r['score']}/{r['total_possible']}")


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--name", default=None, help="Participant name (prompted for when omitted)")
    ap.add_argument("--db", type=Path, default=None, help="SQLite question bank built by build_db.py")
    sinks = ap.add_mutually_exclusive_group()
    sinks.add_argument("--results-log", type=Path, default=None, help="Append the final result to this file")
    sinks.add_argument("--results-db", type=Path, default=None, help="Insert the final result into this SQLite DB")
    ap.add_argument("--history", action="store_true", help="List recorded results afterwards (with --results-db)")
    ap.add_argument("--show-answer", action="store_true", help="Show the correct answer after each question")
    ap.add_argument("--simulate", action="store_true", help="Run the background simulation walk alongside the quiz")
    ap.add_argument("--sim-delay", type=float, default=1.0, help="Seconds per question for the simulation walk")
    ap.add_argument("--greet", action="store_true", help="Greet one TCP client while the quiz runs")
    ap.add_argument("--greet-port", type=int, default=5050, help="Port for --greet")
    ap.add_argument(
        "--log-level",
        type=str.upper,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level",
    )
    args = ap.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.db is not None:
        if not args.db.exists():
            raise SystemExit(f"DB not found: {args.db}")
        try:
            questions = load_questions(args.db)
        except ValueError as e:
            raise SystemExit(str(e))
    else:
        questions = list(DEFAULT_QUESTIONS)

    name = args.name
    while not (name or "").strip():
        name = input("Your name> ")
    participant = Participant(name)

    session = QuizSession(questions, participant, build_sink(args.results_log, args.results_db))

    if args.greet:
        try:
            Greeter(host="0.0.0.0", port=args.greet_port).start()
        except OSError as e:
            print(f"{Fore.YELLOW}Greeter not started: {e}{Style.RESET_ALL}")

    sim = None
    if args.simulate:
        sim = SimulationTask(
            questions,
            participant.name,
            delay=args.sim_delay,
            on_complete=lambda s: print(f"\n{Fore.CYAN}{s}{Style.RESET_ALL}"),
        )
        sim.start()

    try:
        run_session(session, show_answer=args.show_answer)
    except (KeyboardInterrupt, EOFError):
        print("\nQuiz abandoned; no result recorded.")
        return 1
    finally:
        if sim is not None:
            sim.stop()
            sim.join(timeout=1.0)

    print_summary(session)

    if args.history and args.results_db is not None:
        print_history(args.results_db)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
