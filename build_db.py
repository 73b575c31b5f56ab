#!/usr/bin/env python3
"""
Build an SQLite question bank from a .docx study document.

Design intent:
- Preserve prompt verbiage exactly as it appears in the source document.
- Store a derived reference "answer" strictly for grading, and a point value per question.

Expected document shape (one block per question):

    Question 1 of 20
    What is the capital of France?
    A - London
    B - Paris
    Points: 5                      (optional; defaults to --points)
    [+] Answer>   the correct answer is Paris (B)
"""

from __future__ import annotations

import argparse
import re
import sqlite3
from pathlib import Path
from typing import Optional

from docx import Document


Q_MARKER_RE = re.compile(r"^Question\s+(?P<num>\d+)\s+of\s+(?P<total>\d+)\s*$", re.IGNORECASE)
POINTS_RE = re.compile(r"^Points:\s*(?P<points>\d+)\s*$", re.IGNORECASE)
ANSWER_MARKER = "[+] Answer>"


def derive_answer(a_lines: list[str]) -> Optional[str]:
    """Pull the grading reference out of "the correct answer is ..." phrasing."""
    for line in a_lines:
        mm = re.search(r"the correct answer is\s+(.*)$", line.strip(), flags=re.IGNORECASE)
        if not mm:
            continue

        rest = mm.group(1).strip().rstrip(".")

        # Common form: "Frames (C)"
        mopt = re.match(r"^(.*)\s+\(([A-Z])\)\s*$", rest)
        if mopt:
            return mopt.group(1).strip()

        # Sometimes: "Social Engineering (Social Engineering)"
        mpar = re.match(r"^(.*)\s+\((.*)\)\s*$", rest)
        if mpar:
            left = mpar.group(1).strip()
            right = mpar.group(2).strip()
            return right if right.lower() == left.lower() else left

        return rest or None

    # no phrase: the whole (single-line) answer is the reference
    text = " ".join(l.strip() for l in a_lines if l.strip())
    return text or None


def parse_paragraphs(paras: list[str], default_points: int = 1) -> list[dict]:
    q_indices = [i for i, t in enumerate(paras) if Q_MARKER_RE.match(t.strip())]
    questions: list[dict] = []

    for k, start in enumerate(q_indices):
        end = q_indices[k + 1] if k + 1 < len(q_indices) else len(paras)
        block = paras[start:end]

        m = Q_MARKER_RE.match(block[0].strip())
        if not m:
            continue

        qnum = int(m.group("num"))

        try:
            ans_idx = next(j for j, line in enumerate(block) if ANSWER_MARKER in line)
        except StopIteration:
            continue

        points = default_points
        q_lines = []
        for line in block[1:ans_idx]:
            mp = POINTS_RE.match(line.strip())
            if mp:
                points = int(mp.group("points"))
                continue
            q_lines.append(line)

        # The answer usually sits on the marker line itself; later lines may continue it.
        a_lines = []
        post_marker = block[ans_idx].split(ANSWER_MARKER, 1)[1]
        if post_marker.strip():
            a_lines.append(post_marker)
        a_lines.extend(block[ans_idx + 1 :])

        # stop at separator line of ===== (if present)
        sep_pos = next(
            (j for j, line in enumerate(a_lines) if set(line.strip()) == {"="} and len(line.strip()) > 10),
            None,
        )
        if sep_pos is not None:
            a_lines = a_lines[:sep_pos]

        # trim trailing blank lines
        while q_lines and q_lines[-1].strip() == "":
            q_lines.pop()

        prompt = "\n".join(q_lines).strip("\n")
        answer = derive_answer(a_lines)
        if not prompt or not answer:
            continue

        questions.append({"qnum": qnum, "prompt": prompt, "answer": answer, "points": points})

    return questions


def parse_docx(docx_path: Path, default_points: int = 1) -> list[dict]:
    doc = Document(str(docx_path))
    return parse_paragraphs([p.text.rstrip() for p in doc.paragraphs], default_points)


def init_db(db_path: Path) -> None:
    with sqlite3.connect(str(db_path)) as conn:
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS questions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                qnum INTEGER UNIQUE NOT NULL,
                prompt TEXT NOT NULL,
                answer TEXT NOT NULL,
                points INTEGER NOT NULL DEFAULT 1
            );
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_questions_qnum ON questions(qnum);")
        conn.commit()


def upsert_questions(db_path: Path, questions: list[dict]) -> None:
    with sqlite3.connect(str(db_path)) as conn:
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.executemany(
            """
            INSERT INTO questions (qnum, prompt, answer, points)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(qnum) DO UPDATE SET
                prompt=excluded.prompt,
                answer=excluded.answer,
                points=excluded.points;
            """,
            [(q["qnum"], q["prompt"], q["answer"], q.get("points", 1)) for q in questions],
        )
        conn.commit()


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--docx", required=True, type=Path, help="Path to the source .docx")
    ap.add_argument("--db", required=True, type=Path, help="Path to output SQLite .db")
    ap.add_argument("--points", type=int, default=1, help="Points per question when the block has no 'Points:' line")
    args = ap.parse_args()

    if not args.docx.exists():
        raise SystemExit(f"Docx not found: {args.docx}")
    if args.points < 0:
        raise SystemExit("--points must be >= 0")

    questions = parse_docx(args.docx, args.points)
    if not questions:
        raise SystemExit("No questions were parsed. Check the document formatting.")

    init_db(args.db)
    upsert_questions(args.db, questions)

    print(f"Imported {len(questions)} questions into {args.db}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
