from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QObject, Qt, QTimer, Signal
from PySide6.QtGui import QFont, QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QApplication,
    QButtonGroup,
    QCheckBox,
    QFileDialog,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QProgressBar,
    QPushButton,
    QRadioButton,
    QSplitter,
    QStackedWidget,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from quiz_core import (
    DEFAULT_QUESTIONS,
    EmptyAnswer,
    Participant,
    Question,
    QuizError,
    QuizSession,
    SubmitOutcome,
    expected_answer,
    extract_mc_options,
    load_questions,
)
from result_sinks import FileResultSink
from simulation import SimulationTask


def escape_html(s: str) -> str:
    return (s or "").replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


class SimulationRelay(QObject):
    # SimulationTask calls back on its own thread; a queued signal hands the summary to the GUI thread
    finished = Signal(str)


class StartPage(QWidget):
    def __init__(self, on_start, on_pick_db):
        super().__init__()
        self.on_start = on_start
        self.on_pick_db = on_pick_db

        layout = QVBoxLayout(self)

        title = QLabel("Quiz")
        title.setFont(QFont("Segoe UI", 16, QFont.Weight.Bold))
        layout.addWidget(title)

        form = QFormLayout()

        self.name = QLineEdit()
        self.name.setPlaceholderText("Your name")
        form.addRow("Participant:", self.name)

        self.db_path = QLineEdit()
        self.db_path.setPlaceholderText("Optional: question bank .db (built-in questions otherwise)")

        pick = QPushButton("Browse...")
        pick.clicked.connect(self._pick_db_clicked)

        row = QHBoxLayout()
        row.addWidget(self.db_path, 1)
        row.addWidget(pick)
        form.addRow("Question bank:", row)

        self.results_log = QLineEdit()
        self.results_log.setText(str(Path.cwd() / "quiz_results.log"))
        form.addRow("Results log:", self.results_log)

        self.show_answer = QCheckBox("Always show correct answer after submit")
        self.simulate = QCheckBox("Run background simulation")
        form.addRow("", self.show_answer)
        form.addRow("", self.simulate)

        layout.addLayout(form)

        btn_row = QHBoxLayout()
        self.start_btn = QPushButton("Start")
        self.start_btn.clicked.connect(self._start_clicked)
        btn_row.addStretch(1)
        btn_row.addWidget(self.start_btn)
        layout.addLayout(btn_row)

        layout.addStretch(1)

    def _pick_db_clicked(self):
        p = self.on_pick_db()
        if p:
            self.db_path.setText(str(p))

    def _start_clicked(self):
        name = self.name.text().strip()
        if not name:
            QMessageBox.warning(self, "Participant", "Please enter your name.")
            return

        db = self.db_path.text().strip()
        log = self.results_log.text().strip()

        self.on_start(
            name,
            Path(db) if db else None,
            Path(log) if log else None,
            bool(self.show_answer.isChecked()),
            bool(self.simulate.isChecked()),
        )


class QuizPage(QWidget):
    """Quiz page with:
    - option radio buttons when the prompt lists options, free text otherwise
    - submit disabled until input is non-blank
    - keyboard shortcuts (Enter to submit, 1-9 to choose options)
    - progress bar and running per-question results
    """

    def __init__(self, on_submit, on_quit):
        super().__init__()
        self.on_submit = on_submit
        self.on_quit = on_quit

        root = QVBoxLayout(self)

        splitter = QSplitter(Qt.Orientation.Horizontal)
        root.addWidget(splitter, 1)

        # Left: question/answer
        left = QWidget()
        layout = QVBoxLayout(left)

        self.progress = QLabel("Question 0/0")
        self.progress.setFont(QFont("Segoe UI", 11, QFont.Weight.DemiBold))
        layout.addWidget(self.progress)

        self.progress_bar = QProgressBar()
        self.progress_bar.setTextVisible(False)
        self.progress_bar.setMaximumHeight(10)
        layout.addWidget(self.progress_bar)

        self.q_text = QTextEdit()
        self.q_text.setReadOnly(True)
        self.q_text.setMinimumHeight(200)
        layout.addWidget(self.q_text, 1)

        self.answer_box = QGroupBox("Your Answer")
        self.answer_layout = QVBoxLayout(self.answer_box)
        layout.addWidget(self.answer_box)

        self.feedback = QLabel("")
        self.feedback.setTextFormat(Qt.TextFormat.RichText)
        self.feedback.setWordWrap(True)
        layout.addWidget(self.feedback)

        btns = QHBoxLayout()
        self.submit_btn = QPushButton("Submit")
        self.submit_btn.clicked.connect(self._submit_clicked)
        self.quit_btn = QPushButton("Quit Round")
        self.quit_btn.clicked.connect(self.on_quit)
        btns.addStretch(1)
        btns.addWidget(self.quit_btn)
        btns.addWidget(self.submit_btn)
        layout.addLayout(btns)

        splitter.addWidget(left)

        # Right: running round results
        right = QWidget()
        rlayout = QVBoxLayout(right)

        hdr = QLabel("This Round")
        hdr.setFont(QFont("Segoe UI", 11, QFont.Weight.DemiBold))
        rlayout.addWidget(hdr)

        self.score_label = QLabel("Score: 0")
        rlayout.addWidget(self.score_label)

        self.round_list = QListWidget()
        rlayout.addWidget(self.round_list, 1)

        splitter.addWidget(right)

        splitter.setStretchFactor(0, 3)
        splitter.setStretchFactor(1, 2)

        # input state
        self._mc_group: Optional[QButtonGroup] = None
        self._mc_buttons: list[QRadioButton] = []
        self._text_input: Optional[QLineEdit] = None

        QShortcut(QKeySequence(Qt.Key.Key_Return), self, activated=self._submit_clicked)
        QShortcut(QKeySequence(Qt.Key.Key_Enter), self, activated=self._submit_clicked)
        for i in range(1, 10):
            QShortcut(QKeySequence(str(i)), self, activated=lambda i=i: self._select_option_by_index(i - 1))

        self.submit_btn.setEnabled(False)

    def reset_round(self):
        self.round_list.clear()
        self.score_label.setText("Score: 0")

    def append_result(self, q_index: int, outcome: SubmitOutcome):
        label = f"Question {q_index}: " + ("Correct" if outcome.correct else "Incorrect")
        item = QListWidgetItem(label)
        item.setForeground(Qt.GlobalColor.darkGreen if outcome.correct else Qt.GlobalColor.red)
        self.round_list.addItem(item)
        self.round_list.scrollToBottom()
        self.score_label.setText(f"Score: {outcome.score}")

    def set_question(self, idx: int, total: int, q: Question):
        source = f", source question #{q.qnum}" if q.qnum is not None else ""
        self.progress.setText(f"Question {idx}/{total} ({q.points} pts{source})")
        self.progress_bar.setRange(0, max(total, 1))
        self.progress_bar.setValue(idx)
        self.q_text.setPlainText(q.prompt)
        self.feedback.setText("")

        # clear answer layout
        while self.answer_layout.count():
            item = self.answer_layout.takeAt(0)
            w = item.widget()
            if w:
                w.deleteLater()

        self._mc_group = None
        self._mc_buttons = []
        self._text_input = None

        self.submit_btn.setEnabled(False)

        options = extract_mc_options(q.prompt)
        if options:
            self._mc_group = QButtonGroup(self)
            self._mc_group.setExclusive(True)

            for letter, text in options:
                rb = QRadioButton(f"{letter} - {text}")
                rb.setProperty("opt_text", text)
                rb.toggled.connect(self._update_submit_enabled)
                self._mc_group.addButton(rb)
                self._mc_buttons.append(rb)
                self.answer_layout.addWidget(rb)
        else:
            self._text_input = QLineEdit()
            self._text_input.setPlaceholderText("Type your answer…")
            self._text_input.textChanged.connect(self._update_submit_enabled)
            self.answer_layout.addWidget(self._text_input)
            self._text_input.setFocus()

        self._update_submit_enabled()

    def _select_option_by_index(self, idx0: int):
        if self._mc_group and 0 <= idx0 < len(self._mc_buttons) and self._mc_buttons[idx0].isEnabled():
            self._mc_buttons[idx0].setChecked(True)

    def _update_submit_enabled(self):
        if self._mc_group:
            enabled = self._mc_group.checkedButton() is not None
        else:
            enabled = bool(self._text_input and self._text_input.text().strip())
        self.submit_btn.setEnabled(enabled)

    def get_user_answer(self) -> str:
        if self._mc_group:
            btn = self._mc_group.checkedButton()
            return str(btn.property("opt_text") or "") if btn else ""
        if self._text_input:
            return self._text_input.text()
        return ""

    def set_inputs_enabled(self, enabled: bool):
        for rb in self._mc_buttons:
            rb.setEnabled(enabled)
        if self._text_input:
            self._text_input.setEnabled(enabled)
        self.submit_btn.setEnabled(enabled)
        self.quit_btn.setEnabled(enabled)

    def set_feedback(self, correct: bool, answer_text: str, show_answer: bool, warning: Optional[str] = None):
        if correct:
            msg = '<span style="color:#0a7a0a; font-weight:600;">Result: CORRECT</span>'
        else:
            msg = '<span style="color:#b00020; font-weight:600;">Result: INCORRECT</span>'

        if show_answer:
            msg += (
                '<br><br><span style="color:#0a7a0a; font-weight:600;">[+] Answer&gt;</span><br>'
                f'<span style="color:#0a7a0a;">{escape_html(answer_text)}</span>'
            )

        if warning:
            msg += f'<br><br><span style="color:#a06000;">{escape_html(warning)}</span>'

        self.feedback.setText(msg)

    def show_validation_error(self, message: str):
        self.feedback.setText(f'<span style="color:#a06000;">{escape_html(message)}</span>')

    def _submit_clicked(self):
        # Guard against shortcut firing when disabled
        if not self.submit_btn.isEnabled():
            return
        self.on_submit(self.get_user_answer())


class ResultsPage(QWidget):
    def __init__(self, on_back_to_start):
        super().__init__()
        self.on_back_to_start = on_back_to_start

        layout = QVBoxLayout(self)

        title = QLabel("Round Summary")
        title.setFont(QFont("Segoe UI", 14, QFont.Weight.Bold))
        layout.addWidget(title)

        self.summary = QLabel("")
        self.summary.setTextFormat(Qt.TextFormat.RichText)
        layout.addWidget(self.summary)

        self.simulation = QLabel("")
        self.simulation.setStyleSheet("color: #666;")
        layout.addWidget(self.simulation)

        splitter = QSplitter(Qt.Orientation.Horizontal)
        layout.addWidget(splitter, 1)

        left = QWidget()
        lyt = QVBoxLayout(left)
        lyt.addWidget(QLabel("Questions (this round)"))
        self.q_list = QListWidget()
        lyt.addWidget(self.q_list, 1)
        splitter.addWidget(left)

        right = QWidget()
        ryt = QVBoxLayout(right)
        ryt.addWidget(QLabel("Details"))
        self.details = QTextEdit()
        self.details.setReadOnly(True)
        ryt.addWidget(self.details, 1)
        splitter.addWidget(right)
        splitter.setStretchFactor(1, 2)

        btn_row = QHBoxLayout()
        back = QPushButton("Back to Start")
        back.clicked.connect(self.on_back_to_start)
        btn_row.addStretch(1)
        btn_row.addWidget(back)
        layout.addLayout(btn_row)

        self.q_list.currentItemChanged.connect(self._on_selected)
        self._session: Optional[QuizSession] = None

    def set_results(self, session: QuizSession, warning: Optional[str]):
        score = session.participant.score
        possible = session.total_possible
        pct = (score / possible) * 100 if possible else 0.0

        html = (
            f"<b>Participant:</b> {escape_html(session.participant.name)}<br>"
            f"<b>Correct:</b> {session.correct_count}/{session.total_questions}<br>"
            f"<b>Score:</b> {score}/{possible} ({pct:.2f}%)"
        )
        if warning:
            html += f'<br><span style="color:#a06000;">{escape_html(warning)}</span>'
        self.summary.setText(html)

        self._session = session
        self.q_list.clear()
        self.details.clear()

        for idx, r in enumerate(session.history, start=1):
            item = QListWidgetItem(f"Question {idx}")
            item.setForeground(Qt.GlobalColor.darkGreen if r.correct else Qt.GlobalColor.red)
            self.q_list.addItem(item)

        self.q_list.setCurrentRow(0)

    def set_simulation_summary(self, summary: str):
        self.simulation.setText(summary)

    def _on_selected(self, current, _prev):
        if not current or not self._session:
            return
        history = self._session.history
        idx = self.q_list.currentRow()
        if idx < 0 or idx >= len(history):
            return

        r = history[idx]
        status = (
            '<span style="color:#0a7a0a; font-weight:600;">CORRECT</span>'
            if r.correct
            else '<span style="color:#b00020; font-weight:600;">INCORRECT</span>'
        )
        your_color = "#0a7a0a" if r.correct else "#b00020"

        qtxt = escape_html(r.question.prompt)
        ua = escape_html(repr(r.answer))
        ans = escape_html(expected_answer(r.question))

        html = f"""
        <div>
          <div style="margin-bottom:8px;"><b>Question {idx + 1}</b> ({r.question.points} pts): {status}</div>
          <pre style="white-space:pre-wrap; font-family:Segoe UI, Consolas, monospace;">{qtxt}</pre>
          <div style="margin-top:10px;">
            <b>Your answer:</b> <span style="color:{your_color}; font-weight:600;">{ua}</span>
          </div>
          <div style="margin-top:8px;">
            <b>Answer:</b><br>
            <span style="color:#0a7a0a; font-weight:600;">{ans}</span>
          </div>
        </div>
        """
        self.details.setHtml(html)


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Quiz")
        self.resize(980, 720)

        self.stack = QStackedWidget()
        self.setCentralWidget(self.stack)

        self._session: Optional[QuizSession] = None
        self._always_show_answer = False
        self._sim: Optional[SimulationTask] = None
        self._advance_delay_ms = 600

        self._relay = SimulationRelay()

        self.start_page = StartPage(self.start_round, self.pick_db)
        self.quiz_page = QuizPage(self.submit_current, self.quit_round)
        self.results_page = ResultsPage(self.back_to_start)

        self._relay.finished.connect(self.results_page.set_simulation_summary)

        self.stack.addWidget(self.start_page)
        self.stack.addWidget(self.quiz_page)
        self.stack.addWidget(self.results_page)

    def pick_db(self) -> Optional[Path]:
        path, _ = QFileDialog.getOpenFileName(
            self,
            "Select question bank",
            "",
            "SQLite DB (*.db *.sqlite *.sqlite3);;All files (*.*)",
        )
        return Path(path) if path else None

    def start_round(
        self,
        name: str,
        db_path: Optional[Path],
        results_log: Optional[Path],
        always_show_answer: bool,
        simulate: bool,
    ):
        if db_path is not None:
            if not db_path.exists():
                QMessageBox.warning(self, "Database", f"DB not found:\n{db_path}")
                return
            try:
                questions = load_questions(db_path)
            except (ValueError, OSError) as e:
                QMessageBox.critical(self, "Load Questions Failed", str(e))
                return
        else:
            questions = list(DEFAULT_QUESTIONS)

        sink = FileResultSink(results_log) if results_log is not None else None
        self._session = QuizSession(questions, Participant(name), sink)
        self._always_show_answer = always_show_answer

        self.results_page.set_simulation_summary("")
        if simulate:
            self._sim = SimulationTask(questions, name, delay=1.0, on_complete=self._relay.finished.emit)
            self._sim.start()

        self.stack.setCurrentWidget(self.quiz_page)
        self.quiz_page.reset_round()
        self._show_question()

    def _show_question(self):
        q = self._session.current_question()
        self.quiz_page.set_question(self._session.position + 1, self._session.total_questions, q)
        self.quiz_page.set_inputs_enabled(True)
        self.quiz_page._update_submit_enabled()

    def submit_current(self, user_answer: str):
        session = self._session
        if session is None:
            return
        q = session.current_question()
        idx = session.position + 1

        try:
            outcome = session.submit_answer(user_answer)
        except EmptyAnswer as e:
            self.quiz_page.show_validation_error(str(e))
            return
        except QuizError as e:
            QMessageBox.warning(self, "Quiz", str(e))
            return

        # Disable inputs while showing feedback, then advance
        self.quiz_page.set_inputs_enabled(False)
        self.quiz_page.append_result(idx, outcome)

        show_answer_now = self._always_show_answer or (not outcome.correct)
        self.quiz_page.set_feedback(outcome.correct, expected_answer(q), show_answer_now, outcome.sink_warning)

        QTimer.singleShot(self._advance_delay_ms, lambda: self._advance(session, outcome))

    def _advance(self, session: QuizSession, outcome: SubmitOutcome):
        # the round may have been abandoned or replaced while feedback was showing
        if self._session is not session:
            return
        if outcome.completed:
            self.finish_round(outcome.sink_warning)
        else:
            self._show_question()

    def finish_round(self, warning: Optional[str] = None):
        self.results_page.set_results(self._session, warning)
        self.stack.setCurrentWidget(self.results_page)

    def quit_round(self):
        if QMessageBox.question(self, "Quit", "Quit the current round? No result will be recorded.") == QMessageBox.StandardButton.Yes:
            self.back_to_start()

    def back_to_start(self):
        if self._sim is not None:
            self._sim.stop()
            self._sim = None
        self._session = None
        self.stack.setCurrentWidget(self.start_page)


def main() -> int:
    app = QApplication(sys.argv)
    w = MainWindow()
    w.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
