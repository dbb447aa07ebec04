"""Final assessment quiz: per-attempt scoring state machine.

Per question: unanswered -> answered (pending selection) -> submitted.
Per attempt: in progress until every question has been submitted.

Attempts live in memory only and are keyed by (user_id, course_id). Opening
the quiz page always starts a fresh attempt.
"""

import logging
import threading

from learner_portal.config import QUIZ_PASS_THRESHOLD

logger = logging.getLogger(__name__)

QUESTIONS = [
    {
        "question": "AI systems primarily work by:",
        "options": [
            "Thinking like humans",
            "Predicting patterns from data",
            "Storing answers",
            "Browsing the internet",
        ],
        "correct_answer": 1,
    },
    {
        "question": "What is AI hallucination?",
        "options": [
            "AI refuses to answer",
            "AI generates fake or incorrect information",
            "AI becomes emotional",
            "AI stops working",
        ],
        "correct_answer": 1,
    },
    {
        "question": "Which of the following improves AI output most?",
        "options": [
            "Longer prompts",
            "Clear instructions",
            "Repeating the same prompt",
            "Using complex words",
        ],
        "correct_answer": 1,
    },
    {
        "question": "What is the key takeaway about AI?",
        "options": [
            "AI replaces human responsibility",
            "AI knows everything",
            "AI amplifies human capability",
            "AI works without human input",
        ],
        "correct_answer": 2,
    },
    {
        "question": "What is prompt iteration?",
        "options": [
            "Using the same prompt repeatedly",
            "Improving AI outputs step by step",
            "Writing very long prompts",
            "Using complex technical terms",
        ],
        "correct_answer": 1,
    },
]


class QuizError(ValueError):
    """An action that the current quiz state does not allow."""


class QuizAttempt:
    def __init__(self, questions: list[dict] | None = None,
                 pass_threshold: float = QUIZ_PASS_THRESHOLD) -> None:
        self.questions = questions if questions is not None else QUESTIONS
        self.pass_threshold = pass_threshold
        self.retake()

    def retake(self) -> None:
        """Start over: score 0, nothing answered, back to question 0."""
        self.current = 0
        self.selected: int | None = None
        self.submitted = False
        self.score = 0
        self.answered: list[dict] = []

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def is_complete(self) -> bool:
        return len(self.answered) == self.total

    def select(self, index: int) -> bool:
        """Set the pending answer. Ignored (returns False) once submitted."""
        if self.submitted:
            return False
        options = self.questions[self.current]["options"]
        if not 0 <= index < len(options):
            raise QuizError(f"Option {index} does not exist")
        self.selected = index
        return True

    def submit(self) -> dict:
        """Lock in the pending answer for the current question."""
        if self.submitted:
            raise QuizError("This question has already been submitted")
        if self.selected is None:
            raise QuizError("Select an answer first")

        correct = self.selected == self.questions[self.current]["correct_answer"]
        if correct:
            self.score += 1
        self.answered.append({"answer": self.selected, "correct": correct})
        self.submitted = True
        return {"correct": correct}

    def _show(self, index: int) -> None:
        # answered questions come back read-only, with their recorded answer
        self.current = index
        recorded = self.answered[index] if index < len(self.answered) else None
        self.selected = recorded["answer"] if recorded else None
        self.submitted = recorded is not None

    def next(self) -> None:
        if not self.submitted:
            raise QuizError("Submit the current question first")
        if self.current < self.total - 1:
            self._show(self.current + 1)

    def previous(self) -> None:
        if self.current > 0:
            self._show(self.current - 1)

    @property
    def percentage(self) -> float:
        return 100 * self.score / self.total if self.total else 0.0

    @property
    def passed(self) -> bool:
        return self.is_complete and self.percentage >= self.pass_threshold

    def state(self) -> dict:
        question = self.questions[self.current]
        return {
            "score": self.score,
            "total": self.total,
            "answered": len(self.answered),
            "current_question": self.current,
            "question": question["question"],
            "options": question["options"],
            "selected": self.selected,
            "submitted": self.submitted,
            "is_complete": self.is_complete,
            "percentage": round(self.percentage, 1),
            "passed": self.passed,
        }

    def review(self) -> list[dict]:
        """Per-question breakdown for the results screen."""
        rows = []
        for question, answer in zip(self.questions, self.answered):
            rows.append({
                "question": question["question"],
                "your_answer": question["options"][answer["answer"]],
                "correct_answer": question["options"][question["correct_answer"]],
                "correct": answer["correct"],
            })
        return rows


class QuizRegistry:
    """In-memory attempts keyed by (user_id, course_id)."""

    def __init__(self) -> None:
        self._attempts: dict[tuple[str, str], QuizAttempt] = {}
        self._lock = threading.Lock()

    def start(self, user_id: str, course_id: str) -> QuizAttempt:
        attempt = QuizAttempt()
        with self._lock:
            self._attempts[(user_id, course_id)] = attempt
        logger.info("Quiz started by %s for course %s", user_id, course_id)
        return attempt

    def get(self, user_id: str, course_id: str) -> QuizAttempt | None:
        with self._lock:
            return self._attempts.get((user_id, course_id))
