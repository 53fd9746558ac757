from datetime import date, timedelta

from src.ccat.domain.models import PracticeResult, TestResult, UserProgress
from src.shared.telemetry import Telemetry


class ProgressTracker:
    """
    Folds finished sessions into the user's aggregate progress.
    Mutates the given UserProgress in place; persistence is the caller's job.
    """

    def __init__(self) -> None:
        self.telemetry = Telemetry("ProgressTracker")

    def record_test(
        self, progress: UserProgress, result: TestResult, today: date | None = None
    ) -> UserProgress:
        today = today or date.today()

        progress.total_tests_taken += 1
        progress.total_questions_answered += result.total_questions
        progress.total_correct_answers += result.score
        if result.percentage_score > progress.best_score:
            progress.best_score = result.percentage_score

        self._update_weekly(progress, result.total_questions, today)
        self._update_streak(progress, today)
        progress.test_history.append(result)

        self.telemetry.log_info(
            "Test recorded",
            percentage=round(result.percentage_score, 1),
            streak=progress.current_streak,
        )
        return progress

    def record_practice(
        self, progress: UserProgress, result: PracticeResult, today: date | None = None
    ) -> UserProgress:
        today = today or date.today()

        progress.total_questions_answered += result.total_questions
        progress.total_correct_answers += result.score

        self._update_weekly(progress, result.total_questions, today)
        self._update_streak(progress, today)
        progress.practice_history.append(result)

        self.telemetry.log_info(
            "Practice recorded",
            type=result.question_type.value,
            percentage=round(result.percentage_score, 1),
        )
        return progress

    @staticmethod
    def _update_streak(progress: UserProgress, today: date) -> None:
        last = progress.last_active_date

        if last == today and progress.current_streak > 0:
            pass
        elif last == today - timedelta(days=1):
            progress.current_streak += 1
        else:
            progress.current_streak = 1

        progress.longest_streak = max(progress.longest_streak, progress.current_streak)
        progress.last_active_date = today

    @staticmethod
    def _update_weekly(progress: UserProgress, answered: int, today: date) -> None:
        """Must run before the last-active date moves to today."""
        last = progress.last_active_date
        same_week = (
            last is not None
            and last.isocalendar()[:2] == today.isocalendar()[:2]
        )
        if same_week:
            progress.questions_this_week += answered
        else:
            progress.questions_this_week = answered
