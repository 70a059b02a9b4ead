"""
Tests for the exam session state machine and its derived views.
"""

import datetime

import pytest

from examprep.common.auth.identity import AnonymousIdentity, UserIdentity
from examprep.common.exceptions import InvalidTransitionError, ValidationError
from examprep.exams.models import ExamMode, ExamSession, ExamSettings, ExamStatus
from examprep.tests.conftest import FrozenClock, make_multi, make_single

START = datetime.datetime(2024, 5, 1, 9, 0, 0)


def new_exam(questions=None, **kwargs):
    kwargs.setdefault("passing_score", 70)
    return ExamSession.create(
        owner=kwargs.pop("owner", UserIdentity("user-1")),
        questions=questions if questions is not None else [make_single("q1"), make_multi("q2")],
        provider="aws",
        certification="saa-c03",
        title="Practice",
        now=START,
        **kwargs,
    )


def test_create_lands_in_not_started():
    exam = new_exam()
    assert exam.status == ExamStatus.NOT_STARTED
    assert exam.started_at is None
    assert exam.total_questions == 2


def test_create_requires_questions():
    with pytest.raises(ValidationError):
        new_exam(questions=[])


def test_full_marks_scenario():
    exam = new_exam()
    exam.start(START)
    exam.submit_answer("q1", 0, START)
    exam.submit_answer("q2", [2, 0], START)

    results = exam.complete(START + datetime.timedelta(minutes=5))

    assert results.score == 100
    assert results.passed is True
    assert exam.status == ExamStatus.COMPLETED
    assert exam.score == 100
    assert exam.time_spent_minutes == 5


def test_all_wrong_scenario():
    exam = new_exam()
    exam.start(START)
    exam.submit_answer("q1", 1, START)
    exam.submit_answer("q2", [0], START)

    results = exam.complete(START)

    assert results.score == 0
    assert results.passed is False
    assert results.unanswered_questions == 0
    assert results.incorrect_answers == 2


def test_complete_twice_fails_and_keeps_result():
    exam = new_exam()
    exam.start(START)
    exam.submit_answer("q1", 0, START)
    exam.complete(START + datetime.timedelta(minutes=1))
    score, completed_at = exam.score, exam.completed_at

    with pytest.raises(InvalidTransitionError) as exc_info:
        exam.complete(START + datetime.timedelta(minutes=2))

    assert exc_info.value.reason == "already_completed"
    assert exam.score == score
    assert exam.completed_at == completed_at


def test_complete_requires_start():
    exam = new_exam()
    with pytest.raises(InvalidTransitionError) as exc_info:
        exam.complete(START)
    assert exc_info.value.reason == "not_started"


def test_complete_with_unanswered_questions():
    exam = new_exam()
    exam.start(START)
    exam.submit_answer("q1", 0, START)

    results = exam.complete(START)

    assert results.correct_answers == 1
    assert results.unanswered_questions == 1
    assert results.score == 50
    assert results.correct_answers + results.incorrect_answers + results.unanswered_questions == results.total_questions


def test_start_only_from_not_started():
    exam = new_exam()
    exam.start(START)
    with pytest.raises(InvalidTransitionError) as exc_info:
        exam.start(START)
    assert exc_info.value.reason == "not_startable"
    assert exc_info.value.current_status == "in_progress"


def test_pause_and_resume():
    exam = new_exam()
    with pytest.raises(InvalidTransitionError):
        exam.pause(START)
    exam.start(START)
    exam.pause(START)
    assert exam.status == ExamStatus.PAUSED
    with pytest.raises(InvalidTransitionError) as exc_info:
        exam.submit_answer("q1", 0, START)
    assert exc_info.value.reason == "not_in_progress"
    exam.resume(START + datetime.timedelta(minutes=10))
    assert exam.status == ExamStatus.IN_PROGRESS


def test_resume_requires_paused():
    exam = new_exam()
    exam.start(START)
    with pytest.raises(InvalidTransitionError) as exc_info:
        exam.resume(START)
    assert exc_info.value.reason == "not_paused"


def test_resume_after_time_ran_out_fails():
    exam = new_exam(time_limit_minutes=1)
    exam.start(START)
    exam.pause(START)
    with pytest.raises(InvalidTransitionError) as exc_info:
        exam.resume(START + datetime.timedelta(minutes=1))
    assert exc_info.value.reason == "time_expired"
    assert exam.status == ExamStatus.PAUSED


def test_cancel_from_any_non_terminal_status():
    for prepare in (lambda e: None, lambda e: e.start(START), lambda e: (e.start(START), e.pause(START))):
        exam = new_exam()
        prepare(exam)
        exam.cancel(START)
        assert exam.status == ExamStatus.CANCELLED
        with pytest.raises(InvalidTransitionError) as exc_info:
            exam.cancel(START)
        assert exc_info.value.reason == "terminal"


def test_resubmission_replaces_answer():
    exam = new_exam()
    exam.start(START)
    exam.submit_answer("q1", 1, START)
    outcome = exam.submit_answer("q1", 0, START)

    assert outcome.is_correct is True
    assert len(exam.answers) == 1
    assert exam.answers["q1"].to_value() == 0


def test_submit_unknown_question():
    exam = new_exam()
    exam.start(START)
    with pytest.raises(ValidationError):
        exam.submit_answer("nope", 0, START)
    assert exam.answers == {}


def test_submit_reports_partial_score():
    exam = new_exam()
    exam.start(START)
    outcome = exam.submit_answer("q2", [0], START)
    assert outcome.is_correct is False
    assert outcome.partial_score == pytest.approx(0.5)


def test_time_expiry_is_derived():
    clock = FrozenClock(START)
    exam = new_exam(time_limit_minutes=1)
    assert exam.is_time_expired(clock()) is False
    assert exam.time_remaining_seconds(clock()) == 60

    exam.start(clock())
    clock.advance(seconds=30)
    assert exam.time_remaining_seconds(clock()) == 30
    assert exam.is_time_expired(clock()) is False

    clock.advance(seconds=31)
    assert exam.is_time_expired(clock()) is True
    assert exam.status == ExamStatus.IN_PROGRESS
    assert exam.time_remaining_seconds(clock()) == 0


def test_pause_does_not_stop_the_clock():
    exam = new_exam(time_limit_minutes=10)
    exam.start(START)
    exam.pause(START)
    assert exam.time_remaining_seconds(START + datetime.timedelta(minutes=4)) == 6 * 60


def test_time_spent_is_capped_at_limit():
    exam = new_exam(time_limit_minutes=1)
    exam.start(START)
    exam.complete(START + datetime.timedelta(minutes=30))
    assert exam.time_spent_minutes == 1
    assert exam.time_remaining_seconds(START + datetime.timedelta(minutes=30)) == 0


def test_time_spent_rounds_half_up():
    exam = new_exam()
    exam.start(START)
    exam.complete(START + datetime.timedelta(seconds=150))
    assert exam.time_spent_minutes == 3


def test_ownership_matches_kind_and_value():
    exam = new_exam(owner=AnonymousIdentity("token-abcdef"))
    assert exam.belongs_to(AnonymousIdentity("token-abcdef"))
    assert not exam.belongs_to(AnonymousIdentity("token-other1"))
    assert not exam.belongs_to(UserIdentity("token-abcdef"))
    assert not exam.belongs_to(None)


def test_settings_defaults_by_mode():
    practice = ExamSettings.for_mode(ExamMode.PRACTICE)
    timed = ExamSettings.for_mode(ExamMode.TIMED)

    assert practice.randomize_questions is True
    assert practice.randomize_answers is False
    assert practice.show_explanations and practice.allow_pause and practice.allow_review
    assert not (timed.show_explanations or timed.allow_pause or timed.allow_review)


def test_settings_overrides_win():
    settings = ExamSettings.for_mode(
        ExamMode.REALISTIC, {"randomize_questions": False, "show_explanations": True, "unknown": True}
    )
    assert settings.randomize_questions is False
    assert settings.show_explanations is True
    assert ExamSettings.from_dict(settings.to_dict()) == settings


def test_progress_counts():
    exam = new_exam()
    exam.start(START)
    exam.submit_answer("q1", 0, START)

    progress = exam.progress()

    assert progress["answered_questions"] == 1
    assert progress["remaining_questions"] == 1
    assert progress["progress_percentage"] == 50
    assert progress["accuracy_percentage"] == 100
    assert progress["single_choice_progress"] == {"total": 1, "answered": 1, "correct": 1}
    assert progress["multi_select_progress"] == {"total": 1, "answered": 0, "correct": 0}
    assert progress["difficulty_progress"]["easy"]["correct"] == 1


def test_statistics_and_review():
    exam = new_exam(questions=[make_single("q1", explanation="Because."), make_multi("q2")])
    exam.start(START)
    exam.submit_answer("q1", 0, START)
    exam.submit_answer("q2", [0, 1], START)
    exam.complete(START + datetime.timedelta(minutes=4))

    stats = exam.statistics()
    review = exam.review()

    assert stats["performance"]["correct_answers"] == 1
    assert stats["time_analysis"]["average_time_per_question"] == 120
    assert stats["time_analysis"]["time_utilization"] == 3
    assert stats["breakdown"]["by_question_type"]["multi_select"]["incorrect"] == 1
    by_id = {item["question_id"]: item for item in review}
    assert by_id["q1"]["explanation"] == "Because."
    assert by_id["q2"]["explanation"] == "No explanation available"
    assert by_id["q2"]["correct_answers"] == [0, 2]
    assert by_id["q2"]["submitted_answer"] == [0, 1]


def test_to_dict_hides_answer_key_until_completed():
    exam = new_exam(mode=ExamMode.TIMED, settings=ExamSettings.for_mode(ExamMode.TIMED))
    exam.start(START)
    data = exam.to_dict(START)
    assert all("correct_answers" not in q for q in data["questions"])

    exam.complete(START)
    data = exam.to_dict(START)
    assert all("correct_answers" in q for q in data["questions"])
    assert data["status"] == "completed"
