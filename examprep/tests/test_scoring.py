"""
Tests for the scoring engine.

Covers answer correctness for single-choice and multi-select questions,
partial credit, and aggregation of a whole exam into results.
"""

import itertools

import pytest

from examprep.common.auth.identity import UserIdentity
from examprep.domain.questions import Question
from examprep.exams.scoring import aggregate, answer_details, compute_partial_score, is_correct
from examprep.tests.conftest import make_multi, make_single


def test_multi_select_order_does_not_matter(multi_question):
    assert is_correct(multi_question, [0, 2])
    assert is_correct(multi_question, [2, 0])


def test_multi_select_requires_exact_set(multi_question):
    assert not is_correct(multi_question, [0])
    assert not is_correct(multi_question, [0, 1])
    assert not is_correct(multi_question, [0, 1, 2])
    assert not is_correct(multi_question, [])


def test_multi_select_rejects_bare_index(multi_question):
    assert not is_correct(multi_question, 0)


def test_multi_select_matches_deduplicated_sorted_set(multi_question):
    """Correct iff the distinct submitted indices are exactly the correct set."""
    for size in range(1, 4):
        for submission in itertools.product(range(5), repeat=size):
            expected = sorted(set(submission)) == sorted(multi_question.correct_answers)
            assert is_correct(multi_question, list(submission)) == expected, submission


def test_single_choice_bare_index_and_one_element_list_agree(single_question):
    for index in range(4):
        assert is_correct(single_question, [index]) == is_correct(single_question, index)
    assert is_correct(single_question, 0)
    assert not is_correct(single_question, 1)


def test_single_choice_uses_first_element_of_list(single_question):
    assert is_correct(single_question, [0, 3])
    assert not is_correct(single_question, [3, 0])


def test_question_without_correct_answers_is_never_correct():
    question = Question(question_id="empty", text="No answer key", options=("a", "b"), correct_answers=frozenset())
    assert not is_correct(question, 0)
    assert not is_correct(question, [0])
    assert compute_partial_score(question, [0]) == 0.0


def test_unusable_answers_are_incorrect(single_question):
    assert not is_correct(single_question, None)
    assert not is_correct(single_question, "0")
    assert not is_correct(single_question, True)


@pytest.mark.parametrize("submission,expected", [
    ([0, 2], 1.0),
    ([0], 0.5),
    ([0, 1], 0.0),
    ([1, 3], 0.0),
    ([0, 1, 2], 0.5),
])
def test_partial_score(multi_question, submission, expected):
    assert compute_partial_score(multi_question, submission) == pytest.approx(expected)


def test_partial_score_only_for_multi_select(single_question):
    assert compute_partial_score(single_question, 0) == 0.0


def test_answer_details_breakdown(multi_question):
    from examprep.exams.answers import MultiAnswer

    details = answer_details(multi_question, MultiAnswer((0, 1)))

    assert [o.index for o in details.selected_options] == [0, 1]
    assert [o.index for o in details.correct_options] == [0, 2]
    assert [o.index for o in details.incorrectly_selected] == [1]
    assert [o.index for o in details.missed_correct] == [2]
    assert details.selected_options[0].label == "A"
    assert details.selected_options[1].text == "SQS"


def _exam(questions, **kwargs):
    from examprep.exams.models import ExamSession

    return ExamSession.create(
        owner=UserIdentity("user-1"),
        questions=questions,
        provider="aws",
        certification="saa-c03",
        title="Scoring",
        **kwargs,
    )


def test_aggregate_counts_and_breakdowns():
    from examprep.exams.answers import MultiAnswer, SingleAnswer

    questions = [make_single("q1"), make_multi("q2"), make_single("q3", category="Storage")]
    exam = _exam(questions, passing_score=60)
    exam.answers["q1"] = SingleAnswer(0)
    exam.answers["q2"] = MultiAnswer((0, 1))
    exam.time_spent_minutes = 4

    results = aggregate(exam)

    assert results.total_questions == 3
    assert results.correct_answers == 1
    assert results.incorrect_answers == 1
    assert results.unanswered_questions == 1
    assert results.partially_correct == 0
    assert results.score == 33
    assert results.passed is False
    assert results.efficiency == 0.25
    assert results.category_stats["Compute"].to_dict() == {"total": 1, "correct": 1, "percentage": 100}
    assert results.category_stats["Storage"].to_dict() == {"total": 2, "correct": 0, "percentage": 0}
    assert set(results.difficulty_stats) == {"easy", "medium", "hard", "expert"}
    assert results.difficulty_stats["expert"].total == 0
    assert results.multi_select_stats.to_dict() == {"total": 1, "correct": 0, "incorrect": 1, "unanswered": 0}
    assert results.single_choice_stats.to_dict() == {"total": 2, "correct": 1, "incorrect": 0, "unanswered": 1}


def test_aggregate_partial_count_and_zero_time_efficiency():
    from examprep.exams.answers import MultiAnswer

    exam = _exam([make_multi("q2")])
    exam.answers["q2"] = MultiAnswer((0,))

    results = aggregate(exam)

    assert results.partially_correct == 1
    assert results.question_results[0].partial_score == pytest.approx(0.5)
    assert results.efficiency == 0


def test_aggregate_totals_always_add_up():
    from examprep.exams.answers import MultiAnswer, SingleAnswer

    questions = [make_single(f"s{i}", correct=i % 4) for i in range(6)] + [make_multi("m1"), make_multi("m2")]
    exam = _exam(questions)
    exam.answers.update({
        "s0": SingleAnswer(0), "s1": SingleAnswer(0), "s4": SingleAnswer(0),
        "m1": MultiAnswer((0, 2)), "m2": MultiAnswer((4,)),
    })

    results = aggregate(exam)

    assert results.correct_answers + results.incorrect_answers + results.unanswered_questions == 8
    assert results.answered_questions == 5
