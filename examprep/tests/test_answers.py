"""
Tests for answer normalization.
"""

import pytest

from examprep.common.exceptions import ValidationError
from examprep.exams.answers import (
    MultiAnswer,
    SingleAnswer,
    answer_from_storage,
    answer_to_storage,
    as_answer,
    normalize_answer,
)


def test_single_choice_accepts_index_and_one_element_list(single_question):
    assert normalize_answer(single_question, 2) == SingleAnswer(2)
    assert normalize_answer(single_question, [2]) == SingleAnswer(2)


@pytest.mark.parametrize("value", [4, -1, [0, 1], [], "1", None, True, 1.0])
def test_single_choice_rejects_malformed(single_question, value):
    with pytest.raises(ValidationError) as exc_info:
        normalize_answer(single_question, value)
    assert exc_info.value.errors["question_id"] == "q1"
    assert "answer" in exc_info.value.errors


def test_multi_select_sorts_and_deduplicates(multi_question):
    answer = normalize_answer(multi_question, [2, 0, 2])
    assert answer == MultiAnswer((0, 2))


@pytest.mark.parametrize("value", [0, [], [0, 5], [0, 1, 2], ["0"], [True, 2], None])
def test_multi_select_rejects_malformed(multi_question, value):
    with pytest.raises(ValidationError):
        normalize_answer(multi_question, value)


def test_multi_select_allows_fewer_than_expected(multi_question):
    assert normalize_answer(multi_question, [3]) == MultiAnswer((3,))


def test_raw_interpretation():
    assert as_answer(1) == SingleAnswer(1)
    assert as_answer([3, 1, 3]) == MultiAnswer((3, 1))
    assert as_answer({2, 1}) == MultiAnswer((1, 2))
    assert as_answer(False) is None
    assert as_answer("x") is None


def test_storage_form():
    single = SingleAnswer(1)
    multi = MultiAnswer((0, 2))
    assert answer_to_storage(single) == {"kind": "single", "indices": [1]}
    assert answer_to_storage(multi) == {"kind": "multi", "indices": [0, 2]}
    assert answer_from_storage("single", [1]) == single
    assert answer_from_storage("multi", [0, 2]) == multi
