"""
Submitted Answers

Answers are modelled as a tagged union: ``SingleAnswer`` for single-choice and
true/false questions, ``MultiAnswer`` for multi-select questions. Raw client
values (an index or a list of indices) are normalized once, here, against the
question they answer; everything downstream works with the union only.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from examprep.common.exceptions import ValidationError
from examprep.common.logger import app_logger
from examprep.domain.questions.model import Question

logger = app_logger.getChild("exams.answers")


@dataclass(frozen=True)
class SingleAnswer:
    """One selected option."""
    index: int

    kind = "single"

    @property
    def indices(self) -> Tuple[int, ...]:
        return (self.index,)

    def to_value(self) -> int:
        return self.index


@dataclass(frozen=True)
class MultiAnswer:
    """A set of selected options, deduplicated, in submission order."""
    indices: Tuple[int, ...]

    kind = "multi"

    def to_value(self) -> List[int]:
        return list(self.indices)


Answer = Union[SingleAnswer, MultiAnswer]
RawAnswer = Union[int, Sequence[int]]


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _dedupe(values: Sequence[int]) -> Tuple[int, ...]:
    return tuple(dict.fromkeys(values))


def as_answer(value: Any) -> Optional[Answer]:
    """
    Interpret a raw value without validating it against a question.

    Integers become ``SingleAnswer``; lists, tuples and sets of integers become
    ``MultiAnswer`` (duplicates dropped, first occurrence kept). Anything else,
    including ``None``, yields None.
    """
    if isinstance(value, (SingleAnswer, MultiAnswer)):
        return value
    if _is_index(value):
        return SingleAnswer(value)
    if isinstance(value, (set, frozenset)):
        value = sorted(value)
    if isinstance(value, (list, tuple)) and all(_is_index(item) for item in value):
        return MultiAnswer(_dedupe(value))
    return None


def normalize_answer(question: Question, value: Any) -> Answer:
    """
    Validate a raw submission against ``question`` and normalize it.

    Multi-select questions take a non-empty list of in-range indices with at
    most ``expected_answers`` distinct entries; repeated indices are dropped
    and logged. Other questions take a bare index or a one-element list.

    Args:
        question: The question being answered
        value: Raw submitted value

    Returns:
        The normalized answer

    Raises:
        ValidationError: If the submission has the wrong shape, an index out of
            range or too many selections
    """
    option_count = len(question.options)

    def invalid(message: str) -> ValidationError:
        return ValidationError(message, errors={"answer": message, "question_id": question.question_id})

    if isinstance(value, (SingleAnswer, MultiAnswer)):
        value = value.to_value()

    if question.is_multi_select:
        if not isinstance(value, (list, tuple)):
            raise invalid("Multiple answer questions require a list of option indices")
        if not value:
            raise invalid("At least one option must be selected")
        if not all(_is_index(item) for item in value):
            raise invalid("Option indices must be integers")
        indices = _dedupe(value)
        if len(indices) != len(value):
            logger.warning(
                f"Duplicate option indices submitted for question {question.question_id}: {list(value)}"
            )
        if len(indices) > question.expected_answers:
            raise invalid(
                f"Too many options selected: expected at most {question.expected_answers}, got {len(indices)}"
            )
        out_of_range = [i for i in indices if not 0 <= i < option_count]
        if out_of_range:
            raise invalid(f"Option indices out of range: {out_of_range}")
        return MultiAnswer(tuple(sorted(indices)))

    if isinstance(value, (list, tuple)):
        if len(value) != 1:
            raise invalid("Single choice questions accept exactly one option")
        value = value[0]
    if not _is_index(value):
        raise invalid("Option index must be an integer")
    if not 0 <= value < option_count:
        raise invalid(f"Option index out of range: {value}")
    return SingleAnswer(value)


def answer_to_storage(answer: Answer) -> Dict[str, Any]:
    """Storage form of an answer (``kind`` plus selected indices)."""
    return {"kind": answer.kind, "indices": list(answer.indices)}


def answer_from_storage(kind: str, indices: Sequence[int]) -> Answer:
    """Rebuild an answer from its storage form."""
    if kind == SingleAnswer.kind:
        return SingleAnswer(int(indices[0]))
    return MultiAnswer(tuple(int(i) for i in indices))
