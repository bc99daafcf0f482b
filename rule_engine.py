"""
Rule engine: composable graduation requirements evaluated against a student context.

A requirement tree is made of two node kinds. A Rule is an atomic check over the
context; a RuleGroup combines children with AND/OR. Evaluation walks the whole
tree (no short-circuit) so every failing rule can be reported.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Union


class ContextValidationError(ValueError):
    """Caller-correctable problem with the evaluation input."""


class RuleType(str, Enum):
    TOTAL_CREDIT = "TOTAL_CREDIT"
    MAJOR_BASIC_CREDIT = "MAJOR_BASIC_CREDIT"
    MAJOR_ADVANCED_CREDIT = "MAJOR_ADVANCED_CREDIT"
    LIBERAL_TOTAL_CREDIT = "LIBERAL_TOTAL_CREDIT"
    REQUIRED_COURSE = "REQUIRED_COURSE"
    EXTRA_CURRICULAR = "EXTRA_CURRICULAR"


class LogicType(str, Enum):
    AND = "AND"
    OR = "OR"


class Grade(str, Enum):
    A_PLUS = "A+"
    A = "A"
    B_PLUS = "B+"
    B = "B"
    C_PLUS = "C+"
    C = "C"
    D_PLUS = "D+"
    D = "D"
    F = "F"


class StudentType(str, Enum):
    FRESHMAN = "freshman"  # 신입생
    TRANSFER = "transfer"  # 편입생


STUDENT_TYPE_ALIASES = {
    "freshman": StudentType.FRESHMAN,
    "신입생": StudentType.FRESHMAN,
    "transfer": StudentType.TRANSFER,
    "편입생": StudentType.TRANSFER,
}

DEFAULT_CURRICULUM_YEAR = "2019"


def parse_grade(value: Any) -> Grade:
    if isinstance(value, Grade):
        return value
    try:
        return Grade(str(value).strip().upper())
    except ValueError:
        raise ContextValidationError(f"Unknown grade: {value!r}") from None


def parse_student_type(value: Any) -> StudentType:
    if value is None or value == "":
        return StudentType.FRESHMAN
    if isinstance(value, StudentType):
        return value
    student_type = STUDENT_TYPE_ALIASES.get(str(value).strip().lower())
    if student_type is None:
        raise ContextValidationError(f"Unknown student type: {value!r}")
    return student_type


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_enum(enum_type: type[Enum], value: Any, label: str) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        raise ContextValidationError(f"Unknown {label}: {value!r}") from None


def _check_course_codes(course_codes: Any) -> None:
    if course_codes is None or isinstance(course_codes, (str, bytes, Mapping)) or not isinstance(course_codes, Sequence):
        raise ContextValidationError("courseCodes is required and must be a list")
    for code in course_codes:
        if not isinstance(code, str):
            raise ContextValidationError(f"Course codes must be strings, got {code!r}")


@dataclass(frozen=True)
class Context:
    course_codes: tuple[str, ...]
    grades: Mapping[str, Grade] = field(default_factory=lambda: MappingProxyType({}))
    curriculum_year: str = DEFAULT_CURRICULUM_YEAR
    student_type: StudentType = StudentType.FRESHMAN
    extra_curricular_units: float = 0

    def __post_init__(self) -> None:
        _check_course_codes(self.course_codes)
        if not isinstance(self.grades, Mapping):
            raise ContextValidationError("grades must be a mapping of course code to grade")
        units = self.extra_curricular_units
        if not _is_number(units) or not math.isfinite(units) or units < 0:
            raise ContextValidationError(f"extraCurricularUnits must be a finite non-negative number, got {units!r}")
        object.__setattr__(self, "course_codes", tuple(self.course_codes))
        object.__setattr__(
            self, "grades", MappingProxyType({code: parse_grade(grade) for code, grade in self.grades.items()})
        )
        object.__setattr__(self, "curriculum_year", str(self.curriculum_year or DEFAULT_CURRICULUM_YEAR))
        object.__setattr__(self, "student_type", parse_student_type(self.student_type))

    @classmethod
    def create(
        cls,
        course_codes: Any,
        grades: Mapping[str, Any] | None = None,
        curriculum_year: Any = None,
        student_type: Any = None,
        extra_curricular_units: Any = None,
    ) -> "Context":
        _check_course_codes(course_codes)
        codes: list[str] = []
        for code in course_codes:
            code = code.strip()
            if code and code not in codes:
                codes.append(code)

        if grades is None:
            grades = {}
        if not isinstance(grades, Mapping):
            raise ContextValidationError("grades must be a mapping of course code to grade")

        return cls(
            course_codes=tuple(codes),
            grades={str(code).strip(): grade for code, grade in grades.items()},
            curriculum_year=curriculum_year,
            student_type=student_type,
            extra_curricular_units=0 if extra_curricular_units is None else extra_curricular_units,
        )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Context":
        """Build a context from the camelCase request body."""
        if not isinstance(payload, Mapping):
            raise ContextValidationError("Request body must be an object")
        return cls.create(
            course_codes=payload.get("courseCodes"),
            grades=payload.get("grades"),
            curriculum_year=payload.get("curriculumYear"),
            student_type=payload.get("studentType"),
            extra_curricular_units=payload.get("extraCurricularUnits"),
        )

    def is_failed(self, code: str) -> bool:
        return self.grades.get(code) is Grade.F

    def has_completed(self, code: str) -> bool:
        return code in self.course_codes and not self.is_failed(code)


@dataclass(frozen=True)
class Outcome:
    """What a rule evaluator reports.

    threshold is the value the check was actually judged against; it defaults
    to the rule's declared requirement when the evaluator leaves it unset.
    """

    passed: bool
    current: Any
    threshold: Any = None


Evaluator = Callable[[Context, Any], Awaitable[Outcome]]
MessageFormatter = Callable[[Outcome], str]


@dataclass(frozen=True)
class RuleResult:
    id: str
    type: RuleType
    passed: bool
    required: Any
    current: Any
    remaining: Any
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "passed": self.passed,
            "required": self.required,
            "current": self.current,
            "remaining": self.remaining,
            "message": self.message,
        }


@dataclass(frozen=True)
class GroupResult:
    id: str
    passed: bool
    logic: LogicType
    description: str
    results: tuple["ResultNode", ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "passed": self.passed,
            "logic": self.logic.value,
            "description": self.description,
            "results": [child.to_dict() for child in self.results],
        }


ResultNode = Union[RuleResult, GroupResult]


@dataclass(frozen=True)
class MissingItem:
    id: str
    type: RuleType
    message: str
    required: Any
    current: Any
    remaining: Any

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "message": self.message,
            "required": self.required,
            "current": self.current,
            "remaining": self.remaining,
        }


def compute_remaining(threshold: Any, current: Any) -> Any:
    if _is_number(threshold) and _is_number(current):
        return max(0, threshold - current)
    return 0


@dataclass(frozen=True)
class Rule:
    id: str
    type: RuleType
    required: Any
    evaluator: Evaluator = field(repr=False)
    message: MessageFormatter = field(repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", _parse_enum(RuleType, self.type, "rule type"))

    async def evaluate(self, context: Context) -> RuleResult:
        outcome = await self.evaluator(context, self.required)
        if outcome.threshold is None:
            outcome = replace(outcome, threshold=self.required)
        return RuleResult(
            id=self.id,
            type=self.type,
            passed=bool(outcome.passed),
            required=outcome.threshold,
            current=outcome.current,
            remaining=compute_remaining(outcome.threshold, outcome.current),
            message=self.message(outcome),
        )


@dataclass(frozen=True)
class RuleGroup:
    id: str
    logic: LogicType = LogicType.AND
    children: tuple["Node", ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "logic", _parse_enum(LogicType, self.logic, "logic"))
        object.__setattr__(self, "children", tuple(self.children))

    async def evaluate(self, context: Context) -> GroupResult:
        # Every child runs even once the outcome is known: failing children
        # feed the missing-items report.
        results = tuple(await asyncio.gather(*(child.evaluate(context) for child in self.children)))
        if self.logic is LogicType.AND:
            passed = all(result.passed for result in results)
        else:
            passed = any(result.passed for result in results)
        return GroupResult(
            id=self.id,
            passed=passed,
            logic=self.logic,
            description=self.description,
            results=results,
        )


Node = Union[Rule, RuleGroup]


def extract_missing_items(result: ResultNode, items: list[MissingItem] | None = None) -> list[MissingItem]:
    """Flatten failed rule results in tree order; groups add nothing themselves."""
    if items is None:
        items = []
    if getattr(result, "type", None) is not None:
        if not result.passed:
            items.append(
                MissingItem(
                    id=result.id,
                    type=result.type,
                    message=result.message,
                    required=result.required,
                    current=result.current,
                    remaining=result.remaining or 0,
                )
            )
        return items
    for child in getattr(result, "results", ()):
        extract_missing_items(child, items)
    return items


STATUS_MARKS = ("✅", "❌")


def format_result(result: ResultNode, indent: int = 0, marks: tuple[str, str] = STATUS_MARKS) -> str:
    prefix = "  " * indent
    status = marks[0] if result.passed else marks[1]
    if isinstance(result, RuleResult):
        return f"{prefix}{status} [{result.type.value}] {result.message}\n"
    output = f"{prefix}{status} [GROUP: {result.id}] {result.description}\n"
    for child in result.results:
        output += format_result(child, indent + 1, marks)
    return output
