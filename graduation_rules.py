from __future__ import annotations

import logging
from typing import Any, Callable

from catalog import CourseAttributes, CourseRecordProvider, RequiredCourse
from rule_engine import (
    Context,
    Evaluator,
    LogicType,
    MessageFormatter,
    Outcome,
    Rule,
    RuleGroup,
    RuleType,
    StudentType,
)

logger = logging.getLogger(__name__)

TOTAL_CREDIT_REQUIRED = 130
MAJOR_BASIC_CREDIT_REQUIRED = 51
MAJOR_ADVANCED_CREDIT_REQUIRED = 21
LIBERAL_TOTAL_CREDIT_REQUIRED = 33
EXTRA_CURRICULAR_REQUIRED = 70
TRANSFER_EXTRA_CURRICULAR_REQUIRED = 35


def format_number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def credit_evaluator(provider: CourseRecordProvider, counts: Callable[[CourseAttributes], bool]) -> Evaluator:
    """Sum credits of taken courses matching `counts`; only an F grade excludes a course."""

    async def evaluate(context: Context, required: Any) -> Outcome:
        courses = await provider.get_by_codes(context.course_codes)
        current = sum(course.credit for course in courses if counts(course) and not context.is_failed(course.code))
        return Outcome(passed=current >= required, current=current)

    return evaluate


def credit_message(label: str) -> MessageFormatter:
    def message(outcome: Outcome) -> str:
        current = format_number(outcome.current)
        required = format_number(outcome.threshold)
        if outcome.passed:
            return f"{label} 충족 ({current}/{required})"
        shortfall = format_number(outcome.threshold - outcome.current)
        return f"{label} 부족 ({current}/{required}, 부족: {shortfall}학점)"

    return message


def total_credit_rule(provider: CourseRecordProvider) -> Rule:
    return Rule(
        id="TOTAL_130",
        type=RuleType.TOTAL_CREDIT,
        required=TOTAL_CREDIT_REQUIRED,
        evaluator=credit_evaluator(provider, lambda course: True),
        message=credit_message("총 학점"),
    )


def major_basic_rule(provider: CourseRecordProvider) -> Rule:
    return Rule(
        id="MAJOR_BASIC_51",
        type=RuleType.MAJOR_BASIC_CREDIT,
        required=MAJOR_BASIC_CREDIT_REQUIRED,
        evaluator=credit_evaluator(provider, lambda course: course.is_basic_major),
        message=credit_message("기본전공"),
    )


def major_advanced_rule(provider: CourseRecordProvider) -> Rule:
    return Rule(
        id="MAJOR_ADV_21",
        type=RuleType.MAJOR_ADVANCED_CREDIT,
        required=MAJOR_ADVANCED_CREDIT_REQUIRED,
        evaluator=credit_evaluator(provider, lambda course: course.is_advanced_major),
        message=credit_message("심화전공"),
    )


def liberal_total_rule(provider: CourseRecordProvider) -> Rule:
    return Rule(
        id="LIBERAL_TOTAL_33",
        type=RuleType.LIBERAL_TOTAL_CREDIT,
        required=LIBERAL_TOTAL_CREDIT_REQUIRED,
        evaluator=credit_evaluator(provider, lambda course: course.is_liberal),
        message=credit_message("교양 총 학점"),
    )


def required_course_rule(code: str, name: str = "") -> Rule:
    display_name = name or code

    async def evaluate(context: Context, required: Any) -> Outcome:
        passed = context.has_completed(required)
        return Outcome(passed=passed, current=1 if passed else 0)

    def message(outcome: Outcome) -> str:
        return f"{display_name} 이수 완료" if outcome.passed else f"{display_name} 미이수"

    return Rule(
        id=f"REQ_{code}",
        type=RuleType.REQUIRED_COURSE,
        required=code,
        evaluator=evaluate,
        message=message,
    )


def extra_curricular_threshold(context: Context, required: Any) -> Any:
    if context.student_type is StudentType.TRANSFER:
        return TRANSFER_EXTRA_CURRICULAR_REQUIRED
    return required


def extra_curricular_rule() -> Rule:
    async def evaluate(context: Context, required: Any) -> Outcome:
        threshold = extra_curricular_threshold(context, required)
        current = context.extra_curricular_units
        return Outcome(passed=current >= threshold, current=current, threshold=threshold)

    def message(outcome: Outcome) -> str:
        current = format_number(outcome.current)
        threshold = format_number(outcome.threshold)
        if outcome.passed:
            return f"비교과과정 충족 ({current}/{threshold} 유닛)"
        shortfall = format_number(outcome.threshold - outcome.current)
        return f"비교과과정 부족 ({current}/{threshold} 유닛, 부족: {shortfall} 유닛)"

    return Rule(
        id="EXTRA_CURRICULAR_70",
        type=RuleType.EXTRA_CURRICULAR,
        required=EXTRA_CURRICULAR_REQUIRED,
        evaluator=evaluate,
        message=message,
    )


def major_group(provider: CourseRecordProvider) -> RuleGroup:
    return RuleGroup(
        id="MAJOR",
        logic=LogicType.AND,
        description="전공 이수 요건",
        children=(major_basic_rule(provider), major_advanced_rule(provider)),
    )


def required_basic_liberal_group() -> RuleGroup:
    # Passes vacuously until the course master flags the 기초교양 mandatory courses.
    # TODO: build one required_course_rule per 기초교양 course once that column exists.
    return RuleGroup(
        id="REQUIRED_BASIC_LIBERAL",
        logic=LogicType.AND,
        description="필수 기초교양",
        children=(),
    )


def liberal_group(provider: CourseRecordProvider) -> RuleGroup:
    return RuleGroup(
        id="LIBERAL",
        logic=LogicType.AND,
        description="교양 이수 요건",
        children=(liberal_total_rule(provider), required_basic_liberal_group()),
    )


def _dedupe_required(courses: list[RequiredCourse]) -> list[RequiredCourse]:
    by_code: dict[str, RequiredCourse] = {}
    for course in courses:
        if course.code and course.code not in by_code:
            by_code[course.code] = course
    return [by_code[code] for code in sorted(by_code)]


async def required_course_group(provider: CourseRecordProvider) -> RuleGroup:
    required_courses = _dedupe_required(list(await provider.get_required_courses()))
    return RuleGroup(
        id="REQUIRED_COURSES",
        logic=LogicType.AND,
        description="필수 교과목",
        children=tuple(required_course_rule(course.code, course.name) for course in required_courses),
    )


async def build_graduation_tree(provider: CourseRecordProvider) -> RuleGroup:
    """Computer science graduation policy as a requirement tree."""
    required_group = await required_course_group(provider)
    logger.info("Built graduation rule tree with %d required courses", len(required_group.children))
    return RuleGroup(
        id="ROOT",
        logic=LogicType.AND,
        description="컴퓨터공학과 졸업요건",
        children=(
            total_credit_rule(provider),
            liberal_group(provider),
            major_group(provider),
            required_group,
            extra_curricular_rule(),
        ),
    )
