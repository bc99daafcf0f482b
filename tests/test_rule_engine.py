import asyncio
import itertools
import json

import pytest

from rule_engine import (
    Context,
    ContextValidationError,
    Grade,
    LogicType,
    Outcome,
    Rule,
    RuleGroup,
    RuleResult,
    RuleType,
    StudentType,
    extract_missing_items,
    format_result,
)


def stub_rule(rule_id: str, passed: bool, calls: list[str] | None = None) -> Rule:
    async def evaluate(context: Context, required: int) -> Outcome:
        if calls is not None:
            calls.append(rule_id)
        return Outcome(passed=passed, current=required if passed else 0)

    return Rule(
        id=rule_id,
        type=RuleType.TOTAL_CREDIT,
        required=10,
        evaluator=evaluate,
        message=lambda outcome: f"{rule_id} {'ok' if outcome.passed else 'short'}",
    )


def credit_rule(required: int, current: int) -> Rule:
    async def evaluate(context: Context, threshold: int) -> Outcome:
        return Outcome(passed=current >= threshold, current=current)

    return Rule(
        id="TOTAL",
        type=RuleType.TOTAL_CREDIT,
        required=required,
        evaluator=evaluate,
        message=lambda outcome: f"{outcome.current}/{outcome.threshold}",
    )


def empty_context() -> Context:
    return Context.create(course_codes=[])


def test_group_logic_matches_all_and_any_for_every_combination() -> None:
    for size in range(1, 4):
        for values in itertools.product([True, False], repeat=size):
            children = [stub_rule(f"R{i}", value) for i, value in enumerate(values)]
            and_result = asyncio.run(RuleGroup(id="G", logic=LogicType.AND, children=children).evaluate(empty_context()))
            or_result = asyncio.run(RuleGroup(id="G", logic=LogicType.OR, children=children).evaluate(empty_context()))
            assert and_result.passed is all(values)
            assert or_result.passed is any(values)


def test_group_evaluates_every_child_after_first_failure() -> None:
    calls: list[str] = []
    group = RuleGroup(
        id="G",
        logic=LogicType.AND,
        children=[stub_rule("FIRST", False, calls), stub_rule("SECOND", True, calls), stub_rule("THIRD", False, calls)],
    )

    result = asyncio.run(group.evaluate(empty_context()))

    assert sorted(calls) == ["FIRST", "SECOND", "THIRD"]
    assert [child.id for child in result.results] == ["FIRST", "SECOND", "THIRD"]


def test_or_group_evaluates_every_child_after_first_success() -> None:
    calls: list[str] = []
    group = RuleGroup(id="G", logic=LogicType.OR, children=[stub_rule("A", True, calls), stub_rule("B", False, calls)])

    result = asyncio.run(group.evaluate(empty_context()))

    assert result.passed is True
    assert len(calls) == 2


def test_empty_groups_follow_vacuous_truth() -> None:
    assert asyncio.run(RuleGroup(id="E", logic=LogicType.AND).evaluate(empty_context())).passed is True
    assert asyncio.run(RuleGroup(id="E", logic=LogicType.OR).evaluate(empty_context())).passed is False


def test_remaining_is_never_negative() -> None:
    short = asyncio.run(credit_rule(130, 100).evaluate(empty_context()))
    over = asyncio.run(credit_rule(130, 140).evaluate(empty_context()))

    assert short.remaining == 30
    assert short.passed is False
    assert over.remaining == 0
    assert over.passed is True


def test_non_numeric_requirement_has_zero_remaining() -> None:
    async def evaluate(context: Context, code: str) -> Outcome:
        return Outcome(passed=False, current=0)

    rule = Rule(id="REQ_X", type=RuleType.REQUIRED_COURSE, required="X101", evaluator=evaluate, message=lambda o: "missing")
    result = asyncio.run(rule.evaluate(empty_context()))

    assert result.required == "X101"
    assert result.remaining == 0


def test_missing_items_are_flattened_in_tree_order() -> None:
    tree = RuleGroup(
        id="ROOT",
        children=[
            stub_rule("A", False),
            RuleGroup(id="INNER", children=[stub_rule("B", True), stub_rule("C", False)]),
            RuleGroup(id="EMPTY"),
        ],
    )

    result = asyncio.run(tree.evaluate(empty_context()))
    items = extract_missing_items(result)

    assert [item.id for item in items] == ["A", "C"]
    assert items[0].message == "A short"
    assert items[0].remaining == 10


def test_repeated_evaluation_is_identical() -> None:
    tree = RuleGroup(id="ROOT", children=[stub_rule("A", False), RuleGroup(id="INNER", children=[stub_rule("B", True)])])
    context = Context.create(course_codes=["CS101"], grades={"CS101": "B"})

    first = asyncio.run(tree.evaluate(context))
    second = asyncio.run(tree.evaluate(context))

    assert json.dumps(first.to_dict(), ensure_ascii=False) == json.dumps(second.to_dict(), ensure_ascii=False)
    assert extract_missing_items(first) == extract_missing_items(second)


def test_format_result_indents_groups_and_rules() -> None:
    tree = RuleGroup(id="ROOT", description="Graduation", children=[stub_rule("A", True), stub_rule("B", False)])

    text = format_result(asyncio.run(tree.evaluate(empty_context())))

    assert text.splitlines() == [
        "❌ [GROUP: ROOT] Graduation",
        "  ✅ [TOTAL_CREDIT] A ok",
        "  ❌ [TOTAL_CREDIT] B short",
    ]


def test_context_from_payload_parses_boundary_values() -> None:
    context = Context.from_payload(
        {
            "courseCodes": ["CS101", " CS204 ", "CS101"],
            "grades": {"CS101": "a+", "CS204": "F"},
            "curriculumYear": 2018,
            "studentType": "편입생",
            "extraCurricularUnits": 12,
        }
    )

    assert context.course_codes == ("CS101", "CS204")
    assert context.grades["CS101"] is Grade.A_PLUS
    assert context.curriculum_year == "2018"
    assert context.student_type is StudentType.TRANSFER
    assert context.is_failed("CS204") is True
    assert context.has_completed("CS101") is True
    assert context.has_completed("CS999") is False


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"courseCodes": None},
        {"courseCodes": "CS101"},
        {"courseCodes": {"CS101": True}},
        {"courseCodes": [101]},
        {"courseCodes": [], "grades": {"CS101": "E"}},
        {"courseCodes": [], "studentType": "alumni"},
        {"courseCodes": [], "extraCurricularUnits": "lots"},
        {"courseCodes": [], "extraCurricularUnits": -1},
        {"courseCodes": [], "extraCurricularUnits": float("nan")},
        {"courseCodes": [], "extraCurricularUnits": float("inf")},
    ],
)
def test_context_rejects_malformed_payloads(payload: dict) -> None:
    with pytest.raises(ContextValidationError):
        Context.from_payload(payload)


def test_rule_result_to_dict_uses_plain_values() -> None:
    result = RuleResult(
        id="TOTAL_130",
        type=RuleType.TOTAL_CREDIT,
        passed=False,
        required=130,
        current=3,
        remaining=127,
        message="short",
    )

    assert result.to_dict()["type"] == "TOTAL_CREDIT"


def test_context_constructor_validates_like_create() -> None:
    context = Context(course_codes=["CS101"], grades={"CS101": "b+"}, student_type="편입생")

    assert context.course_codes == ("CS101",)
    assert context.grades["CS101"] is Grade.B_PLUS
    assert context.student_type is StudentType.TRANSFER
    for bad in (
        {"course_codes": None},
        {"course_codes": "CS101"},
        {"course_codes": (101,)},
        {"course_codes": (), "grades": ["CS101"]},
        {"course_codes": (), "student_type": "alumni"},
        {"course_codes": (), "extra_curricular_units": float("nan")},
    ):
        with pytest.raises(ContextValidationError):
            Context(**bad)


def test_rule_coerces_type_from_string() -> None:
    async def evaluate(context: Context, required: int) -> Outcome:
        return Outcome(passed=True, current=required)

    rule = Rule(id="T", type="TOTAL_CREDIT", required=1, evaluator=evaluate, message=lambda o: "ok")
    result = asyncio.run(rule.evaluate(empty_context()))

    assert rule.type is RuleType.TOTAL_CREDIT
    assert result.to_dict()["type"] == "TOTAL_CREDIT"


def test_unknown_rule_type_and_logic_are_rejected() -> None:
    async def evaluate(context: Context, required: int) -> Outcome:
        return Outcome(passed=True, current=0)

    with pytest.raises(ContextValidationError):
        Rule(id="X", type="NOPE", required=1, evaluator=evaluate, message=lambda o: "")
    with pytest.raises(ContextValidationError):
        RuleGroup(id="G", logic="XOR")
    assert RuleGroup(id="G", logic="OR").logic is LogicType.OR
