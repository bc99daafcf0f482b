"""
Graduation check entry point: validate the context, build or reuse the
requirement tree, evaluate it and flatten the failures.
Either the whole report is produced or the call raises.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from catalog import CourseRecordProvider
from graduation_rules import build_graduation_tree
from rule_engine import Context, GroupResult, MissingItem, RuleGroup, extract_missing_items, format_result

logger = logging.getLogger(__name__)

TreeBuilder = Callable[[CourseRecordProvider], Awaitable[RuleGroup]]


@dataclass(frozen=True)
class GraduationReport:
    passed: bool
    tree: GroupResult
    missing_items: list[MissingItem]

    def to_dict(self, include_formatted: bool = False) -> dict[str, Any]:
        payload = {
            "passed": self.passed,
            "tree": self.tree.to_dict(),
            "missingItems": [item.to_dict() for item in self.missing_items],
        }
        if include_formatted:
            payload["formatted"] = format_result(self.tree)
        return payload


async def evaluate_graduation(
    context: Context | Mapping[str, Any],
    provider: CourseRecordProvider | None = None,
    tree: RuleGroup | None = None,
    tree_builder: TreeBuilder = build_graduation_tree,
) -> GraduationReport:
    if not isinstance(context, Context):
        context = Context.from_payload(context)

    if tree is None:
        if provider is None:
            raise ValueError("A course record provider is required to build the requirement tree")
        tree = await tree_builder(provider)

    root = await tree.evaluate(context)
    missing_items = extract_missing_items(root)
    logger.debug(
        "Graduation check for %d courses: passed=%s missing=%d",
        len(context.course_codes),
        root.passed,
        len(missing_items),
    )
    return GraduationReport(passed=root.passed, tree=root, missing_items=missing_items)


def evaluate_graduation_sync(
    context: Context | Mapping[str, Any],
    provider: CourseRecordProvider | None = None,
    tree: RuleGroup | None = None,
) -> GraduationReport:
    return asyncio.run(evaluate_graduation(context, provider=provider, tree=tree))
