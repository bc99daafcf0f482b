from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from catalog import SqlCourseCatalog
from config import get_settings
from db import db_session, get_session_factory, init_schema
from graduation import evaluate_graduation
from graduation_rules import build_graduation_tree
from log_config import setup_logging
from seed import seed_courses_if_empty


def scenario_inputs() -> list[dict[str, Any]]:
    return [
        {
            "name": "Freshman with an empty record",
            "courseCodes": [],
            "studentType": "신입생",
            "extraCurricularUnits": 0,
        },
        {
            "name": "Freshman after second year",
            "courseCodes": ["CS101", "CS102", "CS204", "CS205", "GE101", "GE102", "GE201"],
            "grades": {"CS101": "A", "CS102": "B+", "CS204": "A+", "CS205": "C", "GE101": "B"},
            "studentType": "신입생",
            "extraCurricularUnits": 30,
        },
        {
            "name": "Transfer student with failed capstone",
            "courseCodes": ["CS101", "CS102", "CS301", "CS401", "CS402", "CS403", "GE101"],
            "grades": {"CS401": "F", "CS402": "B", "CS403": "A"},
            "studentType": "편입생",
            "extraCurricularUnits": 40,
        },
        {
            "name": "Every required course completed",
            "courseCodes": ["CS101", "CS102", "CS301", "CS401", "GE101"],
            "grades": {"CS101": "A", "CS102": "A", "CS301": "B", "CS401": "A+", "GE101": "C+"},
            "studentType": "freshman",
            "extraCurricularUnits": 70,
        },
    ]


async def run() -> None:
    setup_logging(get_settings())
    init_schema()
    with db_session() as db:
        seed_courses_if_empty(db, ROOT / "data" / "courses_master.sample.csv")

    catalog = SqlCourseCatalog(get_session_factory())
    tree = await build_graduation_tree(catalog)

    for scenario in scenario_inputs():
        report = await evaluate_graduation(scenario, tree=tree)

        print(f"\n=== {scenario['name']} ===")
        if report.passed:
            print("Outcome: ELIGIBLE")
            continue
        print(f"Outcome: NOT ELIGIBLE ({len(report.missing_items)} missing)")
        for item in report.missing_items[:6]:
            print(f"- {item.message}")


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
