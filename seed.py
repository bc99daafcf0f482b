from __future__ import annotations

import csv
import logging
import re
from pathlib import Path
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from catalog import ADVANCED_CATEGORIES, LIBERAL_CATEGORIES, MAJOR_CATEGORIES
from models import AuditLog, Course

logger = logging.getLogger(__name__)

REQUIRED_COURSE_COLUMNS = {"course_code", "course_name", "credit"}


def determine_type(category: str) -> str:
    category = (category or "").strip()
    if category in LIBERAL_CATEGORIES:
        return "LIBERAL"
    if category in MAJOR_CATEGORIES:
        return "MAJOR"
    return ""


def determine_stage(category: str) -> str:
    return "ADVANCED" if (category or "").strip() in ADVANCED_CATEGORIES else "BASIC"


def _parse_float(value: str) -> float:
    value = (value or "").strip()
    if not value:
        return 0
    number = float(value)
    return int(number) if number.is_integer() else number


def _parse_year(value: str) -> int | None:
    digits = re.sub(r"[^0-9]", "", value or "")
    return int(digits) if digits else None


def _parse_bool(value: str) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "y"}


def validate_csv_columns(columns: list[str]) -> tuple[bool, list[str]]:
    missing = sorted(REQUIRED_COURSE_COLUMNS - set(columns))
    return len(missing) == 0, missing


def load_courses_from_csv(csv_text: str) -> list[dict[str, Any]]:
    reader = csv.DictReader(csv_text.splitlines())
    valid, missing = validate_csv_columns(reader.fieldnames or [])
    if not valid:
        raise ValueError(f"Missing required columns: {missing}")

    rows: dict[str, dict[str, Any]] = {}
    for line_no, row in enumerate(reader, start=2):
        code = (row.get("course_code") or "").strip()
        if not code:
            continue
        category = (row.get("category") or "").strip()
        course_type = (row.get("type") or "").strip().upper() or determine_type(category)
        stage = (row.get("stage") or "").strip().upper() or determine_stage(category)
        try:
            credit = _parse_float(row["credit"])
        except ValueError:
            raise ValueError(f"Invalid credit on line {line_no}: {row['credit']!r}") from None
        # Later rows win, the master list has one record per course code.
        rows[code] = {
            "course_code": code,
            "course_name": (row.get("course_name") or "").strip(),
            "department": (row.get("department") or "").strip(),
            "professor": (row.get("professor") or "").strip(),
            "credit": credit,
            "year": _parse_year(row.get("year") or ""),
            "course_type": course_type if course_type in {"MAJOR", "LIBERAL"} else "",
            "category": category,
            "stage": stage if stage in {"BASIC", "ADVANCED"} else "BASIC",
            "is_required": _parse_bool(row.get("is_required") or ""),
            "area": (row.get("area") or "").strip(),
            "semester": (row.get("semester") or "").strip(),
        }
    return list(rows.values())


def _existing_courses(db: Session, rows: list[dict[str, Any]]) -> dict[str, Course]:
    codes = [row["course_code"] for row in rows]
    if not codes:
        return {}
    return {c.course_code: c for c in db.scalars(select(Course).where(Course.course_code.in_(codes))).all()}


def preview_diff(db: Session, rows: list[dict[str, Any]]) -> dict[str, int]:
    existing = _existing_courses(db, rows)
    to_update = sum(1 for row in rows if row["course_code"] in existing)
    return {"insert": len(rows) - to_update, "update": to_update}


def upsert_courses(db: Session, rows: list[dict[str, Any]], source: str = "csv") -> dict[str, int]:
    existing_map = _existing_courses(db, rows)

    inserted = 0
    updated = 0
    for row in rows:
        existing = existing_map.get(row["course_code"])
        if existing:
            for key, value in row.items():
                setattr(existing, key, value)
            updated += 1
        else:
            db.add(Course(**row))
            inserted += 1

    db.add(
        AuditLog(
            action="courses_upsert",
            details_json={
                "source": source,
                "inserted": inserted,
                "updated": updated,
                "required_courses": sorted(r["course_code"] for r in rows if r["is_required"]),
            },
        )
    )
    logger.info("Course master import from %s: %d inserted, %d updated", source, inserted, updated)
    return {"inserted": inserted, "updated": updated}


def seed_courses_if_empty(db: Session, csv_path: str | Path = "data/courses_master.sample.csv") -> dict[str, int]:
    count = db.scalar(select(func.count()).select_from(Course)) or 0
    if count:
        return {"inserted": 0, "updated": 0}

    path = Path(csv_path)
    if not path.exists():
        logger.warning("Course master CSV not found: %s", path)
        return {"inserted": 0, "updated": 0}
    rows = load_courses_from_csv(path.read_text(encoding="utf-8-sig"))
    return upsert_courses(db, rows, source=path.name)
