from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from models import Course

logger = logging.getLogger(__name__)

COURSE_TYPES = {"MAJOR", "LIBERAL"}
STAGES = {"BASIC", "ADVANCED"}

MAJOR_CATEGORIES = {"전필", "전선", "일선", "특필", "특선", "심필", "심선", "융필", "융선", "연선", "산선"}
LIBERAL_CATEGORIES = {"교필", "교선"}
ADVANCED_CATEGORIES = {"심필", "심선"}


class CourseProviderError(RuntimeError):
    """The course store could not answer a lookup."""


@dataclass(frozen=True)
class CourseAttributes:
    code: str
    name: str = ""
    credit: float = 0.0
    course_type: str = ""
    category: str = ""
    stage: str = "BASIC"
    is_required: bool = False
    area: str = ""

    @property
    def is_major(self) -> bool:
        return self.course_type == "MAJOR" or self.category in MAJOR_CATEGORIES

    @property
    def is_liberal(self) -> bool:
        return self.course_type == "LIBERAL" or self.category in LIBERAL_CATEGORIES

    @property
    def is_basic_major(self) -> bool:
        return self.is_major and self.stage == "BASIC"

    @property
    def is_advanced_major(self) -> bool:
        return self.is_major and self.stage == "ADVANCED"


@dataclass(frozen=True)
class RequiredCourse:
    code: str
    name: str = ""


class CourseRecordProvider(Protocol):
    async def get_by_code(self, code: str) -> CourseAttributes | None: ...

    async def get_by_codes(self, codes: Sequence[str]) -> list[CourseAttributes]: ...

    async def get_required_courses(self) -> list[RequiredCourse]: ...


def _field(row: Any, *names: str, default: Any = None) -> Any:
    for name in names:
        value = row.get(name) if isinstance(row, dict) else getattr(row, name, None)
        if value is not None and value != "":
            return value
    return default


def _to_credit(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0
    try:
        credit = float(str(value).strip())
    except ValueError:
        return 0
    if not math.isfinite(credit) or credit < 0:
        return 0
    return int(credit) if credit.is_integer() else credit


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "y"}


def course_from_row(row: Any) -> CourseAttributes | None:
    """Coerce a dict row or ORM object into CourseAttributes.

    Bad fields never raise: unknown credit counts as zero, unknown type as
    unclassified, unknown stage as BASIC and the required flag as false.
    Rows without a course code are dropped.
    """
    code = str(_field(row, "course_code", "courseCode", "code", default="")).strip()
    if not code:
        logger.debug("Dropping course row without a code: %r", row)
        return None

    course_type = str(_field(row, "course_type", "type", default="")).strip().upper()
    if course_type not in COURSE_TYPES:
        course_type = ""
    stage = str(_field(row, "stage", default="BASIC")).strip().upper()
    if stage not in STAGES:
        stage = "BASIC"

    return CourseAttributes(
        code=code,
        name=str(_field(row, "course_name", "courseName", "name", default="")),
        credit=_to_credit(_field(row, "credit")),
        course_type=course_type,
        category=str(_field(row, "category", default="")).strip(),
        stage=stage,
        is_required=_to_bool(_field(row, "is_required", "isRequired", default=False)),
        area=str(_field(row, "area", default="")),
    )


def _unique(codes: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(codes))


class InMemoryCourseCatalog:
    """Dict-backed course records, built once and shared read-only."""

    def __init__(self, records: Iterable[CourseAttributes] = ()) -> None:
        self._records: dict[str, CourseAttributes] = {record.code: record for record in records}

    @classmethod
    def from_rows(cls, rows: Iterable[Any]) -> "InMemoryCourseCatalog":
        records = [course_from_row(row) for row in rows]
        return cls(record for record in records if record is not None)

    def __len__(self) -> int:
        return len(self._records)

    async def get_by_code(self, code: str) -> CourseAttributes | None:
        return self._records.get(code)

    async def get_by_codes(self, codes: Sequence[str]) -> list[CourseAttributes]:
        return [self._records[code] for code in _unique(codes) if code in self._records]

    async def get_required_courses(self) -> list[RequiredCourse]:
        return [
            RequiredCourse(code=record.code, name=record.name)
            for record in self._records.values()
            if record.is_required
        ]


class SqlCourseCatalog:
    """Course records read from the courses_master table.

    Queries run on a worker thread so the async rule engine is never blocked
    by the synchronous driver. Store failures surface as CourseProviderError.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def _fetch_by_codes(self, codes: list[str]) -> list[CourseAttributes]:
        with self._session_factory() as db:
            rows = db.scalars(select(Course).where(Course.course_code.in_(codes))).all()
        by_code = {}
        for row in rows:
            record = course_from_row(row)
            if record is not None:
                by_code[record.code] = record
        return [by_code[code] for code in codes if code in by_code]

    def _fetch_required(self) -> list[RequiredCourse]:
        with self._session_factory() as db:
            rows = db.execute(
                select(Course.course_code, Course.course_name).where(Course.is_required.is_(True)).order_by(Course.course_code)
            ).all()
        return [RequiredCourse(code=code, name=name or "") for code, name in rows]

    async def get_by_code(self, code: str) -> CourseAttributes | None:
        records = await self.get_by_codes([code])
        return records[0] if records else None

    async def get_by_codes(self, codes: Sequence[str]) -> list[CourseAttributes]:
        unique_codes = _unique(codes)
        if not unique_codes:
            return []
        try:
            return await asyncio.to_thread(self._fetch_by_codes, unique_codes)
        except SQLAlchemyError as exc:
            logger.error("Course lookup failed for %d codes: %s", len(unique_codes), exc)
            raise CourseProviderError("Course lookup failed") from exc

    async def get_required_courses(self) -> list[RequiredCourse]:
        try:
            return await asyncio.to_thread(self._fetch_required)
        except SQLAlchemyError as exc:
            logger.error("Required course lookup failed: %s", exc)
            raise CourseProviderError("Required course lookup failed") from exc
