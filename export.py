from __future__ import annotations

import io
import json
from datetime import datetime, timezone
from typing import Any

from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.platypus import Paragraph, Preformatted, SimpleDocTemplate, Spacer

from graduation import GraduationReport
from rule_engine import Context, format_result

# Built-in CID font with Hangul glyphs; Helvetica has none.
KOREAN_FONT = "HYSMyeongJo-Medium"
PDF_STATUS_MARKS = ("[PASS]", "[FAIL]")


def _safe_text(value: Any) -> str:
    if value is None:
        return "-"
    return str(value)


def _korean_styles() -> dict[str, ParagraphStyle]:
    if KOREAN_FONT not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(UnicodeCIDFont(KOREAN_FONT))
    base = getSampleStyleSheet()
    return {
        name: ParagraphStyle(f"{name}Korean", parent=base[name], fontName=KOREAN_FONT)
        for name in ("Title", "BodyText", "Heading2", "Heading3", "Code")
    }


def context_summary(context: Context) -> dict[str, Any]:
    return {
        "courseCodes": list(context.course_codes),
        "grades": {code: grade.value for code, grade in context.grades.items()},
        "curriculumYear": context.curriculum_year,
        "studentType": context.student_type.value,
        "extraCurricularUnits": context.extra_curricular_units,
    }


def build_pdf_report(report: GraduationReport, context: Context) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title="Graduation Check Report")
    styles = _korean_styles()
    normal = styles["BodyText"]
    heading = styles["Heading2"]

    story = []
    story.append(Paragraph("Graduation Requirement Check", styles["Title"]))
    story.append(Paragraph(f"Generated: {datetime.now(timezone.utc).isoformat()}", normal))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Student Profile", heading))
    profile = context_summary(context)
    story.append(Paragraph(f"Curriculum year: {_safe_text(profile['curriculumYear'])}", normal))
    story.append(Paragraph(f"Student type: {_safe_text(profile['studentType'])}", normal))
    story.append(Paragraph(f"Extracurricular units: {_safe_text(profile['extraCurricularUnits'])}", normal))
    story.append(Paragraph(f"Courses taken: {', '.join(profile['courseCodes']) or '-'}", normal))
    story.append(Spacer(1, 8))

    story.append(Paragraph("Result", heading))
    verdict = "Eligible to graduate" if report.passed else "Requirements outstanding"
    story.append(Paragraph(verdict, styles["Heading3"]))
    story.append(Preformatted(format_result(report.tree, marks=PDF_STATUS_MARKS), styles["Code"]))
    story.append(Spacer(1, 8))

    if report.missing_items:
        story.append(Paragraph("Missing Items", heading))
        for item in report.missing_items:
            line = f"- [{item.type.value}] {_safe_text(item.message)}"
            if item.remaining:
                line += f" (remaining: {_safe_text(item.remaining)})"
            story.append(Paragraph(line, normal))

    doc.build(story)
    buffer.seek(0)
    return buffer.read()


def build_json_summary(report: GraduationReport, context: Context) -> bytes:
    payload = {"context": context_summary(context), **report.to_dict(include_formatted=True)}
    return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")
