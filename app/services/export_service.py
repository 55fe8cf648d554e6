"""
Project export — Markdown report and styled Excel workbook.

Both formats walk the nine catalog steps in order; fields the catalog does
not list (for example values written by custom data flows) are appended
after the catalog fields of their step.
"""

import io
import json
import logging
import re
from datetime import datetime, timezone

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from app.models.project import Project
from app.services import workflow_service
from app.services.step_catalog import list_steps

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("markdown", "xlsx")

STATUS_FILLS = {
    "completed": PatternFill(start_color="27AE60", end_color="27AE60", fill_type="solid"),
    "current": PatternFill(start_color="F39C12", end_color="F39C12", fill_type="solid"),
}
WHITE_FONT = Font(color="FFFFFF", bold=True)
HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)


def export_filename(project: Project, extension: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", project.name.lower()).strip("_") or "project"
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"{slug}_{stamp}.{extension}"


def _format_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(_format_value(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    return str(value)


def _humanize(field_id: str) -> str:
    words = re.sub(r"([a-z])([A-Z])", r"\1 \2", field_id).replace("_", " ")
    return words[:1].upper() + words[1:]


def _step_sections(project: Project) -> list[tuple]:
    """(step, response_row_or_None, [(label, value), ...]) for each catalog step."""
    workflow = workflow_service.get_workflow(project)
    rows = {r.step_id: r for r in workflow_service.step_rows(workflow)} if workflow else {}
    out = []
    for step in list_steps():
        row = rows.get(step.id)
        answers = dict(row.responses or {}) if row else {}
        pairs = []
        for f in step.fields:
            if f.id in answers:
                pairs.append((f.label, answers.pop(f.id)))
        for key in sorted(answers):
            pairs.append((_humanize(key), answers[key]))
        out.append((step, row, pairs))
    return out


# ── Markdown ─────────────────────────────────────────────────────────────────

def _progress_bar(percent: int, width: int = 20) -> str:
    filled = round(percent / 100 * width)
    return f"`[{'#' * filled}{'-' * (width - filled)}]` {percent}%"


def export_project_markdown(project: Project) -> str:
    progress = workflow_service.project_progress(project)
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    lines = [
        f"# {project.name}",
        "",
        f"> Project report generated {generated}",
        "",
        "## Overview",
        "",
        f"- **Owner:** {project.owner.full_name or project.owner.email}",
        f"- **Created:** {progress['created_at'] or '-'}",
        f"- **Last updated:** {progress['updated_at'] or '-'}",
        f"- **Status:** {'Completed' if progress['is_completed'] else 'In progress'}",
    ]
    if project.description:
        lines.append(f"- **Description:** {project.description}")
    lines += [
        "",
        "## Progress",
        "",
        f"- **Completed steps:** {progress['completed_steps']}/{progress['total_steps']}",
        f"- **Current step:** {progress['current_step']}",
        "",
        _progress_bar(progress["percent_complete"]),
        "",
    ]

    for step, row, pairs in _step_sections(project):
        marker = "x" if row and row.completed else " "
        lines += ["---", "", f"## [{marker}] Step {step.id}: {step.title}", "", f"_{step.description}_", ""]
        if not pairs:
            lines += ["No responses yet.", ""]
            continue
        for label, value in pairs:
            lines += [f"### {label}", "", _format_value(value) or "-", ""]
        if row and row.ai_suggestions:
            lines += ["### Suggestions", "", row.ai_suggestions, ""]

    return "\n".join(lines).rstrip() + "\n"


# ── Excel ────────────────────────────────────────────────────────────────────

def _header_row(ws, row: int, headers: list[str]) -> None:
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER


def export_project_xlsx(project: Project) -> io.BytesIO:
    """
    Generate a styled Excel workbook for one project.
    Returns a BytesIO buffer ready for Flask send_file.
    """
    progress = workflow_service.project_progress(project)
    wb = Workbook()

    # ── Sheet 1: Summary ──────────────────────────────────────────────
    ws = wb.active
    ws.title = "Summary"

    ws.merge_cells("A1:D1")
    ws["A1"] = f"Project Report — {project.name}"
    ws["A1"].font = Font(size=16, bold=True)
    ws["A2"] = f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}"
    ws["A2"].font = Font(size=10, italic=True, color="666666")
    ws["A3"] = f"Progress: {progress['completed_steps']}/{progress['total_steps']} ({progress['percent_complete']}%)"
    ws["A3"].font = Font(size=11, bold=True)

    row = 5
    _header_row(ws, row, ["Step", "Title", "Status", "Has Data"])
    statuses = {}
    workflow = workflow_service.get_workflow(project)
    if workflow is not None:
        statuses = {s.id: workflow_service.step_status(workflow, s.id) for s in list_steps()}

    for entry in progress["step_statuses"]:
        row += 1
        status = statuses.get(entry["step_id"], "locked" if entry["step_id"] > 1 else "current")
        ws.cell(row=row, column=1, value=entry["step_id"]).border = THIN_BORDER
        ws.cell(row=row, column=2, value=entry["title"]).border = THIN_BORDER
        status_cell = ws.cell(row=row, column=3, value=status.upper())
        if status in STATUS_FILLS:
            status_cell.fill = STATUS_FILLS[status]
            status_cell.font = WHITE_FONT
        status_cell.alignment = Alignment(horizontal="center")
        status_cell.border = THIN_BORDER
        ws.cell(row=row, column=4, value="Yes" if entry["has_data"] else "No").border = THIN_BORDER

    for col, width in enumerate([8, 40, 14, 10], 1):
        ws.column_dimensions[get_column_letter(col)].width = width

    # ── Sheet 2: Responses ────────────────────────────────────────────
    ws2 = wb.create_sheet("Responses")
    _header_row(ws2, 1, ["Step", "Title", "Field", "Value"])
    row = 1
    for step, _, pairs in _step_sections(project):
        for label, value in pairs:
            row += 1
            ws2.cell(row=row, column=1, value=step.id).border = THIN_BORDER
            ws2.cell(row=row, column=2, value=step.title).border = THIN_BORDER
            ws2.cell(row=row, column=3, value=label).border = THIN_BORDER
            cell = ws2.cell(row=row, column=4, value=_format_value(value))
            cell.alignment = Alignment(wrap_text=True, vertical="top")
            cell.border = THIN_BORDER

    for col, width in enumerate([8, 36, 30, 80], 1):
        ws2.column_dimensions[get_column_letter(col)].width = width

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    logger.info("Exported project=%s as xlsx (%d response rows)", project.id, row - 1)
    return buf
