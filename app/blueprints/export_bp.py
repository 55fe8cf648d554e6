"""
Project export endpoint.

    GET /api/v1/projects/<project_id>/export
        format: markdown | xlsx (default: markdown)

No temp files — content returned in-memory.
"""

import logging

from flask import Blueprint, Response, request

from app.auth import current_user_id, require_user
from app.services import project_service
from app.services.export_service import (
    EXPORT_FORMATS,
    export_filename,
    export_project_markdown,
    export_project_xlsx,
)
from app.utils.errors import E, api_error, register_service_error_handlers

logger = logging.getLogger(__name__)

export_bp = Blueprint("export_bp", __name__, url_prefix="/api/v1")

register_service_error_handlers(export_bp, logger)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@export_bp.route("/projects/<int:project_id>/export", methods=["GET"])
@require_user
def export_project(project_id: int):
    """Download the project's wizard answers.

    Returns:
        Markdown text or an xlsx workbook with Content-Disposition set.
    """
    fmt = request.args.get("format", "markdown").lower()
    if fmt not in EXPORT_FORMATS:
        return api_error(
            E.VALIDATION_INVALID,
            f"Unsupported format. Supported values: {', '.join(EXPORT_FORMATS)}.",
        )

    project = project_service.get_owned_project(project_id, current_user_id())

    if fmt == "xlsx":
        content = export_project_xlsx(project).getvalue()
        filename = export_filename(project, "xlsx")
        mimetype = XLSX_MIMETYPE
    else:
        content = export_project_markdown(project)
        filename = export_filename(project, "md")
        mimetype = "text/markdown"

    logger.info("Export project=%s format=%s", project_id, fmt)
    return Response(
        content,
        mimetype=mimetype,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
