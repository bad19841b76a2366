# Overview: Flask API routes for spreadsheet templates, import and export.

"""
Excel Routes

Templates carry Korean headers and one example row. Uploads take a
multipart `.xlsx` in `file`; rows that fail are reported one by one while
the good rows are committed together.
"""

from io import BytesIO

from flask import Blueprint, current_app, g, request, send_file

from ..decorators import business_scope, require_admin, require_auth
from ..responses import ok
from ..services import activity_log_service, excel_service, upload_service


excel_bp = Blueprint("excel", __name__, url_prefix="/api/excel")


def xlsx_response(data: bytes, filename: str):
    return send_file(
        BytesIO(data),
        mimetype=excel_service.XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )


@excel_bp.get("/template/<template_type>")
@require_auth
def template_route(template_type: str):
    """template_type: customers, products, sales, purchases, receivables, payables"""
    data, filename = excel_service.template_workbook(template_type)
    return xlsx_response(data, filename)


@excel_bp.post("/upload/<int:business_id>/<upload_type>")
@require_auth
@require_admin
@business_scope()
def upload_route(business_id: int, upload_type: str):
    data = upload_service.read_xlsx(request.files.get("file"))
    result = excel_service.upload(business_id, upload_type, data)

    activity_log_service.log_activity(
        "upload", upload_type, None,
        f"엑셀 업로드: 성공 {result.success}건, 실패 {result.failed}건",
        user_id=g.current_user.id, business_id=business_id,
    )
    message = f"{result.success}건이 등록되었습니다."
    if result.failed:
        message += f" ({result.failed}건 실패)"
    return ok(result.to_dict(), message)


@excel_bp.get("/export/<int:business_id>/<export_type>")
@require_auth
@require_admin
@business_scope()
def export_route(business_id: int, export_type: str):
    data, filename = excel_service.export_workbook(business_id, export_type)
    current_app.logger.info("Exported %s for business %s", export_type, business_id)
    return xlsx_response(data, filename)
