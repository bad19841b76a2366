# Overview: Flask API routes for dashboard figures and charts.

from flask import Blueprint, request

from ..decorators import business_scope, require_admin, require_auth
from ..responses import ok
from ..services import dashboard_service


dashboard_bp = Blueprint(
    "dashboard",
    __name__,
    url_prefix="/api/businesses/<int:business_id>/dashboard",
)


@dashboard_bp.get("/stats")
@require_auth
@require_admin
@business_scope()
def stats_route(business_id: int):
    """
    Query parameters:
    - period: month (default), week or year
    - startDate/endDate: explicit range, overrides period

    Growth percentages compare against the previous period of equal length.
    """
    stats = dashboard_service.get_stats(
        business_id=business_id,
        period=request.args.get("period"),
        start_date=request.args.get("startDate"),
        end_date=request.args.get("endDate"),
    )
    return ok(stats)


@dashboard_bp.get("/recent-transactions")
@require_auth
@require_admin
@business_scope()
def recent_transactions_route(business_id: int):
    limit = request.args.get("limit", default=5, type=int)
    return ok(dashboard_service.recent_transactions(business_id=business_id, limit=limit))


@dashboard_bp.get("/sales-chart")
@require_auth
@require_admin
@business_scope()
def sales_chart_route(business_id: int):
    return ok(dashboard_service.sales_chart(business_id=business_id, period=request.args.get("period")))


@dashboard_bp.get("/category-data")
@require_auth
@require_admin
@business_scope()
def category_data_route(business_id: int):
    return ok(dashboard_service.category_data(business_id=business_id))


@dashboard_bp.get("/monthly-trend")
@require_auth
@require_admin
@business_scope()
def monthly_trend_route(business_id: int):
    return ok(dashboard_service.monthly_trend(business_id=business_id))


@dashboard_bp.get("/all-transactions")
@require_auth
@require_admin
@business_scope()
def all_transactions_route(business_id: int):
    rows = dashboard_service.all_transactions(
        business_id=business_id,
        start_date=request.args.get("startDate"),
        end_date=request.args.get("endDate"),
        search=request.args.get("search"),
    )
    return ok(rows)
