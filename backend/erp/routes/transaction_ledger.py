# Overview: Flask API routes for the customer transaction ledger (거래원장).

"""
Transaction Ledger Routes

Entries come from sales (+), purchases (-), receipts (-) and payments (+)
for one customer. The period defaults to the current month.
"""

from flask import Blueprint, g, request

from ..decorators import business_scope, require_admin, require_auth
from ..responses import ok
from ..services import ledger_service
from ..validation import parse_optional_int


ledger_bp = Blueprint(
    "transaction_ledger",
    __name__,
    url_prefix="/api/businesses/<int:business_id>/transaction-ledger",
)


@ledger_bp.get("")
@require_auth
@require_admin
@business_scope()
def ledger_route(business_id: int):
    """Query parameters: customerId (required), startDate, endDate."""
    ledger = ledger_service.get_ledger(
        business=g.business,
        customer_id=parse_optional_int("customerId", request.args.get("customerId")),
        start_date=request.args.get("startDate"),
        end_date=request.args.get("endDate"),
    )
    return ok(ledger)


@ledger_bp.get("/summary")
@require_auth
@require_admin
@business_scope()
def summary_route(business_id: int):
    summary = ledger_service.get_summary(
        business_id=business_id,
        customer_id=parse_optional_int("customerId", request.args.get("customerId")),
        start_date=request.args.get("startDate"),
        end_date=request.args.get("endDate"),
    )
    return ok(summary)


@ledger_bp.get("/balance/<int:customer_id>")
@require_auth
@require_admin
@business_scope()
def balance_route(business_id: int, customer_id: int):
    return ok(ledger_service.get_customer_balance(business_id=business_id, customer_id=customer_id))
