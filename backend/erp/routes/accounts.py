# Overview: Flask API route for the read-only chart of accounts.

from flask import Blueprint, request

from ..decorators import require_auth
from ..responses import ok
from ..services import account_service


accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")


@accounts_bp.get("")
@require_auth
def list_accounts_route():
    """
    Query parameters:
    - type: asset, liability, equity, revenue or expense (flat list)
    - flat: "true" for a flat list instead of the parentId tree
    """
    accounts = account_service.list_accounts(
        account_type=request.args.get("type"),
        tree=request.args.get("flat", "").lower() != "true",
    )
    return ok(accounts)
