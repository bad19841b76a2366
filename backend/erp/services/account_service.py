# Overview: Service-layer operations for the shared chart of accounts.

from __future__ import annotations

from ..extensions import db
from ..models import Account


# (code, name, type, parent code)
DEFAULT_ACCOUNTS = [
    ("100", "자산", "asset", None),
    ("101", "현금", "asset", "100"),
    ("102", "보통예금", "asset", "100"),
    ("108", "외상매출금", "asset", "100"),
    ("146", "상품", "asset", "100"),
    ("200", "부채", "liability", None),
    ("251", "외상매입금", "liability", "200"),
    ("255", "부가세예수금", "liability", "200"),
    ("300", "자본", "equity", None),
    ("331", "자본금", "equity", "300"),
    ("400", "수익", "revenue", None),
    ("401", "상품매출", "revenue", "400"),
    ("500", "비용", "expense", None),
    ("451", "상품매출원가", "expense", "500"),
    ("811", "복리후생비", "expense", "500"),
    ("813", "접대비", "expense", "500"),
    ("819", "임차료", "expense", "500"),
    ("830", "소모품비", "expense", "500"),
]


def list_accounts(*, account_type: str | None = None, tree: bool = True) -> list[dict]:
    """Active accounts ordered by code; tree=True nests children under roots."""
    query = db.session.query(Account).filter(Account.is_active.is_(True))
    if account_type:
        query = query.filter(Account.account_type == account_type)
    accounts = query.order_by(Account.code.asc()).all()
    if not tree or account_type:
        return [a.to_dict() for a in accounts]
    return [a.to_dict(include_children=True) for a in accounts if a.parent_id is None]


def seed_default_accounts() -> int:
    """Insert missing default accounts. Returns the number of rows created."""
    by_code = {a.code: a for a in db.session.query(Account).all()}
    created = 0
    for code, name, account_type, parent_code in DEFAULT_ACCOUNTS:
        if code in by_code:
            continue
        parent = by_code.get(parent_code) if parent_code else None
        account = Account(code=code, name=name, account_type=account_type, parent=parent, is_active=True)
        db.session.add(account)
        db.session.flush()
        by_code[code] = account
        created += 1
    db.session.commit()
    return created
