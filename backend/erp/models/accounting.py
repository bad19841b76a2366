from __future__ import annotations

from ..extensions import db
from erp.time_utils import to_utc_z

ACCOUNT_TYPES = {"asset", "liability", "equity", "revenue", "expense"}


class Account(db.Model):
    """
    Chart of accounts entry (계정과목).

    Shared by all businesses; seeded by `flask accounts seed`. parent_id builds
    the tree (e.g. 101 현금 under 100 자산).
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_accounts_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(10), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    account_type = db.Column(db.String(20), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    parent = db.relationship("Account", remote_side=[id], backref=db.backref("children", lazy=True, order_by="Account.code"))

    def to_dict(self, include_children: bool = False) -> dict:
        data = {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "accountType": self.account_type,
            "parentId": self.parent_id,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
        }
        if include_children:
            data["children"] = [c.to_dict(include_children=True) for c in self.children if c.is_active]
        return data
