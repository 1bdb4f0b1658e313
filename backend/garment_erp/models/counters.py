from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Counter(db.Model):
    """
    Durable named counter backing every document number.

    One row per numbering domain (globalOrderSeq, orderSeq_FOB, poSeq_2526,
    storeEntrySeq, ...). ``value`` is the last number issued; rows are
    created lazily by the first issuance and never deleted.
    """
    __tablename__ = "counters"
    __table_args__ = (
        db.UniqueConstraint("key", name="uq_counters_key"),
        db.CheckConstraint("value >= 0", name="ck_counters_value_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False)
    value = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Counter key={self.key!r} value={self.value}>"

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "next": self.value + 1,
            "updated_at": to_utc_z(self.updated_at),
        }
