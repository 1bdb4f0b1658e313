from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Production(db.Model):
    """
    Manufacturing run for one order.

    At most one per order, enforced by ``uq_productions_order`` so a
    concurrent second spawn fails cleanly instead of duplicating.
    ``history`` is append-only; the production service is the only writer.
    """
    __tablename__ = "productions"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_productions_order"),
        db.UniqueConstraint("production_number", name="uq_productions_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    serial_no = db.Column(db.Integer, nullable=False)
    production_number = db.Column(db.String(32), nullable=False)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True, index=True)
    order_number = db.Column(db.String(32), nullable=False)
    order_type = db.Column(db.String(16), nullable=False)
    buyer_code = db.Column(db.String(16), nullable=True)
    buyer_name = db.Column(db.String(255), nullable=True)
    total_qty = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(32), nullable=False, default="Pending Production", index=True)
    remarks = db.Column(db.Text, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    order = db.relationship("Order", back_populates="production")
    purchase = db.relationship("Purchase")
    history = db.relationship(
        "ProductionStageEvent",
        back_populates="production",
        cascade="all, delete-orphan",
        order_by=lambda: (ProductionStageEvent.occurred_at, ProductionStageEvent.id),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Production id={self.id} number={self.production_number!r} status={self.status!r}>"

    def to_dict(self, include_history: bool = True) -> dict:
        data = {
            "id": self.id,
            "serial_no": self.serial_no,
            "production_number": self.production_number,
            "order_id": self.order_id,
            "purchase_id": self.purchase_id,
            "order_number": self.order_number,
            "order_type": self.order_type,
            "buyer_code": self.buyer_code,
            "buyer_name": self.buyer_name,
            "total_qty": self.total_qty,
            "status": self.status,
            "remarks": self.remarks,
            "completed_at": to_utc_z(self.completed_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_history:
            data["history"] = [event.to_dict() for event in self.history]
        return data


class ProductionStageEvent(db.Model):
    """
    Immutable record of a production stage change.

    Never updated or deleted individually; ``occurred_at`` is
    non-decreasing within one production.
    """
    __tablename__ = "production_stage_events"
    __table_args__ = (
        db.Index("ix_production_events_production_time", "production_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    production_id = db.Column(db.Integer, db.ForeignKey("productions.id"), nullable=False)
    stage = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False)  # Pending, In Progress, Completed
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    production = db.relationship("Production", back_populates="history")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stage": self.stage,
            "status": self.status,
            "occurred_at": to_utc_z(self.occurred_at),
            "notes": self.notes,
        }
