from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import to_number


class Purchase(db.Model):
    """
    Raw-material purchase for exactly one order.

    LIFECYCLE:
    1. Pending: placeholder created together with the order
    2. Partial: vendor items recorded, not yet completed
    3. Completed: materials bought; a production run is spawned

    Cost totals are recomputed by the purchase service on every write.
    Product lines are copied from the order so later order edits do not
    rewrite what was purchased.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("pur_number", name="uq_purchases_pur_number"),
        db.UniqueConstraint("order_id", name="uq_purchases_order"),
        db.Index("ix_purchases_status_type", "status", "order_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    serial_no = db.Column(db.Integer, nullable=False)
    pur_number = db.Column(db.String(32), nullable=False)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    order_number = db.Column(db.String(32), nullable=False)
    order_type = db.Column(db.String(16), nullable=False)
    buyer_code = db.Column(db.String(16), nullable=True)
    buyer_name = db.Column(db.String(255), nullable=True)

    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="Pending", index=True)  # Pending, Partial, Completed
    total_qty = db.Column(db.Integer, nullable=False, default=0)

    total_fabric_cost = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_trims_cost = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_machine_cost = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    grand_total_cost = db.Column(db.Numeric(14, 2), nullable=False, default=0)

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

    order = db.relationship("Order", back_populates="purchase")
    products = db.relationship(
        "PurchaseProduct",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseProduct.id",
    )
    items = db.relationship(
        "PurchaseItem",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
    )
    purchase_return = db.relationship(
        "PurchaseReturn",
        back_populates="purchase",
        uselist=False,
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Purchase id={self.id} number={self.pur_number!r} status={self.status!r}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "serial_no": self.serial_no,
            "pur_number": self.pur_number,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "order_type": self.order_type,
            "buyer_code": self.buyer_code,
            "buyer_name": self.buyer_name,
            "purchase_date": to_utc_z(self.purchase_date),
            "status": self.status,
            "total_qty": self.total_qty,
            "total_fabric_cost": to_number(self.total_fabric_cost),
            "total_trims_cost": to_number(self.total_trims_cost),
            "total_machine_cost": to_number(self.total_machine_cost),
            "grand_total_cost": to_number(self.grand_total_cost),
            "remarks": self.remarks,
            "completed_at": to_utc_z(self.completed_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["products"] = [p.to_dict() for p in self.products]
            data["items"] = [i.to_dict() for i in self.items]
        return data


class PurchaseProduct(db.Model):
    """Per-size product line copied from the order at purchase creation."""
    __tablename__ = "purchase_products"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    fabric_type = db.Column(db.String(128), nullable=True)
    color = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(16), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    purchase = db.relationship("Purchase", back_populates="products")

    def to_dict(self) -> dict:
        return {
            "product_name": self.product_name,
            "fabric_type": self.fabric_type,
            "color": self.color,
            "size": self.size,
            "quantity": self.quantity,
        }


class PurchaseItem(db.Model):
    """Vendor line: fabric, trims or machine hire bought for the order."""
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_items_quantity_positive"),
        db.CheckConstraint("cost_per_unit >= 0", name="ck_purchase_items_cost_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)

    item_type = db.Column(db.String(16), nullable=False)  # fabric, trims, machine
    item_name = db.Column(db.String(255), nullable=False)
    vendor_name = db.Column(db.String(255), nullable=True)
    vendor_code = db.Column(db.String(64), nullable=True)
    unit = db.Column(db.String(16), nullable=True)
    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    cost_per_unit = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_cost = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    purchase = db.relationship("Purchase", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_type": self.item_type,
            "item_name": self.item_name,
            "vendor_name": self.vendor_name,
            "vendor_code": self.vendor_code,
            "unit": self.unit,
            "quantity": to_number(self.quantity),
            "cost_per_unit": to_number(self.cost_per_unit),
            "total_cost": to_number(self.total_cost),
        }


class PurchaseReturn(db.Model):
    """
    Materials sent back to vendors from a completed purchase.

    One return per purchase. ``purt_number`` ("PURT-0001") comes from
    purchaseReturnSeq. When requested, an issued debit note is written in
    the same transaction and deleted together with the return.
    """
    __tablename__ = "purchase_returns"
    __table_args__ = (
        db.UniqueConstraint("purt_number", name="uq_purchase_returns_number"),
        db.UniqueConstraint("purchase_id", name="uq_purchase_returns_purchase"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    serial_no = db.Column(db.Integer, nullable=False)
    purt_number = db.Column(db.String(32), nullable=False)

    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False)
    pur_number = db.Column(db.String(32), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    order_number = db.Column(db.String(32), nullable=False)
    order_type = db.Column(db.String(16), nullable=False)

    return_date = db.Column(db.DateTime(timezone=True), nullable=False)
    total_return_value = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    remarks = db.Column(db.Text, nullable=True)
    debit_note_id = db.Column(db.Integer, db.ForeignKey("notes.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    purchase = db.relationship("Purchase", back_populates="purchase_return")
    items = db.relationship(
        "PurchaseReturnItem",
        back_populates="purchase_return",
        cascade="all, delete-orphan",
        order_by="PurchaseReturnItem.id",
    )
    debit_note = db.relationship(
        "Note",
        backref=db.backref("purchase_return", uselist=False),
        cascade="all, delete-orphan",
        single_parent=True,
    )

    def __repr__(self) -> str:
        return f"<PurchaseReturn id={self.id} number={self.purt_number!r}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "serial_no": self.serial_no,
            "purt_number": self.purt_number,
            "purchase_id": self.purchase_id,
            "pur_number": self.pur_number,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "order_type": self.order_type,
            "return_date": to_utc_z(self.return_date),
            "total_return_value": to_number(self.total_return_value),
            "remarks": self.remarks,
            "debit_note_id": self.debit_note_id,
            "debit_note_number": self.debit_note.note_number if self.debit_note else None,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["items"] = [i.to_dict() for i in self.items]
        return data


class PurchaseReturnItem(db.Model):
    """Returned quantity of one purchase item, valued at its purchase cost."""
    __tablename__ = "purchase_return_items"
    __table_args__ = (
        db.CheckConstraint("return_quantity > 0", name="ck_purchase_return_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_return_id = db.Column(db.Integer, db.ForeignKey("purchase_returns.id"), nullable=False, index=True)
    purchase_item_id = db.Column(db.Integer, db.ForeignKey("purchase_items.id"), nullable=True)

    item_type = db.Column(db.String(16), nullable=False)
    item_name = db.Column(db.String(255), nullable=False)
    vendor_name = db.Column(db.String(255), nullable=True)
    unit = db.Column(db.String(16), nullable=True)
    original_quantity = db.Column(db.Numeric(14, 3), nullable=False)
    original_cost_per_unit = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    return_quantity = db.Column(db.Numeric(14, 3), nullable=False)
    return_reason = db.Column(db.String(32), nullable=False)
    reason_description = db.Column(db.Text, nullable=True)
    return_value = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    purchase_return = db.relationship("PurchaseReturn", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_item_id": self.purchase_item_id,
            "item_type": self.item_type,
            "item_name": self.item_name,
            "vendor_name": self.vendor_name,
            "unit": self.unit,
            "original_quantity": to_number(self.original_quantity),
            "original_cost_per_unit": to_number(self.original_cost_per_unit),
            "return_quantity": to_number(self.return_quantity),
            "return_reason": self.return_reason,
            "reason_description": self.reason_description,
            "return_value": to_number(self.return_value),
        }
