from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import to_number


class StoreEntry(db.Model):
    """
    Warehouse receipt for one completed purchase.

    LEDGER:
    - StoreEntryItem.store_in_qty is the opening stock of each item
    - StoreLog rows record takes and returns against those items
    - available = store_in_qty - sum(taken) + sum(returned), computed on read

    ``store_number``/``serial_no`` are assigned only when the entry becomes
    Completed. Every store-log write touches ``last_movement_at`` which
    bumps ``version_id``; concurrent writers to the same entry therefore
    conflict and are retried.
    """
    __tablename__ = "store_entries"
    __table_args__ = (
        db.UniqueConstraint("purchase_id", name="uq_store_entries_purchase"),
        db.UniqueConstraint("store_number", name="uq_store_entries_store_number"),
        db.Index("ix_store_entries_status_date", "status", "store_entry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    serial_no = db.Column(db.Integer, nullable=True)
    store_number = db.Column(db.String(32), nullable=True)

    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    order_number = db.Column(db.String(32), nullable=True)
    pur_number = db.Column(db.String(32), nullable=True)
    buyer_name = db.Column(db.String(255), nullable=True)

    store_entry_date = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="Pending")  # Pending, Completed

    total_invoice_qty = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    total_store_in_qty = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    total_shortage = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    total_surplus = db.Column(db.Numeric(14, 3), nullable=False, default=0)

    remarks = db.Column(db.Text, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_movement_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    purchase = db.relationship("Purchase")
    order = db.relationship("Order", back_populates="store_entries")
    items = db.relationship(
        "StoreEntryItem",
        back_populates="store_entry",
        cascade="all, delete-orphan",
        order_by="StoreEntryItem.id",
    )
    logs = db.relationship(
        "StoreLog",
        back_populates="store_entry",
        cascade="all, delete-orphan",
        order_by="StoreLog.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StoreEntry id={self.id} number={self.store_number!r} status={self.status!r}>"

    def item_named(self, item_name: str):
        for item in self.items:
            if item.item_name == item_name:
                return item
        return None

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "serial_no": self.serial_no,
            "store_number": self.store_number,
            "purchase_id": self.purchase_id,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "pur_number": self.pur_number,
            "buyer_name": self.buyer_name,
            "store_entry_date": to_utc_z(self.store_entry_date),
            "status": self.status,
            "total_invoice_qty": to_number(self.total_invoice_qty),
            "total_store_in_qty": to_number(self.total_store_in_qty),
            "total_shortage": to_number(self.total_shortage),
            "total_surplus": to_number(self.total_surplus),
            "remarks": self.remarks,
            "completed_at": to_utc_z(self.completed_at),
            "last_movement_at": to_utc_z(self.last_movement_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["entries"] = [item.to_dict() for item in self.items]
        return data


class StoreEntryItem(db.Model):
    """Received quantity of one material; shortage/surplus are against the invoice."""
    __tablename__ = "store_entry_items"
    __table_args__ = (
        db.UniqueConstraint("store_entry_id", "item_name", name="uq_store_entry_items_entry_name"),
        db.CheckConstraint("store_in_qty >= 0", name="ck_store_entry_items_store_in_non_negative"),
        db.CheckConstraint("invoice_qty >= 0", name="ck_store_entry_items_invoice_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_entry_id = db.Column(db.Integer, db.ForeignKey("store_entries.id"), nullable=False, index=True)

    item_type = db.Column(db.String(16), nullable=False, default="fabric")  # fabric, accessories, others
    item_name = db.Column(db.String(255), nullable=False)
    supplier_name = db.Column(db.String(255), nullable=True)
    supplier_code = db.Column(db.String(64), nullable=True)
    invoice_no = db.Column(db.String(64), nullable=True)
    invoice_date = db.Column(db.DateTime(timezone=True), nullable=True)
    hsn = db.Column(db.String(32), nullable=True)
    unit = db.Column(db.String(16), nullable=False, default="mtr")

    purchase_qty = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    invoice_qty = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    store_in_qty = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    shortage = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    surplus = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    remarks = db.Column(db.Text, nullable=True)

    store_entry = db.relationship("StoreEntry", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_type": self.item_type,
            "item_name": self.item_name,
            "supplier_name": self.supplier_name,
            "supplier_code": self.supplier_code,
            "invoice_no": self.invoice_no,
            "invoice_date": to_utc_z(self.invoice_date),
            "hsn": self.hsn,
            "unit": self.unit,
            "purchase_qty": to_number(self.purchase_qty),
            "invoice_qty": to_number(self.invoice_qty),
            "store_in_qty": to_number(self.store_in_qty),
            "shortage": to_number(self.shortage),
            "surplus": to_number(self.surplus),
            "remarks": self.remarks,
        }


class StoreLog(db.Model):
    """
    One material movement (take-out and/or return) against a store entry.

    ``is_opening`` marks the zero-quantity opening record written when the
    entry is completed; it cannot be deleted. ``status`` is whatever the
    caller asked for; ``suggested_status`` in to_dict is only a hint.
    """
    __tablename__ = "store_logs"
    __table_args__ = (
        db.UniqueConstraint("log_number", name="uq_store_logs_log_number"),
        db.Index("ix_store_logs_entry_date", "store_entry_id", "log_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    serial_no = db.Column(db.Integer, nullable=False)
    log_number = db.Column(db.String(32), nullable=False)

    store_entry_id = db.Column(db.Integer, db.ForeignKey("store_entries.id"), nullable=False)
    # Denormalized references, kept for listing without joins
    order_id = db.Column(db.Integer, nullable=True, index=True)
    purchase_id = db.Column(db.Integer, nullable=True, index=True)
    store_number = db.Column(db.String(32), nullable=True)
    order_number = db.Column(db.String(32), nullable=True)
    pur_number = db.Column(db.String(32), nullable=True)

    log_date = db.Column(db.DateTime(timezone=True), nullable=False)
    person_name = db.Column(db.String(255), nullable=True)
    person_role = db.Column(db.String(64), nullable=True)
    department = db.Column(db.String(64), nullable=True)
    login_time = db.Column(db.DateTime(timezone=True), nullable=True)
    logout_time = db.Column(db.DateTime(timezone=True), nullable=True)
    product_count = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="Out", index=True)  # In Store, Out, Completed
    is_opening = db.Column(db.Boolean, nullable=False, default=False)

    total_taken_qty = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    total_returned_qty = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    total_in_hand_qty = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    remarks = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store_entry = db.relationship("StoreEntry", back_populates="logs")
    items = db.relationship(
        "StoreLogItem",
        back_populates="store_log",
        cascade="all, delete-orphan",
        order_by="StoreLogItem.id",
    )

    def __repr__(self) -> str:
        return f"<StoreLog id={self.id} number={self.log_number!r} status={self.status!r}>"

    def to_dict(self, include_items: bool = True) -> dict:
        # Local import: the suggestion rule lives with the ledger service
        from ..services.store_log_service import suggest_status

        data = {
            "id": self.id,
            "serial_no": self.serial_no,
            "log_number": self.log_number,
            "store_entry_id": self.store_entry_id,
            "order_id": self.order_id,
            "purchase_id": self.purchase_id,
            "store_number": self.store_number,
            "order_number": self.order_number,
            "pur_number": self.pur_number,
            "log_date": to_utc_z(self.log_date),
            "person_name": self.person_name,
            "person_role": self.person_role,
            "department": self.department,
            "login_time": to_utc_z(self.login_time),
            "logout_time": to_utc_z(self.logout_time),
            "product_count": self.product_count,
            "status": self.status,
            "suggested_status": suggest_status(self.total_taken_qty, self.total_returned_qty, self.status),
            "is_opening": self.is_opening,
            "total_taken_qty": to_number(self.total_taken_qty),
            "total_returned_qty": to_number(self.total_returned_qty),
            "total_in_hand_qty": to_number(self.total_in_hand_qty),
            "remarks": self.remarks,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class StoreLogItem(db.Model):
    __tablename__ = "store_log_items"
    __table_args__ = (
        db.UniqueConstraint("store_log_id", "item_name", name="uq_store_log_items_log_name"),
        db.CheckConstraint("taken_qty >= 0", name="ck_store_log_items_taken_non_negative"),
        db.CheckConstraint("returned_qty >= 0", name="ck_store_log_items_returned_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_log_id = db.Column(db.Integer, db.ForeignKey("store_logs.id"), nullable=False, index=True)
    # Denormalized so availability sums filter by entry without joining logs
    store_entry_id = db.Column(db.Integer, nullable=False, index=True)

    item_name = db.Column(db.String(255), nullable=False)
    item_type = db.Column(db.String(16), nullable=True)
    unit = db.Column(db.String(16), nullable=True)
    taken_qty = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    returned_qty = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    in_hand_qty = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    return_date = db.Column(db.DateTime(timezone=True), nullable=True)
    remarks = db.Column(db.Text, nullable=True)

    store_log = db.relationship("StoreLog", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_name": self.item_name,
            "item_type": self.item_type,
            "unit": self.unit,
            "taken_qty": to_number(self.taken_qty),
            "returned_qty": to_number(self.returned_qty),
            "in_hand_qty": to_number(self.in_hand_qty),
            "return_date": to_utc_z(self.return_date),
            "remarks": self.remarks,
        }
