from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Buyer(db.Model):
    """
    Customer placing garment orders.

    Buyers are resolved by id or created on the fly from an order payload;
    ``code`` (BUY001, BUY002, ...) comes from the buyerSeq counter.
    """
    __tablename__ = "buyers"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_buyers_code"),
        db.Index("ix_buyers_mobile", "mobile"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(16), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    mobile = db.Column(db.String(32), nullable=False)
    gst = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)

    total_orders = db.Column(db.Integer, nullable=False, default=0)
    last_order_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Buyer id={self.id} code={self.code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "mobile": self.mobile,
            "gst": self.gst,
            "email": self.email,
            "address": self.address,
            "total_orders": self.total_orders,
            "last_order_date": to_utc_z(self.last_order_date),
        }


class Product(db.Model):
    """
    Garment product catalog entry.

    Names are unique case-insensitively through ``name_key`` (lowercased,
    whitespace-collapsed name).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("name_key", name="uq_products_name_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    name_key = db.Column(db.String(255), nullable=False)
    hsn = db.Column(db.String(32), nullable=True)

    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_quantity_ordered = db.Column(db.Integer, nullable=False, default=0)
    last_ordered_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "hsn": self.hsn,
            "total_orders": self.total_orders,
            "total_quantity_ordered": self.total_quantity_ordered,
            "last_ordered_date": to_utc_z(self.last_ordered_date),
        }


class Order(db.Model):
    """
    A buyer's purchase order, root of the manufacturing workflow.

    NUMBERING (assigned once at creation, never reassigned):
    - order_number: global "OID-0004" from globalOrderSeq
    - serial_no: per order type from orderSeq_<TYPE>
    - po_number: "PO/2526/0001" from poSeq_<financial year>

    ``total_qty`` is derived by the order service from the size lines.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.UniqueConstraint("po_number", name="uq_orders_po_number"),
        db.UniqueConstraint("order_type", "serial_no", name="uq_orders_type_serial"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False)
    serial_no = db.Column(db.Integer, nullable=False)
    po_number = db.Column(db.String(32), nullable=False)

    order_type = db.Column(db.String(16), nullable=False, index=True)  # FOB, JOB-Works, Own-Orders
    order_date = db.Column(db.DateTime(timezone=True), nullable=False)

    buyer_id = db.Column(db.Integer, db.ForeignKey("buyers.id"), nullable=False, index=True)
    # Snapshot so historical orders keep the name they were placed under
    buyer_name = db.Column(db.String(255), nullable=False)
    buyer_code = db.Column(db.String(16), nullable=False)
    buyer_mobile = db.Column(db.String(32), nullable=True)

    status = db.Column(db.String(32), nullable=False, default="Pending Purchase", index=True)
    total_qty = db.Column(db.Integer, nullable=False, default=0)
    remarks = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    buyer = db.relationship("Buyer", backref=db.backref("orders", lazy=True))
    lines = db.relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.id",
    )
    purchase = db.relationship(
        "Purchase",
        back_populates="order",
        uselist=False,
        cascade="all, delete-orphan",
    )
    production = db.relationship(
        "Production",
        back_populates="order",
        uselist=False,
        cascade="all, delete-orphan",
    )
    store_entries = db.relationship(
        "StoreEntry",
        back_populates="order",
        cascade="all, delete-orphan",
    )
    # No delete cascade: deleting an order only unlinks its documents
    documents = db.relationship("Document", back_populates="order")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status!r}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "serial_no": self.serial_no,
            "po_number": self.po_number,
            "order_type": self.order_type,
            "order_date": to_utc_z(self.order_date),
            "buyer": {
                "id": self.buyer_id,
                "name": self.buyer_name,
                "code": self.buyer_code,
                "mobile": self.buyer_mobile,
            },
            "status": self.status,
            "total_qty": self.total_qty,
            "remarks": self.remarks,
            "purchase_id": self.purchase.id if self.purchase else None,
            "production_id": self.production.id if self.production else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["products"] = [line.to_dict() for line in self.lines]
        return data


class OrderLine(db.Model):
    """One ordered product (style/color/fabric) with its size breakdown."""
    __tablename__ = "order_lines"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    style = db.Column(db.String(128), nullable=True)
    color = db.Column(db.String(64), nullable=True)
    fabric_type = db.Column(db.String(128), nullable=True)
    total_qty = db.Column(db.Integer, nullable=False, default=0)

    order = db.relationship("Order", back_populates="lines")
    product = db.relationship("Product")
    sizes = db.relationship(
        "OrderLineSize",
        back_populates="line",
        cascade="all, delete-orphan",
        order_by="OrderLineSize.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "style": self.style,
            "color": self.color,
            "fabric_type": self.fabric_type,
            "total_qty": self.total_qty,
            "sizes": [s.to_dict() for s in self.sizes],
        }


class OrderLineSize(db.Model):
    __tablename__ = "order_line_sizes"
    __table_args__ = (
        db.CheckConstraint("qty >= 1", name="ck_order_line_sizes_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    line_id = db.Column(db.Integer, db.ForeignKey("order_lines.id"), nullable=False, index=True)
    size = db.Column(db.String(16), nullable=False)
    qty = db.Column(db.Integer, nullable=False)

    line = db.relationship("OrderLine", back_populates="sizes")

    def to_dict(self) -> dict:
        return {"size": self.size, "qty": self.qty}
