from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import to_number


class Document(db.Model):
    """
    Customer-facing commercial document: estimation, proforma or invoice.

    NUMBERING:
    - document_number: "EST-2025-0001", "PRO-2025-0001", "INV-2025-0001"
      from documentSeq_<type>_<year> (calendar year of document_date)

    CONVERSION:
    A converted document points back at its source through
    ``original_document_id``. Each source converts at most once into each
    target type (uq_documents_conversion).

    Totals are recomputed by the document service on every write.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_documents_number"),
        db.UniqueConstraint("original_document_id", "document_type", name="uq_documents_conversion"),
        db.Index("ix_documents_type_status", "document_type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    serial_no = db.Column(db.Integer, nullable=False)
    document_number = db.Column(db.String(32), nullable=False)
    document_type = db.Column(db.String(16), nullable=False)  # estimation, proforma, invoice

    document_date = db.Column(db.DateTime(timezone=True), nullable=False)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    valid_until = db.Column(db.DateTime(timezone=True), nullable=True)

    original_document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=True, index=True)
    converted_from = db.Column(db.String(16), nullable=True)

    buyer_id = db.Column(db.Integer, db.ForeignKey("buyers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_mobile = db.Column(db.String(32), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_gst = db.Column(db.String(32), nullable=True)
    customer_company = db.Column(db.String(255), nullable=True)
    customer_address = db.Column(db.Text, nullable=True)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    order_number = db.Column(db.String(32), nullable=True)
    place_of_supply = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(32), nullable=False, default="Draft", index=True)
    subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    transportation_charges = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    grand_total = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    amount_paid = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    balance_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    payment_terms = db.Column(db.String(64), nullable=True)
    remarks = db.Column(db.Text, nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    original_document = db.relationship(
        "Document",
        remote_side=[id],
        back_populates="conversions",
    )
    conversions = db.relationship(
        "Document",
        back_populates="original_document",
        order_by="Document.id",
    )
    buyer = db.relationship("Buyer")
    order = db.relationship("Order", back_populates="documents")
    lines = db.relationship(
        "DocumentLine",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentLine.id",
    )
    payments = db.relationship(
        "DocumentPayment",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentPayment.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Document id={self.id} number={self.document_number!r} status={self.status!r}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "serial_no": self.serial_no,
            "document_number": self.document_number,
            "document_type": self.document_type,
            "document_date": to_utc_z(self.document_date),
            "due_date": to_utc_z(self.due_date),
            "valid_until": to_utc_z(self.valid_until),
            "original_document_id": self.original_document_id,
            "original_document_number": (
                self.original_document.document_number if self.original_document else None
            ),
            "converted_from": self.converted_from,
            "converted_to": [
                {"id": d.id, "document_type": d.document_type, "document_number": d.document_number}
                for d in self.conversions
            ],
            "customer": {
                "buyer_id": self.buyer_id,
                "name": self.customer_name,
                "mobile": self.customer_mobile,
                "email": self.customer_email,
                "gst": self.customer_gst,
                "company": self.customer_company,
                "address": self.customer_address,
            },
            "order_id": self.order_id,
            "order_number": self.order_number,
            "place_of_supply": self.place_of_supply,
            "status": self.status,
            "subtotal": to_number(self.subtotal),
            "total_discount": to_number(self.total_discount),
            "transportation_charges": to_number(self.transportation_charges),
            "grand_total": to_number(self.grand_total),
            "amount_paid": to_number(self.amount_paid),
            "balance_amount": to_number(self.balance_amount),
            "payment_terms": self.payment_terms,
            "remarks": self.remarks,
            "sent_at": to_utc_z(self.sent_at),
            "accepted_at": to_utc_z(self.accepted_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class DocumentLine(db.Model):
    """Priced line on a document; line_total is after its discount."""
    __tablename__ = "document_lines"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_document_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    product_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    hsn = db.Column(db.String(32), nullable=True)
    color = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(16), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=False, default="percentage")  # percentage, amount
    line_total = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    document = db.relationship("Document", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "description": self.description,
            "hsn": self.hsn,
            "color": self.color,
            "size": self.size,
            "quantity": self.quantity,
            "unit_price": to_number(self.unit_price),
            "discount": to_number(self.discount),
            "discount_type": self.discount_type,
            "line_total": to_number(self.line_total),
        }


class DocumentPayment(db.Model):
    __tablename__ = "document_payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_document_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)
    method = db.Column(db.String(32), nullable=True)
    reference = db.Column(db.String(128), nullable=True)
    remarks = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    document = db.relationship("Document", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": to_number(self.amount),
            "payment_date": to_utc_z(self.payment_date),
            "method": self.method,
            "reference": self.reference,
            "remarks": self.remarks,
        }


class Note(db.Model):
    """
    Credit or debit note adjusting an earlier document.

    NUMBERING:
    - note_number: "CN/2025/0001" or "DN/2025/0001" from
      <type>NoteSeq_<year> (calendar year of note_date)

    LIFECYCLE: draft -> issued -> cancelled. Notes are never hard-deleted
    by the note service; cancelling keeps the number on record.
    """
    __tablename__ = "notes"
    __table_args__ = (
        db.UniqueConstraint("note_number", name="uq_notes_number"),
        db.Index("ix_notes_type_status", "note_type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    serial_no = db.Column(db.Integer, nullable=False)
    note_number = db.Column(db.String(32), nullable=False)
    note_type = db.Column(db.String(8), nullable=False)  # credit, debit
    note_date = db.Column(db.DateTime(timezone=True), nullable=False)

    reference_type = db.Column(db.String(32), nullable=False)
    reference_number = db.Column(db.String(64), nullable=False, index=True)
    reference_date = db.Column(db.DateTime(timezone=True), nullable=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=True, index=True)

    reason = db.Column(db.String(32), nullable=False)
    reason_description = db.Column(db.Text, nullable=True)

    party_name = db.Column(db.String(255), nullable=False)
    party_mobile = db.Column(db.String(32), nullable=True)
    party_gst = db.Column(db.String(32), nullable=True)
    party_state = db.Column(db.String(64), nullable=True)
    party_address = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    grand_total = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    is_auto_generated = db.Column(db.Boolean, nullable=False, default=False)
    remarks = db.Column(db.Text, nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    document = db.relationship("Document", backref=db.backref("notes", lazy=True))
    lines = db.relationship(
        "NoteLine",
        back_populates="note",
        cascade="all, delete-orphan",
        order_by="NoteLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Note id={self.id} number={self.note_number!r} status={self.status!r}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "serial_no": self.serial_no,
            "note_number": self.note_number,
            "note_type": self.note_type,
            "note_date": to_utc_z(self.note_date),
            "reference_type": self.reference_type,
            "reference_number": self.reference_number,
            "reference_date": to_utc_z(self.reference_date),
            "document_id": self.document_id,
            "purchase_return_id": self.purchase_return.id if self.purchase_return else None,
            "reason": self.reason,
            "reason_description": self.reason_description,
            "party": {
                "name": self.party_name,
                "mobile": self.party_mobile,
                "gst": self.party_gst,
                "state": self.party_state,
                "address": self.party_address,
            },
            "status": self.status,
            "subtotal": to_number(self.subtotal),
            "grand_total": to_number(self.grand_total),
            "is_auto_generated": self.is_auto_generated,
            "remarks": self.remarks,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data


class NoteLine(db.Model):
    __tablename__ = "note_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_note_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    note_id = db.Column(db.Integer, db.ForeignKey("notes.id"), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)
    hsn = db.Column(db.String(32), nullable=True)
    unit = db.Column(db.String(16), nullable=True)
    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    rate = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    note = db.relationship("Note", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "hsn": self.hsn,
            "unit": self.unit,
            "quantity": to_number(self.quantity),
            "rate": to_number(self.rate),
            "amount": to_number(self.amount),
        }
