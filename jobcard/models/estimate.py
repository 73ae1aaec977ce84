from __future__ import annotations

from sqlalchemy import ForeignKey, Index, false, func, text
from sqlalchemy.dialects.postgresql import JSONB

from jobcard.extensions import db

STATUS_DRAFT = "draft"
STATUS_SENT = "sent"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
STATUS_EXPIRED = "expired"
ESTIMATE_STATUSES = (STATUS_DRAFT, STATUS_SENT, STATUS_APPROVED, STATUS_REJECTED, STATUS_EXPIRED)

_JSON = db.JSON().with_variant(JSONB(), "postgresql")


class Estimate(db.Model):
    __tablename__ = "estimates"
    __allow_unmapped__ = True

    id = db.Column(db.Integer, primary_key=True)

    work_order_id   = db.Column(db.Integer, ForeignKey("work_orders.id"), nullable=False)
    estimate_number = db.Column(db.String(32), nullable=False)
    estimate_date   = db.Column(db.Date, nullable=False)
    valid_until     = db.Column(db.Date, nullable=False)

    # Line-item snapshots, money stored as decimal strings
    estimated_labour    = db.Column(_JSON, nullable=False, default=list)
    estimated_materials = db.Column(_JSON, nullable=False, default=list)
    additional_charges  = db.Column(_JSON, nullable=False, default=list)
    discounts           = db.Column(_JSON, nullable=False, default=list)

    # Derived by services.money.grand_total; never written from client input
    tax_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0, server_default=text("0"))
    tax_amount     = db.Column(db.Numeric(12, 2), nullable=False, default=0, server_default=text("0"))
    subtotal       = db.Column(db.Numeric(12, 2), nullable=False)
    grand_total    = db.Column(db.Numeric(12, 2), nullable=False)

    notes                = db.Column(db.Text, nullable=True)
    terms_and_conditions = db.Column(db.Text, nullable=True)

    status      = db.Column(db.String(16), nullable=False, default=STATUS_DRAFT, server_default=text("'draft'"))
    approved_by = db.Column(db.Integer, ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by  = db.Column(db.Integer, ForeignKey("users.id"), nullable=True)
    is_deleted  = db.Column(db.Boolean, nullable=False, default=False, server_default=text("FALSE"))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    work_order = db.relationship("WorkOrder")

    __table_args__ = (
        Index("ux_estimates_estimate_number", estimate_number, unique=True),
        # one live estimate per work order; soft-deleted rows keep their history
        Index(
            "ux_estimates_work_order_active",
            work_order_id,
            unique=True,
            postgresql_where=(is_deleted == false()),
            sqlite_where=(is_deleted == false()),
        ),
        Index("ix_estimates_status", status),
        Index("ix_estimates_estimate_date", estimate_date),
    )

    @property
    def is_locked(self) -> bool:
        return self.status == STATUS_APPROVED

    def __repr__(self) -> str:
        return f"<Estimate id={self.id} number={self.estimate_number!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return dict(
            id=self.id,
            work_order_id=self.work_order_id,
            estimate_number=self.estimate_number,
            estimate_date=self.estimate_date.isoformat() if self.estimate_date else None,
            valid_until=self.valid_until.isoformat() if self.valid_until else None,
            estimated_labour=list(self.estimated_labour or []),
            estimated_materials=list(self.estimated_materials or []),
            additional_charges=list(self.additional_charges or []),
            discounts=list(self.discounts or []),
            tax_percentage=self.tax_percentage,
            tax_amount=self.tax_amount,
            subtotal=self.subtotal,
            grand_total=self.grand_total,
            notes=self.notes,
            terms_and_conditions=self.terms_and_conditions,
            status=self.status,
            approved_by=self.approved_by,
            approved_at=self.approved_at.isoformat() if self.approved_at else None,
            created_by=self.created_by,
            created_at=self.created_at.isoformat() if self.created_at else None,
            updated_at=self.updated_at.isoformat() if self.updated_at else None,
        )
