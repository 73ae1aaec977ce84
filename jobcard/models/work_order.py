from __future__ import annotations

from sqlalchemy import ForeignKey, Index, func, text

from jobcard.extensions import db

# Job execution states (independent of the estimate lifecycle)
JOB_PENDING = "pending"
JOB_CHECKED = "checked"
JOB_APPROVED = "approved"
JOB_COMPLETED = "completed"
JOB_DELIVERED = "delivered"
JOB_STATUSES = (JOB_PENDING, JOB_CHECKED, JOB_APPROVED, JOB_COMPLETED, JOB_DELIVERED)


def _iso(value):
    return value.isoformat() if value else None


class WorkOrder(db.Model):
    __tablename__ = "work_orders"
    __allow_unmapped__ = True

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), nullable=False, unique=True)

    # Client
    client_code  = db.Column(db.String(64), nullable=False)
    client_name  = db.Column(db.String(255), nullable=False)
    client_phone = db.Column(db.String(32), nullable=True)
    client_email = db.Column(db.String(255), nullable=True)

    # Order detail
    received_by    = db.Column(db.String(255), nullable=True)
    order_date     = db.Column(db.Date, nullable=True)
    order_time     = db.Column(db.String(8), nullable=True)
    job_start_date = db.Column(db.Date, nullable=True)
    date_promised  = db.Column(db.Date, nullable=True)
    date_delivered = db.Column(db.Date, nullable=True)

    # Job info
    priority     = db.Column(db.String(32), nullable=True)
    job_type     = db.Column(db.String(64), nullable=True)
    description  = db.Column(db.Text, nullable=True)
    status       = db.Column(db.String(20), nullable=False, default=JOB_PENDING, server_default=text("'pending'"))
    checked_by   = db.Column(db.Integer, ForeignKey("users.id"), nullable=True)
    checked_at   = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_by = db.Column(db.Integer, ForeignKey("users.id"), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Approval / delivery
    approved_by       = db.Column(db.Integer, ForeignKey("users.id"), nullable=True)
    approved_at       = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_by      = db.Column(db.Integer, ForeignKey("users.id"), nullable=True)
    delivered_at      = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_on_time = db.Column(db.Boolean, nullable=True)
    remarks           = db.Column(db.Text, nullable=True)

    # Running actuals, owned by services.totals
    total_labour_hours  = db.Column(db.Numeric(12, 2), nullable=False, default=0, server_default=text("0"))
    total_labour_cost   = db.Column(db.Numeric(12, 2), nullable=False, default=0, server_default=text("0"))
    total_material_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0, server_default=text("0"))
    grand_total         = db.Column(db.Numeric(12, 2), nullable=False, default=0, server_default=text("0"))

    # Denormalized from the active estimate for list views; owned by services.estimates
    has_estimate    = db.Column(db.Boolean, nullable=False, default=False, server_default=text("FALSE"))
    estimate_amount = db.Column(db.Numeric(12, 2), nullable=True)

    created_by = db.Column(db.Integer, ForeignKey("users.id"), nullable=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, server_default=text("FALSE"))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    labour_entries = db.relationship(
        "LabourEntry",
        back_populates="work_order",
        order_by="LabourEntry.id",
        cascade="all, delete-orphan",
    )
    material_entries = db.relationship(
        "MaterialEntry",
        back_populates="work_order",
        order_by="MaterialEntry.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_work_orders_status", status),
        Index("ix_work_orders_created_at", created_at),
        Index("ix_work_orders_lower_client_name", func.lower(client_name)),
    )

    def __repr__(self) -> str:
        return f"<WorkOrder id={self.id} number={self.order_number!r} status={self.status!r}>"

    def total_dict(self) -> dict:
        return dict(
            total_labour_hours=self.total_labour_hours,
            total_labour_cost=self.total_labour_cost,
            total_material_cost=self.total_material_cost,
            grand_total=self.grand_total,
        )

    def to_dict(self) -> dict:
        return dict(
            id=self.id,
            order_number=self.order_number,
            client=dict(
                code=self.client_code,
                name=self.client_name,
                contact_info=dict(phone=self.client_phone, email=self.client_email),
            ),
            order_detail=dict(
                received_by=self.received_by,
                order_date=_iso(self.order_date),
                order_time=self.order_time,
                job_start_date=_iso(self.job_start_date),
                date_promised=_iso(self.date_promised),
                date_delivered=_iso(self.date_delivered),
            ),
            job_info=dict(
                priority=self.priority,
                type=self.job_type,
                description=self.description,
                status=self.status,
                checked_by=self.checked_by,
                checked_at=_iso(self.checked_at),
                completed_by=self.completed_by,
                completed_at=_iso(self.completed_at),
            ),
            approval=dict(
                approved_by=self.approved_by,
                approved_at=_iso(self.approved_at),
                delivered_by=self.delivered_by,
                delivered_at=_iso(self.delivered_at),
                delivered_on_time=self.delivered_on_time,
                remarks=self.remarks,
            ),
            labour_entry=[e.to_dict() for e in self.labour_entries],
            material_entry=[e.to_dict() for e in self.material_entries],
            total=self.total_dict(),
            has_estimate=self.has_estimate,
            estimate_amount=self.estimate_amount,
            created_by=self.created_by,
            created_at=_iso(self.created_at),
            updated_at=_iso(self.updated_at),
        )


class LabourEntry(db.Model):
    __tablename__ = "labour_entries"

    id = db.Column(db.Integer, primary_key=True)
    work_order_id = db.Column(db.Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id   = db.Column(db.Integer, ForeignKey("employees.id"), nullable=False, index=True)

    entry_date    = db.Column(db.Date, nullable=False)
    description   = db.Column(db.String(255), nullable=False)
    hours         = db.Column(db.Numeric(12, 2), nullable=False)
    cost_per_hour = db.Column(db.Numeric(12, 2), nullable=False)
    total_cost    = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    work_order = db.relationship("WorkOrder", back_populates="labour_entries")

    def to_dict(self) -> dict:
        return dict(
            date=_iso(self.entry_date),
            description=self.description,
            hours=self.hours,
            employee_id=self.employee_id,
            cost_per_hour=self.cost_per_hour,
            total_cost=self.total_cost,
        )


class MaterialEntry(db.Model):
    __tablename__ = "material_entries"

    id = db.Column(db.Integer, primary_key=True)
    work_order_id = db.Column(db.Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True)

    description = db.Column(db.String(255), nullable=False)
    quantity    = db.Column(db.Numeric(12, 2), nullable=False)
    unit        = db.Column(db.String(32), nullable=False)
    unit_price  = db.Column(db.Numeric(12, 2), nullable=False)
    amount      = db.Column(db.Numeric(12, 2), nullable=False)
    supplier    = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    work_order = db.relationship("WorkOrder", back_populates="material_entries")

    def to_dict(self) -> dict:
        return dict(
            description=self.description,
            quantity=self.quantity,
            unit=self.unit,
            unit_price=self.unit_price,
            amount=self.amount,
            supplier=self.supplier,
        )
