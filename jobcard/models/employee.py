from __future__ import annotations

from sqlalchemy import Index, func, text

from jobcard.extensions import db


class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)
    employee_code = db.Column(db.String(32), nullable=False, unique=True)

    first_name = db.Column(db.String(100), nullable=False)
    last_name  = db.Column(db.String(100), nullable=False)
    email      = db.Column(db.String(255), nullable=True)
    phone      = db.Column(db.String(32), nullable=True)
    # default hourly rate offered when logging labour for this employee
    minimum_wage = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Lifecycle
    is_active  = db.Column(db.Boolean, nullable=False, default=True, server_default=text("TRUE"))
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, server_default=text("FALSE"))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_employees_lower_email", func.lower(email)),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Employee id={self.id} code={self.employee_code!r} active={self.is_active}>"

    def to_dict(self) -> dict:
        return dict(
            id=self.id,
            employee_code=self.employee_code,
            first_name=self.first_name,
            last_name=self.last_name,
            full_name=self.full_name,
            email=self.email,
            phone=self.phone,
            minimum_wage=self.minimum_wage,
            is_active=self.is_active,
            created_at=self.created_at.isoformat() if self.created_at else None,
        )
