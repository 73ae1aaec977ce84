from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from sqlalchemy import Index, func
from sqlalchemy.dialects.postgresql import JSONB

from jobcard.extensions import db, login_manager

# Permission names gate each operation; roles are just bundles of these.
PERM_READ_JOBS = "read_jobs"
PERM_CREATE_JOBS = "create_jobs"
PERM_EDIT_JOBS = "edit_jobs"
PERM_UPDATE_JOBS = "update_jobs"
PERM_APPROVE_JOBS = "approve_jobs"
PERM_CHECK_JOBS = "check_jobs"
PERM_COMPLETE_JOBS = "complete_jobs"
PERM_DELIVER_JOBS = "deliver_jobs"
PERM_MANAGE_EMPLOYEES = "manage_employees"
PERMISSIONS = (
    PERM_READ_JOBS,
    PERM_CREATE_JOBS,
    PERM_EDIT_JOBS,
    PERM_UPDATE_JOBS,
    PERM_APPROVE_JOBS,
    PERM_CHECK_JOBS,
    PERM_COMPLETE_JOBS,
    PERM_DELIVER_JOBS,
    PERM_MANAGE_EMPLOYEES,
)


class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    permissions = db.Column(db.JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)
    is_superuser = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ux_users_lower_email", func.lower(email), unique=True),
    )

    # helpers
    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def has_permission(self, name: str) -> bool:
        return bool(self.is_superuser) or name in (self.permissions or [])

    def get_id(self) -> str:
        return str(self.id)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"


@login_manager.user_loader
def load_user(user_id: str):
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None
