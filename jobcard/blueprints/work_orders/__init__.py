from flask import Blueprint

bp = Blueprint("work_orders", __name__)

# Importing is what registers the @bp routes
from . import routes  # noqa: E402,F401
