from .user import User
from .employee import Employee
from .work_order import WorkOrder, LabourEntry, MaterialEntry
from .estimate import Estimate

__all__ = [
    "User",
    "Employee",
    "WorkOrder",
    "LabourEntry",
    "MaterialEntry",
    "Estimate",
]
