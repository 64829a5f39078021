"""ORM models. Importing this package registers every table on ``Base.metadata``."""

from assetdesk.models.assignment import (AssignmentCondition,
                                         AssignmentStatus, ProductAssignment)
from assetdesk.models.catalog import Branch, Category, Department
from assetdesk.models.employee import Employee
from assetdesk.models.idempotency import IdempotencyRecord
from assetdesk.models.product import Product
from assetdesk.models.user import User, UserRole

__all__ = [
    "AssignmentCondition",
    "AssignmentStatus",
    "Branch",
    "Category",
    "Department",
    "Employee",
    "IdempotencyRecord",
    "Product",
    "ProductAssignment",
    "User",
    "UserRole",
]
