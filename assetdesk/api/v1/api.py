"""
V1 API router aggregator: wires all endpoint modules together.
"""

from fastapi import APIRouter

from assetdesk.api.v1.endpoints import (assignments, auth, catalog, dashboard,
                                        employees, products, system, users)

api_router = APIRouter()

# Auth and system accounts
api_router.include_router(auth.router)
api_router.include_router(users.router)

# Lookup tables
api_router.include_router(catalog.branches_router)
api_router.include_router(catalog.categories_router)
api_router.include_router(catalog.departments_router)

# Employees, products and the assignment ledger
api_router.include_router(employees.router)
api_router.include_router(products.router)
api_router.include_router(assignments.router)

# Dashboard, health
api_router.include_router(dashboard.router)
api_router.include_router(system.router)
