# ==== ROUTES PACKAGE ==== #

"""
Routes package for API endpoints.

This package contains the FastAPI routers for quotes, orders, invoices,
payments and bank reconciliation, message threads, administration,
dashboards and employee onboarding.
"""
