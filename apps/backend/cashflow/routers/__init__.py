"""Router aggregation: mounts every feature router under ``/api``."""

from fastapi import FastAPI

from . import accounts, cash_flow, recurring, reports, transactions


def register_routers(app: FastAPI) -> None:
    """Attach all API routes to the FastAPI application."""

    app.include_router(accounts.router, prefix="/api")
    app.include_router(transactions.router, prefix="/api")
    app.include_router(recurring.router, prefix="/api")
    app.include_router(cash_flow.router, prefix="/api")
    app.include_router(reports.router, prefix="/api")
