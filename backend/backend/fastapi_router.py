from fastapi import FastAPI
from wallet.views import router as wallet_router


def setup_routers(app: FastAPI):
    """Routes"""
    app.include_router(wallet_router, prefix="/wallet")
