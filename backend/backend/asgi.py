"""
ASGI entrypoint for the wallet backend.

It exposes the ASGI callable as a module-level variable named ``app``.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wallet.views import WalletStores
from .fastapi_router import setup_routers

app = FastAPI(swagger_ui_parameters={"displayRequestDuration": True}, root_path="/api")
app.state.wallet_stores = WalletStores()

origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


setup_routers(app)
