import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.fastapi_router import setup_routers
from chaindata.evm.typing import BalanceFeedEntry_, PriceFeedEntry_
from tools.async_tools import run_async_function
from wallet import sync, views

from conftest import USDC_ADDRESS, WALLET_ADDRESS, WETH_ADDRESS


@pytest.fixture
def app(monkeypatch) -> FastAPI:
    async def fake_feed(user_address):
        return [
            BalanceFeedEntry_(address=USDC_ADDRESS, amount=1_500_000, decimals=6),
            BalanceFeedEntry_(address=WETH_ADDRESS, amount=10**18, decimals=18),
        ]

    async def fake_prices():
        return {
            "USDC": PriceFeedEntry_(price="1", decimals=6),
            "WETH": PriceFeedEntry_(price="3000", decimals=18),
        }

    async def fake_activity(user_address):
        return []

    monkeypatch.setattr(sync, "get_wallet_balance_feed", fake_feed)
    monkeypatch.setattr(sync, "get_latest_prices", fake_prices)
    monkeypatch.setattr(sync, "get_all_activity", fake_activity)

    app = FastAPI()
    setup_routers(app)
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def test_balances_endpoint(client: TestClient) -> None:
    resp = client.get(f"/wallet/{WALLET_ADDRESS}/balances")

    assert resp.status_code == 200
    body = resp.json()
    by_symbol = {b["symbol"]: b for b in body["balances"]}
    assert by_symbol["USDC"]["formatted"] == "1.500000"
    assert by_symbol["WETH"]["usd_value"] == 3000
    assert body["total_usd_value"]["value"] == pytest.approx(3001.5)
    assert body["total_usd_value"]["display_value"] == "$3K"
    assert body["stablecoin_usd_value"]["value"] == pytest.approx(1.5)
    assert body["optimistic_update_active"] is False


def test_invalid_address_is_rejected(client: TestClient) -> None:
    resp = client.get("/wallet/not-an-address/balances")

    assert resp.status_code == 400


def test_portfolio_history_endpoint(client: TestClient) -> None:
    client.get(f"/wallet/{WALLET_ADDRESS}/balances")

    resp = client.get(f"/wallet/{WALLET_ADDRESS}/portfolio_history", params={"timeframe": "7d"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["timeframe"] == "7d"
    assert len(body["points"]) == 8
    assert all(p["value"] == pytest.approx(3001.5) for p in body["points"])


def test_unknown_timeframe_is_rejected(client: TestClient) -> None:
    resp = client.get(f"/wallet/{WALLET_ADDRESS}/portfolio_history", params={"timeframe": "2d"})

    assert resp.status_code == 422


def test_optimistic_swap_flow(client: TestClient) -> None:
    client.get(f"/wallet/{WALLET_ADDRESS}/balances")
    swap = {
        "sell_symbol": "USDC",
        "buy_symbol": "WETH",
        "sell_amount": 1_000_000,
        "buy_amount": 10**15,
        "tx_hash": "0xabc",
    }

    resp = client.post(f"/wallet/{WALLET_ADDRESS}/optimistic_swap", json=swap)
    assert resp.status_code == 200
    assert resp.json()["status"] == "applied"

    resp = client.post(f"/wallet/{WALLET_ADDRESS}/optimistic_swap", json=swap)
    assert resp.status_code == 409

    resp = client.post(f"/wallet/{WALLET_ADDRESS}/optimistic_swap/revert")
    assert resp.status_code == 200
    by_symbol = {b["symbol"]: b for b in resp.json()["balances"]}
    assert by_symbol["USDC"]["value"] == 1_500_000
    assert resp.json()["optimistic_update_active"] is False

    resp = client.post(f"/wallet/{WALLET_ADDRESS}/optimistic_swap/revert")
    assert resp.status_code == 409


def test_optimistic_swap_overdraft(client: TestClient) -> None:
    client.get(f"/wallet/{WALLET_ADDRESS}/balances")

    resp = client.post(
        f"/wallet/{WALLET_ADDRESS}/optimistic_swap",
        json={"sell_symbol": "USDC", "buy_symbol": "WETH", "sell_amount": 2_000_000, "buy_amount": 1},
    )

    assert resp.status_code == 422
    assert resp.json()["detail"] == "insufficient_balance"


def test_optimistic_swap_confirm(client: TestClient, app: FastAPI) -> None:
    client.get(f"/wallet/{WALLET_ADDRESS}/balances")
    client.post(
        f"/wallet/{WALLET_ADDRESS}/optimistic_swap",
        json={"sell_symbol": "USDC", "buy_symbol": "WETH", "sell_amount": 500_000, "buy_amount": 1},
    )

    resp = client.post(f"/wallet/{WALLET_ADDRESS}/optimistic_swap/confirm")

    assert resp.status_code == 200
    store = run_async_function(app.state.wallet_stores.get, WALLET_ADDRESS)
    assert store.balances["USDC"].value == 1_000_000
    assert not store.optimistic_update.is_active


def test_asgi_app_owns_wallet_stores() -> None:
    from backend.asgi import app

    assert isinstance(app.state.wallet_stores, views.WalletStores)
    assert any(route.path.startswith("/wallet/") for route in app.routes)


def test_wallet_stores_reuse_store_per_address() -> None:
    stores = views.WalletStores()

    async def lookup():
        first = await stores.get(WALLET_ADDRESS)
        second = await stores.get(WALLET_ADDRESS.upper().replace("0X", "0x"))
        other = await stores.get("0x" + "cd" * 20)
        return first, second, other

    first, second, other = run_async_function(lookup)

    assert first is second
    assert other is not first


def test_wallet_stores_evict_idle_wallets() -> None:
    stores = views.WalletStores(ttl=0.05)

    async def lookup():
        first = await stores.get(WALLET_ADDRESS)
        await asyncio.sleep(0.02)
        kept = await stores.get(WALLET_ADDRESS)
        await asyncio.sleep(0.1)
        evicted = await stores.get(WALLET_ADDRESS)
        return first, kept, evicted

    first, kept, evicted = run_async_function(lookup)

    assert kept is first
    assert evicted is not first
