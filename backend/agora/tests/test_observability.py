from __future__ import annotations

import pytest
from httpx import AsyncClient
from loguru import logger

from agora.core.logging import mask_address, mask_email
from agora.tests.utils import make_keypair, wallet_login


@pytest.mark.asyncio
async def test_health_reports_database_state(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert "uptime_seconds" in payload
    assert payload["db_status"]["state"] == "ok"
    assert "version" in payload


@pytest.mark.asyncio
async def test_health_reports_database_failure(
    client: AsyncClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _broken_connection() -> None:
        raise RuntimeError("db offline")

    monkeypatch.setattr("agora.core.health.check_connection", _broken_connection)
    response = await client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["db_status"]["state"] == "down"
    assert "db offline" in payload["db_status"]["reason"]


@pytest.mark.asyncio
async def test_metrics_expose_wallet_counters(client: AsyncClient) -> None:
    await wallet_login(client, make_keypair())

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    body = response.text
    assert "wallet_nonces_issued_total" in body
    assert 'auth_logins_total{method="wallet",outcome="success"}' in body
    assert "http_requests_total" in body


@pytest.mark.asyncio
async def test_wallet_connect_is_logged_with_masked_address(client: AsyncClient) -> None:
    keypair = make_keypair()
    records: list[dict[str, object]] = []
    sink_id = logger.add(lambda message: records.append(message.record), level="INFO")
    try:
        await wallet_login(client, keypair)
    finally:
        logger.remove(sink_id)

    connected = [record for record in records if record["message"] == "wallet_connected"]
    assert len(connected) == 1
    extra = connected[0]["extra"]
    assert extra["address"] == mask_address(keypair.address)
    assert extra["outcome"] == "created"


def test_masking_helpers() -> None:
    assert mask_email("alice@example.com") == "a***e@example.com"
    assert mask_address("0x1234567890abcdef") == "0x1234...cdef"
    assert mask_address("0xshort") == "0xshort"
