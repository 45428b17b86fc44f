import asyncio

import httpx

import main
from wastepolicy.services import map_service_v0_1 as svc


async def _post(path, payload):
    transport = httpx.ASGITransport(app=main.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://localhost") as client:
        return await client.post(path, json=payload)


def test_map_returns_unknown_when_labels_missing(monkeypatch):
    monkeypatch.delenv("ADVISORY_PROVIDER", raising=False)
    svc.get_engine.cache_clear()

    response = asyncio.run(_post("/api/v1/map", {"labels": [], "rules": {}, "meta": {}}))

    assert response.status_code == 200
    assert response.json()["material"] == "unknown"
    assert response.json()["bin"] == "landfill"


def test_map_returns_expected_shape(monkeypatch):
    monkeypatch.delenv("ADVISORY_PROVIDER", raising=False)
    svc.get_engine.cache_clear()

    response = asyncio.run(
        _post(
            "/api/v1/map",
            {
                "labels": [{"name": "laptop", "prob": 0.93}, {"name": "notebook", "prob": 0.2}],
                "rules": {},
                "meta": {"conf": 0.93, "delta": 0.05, "recentCount": 0},
            },
        )
    )
    payload = response.json()

    assert response.status_code == 200
    assert set(payload.keys()) == {"material", "bin", "tip", "years", "risk_score"}
    assert payload["material"] == "ewaste"
    assert payload["bin"] == "special"
    assert payload["years"] == 1000
    assert payload["risk_score"] == 0.0


def test_points_discounts_risky_capture():
    response = asyncio.run(_post("/api/v1/points", {"years": 200, "risk_score": 0.5}))

    assert response.status_code == 200
    assert response.json() == {"points": 150}
