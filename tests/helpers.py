import httpx


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def file_case(client: httpx.AsyncClient, token: str, **overrides) -> dict:
    """Submit a case as the given citizen and return the created record."""
    data = {
        "title": "Pothole on ring road",
        "description": "Deep pothole near the bus stop",
        "category": "roads",
        "priority": "high",
        "latitude": "23.0225",
        "longitude": "72.5714",
    }
    data.update(overrides)
    r = await client.post("/api/v1/cases", data=data, headers=auth_headers(token))
    assert r.status_code == 201, r.text
    return r.json()
