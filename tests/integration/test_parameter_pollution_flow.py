"""Integration tests for repeated parameter handling."""

from collections.abc import Awaitable, Callable

import pytest
from httpx import AsyncClient

type ClientFactory = Callable[..., Awaitable[AsyncClient]]

FORM = {"content-type": "application/x-www-form-urlencoded"}


@pytest.mark.integration
class TestParameterPollution:
    """Test last-value-wins collapsing through the pipeline."""

    @pytest.mark.parametrize(
        ("query", "expected"),
        [("sort=a&sort=b", "b"), ("sort=a&sort=b&sort=c", "c")],
    )
    async def test_query_last_value_wins(
        self, client: AsyncClient, query: str, expected: str
    ) -> None:
        """Test repeated query parameters collapse to their last value."""
        response = await client.post(f"/api/echo?{query}")

        assert response.json()["data"]["query"] == {"sort": expected}

    async def test_form_last_value_wins(self, client: AsyncClient) -> None:
        """Test repeated form fields collapse too."""
        response = await client.post(
            "/api/echo", content=b"role=user&role=admin&name=Ada", headers=FORM
        )

        assert response.json()["data"]["body"] == {"role": "admin", "name": "Ada"}

    async def test_json_arrays_untouched(self, client: AsyncClient) -> None:
        """Test arrays in JSON bodies are intentional and kept."""
        response = await client.post("/api/echo", json={"tags": ["a", "b"]})

        assert response.json()["data"]["body"] == {"tags": ["a", "b"]}

    async def test_validated_route_sees_scalar(self, client: AsyncClient) -> None:
        """Test validators receive the collapsed value."""
        response = await client.get("/api/users?sort=asc&sort=desc&page=1&page=3")

        assert response.status_code == 200
        pagination = response.json()["data"]["pagination"]
        assert pagination["sort"] == "desc"
        assert pagination["page"] == 3

    async def test_whitelisted_fields_stay_repeated(
        self, make_client: ClientFactory
    ) -> None:
        """Test whitelisted fields keep every value."""
        client = await make_client(hpp_whitelist=("tag",))

        response = await client.post(
            "/api/echo?tag=a&tag=b&sort=x&sort=y",
            content=b"tag=c&tag=d",
            headers=FORM,
        )

        data = response.json()["data"]
        assert data["query"] == {"tag": ["a", "b"], "sort": "y"}
        assert data["body"] == {"tag": ["c", "d"]}
