import json

import httpx
import pytest
import respx

from poemeter.curl import CurlCredentials
from poemeter.models import PointsInfo
from poemeter.provider.base import ProviderResponseError
from poemeter.provider.poe import (
    HISTORY_PAGE_SIZE,
    HISTORY_QUERY,
    POE_GQL_URL,
    SETTINGS_QUERY,
    PoeProvider,
)

CREDENTIALS = CurlCredentials(
    cookie="p-b=abc",
    form_key="fk",
    tchannel="chan",
    revision="rev",
    tag_id="tag",
)


def _history_body(
    nodes: "list[dict]",
    end_cursor: "str",
    has_next: "bool",
) -> "dict":
    return {
        "data": {
            "viewer": {
                "pointsHistoryConnection": {
                    "edges": [
                        {"node": node, "cursor": f"c-{node['id']}"} for node in nodes
                    ],
                    "pageInfo": {"endCursor": end_cursor, "hasNextPage": has_next},
                }
            }
        }
    }


def _node(node_id: "str", cost: "int", bot: "dict | None") -> "dict":
    return {
        "id": node_id,
        "pointCost": cost,
        "creationTime": 1_700_000_000_000_000,
        "bot": bot,
    }


class TestPoeProviderHistory:
    @pytest.mark.asyncio
    @respx.mock
    async def test_fetches_and_parses_page(self) -> "None":
        route = respx.post(POE_GQL_URL).mock(
            return_value=httpx.Response(
                200,
                json=_history_body(
                    [_node("n1", 120, {"displayName": "Claude-3.5", "id": "b1"})],
                    "cur-1",
                    True,
                ),
            )
        )

        provider = PoeProvider(CREDENTIALS)
        page = await provider.fetch_history_page()
        await provider.close()

        assert page.end_cursor == "cur-1"
        assert page.has_next_page is True
        assert len(page.nodes) == 1
        node = page.nodes[0]
        assert node.id == "n1"
        assert node.point_cost == 120
        assert node.creation_time == 1_700_000_000_000_000
        assert node.bot_name == "Claude-3.5"
        assert node.bot_id == "b1"
        assert node.cursor == "c-n1"

        request = route.calls.last.request
        assert request.headers["poe-queryname"] == HISTORY_QUERY
        assert request.headers["poe-formkey"] == "fk"
        assert request.headers["poe-tchannel"] == "chan"
        assert request.headers["cookie"] == "p-b=abc"
        body = json.loads(request.content)
        assert body["queryName"] == HISTORY_QUERY
        assert body["variables"] == {"limit": HISTORY_PAGE_SIZE}

    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_cursor(self) -> "None":
        route = respx.post(POE_GQL_URL).mock(
            side_effect=[
                httpx.Response(200, json=_history_body([_node("n1", 1, None)], "cur-1", True)),
                httpx.Response(200, json=_history_body([_node("n2", 2, None)], "", False)),
            ]
        )

        provider = PoeProvider(CREDENTIALS)
        first = await provider.fetch_history_page()
        second = await provider.fetch_history_page(first.end_cursor)
        await provider.close()

        assert second.has_next_page is False
        assert second.nodes[0].id == "n2"
        # missing bot yields empty names
        assert second.nodes[0].bot_name == ""
        body = json.loads(route.calls.last.request.content)
        assert body["variables"]["cursor"] == "cur-1"

    @pytest.mark.asyncio
    @respx.mock
    async def test_empty_connection(self) -> "None":
        respx.post(POE_GQL_URL).mock(
            return_value=httpx.Response(200, json=_history_body([], "", False)),
        )

        provider = PoeProvider(CREDENTIALS)
        page = await provider.fetch_history_page()
        await provider.close()

        assert page.nodes == []
        assert page.has_next_page is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_body_raises(self) -> "None":
        respx.post(POE_GQL_URL).mock(
            return_value=httpx.Response(200, json={"data": {"viewer": None}}),
        )

        provider = PoeProvider(CREDENTIALS)
        with pytest.raises(ProviderResponseError, match="malformed points history"):
            await provider.fetch_history_page()
        await provider.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_json_body_raises(self) -> "None":
        respx.post(POE_GQL_URL).mock(
            return_value=httpx.Response(200, text="<html>login</html>"),
        )

        provider = PoeProvider(CREDENTIALS)
        with pytest.raises(ProviderResponseError, match="not JSON"):
            await provider.fetch_history_page()
        await provider.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_data_raises(self) -> "None":
        respx.post(POE_GQL_URL).mock(
            return_value=httpx.Response(200, json={"errors": [{"message": "denied"}]}),
        )

        provider = PoeProvider(CREDENTIALS)
        with pytest.raises(ProviderResponseError, match="no data"):
            await provider.fetch_history_page()
        await provider.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error_raises(self) -> "None":
        respx.post(POE_GQL_URL).mock(
            return_value=httpx.Response(403),
        )

        provider = PoeProvider(CREDENTIALS)
        with pytest.raises(httpx.HTTPStatusError):
            await provider.fetch_history_page()
        await provider.close()


class TestPoeProviderPointsInfo:
    @pytest.mark.asyncio
    @respx.mock
    async def test_fetches_points_info(self) -> "None":
        route = respx.post(POE_GQL_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "data": {
                        "viewer": {
                            "messagePointInfo": {
                                "totalMessagePointAllotment": 1_000_000,
                                "subscriptionPointBalance": 650_000,
                                "computePointNextGrantTime": 1_700_000_000_000_000,
                            },
                            "subscription": {
                                "expiresTime": 1_702_000_000_000_000,
                                "subscriptionProduct": {"displayName": "Poe Premium"},
                            },
                        }
                    }
                },
            )
        )

        provider = PoeProvider(CREDENTIALS)
        info = await provider.fetch_points_info()
        await provider.close()

        assert info == PointsInfo(
            total_allotment=1_000_000,
            current_balance=650_000,
            next_grant_time=1_700_000_000_000_000,
            expires_time=1_702_000_000_000_000,
            subscription_name="Poe Premium",
        )
        assert info.used_points == 350_000
        assert route.calls.last.request.headers["poe-queryname"] == SETTINGS_QUERY

    @pytest.mark.asyncio
    @respx.mock
    async def test_without_subscription(self) -> "None":
        respx.post(POE_GQL_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "data": {
                        "viewer": {
                            "messagePointInfo": {
                                "totalMessagePointAllotment": 3000,
                                "subscriptionPointBalance": 3000,
                                "computePointNextGrantTime": 0,
                            },
                            "subscription": None,
                        }
                    }
                },
            )
        )

        provider = PoeProvider(CREDENTIALS)
        info = await provider.fetch_points_info()
        await provider.close()

        assert info.expires_time == 0
        assert info.subscription_name == ""

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_point_info_raises(self) -> "None":
        respx.post(POE_GQL_URL).mock(
            return_value=httpx.Response(200, json={"data": {"viewer": {}}}),
        )

        provider = PoeProvider(CREDENTIALS)
        with pytest.raises(ProviderResponseError, match="malformed points info"):
            await provider.fetch_points_info()
        await provider.close()
