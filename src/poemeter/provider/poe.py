import httpx
import structlog

from poemeter.curl import CurlCredentials
from poemeter.models import HistoryPage, PointsHistoryNode, PointsInfo
from poemeter.provider.base import ProviderResponseError

logger = structlog.get_logger()

POE_GQL_URL = "https://poe.com/api/gql_POST"

HISTORY_QUERY = "PointsHistoryPageColumnViewerPaginationQuery"
HISTORY_QUERY_HASH = "9b68fe8ea0017e5d7701c93a5db8323136f9cb023d514f8595ae0dde220be6d1"
SETTINGS_QUERY = "settingsPageQuery"
SETTINGS_QUERY_HASH = "39ca34ece084fd810ccc8394942a2a584651433a57e7455ae80546a2e7893b5f"

HISTORY_PAGE_SIZE = 20

_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/142.0.0.0 Safari/537.36"
)


class PoeProvider:
    """
    PoeProvider implements the PointsProvider protocol on top of
    Poe's persisted GraphQL queries. Authentication is the browser
    session: cookie plus the poe-* request headers.
    """

    def __init__(
        self,
        credentials: "CurlCredentials",
        timeout: "float" = 30.0,
    ) -> "None":
        headers: "dict[str, str]" = {
            "accept": "*/*",
            "content-type": "application/json",
            "cookie": credentials.cookie,
            "origin": "https://poe.com",
            "referer": "https://poe.com/points_history",
            "poe-formkey": credentials.form_key,
            "poe-tchannel": credentials.tchannel,
            "poe-revision": credentials.revision,
            "poe-tag-id": credentials.tag_id,
            "poegraphql": "1",
            "user-agent": _USER_AGENT,
        }
        self._client: "httpx.AsyncClient" = httpx.AsyncClient(
            timeout=timeout,
            headers=headers,
        )

    @property
    def name(self) -> "str":
        return "poe"

    async def close(self) -> "None":
        """
        closes the underlying HTTP client.
        """
        await self._client.aclose()

    async def _query(
        self,
        query_name: "str",
        query_hash: "str",
        variables: "dict[str, object]",
    ) -> "dict":
        body = {
            "queryName": query_name,
            "variables": variables,
            "extensions": {"hash": query_hash},
        }
        logger.debug("poe_query", query=query_name, variables=variables)
        resp = await self._client.post(
            POE_GQL_URL,
            json=body,
            headers={"poe-queryname": query_name},
        )
        resp.raise_for_status()

        try:
            payload = resp.json()
        except ValueError as exc:
            raise ProviderResponseError(f"{query_name}: body is not JSON") from exc

        if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
            raise ProviderResponseError(f"{query_name}: response has no data")
        return payload["data"]

    async def fetch_history_page(self, cursor: "str" = "") -> "HistoryPage":
        """
        fetches one page of points history, newest first.
        """
        variables: "dict[str, object]" = {"limit": HISTORY_PAGE_SIZE}
        if cursor:
            variables["cursor"] = cursor

        data = await self._query(HISTORY_QUERY, HISTORY_QUERY_HASH, variables)

        try:
            connection = data["viewer"]["pointsHistoryConnection"]
            nodes = [
                PointsHistoryNode(
                    id=edge["node"]["id"],
                    point_cost=int(edge["node"].get("pointCost") or 0),
                    creation_time=int(edge["node"]["creationTime"]),
                    bot_name=(edge["node"].get("bot") or {}).get("displayName") or "",
                    bot_id=(edge["node"].get("bot") or {}).get("id") or "",
                    cursor=edge.get("cursor") or "",
                )
                for edge in connection.get("edges") or []
            ]
            page_info = connection.get("pageInfo") or {}
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderResponseError(f"malformed points history: {exc}") from exc

        logger.debug(
            "history_page_fetched",
            cursor=cursor,
            record_count=len(nodes),
            has_next_page=bool(page_info.get("hasNextPage")),
        )
        return HistoryPage(
            nodes=nodes,
            end_cursor=page_info.get("endCursor") or "",
            has_next_page=bool(page_info.get("hasNextPage")),
        )

    async def fetch_points_info(self) -> "PointsInfo":
        """
        fetches the subscription's point allotment and balance.
        """
        data = await self._query(SETTINGS_QUERY, SETTINGS_QUERY_HASH, {})

        try:
            viewer = data["viewer"]
            point_info = viewer["messagePointInfo"]
            subscription = viewer.get("subscription") or {}
            product = subscription.get("subscriptionProduct") or {}
            return PointsInfo(
                total_allotment=int(point_info["totalMessagePointAllotment"]),
                current_balance=int(point_info["subscriptionPointBalance"]),
                next_grant_time=int(point_info["computePointNextGrantTime"]),
                expires_time=int(subscription.get("expiresTime") or 0),
                subscription_name=str(product.get("displayName") or ""),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderResponseError(f"malformed points info: {exc}") from exc
