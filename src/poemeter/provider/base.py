from typing import Protocol

from poemeter.models import HistoryPage, PointsInfo


class ProviderResponseError(Exception):
    """
    raised when the API answers with a body that does not have
    the expected shape.
    """


class PointsProvider(Protocol):
    """
    PointsProvider stands as a common protocol for the points
    history sources the collector can sync from.

    History is returned newest first, one page at a time.
    """

    @property
    def name(self) -> "str": ...

    async def fetch_history_page(self, cursor: "str" = "") -> "HistoryPage": ...

    async def fetch_points_info(self) -> "PointsInfo": ...

    async def close(self) -> "None": ...
