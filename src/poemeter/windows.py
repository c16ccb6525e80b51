from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum

import structlog

logger = structlog.get_logger()

SIDEBAR_WIDTH_DEFAULT = 400
SIDEBAR_WIDTH_MIN = 300
SIDEBAR_WIDTH_MAX = 600


class WidgetState(str, Enum):
    NORMAL = "normal"
    MINIMIZED = "minimized"
    MAXIMIZED = "maximized"


@dataclass(frozen=True, slots=True)
class WidgetInfo:
    title: "str"
    icon: "str"


# known dashboard widgets: widget_id -> display info
WIDGET_CATALOGUE: "dict[str, WidgetInfo]" = {
    "user-points": WidgetInfo("User points", "💰"),
    "bot-stats": WidgetInfo("Bot statistics", "🤖"),
    "total-stats": WidgetInfo("Overall statistics", "📊"),
    "chart": WidgetInfo("Points spending trend", "📈"),
}

_DEFAULT_WIDGET = WidgetInfo("", "📦")


@dataclass(frozen=True, slots=True)
class DockEntry:
    widget_id: "str"
    title: "str"
    icon: "str"


class WindowManager:
    """
    WindowManager is an explicit state store for the dashboard
    widgets. Each widget is NORMAL, MINIMIZED or MAXIMIZED, and at
    most one widget is MAXIMIZED at any time.

    Transitions that do not apply to the current state are no-ops.
    Widgets that were never touched are NORMAL.
    """

    def __init__(
        self,
        on_refresh: "Callable[[str], None] | None" = None,
        catalogue: "dict[str, WidgetInfo] | None" = None,
    ) -> "None":
        self._on_refresh = on_refresh
        self._catalogue = WIDGET_CATALOGUE if catalogue is None else catalogue
        self._states: "dict[str, WidgetState]" = {}
        # minimized widget ids, in the order they were minimized
        self._dock: "list[str]" = []

    def state(self, widget_id: "str") -> "WidgetState":
        return self._states.get(widget_id, WidgetState.NORMAL)

    @property
    def maximized(self) -> "str | None":
        for widget_id, state in self._states.items():
            if state is WidgetState.MAXIMIZED:
                return widget_id
        return None

    def minimize(self, widget_id: "str") -> "None":
        if self.state(widget_id) is WidgetState.MINIMIZED:
            return
        self._set(widget_id, WidgetState.MINIMIZED)
        self._dock.append(widget_id)

    def close(self, widget_id: "str") -> "None":
        """
        closing a widget docks it, the same as minimizing.
        """
        self.minimize(widget_id)

    def restore(self, widget_id: "str") -> "None":
        if self.state(widget_id) is not WidgetState.MINIMIZED:
            return
        self._undock(widget_id)
        self._set(widget_id, WidgetState.NORMAL)

    def toggle_maximize(self, widget_id: "str") -> "None":
        """
        maximizes the widget, or returns it to NORMAL when it already
        is. A previously maximized widget goes back to NORMAL and a
        minimized one is taken out of the dock first.
        """
        if self.state(widget_id) is WidgetState.MAXIMIZED:
            self._set(widget_id, WidgetState.NORMAL)
            return

        current = self.maximized
        if current is not None:
            self._set(current, WidgetState.NORMAL)

        self._undock(widget_id)
        self._set(widget_id, WidgetState.MAXIMIZED)

    def refresh(self, widget_id: "str") -> "None":
        if self._on_refresh is not None:
            self._on_refresh(widget_id)

    def is_visible(self, widget_id: "str") -> "bool":
        return self.state(widget_id) is not WidgetState.MINIMIZED

    def is_maximized(self, widget_id: "str") -> "bool":
        return self.state(widget_id) is WidgetState.MAXIMIZED

    def dock(self) -> "list[DockEntry]":
        entries: "list[DockEntry]" = []
        for widget_id in self._dock:
            info = self._catalogue.get(widget_id, _DEFAULT_WIDGET)
            entries.append(DockEntry(widget_id, info.title or widget_id, info.icon))
        return entries

    def _set(self, widget_id: "str", state: "WidgetState") -> "None":
        previous = self.state(widget_id)
        self._states[widget_id] = state
        logger.debug(
            "widget_state_changed",
            widget=widget_id,
            previous=previous.value,
            state=state.value,
        )

    def _undock(self, widget_id: "str") -> "None":
        if widget_id in self._dock:
            self._dock.remove(widget_id)


@dataclass(frozen=True, slots=True)
class LayoutConfig:
    """
    LayoutConfig holds the dashboard layout: the sidebar width and
    the grid layout document as produced by the frontend grid.
    """

    sidebar_width: "int" = SIDEBAR_WIDTH_DEFAULT
    grid_layout: "object | None" = field(default=None)

    def update(
        self,
        sidebar_width: "int | None" = None,
        grid_layout: "object | None" = None,
    ) -> "LayoutConfig":
        """
        returns a copy with the given fields changed. The sidebar
        width is clamped to the supported range.
        """
        changes: "dict[str, object]" = {}
        if sidebar_width is not None:
            changes["sidebar_width"] = min(
                max(sidebar_width, SIDEBAR_WIDTH_MIN), SIDEBAR_WIDTH_MAX
            )
        if grid_layout is not None:
            changes["grid_layout"] = grid_layout
        return replace(self, **changes)
