from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from poemeter.aggregator import parse_cost

# accepted ranking keys for the category breakdown
SORT_KEYS: "tuple[str, ...]" = ("count", "cost", "avg_cost")


@dataclass(frozen=True, slots=True)
class CostStats:
    total: "float" = 0.0
    average: "float" = 0.0
    max: "float" = 0.0
    min: "float" = 0.0
    count: "int" = 0


@dataclass(frozen=True, slots=True)
class CategoryStat:
    name: "str"
    count: "int"
    cost: "float"
    avg_cost: "float"
    # share of all rows, 0-100
    percentage: "float"


@dataclass(frozen=True, slots=True)
class Summary:
    cost: "CostStats"
    categories: "list[CategoryStat]"
    cost_column: "str | None" = None
    category_column: "str | None" = None


def find_column(columns: "Sequence[object]", needle: "str") -> "object | None":
    """
    returns the first column whose name contains `needle`,
    case-insensitively.
    """
    for column in columns:
        if needle in str(column).lower():
            return column
    return None


def cost_stats(values: "Sequence[float]") -> "CostStats":
    if not values:
        return CostStats()

    total = sum(values)
    return CostStats(
        total=total,
        average=total / len(values),
        max=max(values),
        min=min(values),
        count=len(values),
    )


def rank_categories(
    categories: "Sequence[CategoryStat]",
    sort_by: "str" = "count",
    top_n: "int | None" = None,
) -> "list[CategoryStat]":
    """
    orders categories descending by the given key. Ties keep their
    input order. Unknown keys rank by count.
    """
    if sort_by not in SORT_KEYS:
        sort_by = "count"

    # sorted() with reverse=True is still stable
    ranked = sorted(categories, key=lambda c: getattr(c, sort_by), reverse=True)
    if top_n is not None:
        ranked = ranked[: max(top_n, 0)]
    return ranked


def summarize(
    rows: "Sequence[Mapping[str, object]]",
    cost_column: "str | None" = None,
    category_column: "str | None" = None,
    sort_by: "str" = "count",
    top_n: "int | None" = None,
) -> "Summary":
    """
    computes cost statistics and a per-category breakdown over
    table rows.

    When a column is not named it is detected from the first row's
    keys ("cost" and "model" substrings). Unreadable costs count as
    0; rows without a category are grouped under "Unknown".
    """
    if not rows:
        return Summary(
            cost=CostStats(),
            categories=[],
            cost_column=cost_column,
            category_column=category_column,
        )

    columns = list(rows[0].keys())
    if cost_column is None:
        cost_column = find_column(columns, "cost")
    if category_column is None:
        category_column = find_column(columns, "model")

    costs = [
        parse_cost(row.get(cost_column)) if cost_column else 0.0 for row in rows
    ]

    # name -> [count, cost], in first-seen order
    groups: "dict[str, list[float]]" = {}
    if category_column is not None:
        for row, cost in zip(rows, costs):
            name = str(row.get(category_column) or "Unknown")
            group = groups.setdefault(name, [0, 0.0])
            group[0] += 1
            group[1] += cost

    total_rows = len(rows)
    categories = [
        CategoryStat(
            name=name,
            count=int(count),
            cost=cost,
            avg_cost=cost / count if count else 0.0,
            percentage=count / total_rows * 100,
        )
        for name, (count, cost) in groups.items()
    ]

    return Summary(
        cost=cost_stats(costs) if cost_column else CostStats(),
        categories=rank_categories(categories, sort_by, top_n),
        cost_column=cost_column,
        category_column=category_column,
    )
