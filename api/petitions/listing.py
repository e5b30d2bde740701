"""
Petition listing query builder.

Filters are typed clauses. Each clause writes its SQL with `{0}`, `{1}`, ...
for its own parameters; `compose()` renumbers them into asyncpg's global
`$n` placeholders in the order the clauses are added. User text never
becomes part of the SQL string.

Aggregates come from a LATERAL subquery so every petition produces exactly
one row:
- number_of_supporters: supporter rows across all of the petition's tiers
- supporting_cost: the petition's cheapest tier
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence, TypeVar

T = TypeVar("T")


class SortKey(str, Enum):
    ALPHABETICAL_ASC = "ALPHABETICAL_ASC"
    ALPHABETICAL_DESC = "ALPHABETICAL_DESC"
    COST_ASC = "COST_ASC"
    COST_DESC = "COST_DESC"
    CREATED_ASC = "CREATED_ASC"
    CREATED_DESC = "CREATED_DESC"


DEFAULT_SORT = SortKey.CREATED_ASC

# Petition id breaks ties in the same direction, so each *_DESC ordering is
# the exact reverse of its *_ASC counterpart.
ORDER_BY: dict[SortKey, str] = {
    SortKey.ALPHABETICAL_ASC: "p.title ASC, p.id ASC",
    SortKey.ALPHABETICAL_DESC: "p.title DESC, p.id DESC",
    SortKey.COST_ASC: "stats.supporting_cost ASC NULLS FIRST, p.id ASC",
    SortKey.COST_DESC: "stats.supporting_cost DESC NULLS LAST, p.id DESC",
    SortKey.CREATED_ASC: "p.creation_date ASC, p.id ASC",
    SortKey.CREATED_DESC: "p.creation_date DESC, p.id DESC",
}


def parse_sort_key(raw: str | None) -> SortKey:
    """
    None means "use the default"; anything outside the enumeration raises ValueError.
    """
    if raw is None:
        return DEFAULT_SORT
    return SortKey(raw.strip().upper())


@dataclass(frozen=True)
class ListingCriteria:
    q: str | None = None
    category_ids: tuple[int, ...] = ()
    supporting_cost: int | None = None
    owner_id: int | None = None
    supporter_id: int | None = None
    sort_by: SortKey = DEFAULT_SORT
    start_index: int | None = None
    count: int | None = None


@dataclass(frozen=True)
class Clause:
    sql: str
    params: tuple[Any, ...] = ()


@dataclass
class ComposedQuery:
    where: list[str] = field(default_factory=list)
    params: list[Any] = field(default_factory=list)

    def add(self, clause: Clause) -> None:
        start = len(self.params) + 1
        placeholders = [f"${n}" for n in range(start, start + len(clause.params))]
        self.where.append(clause.sql.format(*placeholders))
        self.params.extend(clause.params)


def escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_clause(q: str) -> Clause:
    pattern = f"%{escape_like(q)}%"
    return Clause("(p.title ILIKE {0} OR p.description ILIKE {0})", (pattern,))


def category_clause(category_ids: Sequence[int]) -> Clause:
    return Clause("p.category_id = ANY({0}::int[])", (list(category_ids),))


def supporting_cost_clause(max_cost: int) -> Clause:
    return Clause("stats.supporting_cost <= {0}", (max_cost,))


def owner_clause(owner_id: int) -> Clause:
    return Clause("p.owner_id = {0}", (owner_id,))


def supporter_clause(supporter_id: int) -> Clause:
    return Clause(
        """EXISTS (
          SELECT 1
          FROM supporter s
          JOIN support_tier t ON t.id = s.support_tier_id
          WHERE t.petition_id = p.id
            AND s.user_id = {0}
        )""",
        (supporter_id,),
    )


def filter_clauses(criteria: ListingCriteria) -> list[Clause]:
    clauses: list[Clause] = []
    if criteria.q:
        clauses.append(search_clause(criteria.q))
    if criteria.category_ids:
        clauses.append(category_clause(criteria.category_ids))
    if criteria.supporting_cost is not None:
        clauses.append(supporting_cost_clause(criteria.supporting_cost))
    if criteria.owner_id is not None:
        clauses.append(owner_clause(criteria.owner_id))
    if criteria.supporter_id is not None:
        clauses.append(supporter_clause(criteria.supporter_id))
    return clauses


BASE_SELECT = """
SELECT
  p.id AS petition_id,
  p.title,
  p.category_id,
  p.owner_id,
  u.first_name AS owner_first_name,
  u.last_name AS owner_last_name,
  p.creation_date,
  COALESCE(stats.number_of_supporters, 0) AS number_of_supporters,
  stats.supporting_cost
FROM petition p
JOIN "user" u ON u.id = p.owner_id
LEFT JOIN LATERAL (
  SELECT
    count(s.id) AS number_of_supporters,
    min(t.cost) AS supporting_cost
  FROM support_tier t
  LEFT JOIN supporter s ON s.support_tier_id = t.id
  WHERE t.petition_id = p.id
) stats ON true
"""


def build_listing_query(criteria: ListingCriteria) -> tuple[str, list[Any]]:
    composed = ComposedQuery()
    for clause in filter_clauses(criteria):
        composed.add(clause)

    sql = BASE_SELECT
    if composed.where:
        sql += "WHERE " + "\n  AND ".join(composed.where) + "\n"
    sql += f"ORDER BY {ORDER_BY[criteria.sort_by]}"
    return sql, composed.params


def paginate(rows: Sequence[T], start_index: int | None = None, count: int | None = None) -> list[T]:
    """
    Slice an already sorted result. Out-of-range starts give an empty page.
    """
    start = start_index or 0
    if start >= len(rows):
        return []
    end = len(rows) if count is None else start + count
    return list(rows[start:end])
