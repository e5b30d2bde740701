"""Unit tests for the petition listing query builder and pagination."""

import pytest

from petitions.listing import (
    DEFAULT_SORT,
    ORDER_BY,
    Clause,
    ComposedQuery,
    ListingCriteria,
    SortKey,
    build_listing_query,
    escape_like,
    paginate,
    parse_sort_key,
)


class TestParseSortKey:
    def test_missing_sort_key_defaults_to_created_ascending(self):
        assert parse_sort_key(None) is SortKey.CREATED_ASC
        assert DEFAULT_SORT is SortKey.CREATED_ASC

    @pytest.mark.parametrize("raw", [key.value for key in SortKey])
    def test_every_enumerated_value_parses(self, raw):
        assert parse_sort_key(raw).value == raw

    @pytest.mark.parametrize("raw", ["", "NEWEST", "alphabetical", "COST"])
    def test_unknown_sort_key_is_rejected(self, raw):
        with pytest.raises(ValueError):
            parse_sort_key(raw)


class TestComposedQuery:
    def test_placeholders_are_numbered_in_clause_order(self):
        composed = ComposedQuery()
        composed.add(Clause("a = {0} OR b = {0}", ("x",)))
        composed.add(Clause("c BETWEEN {0} AND {1}", (1, 2)))

        assert composed.where == ["a = $1 OR b = $1", "c BETWEEN $2 AND $3"]
        assert composed.params == ["x", 1, 2]


def _outer_query(sql: str) -> str:
    return sql.split(") stats ON true", 1)[1]


class TestBuildListingQuery:
    def test_no_filters_has_no_where_clause(self):
        sql, params = build_listing_query(ListingCriteria())

        assert "WHERE" not in _outer_query(sql)
        assert params == []
        assert sql.rstrip().endswith(f"ORDER BY {ORDER_BY[SortKey.CREATED_ASC]}")

    def test_all_filters_are_anded_with_positional_params(self):
        criteria = ListingCriteria(
            q="Docs",
            category_ids=(1, 3),
            supporting_cost=20,
            owner_id=7,
            supporter_id=9,
            sort_by=SortKey.COST_DESC,
        )

        sql, params = build_listing_query(criteria)

        assert params == ["%Docs%", [1, 3], 20, 7, 9]
        where = _outer_query(sql).split("WHERE", 1)[1]
        assert "(p.title ILIKE $1 OR p.description ILIKE $1)" in where
        assert "p.category_id = ANY($2::int[])" in where
        assert "stats.supporting_cost <= $3" in where
        assert "p.owner_id = $4" in where
        assert "s.user_id = $5" in where
        assert where.count("\n  AND ") == 4
        assert sql.rstrip().endswith(f"ORDER BY {ORDER_BY[SortKey.COST_DESC]}")

    def test_search_text_is_never_inlined(self):
        sql, params = build_listing_query(ListingCriteria(q="'; DROP TABLE petition; --"))

        assert "DROP TABLE" not in sql
        assert params == ["%'; DROP TABLE petition; --%"]

    def test_like_wildcards_in_search_are_escaped(self):
        assert escape_like("50%_off\\") == "50\\%\\_off\\\\"
        _, params = build_listing_query(ListingCriteria(q="100%"))
        assert params == ["%100\\%%"]

    def test_skipped_filters_do_not_shift_placeholders(self):
        sql, params = build_listing_query(ListingCriteria(owner_id=3, supporter_id=4))

        assert params == [3, 4]
        assert "p.owner_id = $1" in sql
        assert "s.user_id = $2" in sql

    @pytest.mark.parametrize("family", ["ALPHABETICAL", "COST", "CREATED"])
    def test_descending_order_reverses_every_ascending_term(self, family):
        asc = ORDER_BY[SortKey[f"{family}_ASC"]]
        desc = ORDER_BY[SortKey[f"{family}_DESC"]]

        asc_terms = [term.split()[0] for term in asc.split(",")]
        desc_terms = [term.split()[0] for term in desc.split(",")]
        assert asc_terms == desc_terms
        assert "DESC" not in asc
        assert "ASC" not in desc.replace("DESC", "")


class TestPaginate:
    rows = list(range(10))

    def test_defaults_return_everything(self):
        assert paginate(self.rows) == self.rows

    def test_start_and_count_slice_contiguously(self):
        assert paginate(self.rows, 2, 3) == [2, 3, 4]

    def test_missing_count_runs_to_the_end(self):
        assert paginate(self.rows, 7) == [7, 8, 9]

    def test_missing_start_begins_at_zero(self):
        assert paginate(self.rows, None, 2) == [0, 1]

    def test_out_of_range_start_gives_empty_page(self):
        assert paginate(self.rows, 10, 5) == []
        assert paginate(self.rows, 99) == []

    def test_count_past_the_end_is_truncated(self):
        assert paginate(self.rows, 8, 10) == [8, 9]

    def test_zero_count_gives_empty_page(self):
        assert paginate(self.rows, 0, 0) == []
