"""
Tests for the shared helpers

- List request clamping and sort resolution
- Search pattern escaping
- Calendar spines and series alignment
- Row normalisation and wire names
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from stockdesk.common.listing import (
    ListParams,
    SortDirection,
    like_pattern,
    order_by_clauses,
    resolve_sort_key,
    search_filter,
)
from stockdesk.common.normalize import normalize_row, to_float, to_int, to_iso
from stockdesk.common.reporting import label_or, sql_text, truncate_to
from stockdesk.common.schemas import TopItem, to_wire_name
from stockdesk.common.trends import add_months, align, monthly_spine, weekly_spine
from stockdesk.modules.customers.models import Customer
from stockdesk.modules.customers.schemas import CustomerSortKey


# ===== LIST PARAMS =====

class TestListParams:
    """Out-of-range values are normalised, never rejected"""

    def test_defaults(self):
        params = ListParams()
        assert params.limit == 20
        assert params.offset == 0
        assert params.search is None
        assert params.sort_dir is SortDirection.ASC

    @pytest.mark.parametrize("limit,expected", [(500, 100), (0, 1), (-3, 1), (None, 20), (35, 35)])
    def test_limit_is_clamped(self, limit, expected):
        assert ListParams(limit=limit).limit == expected

    def test_negative_offset_becomes_zero(self):
        assert ListParams(offset=-10).offset == 0

    def test_blank_search_is_absent(self):
        assert ListParams(search="   ").search is None
        assert ListParams(search="  John ").search == "John"

    @pytest.mark.parametrize("value,expected", [
        ("desc", SortDirection.DESC),
        ("DESC", SortDirection.DESC),
        ("asc", SortDirection.ASC),
        ("sideways", SortDirection.ASC),
        (None, SortDirection.ASC),
    ])
    def test_sort_direction(self, value, expected):
        assert ListParams(sort_dir=value).sort_dir is expected

    def test_accepts_wire_names(self):
        params = ListParams.model_validate({"sortBy": "phone", "sortDir": "desc"})
        assert params.sort_by == "phone"
        assert params.sort_dir is SortDirection.DESC


class TestSorting:

    def test_known_key(self):
        assert resolve_sort_key("phone", CustomerSortKey, CustomerSortKey.FULL_NAME) is CustomerSortKey.PHONE

    def test_unknown_or_missing_key_uses_default(self):
        assert resolve_sort_key("password", CustomerSortKey, CustomerSortKey.FULL_NAME) is CustomerSortKey.FULL_NAME
        assert resolve_sort_key(None, CustomerSortKey, CustomerSortKey.FULL_NAME) is CustomerSortKey.FULL_NAME

    def test_primary_key_breaks_ties(self, compile_sql):
        stmt = select(Customer.id).order_by(
            *order_by_clauses(Customer.full_name, SortDirection.DESC, Customer.id)
        )
        sql, _ = compile_sql(stmt)
        assert "ORDER BY customers.full_name DESC, customers.id ASC" in sql


class TestSearch:

    def test_plain_term(self):
        assert like_pattern("John") == "%John%"

    def test_wildcards_are_escaped(self):
        assert like_pattern("50%_off") == "%50\\%\\_off%"
        assert like_pattern("a\\b") == "%a\\\\b%"

    def test_filter_matches_any_column(self, compile_sql):
        stmt = select(Customer.id).where(search_filter("jo", Customer.full_name, Customer.phone))
        sql, params = compile_sql(stmt)
        assert "customers.full_name ILIKE" in sql
        assert "customers.phone ILIKE" in sql
        assert " OR " in sql
        assert "%jo%" in params.values()


# ===== TREND SPINES =====

class TestSpines:

    def test_add_months_crosses_years(self):
        assert add_months(date(2026, 1, 1), -1) == date(2025, 12, 1)
        assert add_months(date(2025, 11, 1), 3) == date(2026, 2, 1)

    def test_monthly_spine(self):
        spine = monthly_spine(date(2026, 3, 15), 6)
        assert [p.label for p in spine] == [
            "Oct 2025", "Nov 2025", "Dec 2025", "Jan 2026", "Feb 2026", "Mar 2026",
        ]
        assert spine[0].start == date(2025, 10, 1)
        assert spine[-1].start == date(2026, 3, 1)

    def test_weekly_spine_starts_on_mondays(self):
        spine = weekly_spine(date(2026, 3, 15), 26)
        assert len(spine) == 26
        assert all(p.start.weekday() == 0 for p in spine)
        assert spine[-1].start == date(2026, 3, 9)
        assert spine[-1].label == "Wk 11"
        assert spine[0].start == date(2025, 9, 15)

    def test_align_fills_gaps_with_zero(self):
        spine = monthly_spine(date(2026, 3, 15), 6)
        rows = [
            {"period": date(2025, 12, 1), "qty": Decimal("4")},
            {"period": datetime(2026, 2, 1, tzinfo=timezone.utc), "qty": None},
        ]
        series = align(spine, rows, ["qty"])
        assert len(series) == 6
        assert [p["qty"] for p in series] == [0, 0, Decimal("4"), 0, 0, 0]
        assert series[2]["label"] == "Dec 2025"

    def test_align_ignores_rows_outside_spine(self):
        spine = monthly_spine(date(2026, 3, 15), 2)
        series = align(spine, [{"period": date(2024, 1, 1), "qty": 9}], ["qty"])
        assert [p["qty"] for p in series] == [0, 0]


# ===== SQL BUILDING BLOCKS =====

class TestReportingSql:

    def test_constants_are_inlined(self, compile_sql):
        sql, params = compile_sql(select(label_or(Customer.full_name, "O'Neil")))
        assert "coalesce(customers.full_name, 'O''Neil')" in sql
        assert params == {}

    def test_truncate_to_month(self, compile_sql):
        sql, _ = compile_sql(select(truncate_to("month", Customer.created_at)))
        assert "date_trunc('month', customers.created_at)" in sql
        assert "AS DATE" in sql

    def test_sql_text(self, compile_sql):
        sql, _ = compile_sql(select(sql_text("delivery").label("kind")))
        assert "'delivery' AS kind" in sql


# ===== NORMALISATION =====

class TestNormalize:

    def test_row(self):
        row = normalize_row({
            "price": Decimal("12.50"),
            "created_at": datetime(2025, 1, 10, 9, 30, tzinfo=timezone.utc),
            "keep_stock_since": date(2025, 6, 1),
            "name": "Rice",
            "note": None,
            "count": 3,
        })
        assert row == {
            "price": 12.5,
            "created_at": "2025-01-10T09:30:00+00:00",
            "keep_stock_since": "2025-06-01",
            "name": "Rice",
            "note": None,
            "count": 3,
        }

    def test_scalars(self):
        assert to_float(None) == 0.0
        assert to_float(Decimal("2.25")) == 2.25
        assert to_int(None, default=None) is None
        assert to_int(Decimal("7")) == 7
        assert to_iso(None) is None
        assert to_iso(date(2026, 3, 1)) == "2026-03-01"

    @pytest.mark.parametrize("field,alias", [
        ("sold_30d", "sold30d"),
        ("top_sellers_30d", "topSellers30d"),
        ("with_invoices_30d", "withInvoices30d"),
        ("receive_dr_discount", "receiveDrDiscount"),
        ("name", "name"),
    ])
    def test_wire_names(self, field, alias):
        assert to_wire_name(field) == alias

    def test_models_dump_by_alias(self):
        assert TopItem(label="Rice", value=3).model_dump(by_alias=True) == {"label": "Rice", "value": 3.0}
