# Overview: Pytest coverage for history filtering (no database needed).

from datetime import date, datetime, timedelta, timezone

import pytest

from stockroom.services.history_service import display_rows, filter_history, parse_date_bound
from stockroom.services.mirror import UNKNOWN_PRODUCT_NAME, RestockRow, SaleRow
from stockroom.validation import ValidationError


NAMES = {1: "Rice", 2: "Sugar"}
NOW = datetime(2024, 5, 20, 12, 0)


def product_name(product_id):
    return NAMES.get(product_id, UNKNOWN_PRODUCT_NAME)


def sale(id, customer, product_id, ts):
    return SaleRow(id=id, customer_name=customer, product_id=product_id, quantity=1, timestamp=ts)


SALES = [
    sale(4, "Dana", 2, datetime(2024, 5, 20, 8, 0)),
    sale(3, "Carlos", 1, datetime(2024, 5, 15, 23, 59, 59)),
    sale(2, "Alice", 2, datetime(2024, 5, 15, 0, 0)),
    sale(1, "Bob", 9, datetime(2024, 5, 10, 14, 30)),
]


def ids(rows):
    return [r.id for r in rows]


class TestTextFilter:
    def test_no_filters_keeps_everything_in_order(self):
        assert ids(filter_history(SALES, product_name, now=NOW)) == [4, 3, 2, 1]

    def test_matches_customer_name_case_insensitively(self):
        assert ids(filter_history(SALES, product_name, text="ALI", now=NOW)) == [2]

    def test_matches_resolved_product_name(self):
        assert ids(filter_history(SALES, product_name, text="sugar", now=NOW)) == [4, 2]

    def test_orphaned_records_match_unknown_product(self):
        assert ids(filter_history(SALES, product_name, text="unknown", now=NOW)) == [1]

    def test_blank_text_is_no_filter(self):
        assert ids(filter_history(SALES, product_name, text="   ", now=NOW)) == [4, 3, 2, 1]

    def test_restocks_match_supplier(self):
        rows = [RestockRow(id=1, supplier_name="Acme Mills", product_id=1, quantity=5,
                           timestamp=datetime(2024, 5, 1))]
        assert ids(filter_history(rows, product_name, text="acme", now=NOW)) == [1]


class TestDateFilter:
    def test_bounds_are_inclusive_whole_days(self):
        rows = filter_history(SALES, product_name, date_from=date(2024, 5, 15), date_to=date(2024, 5, 15), now=NOW)
        assert ids(rows) == [3, 2]

    def test_missing_lower_bound(self):
        rows = filter_history(SALES, product_name, date_to=date(2024, 5, 14), now=NOW)
        assert ids(rows) == [1]

    def test_missing_upper_bound_means_now(self):
        future = sale(5, "Eve", 1, datetime(2024, 5, 21, 9, 0))
        rows = filter_history([future] + SALES, product_name, date_from=date(2024, 5, 15), now=NOW)
        assert ids(rows) == [4, 3, 2]

    def test_bounds_follow_display_timezone(self):
        # 2024-05-15 in Asia/Kolkata (UTC+05:30) is 2024-05-14 18:30 to 2024-05-15 18:29:59 UTC
        rows = filter_history(
            SALES, product_name,
            date_from=date(2024, 5, 15), date_to=date(2024, 5, 15),
            tz_name="Asia/Kolkata", now=NOW,
        )
        assert ids(rows) == [2]

    def test_undated_rows_only_pass_without_bounds(self):
        undated = sale(6, "Frank", 1, None)
        assert ids(filter_history([undated], product_name, now=NOW)) == [6]
        assert filter_history([undated], product_name, date_from=date(2024, 1, 1), now=NOW) == []

    def test_aware_timestamps_are_compared_in_utc(self):
        plus_two = timezone(timedelta(hours=2))
        rows = [
            sale(7, "Gina", 1, datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)),
            # 01:30 on May 2nd at +02:00 is still May 1st in UTC
            sale(8, "Hank", 1, datetime(2024, 5, 2, 1, 30, tzinfo=plus_two)),
            sale(9, "Ivan", 1, datetime(2024, 5, 2, 3, 0, tzinfo=plus_two)),
        ]
        kept = filter_history(rows, product_name, date_from=date(2024, 5, 1), date_to=date(2024, 5, 1), now=NOW)
        assert ids(kept) == [7, 8]

    def test_aware_now_is_accepted(self):
        rows = filter_history(SALES, product_name, date_from=date(2024, 5, 15),
                              now=datetime(2024, 5, 20, 12, 0, tzinfo=timezone.utc))
        assert ids(rows) == [4, 3, 2]

    def test_reversed_range_is_rejected(self):
        with pytest.raises(ValidationError):
            filter_history(SALES, product_name, date_from=date(2024, 5, 16), date_to=date(2024, 5, 15))

    def test_text_and_dates_combine(self):
        rows = filter_history(SALES, product_name, text="sugar", date_from=date(2024, 5, 16), now=NOW)
        assert ids(rows) == [4]

    def test_input_is_not_modified(self):
        records = list(SALES)
        filter_history(records, product_name, text="rice", now=NOW)
        assert records == SALES


class TestParsing:
    def test_parse_date_bound(self):
        assert parse_date_bound("2024-05-15", "from") == date(2024, 5, 15)
        assert parse_date_bound("", "from") is None
        assert parse_date_bound(None, "to") is None

    def test_parse_date_bound_rejects_garbage(self):
        with pytest.raises(ValidationError) as exc:
            parse_date_bound("15/05/2024", "from")
        assert exc.value.details == {"field": "from"}


def test_display_rows_resolve_product_names():
    rows = display_rows(SALES[2:], product_name)
    assert [r["product_name"] for r in rows] == ["Sugar", UNKNOWN_PRODUCT_NAME]
    assert rows[0]["timestamp"] == "2024-05-15T00:00:00Z"


def test_store_rows_are_normalized_to_utc():
    class Stored:
        id = 1
        customer_name = "Alice"
        product_id = 1
        quantity = 2
        timestamp = datetime(2024, 5, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

    row = SaleRow.from_model(Stored)
    assert row.timestamp == datetime(2024, 5, 1, 12, 0)
    assert row.to_dict()["timestamp"] == "2024-05-01T12:00:00Z"
