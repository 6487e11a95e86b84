import datetime as dt

import pytest

from colis_dashboard.errors import ValidationError
from colis_dashboard.models import ParcelRecord
from colis_dashboard.rules.search import (
    DateRange,
    filter_by_date_range,
    filter_by_status,
    is_numeric_query,
    matches,
    normalize_field,
    parse_day,
    search,
)


def _rec(**kw):
    return ParcelRecord(**kw)


def test_numeric_phone_query_is_exact():
    exact = _rec(phone1="123")
    longer = _rec(phone1="1234")
    assert search([exact, longer], "123", "phone") == [exact]


def test_numeric_matches_second_phone_too():
    r = _rec(phone1="111", phone2="22582700")
    assert matches(r, " 22582700 ", "phone")
    assert not matches(r, "2258", "phone")


def test_non_numeric_client_is_case_insensitive_substring():
    r = _rec(client_name="Mohamed Ali")
    assert search([r], "ali", "client") == [r]
    assert search([r], "ALI", "client") == [r]
    assert search([r], "salah", "client") == []


def test_tracking_number_matches_code_or_parcel_number():
    a = _rec(tracking_code="900123")
    b = _rec(parcel_number="900123")
    c = _rec(tracking_code="9001234")
    assert search([a, b, c], "900123", "trackingNumber") == [a, b]
    assert search([a, c], "TN", "tracking_number") == []


def test_reference_field():
    r = _rec(reference="REF-001")
    assert search([r], "ref-0", "reference") == [r]
    assert search([_rec(reference="100")], "10", "reference") == []


def test_all_field_any_hit_qualifies():
    recs = [
        _rec(client_name="Amal", city="Sousse"),
        _rec(client_name="Sami", province="Sfax", designation="Livres"),
        _rec(client_name="Nour", phone2="55000111"),
    ]
    assert search(recs, "sousse") == [recs[0]]
    assert search(recs, "livr") == [recs[1]]
    assert search(recs, "55000111") == [recs[2]]
    # numeric: identifier fields are exact
    assert search(recs, "5500") == []


def test_all_field_numeric_query_still_substring_on_text_fields():
    r = _rec(client_name="Client", designation="Lot 2024 chaussures")
    assert search([r], "2024") == [r]


def test_blank_query_keeps_everything():
    recs = [_rec(reference="a"), _rec(reference="b")]
    assert search(recs, "") == recs
    assert search(recs, None) == recs


def test_status_prefilter():
    a = _rec(reference="a", status="Livré")
    b = _rec(reference="b", status="En Attente")
    assert filter_by_status([a, b], "Livré") == [a]
    assert filter_by_status([a, b], "all") == [a, b]
    assert search([a, b], "", status="En Attente") == [b]


def test_date_range_inclusive_and_drops_undated():
    recs = [
        _rec(reference="1", creation_date="2025-03-01 08:00:00"),
        _rec(reference="2", creation_date="15/03/2025 23:59:00"),
        _rec(reference="3", creation_date="2025-03-31"),
        _rec(reference="4", creation_date="2025-04-01T00:00:01"),
        _rec(reference="5", creation_date=None),
        _rec(reference="6", creation_date="garbage"),
    ]
    out = filter_by_date_range(recs, "2025-03-01", "2025-03-31")
    assert [r.reference for r in out] == ["1", "2", "3"]
    assert [r.reference for r in filter_by_date_range(recs, start="2025-04-01")] == ["4"]
    assert filter_by_date_range(recs) == recs


def test_date_range_composes_with_text():
    recs = [
        _rec(client_name="Ali", creation_date="2025-01-10"),
        _rec(client_name="Ali", creation_date="2025-02-10"),
        _rec(client_name="Sami", creation_date="2025-01-10"),
    ]
    out = search(recs, "ali", "client", {"start": "2025-01-01", "end": "2025-01-31"})
    assert out == [recs[0]]


def test_date_range_mapping_with_open_bounds():
    recs = [
        _rec(reference="jan", creation_date="2024-01-15"),
        _rec(reference="feb", creation_date="2024-02-15"),
        _rec(reference="mar", creation_date="2024-03-15"),
    ]

    def refs(date_range):
        return [r.reference for r in search(recs, "", "all", date_range)]

    assert refs({"start": "2024-02-01"}) == ["feb", "mar"]
    assert refs({"end": "2024-01-31"}) == ["jan"]
    assert refs({"start": "2024-01-01", "end": "2024-01-31"}) == ["jan"]
    assert refs(DateRange(start="2024-03-01")) == ["mar"]
    assert refs({}) == ["jan", "feb", "mar"]

    with pytest.raises(ValidationError):
        search(recs, "", "all", ("2024-01-01", "2024-01-31"))


def test_invalid_inputs():
    with pytest.raises(ValidationError):
        filter_by_date_range([], "not-a-date")
    with pytest.raises(ValidationError):
        filter_by_date_range([], "2025-02-01", "2025-01-01")
    with pytest.raises(ValidationError):
        normalize_field("city")


def test_helpers():
    assert is_numeric_query(" 0042 ")
    assert not is_numeric_query("12a")
    assert parse_day("01-02-2025") == dt.date(2025, 2, 1)
    assert parse_day("2025/02/01") == dt.date(2025, 2, 1)
    assert parse_day("") is None
    assert normalize_field("tel") == "phone"
