from listing import ASC, DESC, SortState, build_listing, filter_rows, search_rows, sort_rows

ROWS = [
    {"id": "a", "businessName": "Kigali Fresh", "district": "Nyarugenge", "amount": 30, "createdAt": "2024-03-01T00:00:00Z"},
    {"id": "b", "businessName": "huye hardware", "district": "Huye", "amount": 5, "createdAt": "2024-01-15T00:00:00Z"},
    {"id": "c", "businessName": "Musanze Books", "district": None, "createdAt": "2024-02-10T00:00:00Z"},
    {"id": "d", "district": "Kicukiro", "amount": 12},
]


def ids(rows):
    return [row["id"] for row in rows]


def test_search_is_case_insensitive_substring():
    assert ids(search_rows(ROWS, "HUYE", ["businessName", "district"])) == ["b"]
    assert ids(search_rows(ROWS, "ki", ["businessName", "district"])) == ["a", "d"]


def test_blank_search_returns_everything():
    assert ids(search_rows(ROWS, "", ["businessName"])) == ["a", "b", "c", "d"]
    assert ids(search_rows(ROWS, "   ", ["businessName"])) == ["a", "b", "c", "d"]
    assert ids(search_rows(ROWS, None, ["businessName"])) == ["a", "b", "c", "d"]


def test_search_is_idempotent():
    once = search_rows(ROWS, "e", ["businessName"])
    assert search_rows(once, "e", ["businessName"]) == once


def test_filter_ignores_unset_values():
    assert ids(filter_rows(ROWS, {"district": None})) == ["a", "b", "c", "d"]
    assert ids(filter_rows(ROWS, {"district": "huye"})) == ["b"]
    assert ids(filter_rows(ROWS, {"district": "huye", "amount": 30})) == []


def test_sort_strings_case_insensitively():
    assert ids(sort_rows(ROWS, "businessName", ASC)) == ["b", "a", "c", "d"]
    assert ids(sort_rows(ROWS, "businessName", DESC)) == ["c", "a", "b", "d"]


def test_sort_numbers_and_dates():
    assert ids(sort_rows(ROWS, "amount", ASC)) == ["b", "d", "a", "c"]
    assert ids(sort_rows(ROWS, "createdAt", DESC)) == ["a", "c", "b", "d"]


def test_missing_values_sort_last_in_both_directions():
    assert sort_rows(ROWS, "district", ASC)[-1]["id"] == "c"
    assert sort_rows(ROWS, "district", DESC)[-1]["id"] == "c"


def test_sort_without_key_keeps_order():
    assert ids(sort_rows(ROWS, None)) == ["a", "b", "c", "d"]


def test_sort_state_toggles():
    state = SortState()
    state = state.toggle("amount")
    assert (state.key, state.direction) == ("amount", ASC)
    state = state.toggle("amount")
    assert (state.key, state.direction) == ("amount", DESC)
    state = state.toggle("amount")
    assert (state.key, state.direction) == ("amount", ASC)
    state = state.toggle("createdAt")
    assert (state.key, state.direction) == ("createdAt", ASC)


def test_build_listing_counts_filtered_rows():
    listing = build_listing(
        ROWS,
        search="a",
        search_fields=["businessName"],
        filters={"district": "Huye"},
        sort="amount",
        direction=DESC,
    )
    assert listing["count"] == 1
    assert ids(listing["items"]) == ["b"]


def test_build_listing_does_not_mutate_input():
    before = [dict(row) for row in ROWS]
    build_listing(ROWS, search="k", search_fields=["district"], sort="amount", direction=DESC)
    assert ROWS == before
