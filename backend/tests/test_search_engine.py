"""
Tests for keyword search and pagination.
"""
import json
import time

import pytest
from sqlalchemy import event

from sheet_search.services.errors import QueryError
from sheet_search.services.search_engine import (
    iter_matches,
    parse_keywords,
    resolve_pagination,
    search_records,
)

PEOPLE = [
    ["Name", "City", "Age"],
    ["Zhang San", "Beijing", "30"],
    ["Li Si", "Shanghai", "25"],
    ["Zhang Wei", "Shanghai", "41"],
    ["Wang Wu", "Beijing", "50%"],
]


@pytest.fixture
def imported(scheduler, make_workbook):
    """Import files one at a time so each generation has a later import time."""

    def _import(name, rows):
        path = make_workbook(name, rows)
        scheduler.process_file(path)
        time.sleep(0.01)
        return path

    return _import


class TestParseKeywords:
    def test_split_and_casefold(self):
        assert parse_keywords("  Zhang   SAN ") == ["zhang", "san"]

    def test_duplicates_dropped(self):
        assert parse_keywords("zhang Zhang ZHANG") == ["zhang"]

    def test_empty(self):
        assert parse_keywords("") == []
        assert parse_keywords("   ") == []
        assert parse_keywords(None) == []


class TestResolvePagination:
    def test_defaults(self):
        assert resolve_pagination(None, None) == (20, 0)

    def test_clamped_to_max(self):
        assert resolve_pagination(1000, 5, max_limit=100) == (100, 5)

    @pytest.mark.parametrize("limit, offset", [(-1, 0), (10, -1)])
    def test_negative_rejected(self, limit, offset):
        with pytest.raises(QueryError):
            resolve_pagination(limit, offset)


class TestSearchRecords:
    def test_single_keyword(self, db, imported):
        imported("people.xlsx", PEOPLE)

        result = search_records(db, "zhang")

        assert result["total"] == 2
        names = [json.loads(hit["data_json"])["Name"] for hit in result["results"]]
        assert names == ["Zhang San", "Zhang Wei"]

    def test_all_keywords_required(self, db, imported):
        imported("people.xlsx", PEOPLE)

        result = search_records(db, "zhang shanghai")

        assert result["total"] == 1
        assert json.loads(result["results"][0]["data_json"])["Name"] == "Zhang Wei"

    def test_case_insensitive(self, db, imported):
        imported("people.xlsx", PEOPLE)
        assert search_records(db, "BEIJING")["total"] == search_records(db, "beijing")["total"] == 2

    def test_substring_match(self, db, imported):
        imported("people.xlsx", PEOPLE)
        assert search_records(db, "hang")["total"] == 3

    def test_keywords_match_across_fields(self, db, imported):
        imported("people.xlsx", PEOPLE)
        assert search_records(db, "san 30")["total"] == 1

    def test_like_wildcards_are_literal(self, db, imported):
        imported("people.xlsx", PEOPLE)
        assert search_records(db, "50%")["total"] == 1
        assert search_records(db, "5%")["total"] == 0
        assert search_records(db, "_")["total"] == 0

    def test_no_match(self, db, imported):
        imported("people.xlsx", PEOPLE)
        result = search_records(db, "nobody")
        assert result == {"results": [], "total": 0, "limit": 20, "offset": 0}

    def test_empty_query_returns_nothing(self, db, imported):
        imported("people.xlsx", PEOPLE)
        assert search_records(db, "   ")["total"] == 0

    def test_hit_shape(self, db, imported):
        imported("people.xlsx", PEOPLE)

        hit = search_records(db, "li si")["results"][0]

        assert hit["file_name"] == "people.xlsx"
        assert hit["sheet_name"] == "Sheet1"
        assert hit["row_number"] == 2
        assert hit["import_time"] is not None
        assert list(json.loads(hit["data_json"])) == ["Name", "City", "Age"]

    def test_newest_import_first(self, db, imported):
        imported("old.xlsx", [["Name"], ["Zhang Old 1"], ["Zhang Old 2"]])
        imported("new.xlsx", [["Name"], ["Zhang New"]])

        result = search_records(db, "zhang")

        assert [hit["file_name"] for hit in result["results"]] == ["new.xlsx", "old.xlsx", "old.xlsx"]

    def test_ties_ordered_by_id(self, db, imported):
        imported("people.xlsx", PEOPLE)
        ids = [hit["id"] for hit in search_records(db, "a")["results"]]
        assert ids == sorted(ids)

    def test_pages_partition_results(self, db, imported):
        rows = [["Name"]] + [[f"match {idx}"] for idx in range(7)]
        imported("many.xlsx", rows)

        full = [hit["id"] for hit in search_records(db, "match", limit=100)["results"]]
        paged = []
        for offset in range(0, 7, 3):
            page = search_records(db, "match", limit=3, offset=offset)
            assert page["total"] == 7
            paged.extend(hit["id"] for hit in page["results"])

        assert len(full) == 7
        assert paged == full

    def test_offset_past_end(self, db, imported):
        imported("people.xlsx", PEOPLE)
        result = search_records(db, "zhang", offset=10)
        assert result["results"] == []
        assert result["total"] == 2

    def test_zero_limit_still_counts(self, db, imported):
        imported("people.xlsx", PEOPLE)
        result = search_records(db, "zhang", limit=0)
        assert result["results"] == []
        assert result["total"] == 2

    def test_limit_clamped(self, db, imported):
        rows = [["Name"]] + [[f"match {idx}"] for idx in range(5)]
        imported("many.xlsx", rows)
        result = search_records(db, "match", limit=50, max_limit=3)
        assert result["limit"] == 3
        assert len(result["results"]) == 3
        assert result["total"] == 5

    def test_negative_offset(self, db):
        with pytest.raises(QueryError):
            search_records(db, "zhang", offset=-1)

    def test_reimport_replaces_hits(self, db, imported):
        imported("people.xlsx", PEOPLE)
        imported("people.xlsx", PEOPLE[:2])
        assert search_records(db, "zhang")["total"] == 1


class TestIterMatches:
    def test_yields_every_match_in_order(self, db, imported):
        imported("people.xlsx", PEOPLE)
        pairs = list(iter_matches(db, "shanghai", batch_size=1))
        assert [record.data_json["Name"] for record, _ in pairs] == ["Li Si", "Zhang Wei"]
        assert {file.name for _, file in pairs} == {"people.xlsx"}

    def test_empty_query(self, db):
        assert list(iter_matches(db, "")) == []


class TestConcurrentReimport:
    def test_total_and_page_agree_when_reimport_commits_mid_search(
        self, db, engine, scheduler, make_workbook, emp_rows
    ):
        path = make_workbook("emp.xlsx", emp_rows)
        scheduler.process_file(path)
        fired = []

        def reimport_first(conn, cursor, statement, parameters, context, executemany):
            if fired or "FROM records" not in statement:
                return
            fired.append(statement)
            make_workbook("emp.xlsx", emp_rows + [["Zhao Liu", "41"]])
            scheduler.process_file(path)

        event.listen(engine, "before_cursor_execute", reimport_first)
        try:
            result = search_records(db, "i", limit=100)
        finally:
            event.remove(engine, "before_cursor_execute", reimport_first)

        assert fired
        assert result["total"] == len(result["results"])
        names = [json.loads(hit["data_json"])["Name"] for hit in result["results"]]
        assert names == ["Li Si", "Zhao Liu"]

    def test_empty_page_counts_current_state(self, db, imported):
        imported("people.xlsx", PEOPLE)
        imported("people.xlsx", PEOPLE + [["Zhang Liu", "Wuhan", "33"]])
        result = search_records(db, "zhang", offset=50)
        assert result["results"] == []
        assert result["total"] == 3
