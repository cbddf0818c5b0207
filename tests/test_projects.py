"""Tests for project filtering and sorting."""

import pytest

from services.projects import filter_options, filter_projects, sort_projects


def ids(projects):
    return [p["id"] for p in projects]


class TestFilterProjects:
    def test_no_filters_returns_all(self, sample_projects):
        assert sorted(ids(filter_projects(sample_projects))) == [101, 102, 103]

    def test_search_is_case_insensitive(self, sample_projects):
        assert ids(filter_projects(sample_projects, search="  BRAND ")) == [102]

    def test_client_filter(self, sample_projects):
        assert ids(filter_projects(sample_projects, client="Beta Corp")) == [102]

    def test_phase_filter(self, sample_projects):
        result = filter_projects(sample_projects, phase="Uitvoering")
        assert sorted(ids(result)) == [101, 103]

    def test_tag_filter(self, sample_projects):
        assert ids(filter_projects(sample_projects, tag="Retainer")) == [101]

    @pytest.mark.parametrize(
        "status,expected",
        [("over-budget", [101]), ("normal", [102, 103]), ("warning", [])],
    )
    def test_status_filter(self, sample_projects, status, expected):
        assert sorted(ids(filter_projects(sample_projects, status=status))) == expected

    def test_empty_string_disables_filter(self, sample_projects):
        assert len(filter_projects(sample_projects, client="", phase="", tag="")) == 3

    def test_filters_combine(self, sample_projects):
        result = filter_projects(sample_projects, client="Acme BV", status="normal")
        assert ids(result) == [103]


class TestSortProjects:
    def test_deadline_ascending_undated_last(self, sample_projects):
        assert ids(sort_projects(sample_projects, "deadline-asc")) == [102, 101, 103]

    def test_deadline_descending_undated_last(self, sample_projects):
        assert ids(sort_projects(sample_projects, "deadline-desc")) == [101, 102, 103]

    def test_name(self, sample_projects):
        assert ids(sort_projects(sample_projects, "name-asc")) == [103, 102, 101]
        assert ids(sort_projects(sample_projects, "name-desc")) == [101, 102, 103]

    def test_progress(self, sample_projects):
        assert ids(sort_projects(sample_projects, "progress-desc")) == [101, 102, 103]
        assert ids(sort_projects(sample_projects, "progress-asc")) == [103, 102, 101]

    def test_unknown_order(self, sample_projects):
        with pytest.raises(ValueError):
            sort_projects(sample_projects, "budget-asc")


def test_filter_options(sample_projects):
    assert filter_options(sample_projects) == {
        "clients": ["Acme BV", "Beta Corp"],
        "phases": ["Offerte", "Uitvoering"],
        "tags": ["Fixed price", "Retainer"],
    }
