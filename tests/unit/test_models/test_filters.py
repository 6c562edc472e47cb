"""Unit tests for the publication Filter"""

import pytest

from pubsuggest.models.filters import Filter
from pubsuggest.models.publication import Publication, current_year


@pytest.fixture
def old_paper():
    return Publication(
        doi="10.1/old",
        title="Graph Drawing Basics",
        author="Doe, Jane",
        year=1999,
        citation_dois=["10.1/citing"],
        reference_dois=["10.1/ref"],
    )


@pytest.fixture
def new_paper():
    return Publication(
        doi="10.1/new",
        title="Citation Network Exploration",
        author="Müller, Jörg; Roe, Rich",
        year=current_year(),
    )


@pytest.fixture
def undated():
    return Publication(doi="10.1/undated", title="Untitled Draft")


class TestMatches:
    def test_empty_filter_matches_everything(self, old_paper, undated):
        f = Filter()
        assert f.matches(old_paper)
        assert f.matches(undated)
        assert not f.has_active_filters()

    def test_inactive_filter_hides_nothing(self, old_paper):
        f = Filter(string="nothing like this", tags=["is_new"], is_active=False)
        assert f.matches(old_paper)
        assert not f.has_active_filters()

    def test_string(self, old_paper, new_paper):
        f = Filter(string="citation")
        assert f.matches(new_paper)
        assert not f.matches(old_paper)

    def test_criteria_combine_with_and(self, old_paper, new_paper):
        f = Filter(string="graph", year_start=2000)
        assert not f.matches(old_paper)
        assert not f.matches(new_paper)

    def test_tags_combine_with_or(self, old_paper, new_paper):
        f = Filter(tags=["is_new", "is_survey"])
        assert f.matches(new_paper)
        assert not f.matches(old_paper)

    def test_doi_set_matches_own_and_linked_dois(self, old_paper, new_paper):
        assert Filter(dois=["10.1/old"]).matches(old_paper)
        assert Filter(dois=["10.1/citing"]).matches(old_paper)
        assert Filter(dois=["10.1/ref", "10.1/other"]).matches(old_paper)
        assert not Filter(dois=["10.1/ref"]).matches(new_paper)

    def test_authors(self, new_paper, old_paper):
        f = Filter()
        f.add_author("Muller, Jorg")
        assert f.matches(new_paper)
        assert not f.matches(old_paper)


class TestYearBounds:
    def test_bounds_are_inclusive(self, old_paper):
        assert Filter(year_start=1999, year_end=1999).matches(old_paper)
        assert not Filter(year_start=2000).matches(old_paper)
        assert not Filter(year_end=1998).matches(old_paper)

    def test_unknown_year_never_matches_active_bound(self, undated):
        assert not Filter(year_start=1990).matches(undated)
        assert not Filter(year_end=2100).matches(undated)

    @pytest.mark.parametrize("bound", [None, "", "abc", 999, 10000, 12345, float("nan")])
    def test_invalid_bounds_are_inactive(self, bound, undated, old_paper):
        f = Filter(year_start=bound, year_end=bound)
        assert not f.is_year_active()
        assert f.matches(undated)
        assert f.matches(old_paper)
        assert not f.has_active_filters()

    def test_numeric_string_bound(self, old_paper):
        f = Filter(year_start="2000")
        assert f.is_year_active()
        assert not f.matches(old_paper)

    def test_boundary_values(self):
        assert Filter(year_start=1000).is_year_active()
        assert Filter(year_end=9999).is_year_active()


class TestHasActiveFilters:
    def test_requires_a_scope(self):
        f = Filter(string="x", apply_to_selected=False, apply_to_suggested=False)
        assert not f.has_active_filters()

    def test_one_scope_is_enough(self):
        assert Filter(string="x", apply_to_selected=False).has_active_filters()
        assert Filter(dois=["10.1/a"], apply_to_suggested=False).has_active_filters()


class TestViews:
    def test_apply_orders_matches_first_without_dropping(self, old_paper, new_paper, undated):
        publications = [old_paper, undated, new_paper]
        f = Filter(string="citation")

        result = f.apply(publications, scope_enabled=True)

        assert result == [new_paper, old_paper, undated]
        assert publications == [old_paper, undated, new_paper]

    def test_apply_out_of_scope_keeps_order(self, old_paper, new_paper):
        f = Filter(string="citation")
        assert f.apply([old_paper, new_paper], scope_enabled=False) == [old_paper, new_paper]

    def test_select_and_count(self, old_paper, new_paper, undated):
        f = Filter(string="citation")
        publications = [old_paper, new_paper, undated]

        assert f.select(publications, scope_enabled=True) == [new_paper]
        assert f.count(publications) == 1
        assert f.count(publications, matching=False) == 2

    def test_toggling_off_restores_everything(self, old_paper, new_paper):
        f = Filter(string="citation")
        assert f.select([old_paper, new_paper], True) == [new_paper]

        f.is_active = False
        assert f.select([old_paper, new_paper], True) == [old_paper, new_paper]


class TestMutation:
    def test_add_doi_is_idempotent(self):
        f = Filter()
        f.add_doi("10.1/A")
        f.add_doi(" 10.1/a ")
        assert f.dois == ["10.1/a"]

    def test_remove_absent_doi_is_noop(self):
        f = Filter(dois=["10.1/a"])
        f.remove_doi("10.1/b")
        assert f.dois == ["10.1/a"]

    def test_toggle_doi(self):
        f = Filter()
        f.toggle_doi("10.1/a")
        assert f.dois == ["10.1/a"]
        f.toggle_doi("10.1/A")
        assert f.dois == []

    def test_toggle_tag(self):
        f = Filter()
        f.toggle_tag("is_new")
        f.add_tag("is_new")
        assert f.tags == ["is_new"]
        f.toggle_tag("is_new")
        assert f.tags == []

    def test_toggle_author(self):
        f = Filter()
        f.toggle_author("Ørsted, H.")
        assert f.authors == ["orsted, h."]
        f.toggle_author("Orsted, H.")
        assert f.authors == []
