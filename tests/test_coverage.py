"""Tests for coverage report lookup and the pull request page."""

import pytest
from conftest import FakeCIClient, make_build

from coverage_shortcuts.coverage import (
    COVERAGE_REPORTS,
    ReportNotReadyError,
    UnknownReportError,
    find_coverage_links,
    get_report,
    render_pull_page,
    resolve_report_link,
)

ART = "https://{n}-1-gh.example.com/0/{path}"


def artifact_urls(build_num, *paths):
    return [ART.format(n=build_num, path=path) for path in paths]


HARNESS = "cov-html/harness/index.html"
MODEL_HUB = "cov-html/model_hub/index.html"
MASTER = "go-coverage/master-coverage.html"
AGENT = "go-coverage/agent-coverage.html"
WEBUI = "webui/react/coverage/lcov-report/index.html"


class TestReports:
    """Tests for the report table."""

    def test_known_reports(self):
        """Five reports should be known, in display order."""
        names = [r.name for r in COVERAGE_REPORTS]
        assert names == ["harness", "model_hub", "master", "agent", "webui"]

    def test_go_reports_link_first_file(self):
        """Go coverage reports should link to the first file anchor."""
        assert get_report("master").fragment == "#file0"
        assert get_report("agent").fragment == "#file0"
        assert get_report("harness").fragment == ""

    def test_unknown_report(self):
        """Unknown names should raise UnknownReportError."""
        with pytest.raises(UnknownReportError) as exc_info:
            get_report("rust")
        assert exc_info.value.code == "unknown_report"

    def test_matches_suffix(self):
        """Reports should match artifact URLs by suffix."""
        report = get_report("harness")
        assert report.matches(ART.format(n=1, path=HARNESS))
        assert not report.matches(ART.format(n=1, path=HARNESS + ".bak"))


class TestFindCoverageLinks:
    """Tests for find_coverage_links."""

    def test_newest_build_wins(self, store):
        """Each report should come from the newest build that published it."""
        store.upsert_build(make_build(10, branch="pull/5"))
        store.upsert_build(make_build(11, branch="pull/5"))
        ci = FakeCIClient(
            artifacts={
                10: artifact_urls(10, HARNESS, MASTER, WEBUI),
                11: artifact_urls(11, HARNESS),
            }
        )

        links = find_coverage_links(store, ci, 5)

        assert links["harness"] == ART.format(n=11, path=HARNESS)
        assert links["master"] == ART.format(n=10, path=MASTER)
        assert links["webui"] == ART.format(n=10, path=WEBUI)
        assert links["model_hub"] is None
        assert links["agent"] is None

    def test_stops_once_all_found(self, store):
        """Older builds should not be examined once every report is found."""
        store.upsert_build(make_build(10, branch="pull/5"))
        store.upsert_build(make_build(11, branch="pull/5"))
        ci = FakeCIClient(
            artifacts={11: artifact_urls(11, HARNESS, MODEL_HUB, MASTER, AGENT, WEBUI)}
        )

        find_coverage_links(store, ci, 5)

        assert ci.artifact_calls == [11]

    def test_unknown_pull(self, store):
        """A pull request with no builds should have no links."""
        links = find_coverage_links(store, FakeCIClient(), 99)
        assert set(links) == {r.name for r in COVERAGE_REPORTS}
        assert all(url is None for url in links.values())

    def test_archived_builds_use_cache(self, store):
        """A second lookup should not refetch finished builds."""
        store.upsert_build(make_build(10, branch="pull/5"))
        store.upsert_build(make_build(11, outcome=None, branch="pull/5"))
        ci = FakeCIClient(artifacts={10: artifact_urls(10, HARNESS), 11: []})

        find_coverage_links(store, ci, 5)
        ci.artifact_calls.clear()
        links = find_coverage_links(store, ci, 5)

        # Running build 11 is fetched live again, finished build 10 is cached
        assert ci.artifact_calls == [11]
        assert links["harness"] == ART.format(n=10, path=HARNESS)


class TestResolveReportLink:
    """Tests for resolve_report_link."""

    def test_appends_fragment(self, store):
        """The link should carry the report's fragment."""
        store.upsert_build(make_build(10, branch="pull/5"))
        ci = FakeCIClient(artifacts={10: artifact_urls(10, MASTER)})

        url = resolve_report_link(store, ci, 5, "master")

        assert url == ART.format(n=10, path=MASTER) + "#file0"

    def test_not_ready(self, store):
        """A report no build has published should raise ReportNotReadyError."""
        store.upsert_build(make_build(10, branch="pull/5"))
        ci = FakeCIClient(artifacts={10: artifact_urls(10, HARNESS)})

        with pytest.raises(ReportNotReadyError) as exc_info:
            resolve_report_link(store, ci, 5, "webui")
        assert exc_info.value.code == "report_not_ready"

    def test_unknown_report(self, store):
        """Unknown report names should fail before any lookup."""
        ci = FakeCIClient()
        with pytest.raises(UnknownReportError):
            resolve_report_link(store, ci, 5, "nope")
        assert ci.artifact_calls == []


class TestRenderPullPage:
    """Tests for render_pull_page."""

    def test_lists_every_report(self):
        """Ready reports are links; missing ones are greyed out."""
        links = {r.name: None for r in COVERAGE_REPORTS}
        links["master"] = "https://a.example.com/master-coverage.html"

        page = render_pull_page(5, links, "org/repo")

        assert 'href="https://github.com/org/repo/pull/5"' in page
        assert 'href="https://a.example.com/master-coverage.html#file0"' in page
        assert "harness coverage (not ready)" in page
        assert page.count("(not ready)") == 4

    def test_escapes_urls(self):
        """Artifact URLs should be HTML-escaped."""
        links = {"harness": 'https://a.example.com/"><script>'}

        page = render_pull_page(5, links, "org/repo")

        assert "<script>" not in page
        assert "&quot;&gt;&lt;script&gt;" in page
