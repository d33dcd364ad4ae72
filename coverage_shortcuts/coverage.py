"""Coverage report lookup for pull requests.

This module resolves a pull request number to the newest URL of each
known coverage report:
- find_coverage_links(): walk the pull request's builds newest first
- resolve_report_link(): link target for a single report
- render_pull_page(): HTML page listing every report
"""

from __future__ import annotations

import html
import logging
from typing import TYPE_CHECKING

from coverage_shortcuts.builds.cache import get_artifacts_with_cache
from coverage_shortcuts.types import CoverageReport

if TYPE_CHECKING:
    from coverage_shortcuts.builds.store import Ledger
    from coverage_shortcuts.ci.client import CIClient

logger = logging.getLogger(__name__)

COVERAGE_REPORTS: tuple[CoverageReport, ...] = (
    CoverageReport("harness", "cov-html/harness/index.html"),
    CoverageReport("model_hub", "cov-html/model_hub/index.html"),
    CoverageReport("master", "go-coverage/master-coverage.html", "#file0"),
    CoverageReport("agent", "go-coverage/agent-coverage.html", "#file0"),
    CoverageReport("webui", "webui/react/coverage/lcov-report/index.html"),
)


class UnknownReportError(Exception):
    """Raised when a coverage report name is not recognized."""

    def __init__(self, name: str, code: str = "unknown_report") -> None:
        super().__init__(f"Unknown coverage report: {name}")
        self.name = name
        self.code = code


class ReportNotReadyError(Exception):
    """Raised when no build of a pull request has published a report yet."""

    def __init__(self, pull: int, name: str, code: str = "report_not_ready") -> None:
        super().__init__(f"{name} coverage for pull/{pull} is not ready")
        self.pull = pull
        self.name = name
        self.code = code


def get_report(name: str) -> CoverageReport:
    """Look up a known coverage report by name.

    Raises:
        UnknownReportError: If no report has this name.
    """
    for report in COVERAGE_REPORTS:
        if report.name == name:
            return report
    raise UnknownReportError(name)


def find_coverage_links(
    ledger: Ledger,
    client: CIClient,
    pull: int,
    reports: tuple[CoverageReport, ...] = COVERAGE_REPORTS,
) -> dict[str, str | None]:
    """Find the newest artifact URL of each coverage report for a pull request.

    Builds are examined newest first through the artifact cache, so
    archived builds cost no API calls. The walk stops as soon as every
    report has been found.

    Args:
        ledger: Ledger holding builds and cached artifacts.
        client: CI client for builds that are not archived yet.
        pull: Pull request number.
        reports: Reports to look for.

    Returns:
        Mapping of report name to artifact URL, or None if not found.

    Raises:
        TransportError: If a live artifact fetch fails.
        DecodeError: If a live response is malformed.
        StoreError: If reading or writing the ledger fails.
    """
    links: dict[str, str | None] = {report.name: None for report in reports}

    builds = sorted(
        ledger.get_builds_for_pull(pull), key=lambda b: b.build_num, reverse=True
    )
    for build in builds:
        artifacts = get_artifacts_with_cache(ledger, client, build)
        for artifact in artifacts:
            for report in reports:
                if links[report.name] is None and report.matches(artifact.url):
                    links[report.name] = artifact.url
        if all(links.values()):
            break

    logger.debug(
        "pull/%d: found %d of %d coverage reports",
        pull,
        sum(1 for url in links.values() if url),
        len(reports),
    )
    return links


def resolve_report_link(
    ledger: Ledger,
    client: CIClient,
    pull: int,
    name: str,
) -> str:
    """Get the link to the newest copy of one coverage report.

    Args:
        ledger: Ledger holding builds and cached artifacts.
        client: CI client.
        pull: Pull request number.
        name: Report name.

    Returns:
        Artifact URL with the report's fragment appended.

    Raises:
        UnknownReportError: If the report name is not recognized.
        ReportNotReadyError: If no build has published the report.
    """
    report = get_report(name)
    url = find_coverage_links(ledger, client, pull, reports=(report,))[report.name]
    if url is None:
        raise ReportNotReadyError(pull, name)
    return url + report.fragment


def render_pull_page(
    pull: int,
    links: dict[str, str | None],
    github_repo: str,
    reports: tuple[CoverageReport, ...] = COVERAGE_REPORTS,
) -> str:
    """Render the HTML page listing a pull request's coverage reports.

    Args:
        pull: Pull request number.
        links: Report name to artifact URL, as returned by find_coverage_links.
        github_repo: ``owner/repo`` used to link the pull request.
        reports: Reports to list, in display order.

    Returns:
        HTML document.
    """
    pull_url = html.escape(f"https://github.com/{github_repo}/pull/{pull}")
    lines = [f'<html>coverage reports for <a href="{pull_url}">pull/{pull}</a>:<br>']

    for report in reports:
        url = links.get(report.name)
        if url is None:
            lines.append(
                f'<font color="gray">{report.name} coverage (not ready)</font><br>'
            )
        else:
            href = html.escape(url + report.fragment)
            lines.append(f'<a href="{href}">{report.name} coverage</a><br>')

    lines.append("</html>")
    return "\n".join(lines)


__all__ = [
    "COVERAGE_REPORTS",
    "ReportNotReadyError",
    "UnknownReportError",
    "find_coverage_links",
    "get_report",
    "render_pull_page",
    "resolve_report_link",
]
