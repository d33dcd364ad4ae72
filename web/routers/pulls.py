"""Pull request coverage endpoints.

- GET /pull/{pull} - HTML page linking every coverage report
- GET /pull/{pull}/links - Report links as JSON
- GET /pull/{pull}/{report} - Redirect to one report
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from fastapi.responses import HTMLResponse, RedirectResponse

from coverage_shortcuts.builds.store import BuildStore, StoreError
from coverage_shortcuts.ci.client import CIClient, CIClientError
from coverage_shortcuts.config import Settings
from coverage_shortcuts.coverage import (
    ReportNotReadyError,
    UnknownReportError,
    find_coverage_links,
    render_pull_page,
    resolve_report_link,
)
from web.deps import get_app_settings, get_ci_client, get_store

router = APIRouter()


def _lookup_failed(pull: int, error: CIClientError | StoreError) -> HTTPException:
    """Map a lookup failure to an HTTP error."""
    status_code = (
        http_status.HTTP_502_BAD_GATEWAY
        if isinstance(error, CIClientError)
        else http_status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return HTTPException(
        status_code=status_code,
        detail={
            "code": error.code,
            "message": f"Failed to resolve coverage for pull/{pull}: {error}",
        },
    )


@router.get("/{pull}", response_class=HTMLResponse)
def pull_page(
    pull: int,
    store: BuildStore = Depends(get_store),
    client: CIClient = Depends(get_ci_client),
    settings: Settings = Depends(get_app_settings),
) -> HTMLResponse:
    """Render links to a pull request's newest coverage reports.

    Args:
        pull: Pull request number.
        store: Build store.
        client: CI client.
        settings: Application settings.

    Returns:
        HTML page.
    """
    try:
        links = find_coverage_links(store, client, pull)
    except (CIClientError, StoreError) as e:
        raise _lookup_failed(pull, e) from None
    return HTMLResponse(render_pull_page(pull, links, settings.github_repo))


@router.get("/{pull}/links")
def pull_links(
    pull: int,
    store: BuildStore = Depends(get_store),
    client: CIClient = Depends(get_ci_client),
) -> dict[str, Any]:
    """Get a pull request's coverage report links as JSON.

    Args:
        pull: Pull request number.
        store: Build store.
        client: CI client.

    Returns:
        Pull number and a report name to URL (or null) mapping.
    """
    try:
        links = find_coverage_links(store, client, pull)
    except (CIClientError, StoreError) as e:
        raise _lookup_failed(pull, e) from None
    return {"pull": pull, "reports": links}


@router.get("/{pull}/{report}")
def pull_report_redirect(
    pull: int,
    report: str,
    store: BuildStore = Depends(get_store),
    client: CIClient = Depends(get_ci_client),
) -> RedirectResponse:
    """Redirect to the newest copy of one coverage report.

    Args:
        pull: Pull request number.
        report: Report name (harness, model_hub, master, agent, webui).
        store: Build store.
        client: CI client.

    Returns:
        Temporary redirect to the report.

    Raises:
        HTTPException: If the report is unknown or not ready yet.
    """
    try:
        url = resolve_report_link(store, client, pull, report)
    except (UnknownReportError, ReportNotReadyError) as e:
        raise HTTPException(
            status_code=http_status.HTTP_404_NOT_FOUND,
            detail={"code": e.code, "message": str(e)},
        ) from None
    except (CIClientError, StoreError) as e:
        raise _lookup_failed(pull, e) from None
    return RedirectResponse(url, status_code=http_status.HTTP_307_TEMPORARY_REDIRECT)
