"""Build ledger endpoints.

- GET /builds/unarchived - Builds whose artifacts are not cached yet
- GET /builds/{build_num} - Get a build from the ledger
- GET /builds/{build_num}/artifacts - Get a build's artifacts
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status

from coverage_shortcuts.builds.cache import get_artifacts_with_cache
from coverage_shortcuts.builds.store import BuildStore, StoreError
from coverage_shortcuts.ci.client import CIClient, CIClientError
from web.deps import get_ci_client, get_store

router = APIRouter()


def _build_not_found(build_num: int) -> HTTPException:
    return HTTPException(
        status_code=http_status.HTTP_404_NOT_FOUND,
        detail={
            "code": "build_not_found",
            "message": f"Build not found: {build_num}",
        },
    )


def _store_failed(error: StoreError) -> HTTPException:
    return HTTPException(
        status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": error.code, "message": f"Build ledger error: {error}"},
    )


@router.get("/unarchived")
def list_unarchived_builds(
    store: BuildStore = Depends(get_store),
) -> list[dict[str, Any]]:
    """List builds whose artifacts have not been cached yet.

    Args:
        store: Build store.

    Returns:
        Build records, newest first.
    """
    try:
        builds = store.unarchived_builds()
    except StoreError as e:
        raise _store_failed(e) from None
    return [b.to_dict() for b in builds]


@router.get("/{build_num}")
def get_build_endpoint(
    build_num: int,
    store: BuildStore = Depends(get_store),
) -> dict[str, Any]:
    """Get a build record by number.

    Args:
        build_num: Build number.
        store: Build store.

    Returns:
        Build record data.

    Raises:
        HTTPException: If build not found or the ledger cannot be read.
    """
    try:
        build = store.get_build(build_num)
    except StoreError as e:
        raise _store_failed(e) from None
    if build is None:
        raise _build_not_found(build_num)
    return build.to_dict()


@router.get("/{build_num}/artifacts")
def get_build_artifacts_endpoint(
    build_num: int,
    store: BuildStore = Depends(get_store),
    client: CIClient = Depends(get_ci_client),
) -> list[dict[str, Any]]:
    """Get a build's artifacts, from the cache once the build is archived.

    Args:
        build_num: Build number.
        store: Build store.
        client: CI client.

    Returns:
        List of artifacts.

    Raises:
        HTTPException: If build not found, the CI provider fails, or the
            ledger cannot be read or written.
    """
    try:
        build = store.get_build(build_num)
        if build is None:
            raise _build_not_found(build_num)
        artifacts = get_artifacts_with_cache(store, client, build)
    except CIClientError as e:
        raise HTTPException(
            status_code=http_status.HTTP_502_BAD_GATEWAY,
            detail={"code": e.code, "message": str(e)},
        ) from None
    except StoreError as e:
        raise _store_failed(e) from None
    return [a.to_dict() for a in artifacts]
