import logging
from typing import Optional, Protocol

from src.domain.exceptions import NoReleaseFoundException, NotFoundException
from src.domain.models import ReleaseSnapshot, TrackedRepository

logger = logging.getLogger(__name__)


class ReleaseFetcher(Protocol):
    async def fetch_latest_release(self, owner: str, name: str) -> Optional[ReleaseSnapshot]: ...


class RepositoryStore(Protocol):
    async def get_by_id(self, repo_id: int) -> Optional[TrackedRepository]: ...

    async def update_release_if_changed(self, repo_id: int, snapshot: ReleaseSnapshot) -> TrackedRepository: ...

    async def mark_seen(self, repo_id: int) -> bool: ...


def release_changed(cached: Optional[ReleaseSnapshot], fetched: ReleaseSnapshot) -> bool:
    """
    Decides whether the fetched release differs from the cached one.

    Releases are compared by their GitHub release id only: an edited title or
    moved tag on the same release is not a new release, and a reused tag on a
    new release is.
    """
    if cached is None:
        return True
    return cached.release_id != fetched.release_id


class ReconciliationEngine:
    """
    Keeps a tracked repository's cached release in step with GitHub.

    Fetching and persisting are separate steps: the fetcher is a pure read and
    the store only writes when release_changed() says so.
    """

    def __init__(self, release_fetcher: ReleaseFetcher, store: RepositoryStore):
        self.release_fetcher = release_fetcher
        self.store = store

    async def sync(self, repo_id: int) -> TrackedRepository:
        """
        Refreshes the latest release of one tracked repository.

        Returns:
            TrackedRepository: the record after reconciliation. Unchanged
            (including seen_by_user) when GitHub still reports the same release.

        Raises:
            NotFoundException: repo_id is not tracked.
            UpstreamUnavailableException: GitHub could not be queried; nothing was written.
            NoReleaseFoundException: the repository has no published release; nothing was written.
        """
        tracked = await self.store.get_by_id(repo_id)
        if tracked is None:
            raise NotFoundException(repo_id)

        snapshot = await self.release_fetcher.fetch_latest_release(tracked.owner, tracked.name)
        if snapshot is None:
            raise NoReleaseFoundException(tracked.owner, tracked.name)

        if not release_changed(tracked.latest_release, snapshot):
            logger.debug(f"{tracked.owner}/{tracked.name} is still at {snapshot.tag}.")
            return tracked

        updated = await self.store.update_release_if_changed(repo_id, snapshot)
        previous = tracked.latest_release.tag if tracked.latest_release else None
        logger.info(f"{tracked.owner}/{tracked.name}: new release {snapshot.tag} (was {previous}).")
        return updated

    async def mark_seen(self, repo_id: int) -> None:
        """Acknowledges the current release. Never touches the release snapshot."""
        if not await self.store.mark_seen(repo_id):
            raise NotFoundException(repo_id)
