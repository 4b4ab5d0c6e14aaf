import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Union

from src.application.reconciliation import ReconciliationEngine
from src.domain.exceptions import (
    NoReleaseFoundException,
    NotFoundException,
    RateLimitExceededException,
    UpstreamRepositoryNotFoundException,
    UpstreamUnavailableException,
)
from src.domain.identity import canonical_url, resolve_reference
from src.domain.models import ReleaseSnapshot, RepositoryIdentity, TrackedRepository

logger = logging.getLogger(__name__)


class ReleaseFetcher(Protocol):
    async def lookup_repository(self, owner: str, name: str) -> Optional[RepositoryIdentity]: ...

    async def fetch_latest_release(self, owner: str, name: str) -> Optional[ReleaseSnapshot]: ...


class RepositoryStore(Protocol):
    async def insert(self, identity: RepositoryIdentity, url: str) -> TrackedRepository: ...

    async def list_all(self) -> List[TrackedRepository]: ...

    async def get_by_id(self, repo_id: int) -> Optional[TrackedRepository]: ...

    async def remove(self, repo_id: int) -> bool: ...

    async def update_release_if_changed(self, repo_id: int, snapshot: ReleaseSnapshot) -> TrackedRepository: ...

    async def mark_seen(self, repo_id: int) -> bool: ...


@dataclass
class SyncReport:
    """Outcome of sync_all, by tracked repository id."""
    updated: List[int] = field(default_factory=list)
    unchanged: List[int] = field(default_factory=list)
    no_release: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)


class TrackingService:
    """
    Operations exposed to callers: add, remove, list, get, sync and acknowledge.
    Each is a thin composition of identity resolution, the release fetcher,
    the store and the reconciliation engine.
    """

    def __init__(self, release_fetcher: ReleaseFetcher, store: RepositoryStore):
        self.release_fetcher = release_fetcher
        self.store = store
        self.engine = ReconciliationEngine(release_fetcher=release_fetcher, store=store)

    async def add(self, reference: Union[str, RepositoryIdentity]) -> TrackedRepository:
        """
        Starts tracking a repository given as a URL, an "owner/name" string or an identity.

        Raises:
            InvalidReferenceException: the reference is malformed.
            UpstreamRepositoryNotFoundException: GitHub has no such repository.
            UpstreamUnavailableException: GitHub could not be queried.
            DuplicateNameException / DuplicateUrlException: already tracked.
        """
        if isinstance(reference, RepositoryIdentity):
            identity = reference
        else:
            identity = resolve_reference(reference)

        canonical = await self.release_fetcher.lookup_repository(identity.owner, identity.name)
        if canonical is None:
            raise UpstreamRepositoryNotFoundException(identity.full_name)

        return await self.store.insert(canonical, canonical_url(canonical))

    async def remove(self, repo_id: int) -> bool:
        removed = await self.store.remove(repo_id)
        if removed:
            logger.info(f"Stopped tracking repository {repo_id}.")
        return removed

    async def list(self) -> List[TrackedRepository]:
        return await self.store.list_all()

    async def get(self, repo_id: int) -> Optional[TrackedRepository]:
        return await self.store.get_by_id(repo_id)

    async def sync(self, repo_id: int) -> TrackedRepository:
        return await self.engine.sync(repo_id)

    async def acknowledge(self, repo_id: int) -> None:
        await self.engine.mark_seen(repo_id)

    async def sync_all(self) -> SyncReport:
        """
        Syncs every tracked repository in listing order.

        Repositories without releases and transient upstream failures are
        recorded in the report; hitting the rate limit stops the run.
        """
        report = SyncReport()
        tracked = await self.store.list_all()
        logger.info(f"Syncing {len(tracked)} tracked repositories.")

        for repo in tracked:
            try:
                result = await self.engine.sync(repo.id)
            except NoReleaseFoundException:
                report.no_release.append(repo.id)
            except NotFoundException:
                # Removed while the run was in progress.
                logger.info(f"Repository {repo.id} disappeared during sync, skipping.")
            except RateLimitExceededException:
                logger.warning(f"Rate limit hit after {repo.owner}/{repo.name}. Aborting sync run.")
                raise
            except UpstreamUnavailableException as e:
                logger.error(f"Failed to sync {repo.owner}/{repo.name}: {e}")
                report.failed.append(repo.id)
            else:
                if result.latest_release == repo.latest_release:
                    report.unchanged.append(repo.id)
                else:
                    report.updated.append(repo.id)

        logger.info(
            f"Sync completed. Updated: {len(report.updated)}, unchanged: {len(report.unchanged)}, "
            f"no release: {len(report.no_release)}, failed: {len(report.failed)}."
        )
        return report
