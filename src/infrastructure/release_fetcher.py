import logging
from typing import Callable, Optional

import aiohttp

from src.domain.exceptions import UpstreamUnavailableException
from src.domain.models import ReleaseSnapshot, RepositoryIdentity
from src.infrastructure.acl import GitHubTranslator
from src.infrastructure.github_client import GitHubGraphQLClient

logger = logging.getLogger(__name__)


class GitHubReleaseFetcher:
    """
    Read-only view of GitHub used by the tracker.

    Nothing here writes to, or caches in, local state; persisting what was
    fetched is the reconciliation engine's job.
    """

    def __init__(
            self,
            github_client: GitHubGraphQLClient,
            session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
    ):
        self.github_client = github_client
        self.session_factory = session_factory

    async def _fetch(self, owner: str, name: str):
        async with self.session_factory() as session:
            return await self.github_client.fetch_repository(session, owner, name)

    async def lookup_repository(self, owner: str, name: str) -> Optional[RepositoryIdentity]:
        """Returns GitHub's canonical identity for owner/name, or None if it does not exist."""
        raw_repository = await self._fetch(owner, name)
        if raw_repository is None:
            return None
        return GitHubTranslator.to_identity(raw_repository)

    async def fetch_latest_release(self, owner: str, name: str) -> Optional[ReleaseSnapshot]:
        """
        Retrieves the latest published release of owner/name.

        Returns:
            The release snapshot, or None if the repository has no releases yet.

        Raises:
            UpstreamUnavailableException: on transport errors, or if the repository vanished upstream.
        """
        raw_repository = await self._fetch(owner, name)
        if raw_repository is None:
            raise UpstreamUnavailableException(f"Repository {owner}/{name} is no longer available on GitHub.")

        snapshot = GitHubTranslator.to_release_snapshot(raw_repository.get('latestRelease'))
        if snapshot is None:
            logger.debug(f"{owner}/{name} has no published releases.")
        return snapshot
