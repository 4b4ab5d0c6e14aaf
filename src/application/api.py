"""
Query/mutation surface handed to the transport layer.

to_api_shape is the single place where the persisted TrackedRepository is
turned into the externally exposed, camelCase record.
"""
from typing import Any, Dict, List, Optional

from src.application.tracking_service import TrackingService
from src.domain.models import ReleaseSnapshot, TrackedRepository

# Upper bound of the 32-bit integer primary key
MAX_ID = 2 ** 31 - 1


def release_to_api_shape(release: Optional[ReleaseSnapshot]) -> Optional[Dict[str, Any]]:
    if release is None:
        return None
    return {
        'id': release.release_id,
        'tag': release.tag,
        'name': release.display_name,
        'publishedAt': release.published_at.isoformat() if release.published_at else None,
        'url': release.release_url,
    }


def to_api_shape(repo: TrackedRepository) -> Dict[str, Any]:
    return {
        'id': str(repo.id),
        'owner': repo.owner,
        'name': repo.name,
        'url': repo.url,
        'latestRelease': release_to_api_shape(repo.latest_release),
        'seenByUser': repo.seen_by_user,
    }


def parse_id(raw_id: Any) -> int:
    """Ids travel as strings over the API; anything non-numeric or outside the id column cannot exist."""
    try:
        repo_id = int(raw_id)
    except (TypeError, ValueError):
        return -1
    if not 1 <= repo_id <= MAX_ID:
        return -1
    return repo_id


class TrackerAPI:
    """Resolvers for trackedRepos, repo, addRepo, removeRepo, syncLatestRelease and markRepoSeen."""

    def __init__(self, service: TrackingService):
        self.service = service

    async def tracked_repos(self) -> List[Dict[str, Any]]:
        return [to_api_shape(repo) for repo in await self.service.list()]

    async def repo(self, repo_id: str) -> Optional[Dict[str, Any]]:
        found = await self.service.get(parse_id(repo_id))
        return to_api_shape(found) if found is not None else None

    async def add_repo(self, reference: str) -> Dict[str, Any]:
        return to_api_shape(await self.service.add(reference))

    async def remove_repo(self, repo_id: str) -> bool:
        return await self.service.remove(parse_id(repo_id))

    async def sync_latest_release(self, repo_id: str) -> Dict[str, Any]:
        return to_api_shape(await self.service.sync(parse_id(repo_id)))

    async def mark_repo_seen(self, repo_id: str) -> bool:
        await self.service.acknowledge(parse_id(repo_id))
        return True
