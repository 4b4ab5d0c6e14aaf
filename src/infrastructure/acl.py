from datetime import datetime
from typing import Any, Dict, Optional
from src.domain.models import ReleaseSnapshot, RepositoryIdentity

class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub GraphQL JSON responses into domain models.
    """

    @staticmethod
    def to_identity(raw_repository: Dict[str, Any]) -> RepositoryIdentity:
        """
        Builds the canonical identity from a raw repository node, using GitHub's own casing.

        Args:
            raw_repository (Dict[str, Any]): The raw repository node from GitHub's GraphQL response.

        Returns:
            RepositoryIdentity: owner login and repository name as GitHub reports them.
        """
        owner_data = raw_repository.get('owner') or {}
        owner = owner_data.get('login')
        name = raw_repository.get('name')
        if not owner or not name:
            raise ValueError("owner.login and name are required to build RepositoryIdentity.")
        return RepositoryIdentity(owner=owner, name=name)

    @staticmethod
    def to_release_snapshot(raw_release: Optional[Dict[str, Any]]) -> Optional[ReleaseSnapshot]:
        """
        Transforms a raw latestRelease node into a ReleaseSnapshot.

        Args:
            raw_release: The latestRelease node, or None when the repository has no releases.

        Returns:
            ReleaseSnapshot, or None when there is no release.
        """
        if raw_release is None:
            return None

        release_id = raw_release.get('id')
        if not release_id:
            raise ValueError("id is required to build ReleaseSnapshot.")

        raw_date = raw_release.get('publishedAt')
        published_at = datetime.fromisoformat(raw_date.replace("Z", "+00:00")) if raw_date else None

        return ReleaseSnapshot(
            release_id=release_id,
            tag=raw_release.get('tagName', ''),
            display_name=raw_release.get('name'),
            published_at=published_at,
            release_url=raw_release.get('url', ''),
        )
