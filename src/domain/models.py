from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class RepositoryIdentity(BaseModel):
    """Canonical (owner, name) pair identifying a GitHub repository."""
    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., min_length=1, description="Login name of the repository owner")
    name: str = Field(..., min_length=1, description="Name of the repository")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class ReleaseSnapshot(BaseModel):
    """
    Immutable snapshot of a repository's latest published release.
    Either the whole snapshot is present on a tracked repository or none of it is.
    """
    model_config = ConfigDict(frozen=True)

    release_id: str = Field(..., min_length=1, description="Stable release identifier from GitHub")
    tag: str = Field(..., description="Git tag the release points at")
    display_name: Optional[str] = Field(None, description="Human-readable release title")
    published_at: Optional[datetime] = Field(None, description="Publication timestamp, if published")
    release_url: str = Field(..., description="Web URL of the release page")


class TrackedRepository(BaseModel):
    """
    Immutable domain model representing a repository the user tracks.
    State transitions produce new instances via model_copy.
    """
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Store-generated surrogate key, immutable once assigned")
    owner: str = Field(..., description="Login name of the repository owner")
    name: str = Field(..., description="Name of the repository")
    url: str = Field(..., description="Canonical web URL of the repository")
    latest_release: Optional[ReleaseSnapshot] = Field(
        None,
        description="Last known release; absent until the first successful sync"
    )
    seen_by_user: bool = Field(False, description="Whether the user acknowledged the current release")

    @property
    def identity(self) -> RepositoryIdentity:
        return RepositoryIdentity(owner=self.owner, name=self.name)
