"""
Resolves free-form repository references into canonical owner/name identities.

Purely local validation: nothing here talks to GitHub. Whether the repository
actually exists is checked by the release fetcher when the repository is added.
"""
import re

from src.domain.exceptions import InvalidReferenceException
from src.domain.models import RepositoryIdentity

GITHUB_WEB_URL = "https://github.com"

# GitHub logins: alphanumerics with single inner hyphens, at most 39 characters.
_OWNER_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9]|-(?=[A-Za-z0-9])){0,38}$")
_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,100}$")

_URL_PATTERN = re.compile(
    r"""^(?:(?:https?|git|ssh)://)?     # optional scheme
        (?:[^@/]+@)?                    # optional user, e.g. git@
        (?:www\.)?github\.com[:/]       # host, followed by / or the scp-style :
        (?P<owner>[^/\s]+)/(?P<name>[^/?#\s]+)
        (?:[/?#].*)?$""",
    re.IGNORECASE | re.VERBOSE,
)
_SHORTHAND_PATTERN = re.compile(r"^(?P<owner>[^/\s:]+)/(?P<name>[^/\s:]+)$")

GIT_SUFFIX = ".git"


def resolve_reference(reference: str) -> RepositoryIdentity:
    """
    Turns a repository URL or an "owner/name" shorthand into a RepositoryIdentity.

    Args:
        reference (str): e.g. "https://github.com/acme/widget", "git@github.com:acme/widget.git"
            or "acme/widget".

    Returns:
        RepositoryIdentity: owner and name with any trailing ".git" removed.

    Raises:
        InvalidReferenceException: if the reference does not have the expected shape.
    """
    if not isinstance(reference, str) or not reference.strip():
        raise InvalidReferenceException(str(reference), reason="reference is empty")

    candidate = reference.strip()
    match = _URL_PATTERN.match(candidate) or _SHORTHAND_PATTERN.match(candidate)
    if not match:
        raise InvalidReferenceException(reference)

    owner = match.group("owner")
    name = match.group("name")
    if name.lower().endswith(GIT_SUFFIX):
        name = name[:-len(GIT_SUFFIX)]

    if not _OWNER_PATTERN.match(owner):
        raise InvalidReferenceException(reference, reason=f"invalid owner segment {owner!r}")
    if not _NAME_PATTERN.match(name) or name in {".", ".."}:
        raise InvalidReferenceException(reference, reason=f"invalid repository name {name!r}")

    return RepositoryIdentity(owner=owner, name=name)


def canonical_url(identity: RepositoryIdentity) -> str:
    return f"{GITHUB_WEB_URL}/{identity.owner}/{identity.name}"
