class TrackerException(Exception):
    """Base exception for all release-tracker errors."""
    pass

class InvalidReferenceException(TrackerException):
    """Raised when a repository reference cannot be resolved to an owner/name pair."""
    def __init__(self, reference: str, reason: str = "not a recognisable GitHub repository reference"):
        self.reference = reference
        super().__init__(f"Invalid repository reference {reference!r}: {reason}.")

class UpstreamRepositoryNotFoundException(InvalidReferenceException):
    """Raised when GitHub reports that the referenced repository does not exist."""
    def __init__(self, reference: str):
        super().__init__(reference, reason="repository does not exist on GitHub")

class DuplicateNameException(TrackerException):
    """Raised when a repository with the same owner/name is already tracked."""
    def __init__(self, owner: str, name: str):
        self.owner = owner
        self.name = name
        super().__init__(f"Repository with name \"{owner}/{name}\" already exists.")

class DuplicateUrlException(TrackerException):
    """Raised when a repository with the same URL is already tracked."""
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Repository with URL \"{url}\" already exists.")

class NotFoundException(TrackerException):
    """Raised when an operation targets a tracked repository id that does not exist."""
    def __init__(self, repo_id: int):
        self.repo_id = repo_id
        super().__init__(f"No tracked repository with id {repo_id}.")

class UpstreamUnavailableException(TrackerException):
    """Raised on transport or provider failures talking to GitHub. Safe to retry."""
    pass

class RateLimitExceededException(UpstreamUnavailableException):
    """Raised when the GitHub GraphQL rate limit is hit."""
    def __init__(self, reset_at: str, message: str = "GitHub API rate limit exceeded."):
        self.reset_at = reset_at
        super().__init__(f"{message} Resets at: {reset_at}")

class NoReleaseFoundException(TrackerException):
    """Raised when a repository has no published releases. Not worth retrying."""
    def __init__(self, owner: str, name: str):
        self.owner = owner
        self.name = name
        super().__init__(f"No release found for {owner}/{name}.")

class DatabaseException(TrackerException):
    """Raised when a database operation fails."""
    pass
