import aiohttp
import asyncio
import logging
import random
from typing import Dict, Any, Optional

from src.domain.exceptions import RateLimitExceededException, UpstreamUnavailableException

logger = logging.getLogger(__name__)

# Looks up a single repository together with its latest published release.
# latestRelease is null for repositories that have never published a release.
GRAPHQL_QUERY = """
query ($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    name
    owner {
      login
    }
    latestRelease {
      id
      tagName
      name
      publishedAt
      url
    }
  }
  rateLimit {
    cost
    remaining
    resetAt
  }
}
"""

REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=30, connect=10)
MAX_RETRIES = 5
MIN_RATE_LIMIT_REMAINING = 10

class GitHubGraphQLClient:
    """
    Client for interacting with the GitHub GraphQL API.
    Handles authentication, query execution, and rate limit management.
    """

    def __init__(self, token: str, api_url: str = "https://api.github.com/graphql"):
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": "release-tracker",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        self.api_url = api_url

    async def fetch_repository(
        self,
        session: aiohttp.ClientSession,
        owner: str,
        name: str,
    ) -> Optional[Dict[str, Any]]:
        """
        Fetches the raw repository node, including its latest release, from GitHub.

        Returns:
            The raw repository node, or None if GitHub reports the repository does not exist.

        Raises:
            RateLimitExceededException: if the primary rate limit is nearly exhausted.
            UpstreamUnavailableException: if GitHub could not be reached after MAX_RETRIES attempts.
        """
        payload = {
            "query": GRAPHQL_QUERY,
            "variables": {"owner": owner, "name": name},
        }
        last_error = None

        for attempt in range(MAX_RETRIES):
            try:
                async with session.post(self.api_url, json=payload, headers=self.headers, timeout=REQUEST_TIMEOUT) as response:
                    # Handle secondary rate limit (abuse detection)
                    if response.status == 403:
                        retry_after = response.headers.get('Retry-After')
                        sleep_time = int(retry_after) if retry_after else 60
                        logger.warning(f"Secondary rate limit (403). Sleeping {sleep_time}s...")
                        last_error = "secondary rate limit"
                        await asyncio.sleep(sleep_time)
                        continue

                    if response.status in {500, 502, 503, 504}:
                        sleep_time = (2 ** attempt) + random.uniform(0, 2)
                        logger.warning(
                            f"Server error ({response.status}) fetching {owner}/{name}, "
                            f"retrying in {sleep_time:.1f}s (attempt {attempt + 1}/{MAX_RETRIES})..."
                        )
                        last_error = f"HTTP {response.status}"
                        await asyncio.sleep(sleep_time)
                        continue

                    response.raise_for_status()
                    data = await response.json()

                    errors = data.get('errors') or []
                    result = data.get('data') or {}
                    repository = result.get('repository')

                    # A missing repository comes back as HTTP 200 with a NOT_FOUND error
                    if repository is None and any(error.get('type') == 'NOT_FOUND' for error in errors):
                        logger.info(f"GitHub reports no repository {owner}/{name}.")
                        return None

                    # Handle GraphQL-level errors (can occur even with HTTP 200)
                    if errors:
                        error_msg = errors[0].get('message', 'Unknown GraphQL error')
                        if data.get('data') is None:
                            sleep_time = (2 ** attempt) + random.uniform(0, 2)
                            logger.warning(f"GraphQL error: {error_msg}. Retrying in {sleep_time:.1f}s...")
                            last_error = error_msg
                            await asyncio.sleep(sleep_time)
                            continue
                        logger.warning(f"GraphQL partial error: {error_msg}")

                    rate_limit = result.get('rateLimit') or {}
                    remaining = rate_limit.get('remaining', 100)

                    if remaining < MIN_RATE_LIMIT_REMAINING:
                        reset_at = rate_limit.get('resetAt')
                        raise RateLimitExceededException(reset_at=reset_at)

                    return repository

            except aiohttp.ClientResponseError as e:
                # 403 and 5xx are handled above; any other status (bad token, 404) will not improve on retry
                logger.error(f"GitHub rejected request for {owner}/{name} with HTTP {e.status}: {e.message}")
                raise UpstreamUnavailableException(
                    f"GitHub rejected request for {owner}/{name} with HTTP {e.status}."
                ) from e

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                sleep_time = (2 ** attempt) + random.uniform(0, 2)
                logger.warning(
                    f"Request for {owner}/{name} failed (attempt {attempt + 1}/{MAX_RETRIES}): {e}. "
                    f"Retrying in {sleep_time:.1f}s..."
                )
                last_error = str(e) or type(e).__name__
                await asyncio.sleep(sleep_time)

        raise UpstreamUnavailableException(
            f"Failed to fetch {owner}/{name} from GitHub after {MAX_RETRIES} attempts: {last_error}"
        )
