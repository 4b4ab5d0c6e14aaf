import argparse
import asyncio
import json
import os
import sys
import logging
from dotenv import load_dotenv

from src.application.api import TrackerAPI
from src.application.tracking_service import TrackingService
from src.domain.exceptions import NoReleaseFoundException, TrackerException
from src.infrastructure.github_client import GitHubGraphQLClient
from src.infrastructure.database import PostgresRepository
from src.infrastructure.release_fetcher import GitHubReleaseFetcher

logger = logging.getLogger(__name__)

# Commands that talk to GitHub and therefore need a token
GITHUB_COMMANDS = {"add", "sync", "sync-all"}


def configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="release-tracker", description="Track the latest releases of GitHub repositories.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the tracked_repositories table")
    commands.add_parser("list", help="List tracked repositories")
    commands.add_parser("sync-all", help="Sync every tracked repository")

    add = commands.add_parser("add", help="Track a repository")
    add.add_argument("reference", help="GitHub URL or owner/name")

    for command, help_text in (
        ("get", "Show one tracked repository"),
        ("remove", "Stop tracking a repository"),
        ("sync", "Fetch the latest release of a repository"),
        ("seen", "Mark the current release of a repository as seen"),
    ):
        sub = commands.add_parser(command, help=help_text)
        sub.add_argument("id", help="Tracked repository id")

    return parser


def emit(value) -> None:
    print(json.dumps(value, indent=2))


async def run(args: argparse.Namespace, db_repository: PostgresRepository, github_token: str) -> int:
    if args.command == "init-db":
        await db_repository.create_schema()
        logger.info("Database schema is ready.")
        return 0

    # GitHub is only contacted by the commands in GITHUB_COMMANDS
    github_client = GitHubGraphQLClient(token=github_token or "")
    service = TrackingService(
        release_fetcher=GitHubReleaseFetcher(github_client),
        store=db_repository,
    )
    api = TrackerAPI(service)

    if args.command == "list":
        emit(await api.tracked_repos())
    elif args.command == "get":
        repo = await api.repo(args.id)
        if repo is None:
            logger.error(f"No tracked repository with id {args.id}.")
            return 1
        emit(repo)
    elif args.command == "add":
        emit(await api.add_repo(args.reference))
    elif args.command == "remove":
        removed = await api.remove_repo(args.id)
        emit(removed)
        return 0 if removed else 1
    elif args.command == "sync":
        try:
            emit(await api.sync_latest_release(args.id))
        except NoReleaseFoundException as e:
            logger.info(str(e))
    elif args.command == "sync-all":
        report = await service.sync_all()
        emit({
            "updated": report.updated,
            "unchanged": report.unchanged,
            "noRelease": report.no_release,
            "failed": report.failed,
        })
    elif args.command == "seen":
        emit(await api.mark_repo_seen(args.id))
    return 0


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # Load environment variables from .env file
    load_dotenv()
    configure_logging()

    github_token = os.getenv("GITHUB_TOKEN")
    db_url = os.getenv("DATABASE_URL")

    if not db_url:
        logger.error("DATABASE_URL is not set in the environment.")
        return 1

    if args.command in GITHUB_COMMANDS and not github_token:
        logger.error("GITHUB_TOKEN is not set in the environment.")
        return 1

    db_repository = PostgresRepository(db_url=db_url)
    try:
        return await run(args, db_repository, github_token)
    except TrackerException as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.exception(f"An unexpected error occurred: {e}")
        return 1
    finally:
        await db_repository.dispose()

def cli() -> None:
    sys.exit(asyncio.run(main()))

if __name__ == "__main__":
    cli()
