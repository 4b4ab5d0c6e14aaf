import logging
from typing import Any, List, Mapping, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy import (
    Table, Column, String, Integer, Boolean, DateTime, MetaData,
    UniqueConstraint, CheckConstraint, select, update, delete, text, and_, or_,
)

from src.domain.exceptions import (
    DatabaseException,
    DuplicateNameException,
    DuplicateUrlException,
    NotFoundException,
)
from src.domain.models import ReleaseSnapshot, RepositoryIdentity, TrackedRepository

logger = logging.getLogger(__name__)

OWNER_NAME_CONSTRAINT = 'uq_tracked_repositories_owner_name'
URL_CONSTRAINT = 'uq_tracked_repositories_url'

# SQLAlchemy core Table definition
metadata = MetaData()
repos_table = Table(
    'tracked_repositories', metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('owner', String, nullable=False),
    Column('name', String, nullable=False),
    Column('url', String, nullable=False),
    Column('release_id', String, nullable=True),
    Column('release_tag', String, nullable=True),
    Column('release_name', String, nullable=True),
    Column('release_published_at', DateTime(timezone=True), nullable=True),
    Column('release_url', String, nullable=True),
    Column('seen_by_user', Boolean, nullable=False, server_default=text('false')),
    Column('created_at', DateTime(timezone=True), server_default=text('NOW()')),
    Column('updated_at', DateTime(timezone=True), server_default=text('NOW()')),
    UniqueConstraint('owner', 'name', name=OWNER_NAME_CONSTRAINT),
    UniqueConstraint('url', name=URL_CONSTRAINT),
)

# The release snapshot is stored either completely or not at all.
repos_table.append_constraint(CheckConstraint(
    or_(
        and_(
            repos_table.c.release_id.is_(None),
            repos_table.c.release_tag.is_(None),
            repos_table.c.release_url.is_(None),
            repos_table.c.release_name.is_(None),
            repos_table.c.release_published_at.is_(None),
        ),
        and_(
            repos_table.c.release_id.is_not(None),
            repos_table.c.release_tag.is_not(None),
            repos_table.c.release_url.is_not(None),
        ),
    ),
    name='ck_tracked_repositories_release_complete',
))


def row_to_entity(row: Mapping[str, Any]) -> TrackedRepository:
    """Maps a tracked_repositories row onto the domain model."""
    latest_release = None
    if row['release_id'] is not None:
        latest_release = ReleaseSnapshot(
            release_id=row['release_id'],
            tag=row['release_tag'],
            display_name=row['release_name'],
            published_at=row['release_published_at'],
            release_url=row['release_url'],
        )
    return TrackedRepository(
        id=row['id'],
        owner=row['owner'],
        name=row['name'],
        url=row['url'],
        latest_release=latest_release,
        seen_by_user=row['seen_by_user'],
    )


class PostgresRepository:
    """
    Durable store of tracked repositories and their last known release.
    Every operation is a single statement (or one transaction), so writes to a
    record are atomic and uniqueness is enforced by the database constraints.
    """

    def __init__(self, db_url: str):
        self.engine = create_async_engine(db_url, echo=False)

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def insert(self, identity: RepositoryIdentity, url: str) -> TrackedRepository:
        """
        Creates a tracked repository with no release and seen_by_user = False.

        Raises:
            DuplicateNameException: owner/name is already tracked.
            DuplicateUrlException: url is already tracked.
        """
        stmt = insert(repos_table).values(
            owner=identity.owner,
            name=identity.name,
            url=url,
            seen_by_user=False,
        ).returning(*repos_table.c)

        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
                row = result.mappings().one()
        except IntegrityError as e:
            raise self._translate_integrity_error(e, identity, url) from e

        logger.info(f"Tracking {identity.full_name} as id {row['id']}.")
        return row_to_entity(row)

    @staticmethod
    def _translate_integrity_error(error: IntegrityError, identity: RepositoryIdentity, url: str) -> Exception:
        message = str(error.orig)
        # PostgreSQL names the violated constraint; SQLite lists the columns instead.
        if URL_CONSTRAINT in message or 'tracked_repositories.url' in message:
            return DuplicateUrlException(url)
        if OWNER_NAME_CONSTRAINT in message or 'tracked_repositories.owner' in message:
            return DuplicateNameException(identity.owner, identity.name)
        return DatabaseException(f"Failed to insert {identity.full_name}: {message}")

    async def list_all(self) -> List[TrackedRepository]:
        stmt = select(repos_table).order_by(repos_table.c.id.asc())
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            return [row_to_entity(row) for row in result.mappings().all()]

    async def get_by_id(self, repo_id: int) -> Optional[TrackedRepository]:
        stmt = select(repos_table).where(repos_table.c.id == repo_id)
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            row = result.mappings().first()
        return row_to_entity(row) if row is not None else None

    async def remove(self, repo_id: int) -> bool:
        stmt = delete(repos_table).where(repos_table.c.id == repo_id)
        async with self.engine.begin() as conn:
            result = await conn.execute(stmt)
        return result.rowcount > 0

    async def update_release_if_changed(self, repo_id: int, snapshot: ReleaseSnapshot) -> TrackedRepository:
        """
        Stores snapshot as the latest release and resets seen_by_user, unless the
        stored release already has the same release_id.

        Returns:
            TrackedRepository: the record after the (possibly skipped) write.

        Raises:
            NotFoundException: no record with repo_id.
        """
        stmt = (
            update(repos_table)
            .where(
                repos_table.c.id == repo_id,
                repos_table.c.release_id.is_distinct_from(snapshot.release_id),
            )
            .values(
                release_id=snapshot.release_id,
                release_tag=snapshot.tag,
                release_name=snapshot.display_name,
                release_published_at=snapshot.published_at,
                release_url=snapshot.release_url,
                seen_by_user=False,
                updated_at=text('NOW()'),
            )
            .returning(*repos_table.c)
        )

        async with self.engine.begin() as conn:
            result = await conn.execute(stmt)
            row = result.mappings().first()
            if row is None:
                # Either nothing changed or the record is gone.
                current = await conn.execute(select(repos_table).where(repos_table.c.id == repo_id))
                row = current.mappings().first()
                if row is None:
                    raise NotFoundException(repo_id)

        return row_to_entity(row)

    async def mark_seen(self, repo_id: int) -> bool:
        stmt = (
            update(repos_table)
            .where(repos_table.c.id == repo_id)
            .values(seen_by_user=True, updated_at=text('NOW()'))
        )
        async with self.engine.begin() as conn:
            result = await conn.execute(stmt)
        return result.rowcount > 0
