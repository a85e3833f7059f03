from datetime import datetime, timezone
from pathlib import Path
from sqlalchemy import String, Integer, Boolean, DateTime, false
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps (SQLite and mongomock drop the offset)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    pass


class VisitorRecord(Base):
    __tablename__ = "visitors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
    # Never incremented; kept for compatibility with existing consumers.
    entry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    has_logged_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "identifier": self.identifier,
            "entry_count": self.entry_count,
            "has_logged_in": self.has_logged_in,
            "created_at": as_utc(self.created_at),
            "updated_at": as_utc(self.updated_at),
        }


# --- Database engine / session ---


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(url, echo=echo)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def ensure_sqlite_dir(url: str) -> Path | None:
    """Create the directory holding a file-based SQLite database. Returns it, or None."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return None
    database = parsed.database
    if not database or database == ":memory:" or database.startswith("file:"):
        return None
    parent = Path(database).expanduser().parent
    parent.mkdir(parents=True, exist_ok=True)
    return parent


async def init_db(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
