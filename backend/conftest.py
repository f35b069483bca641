import asyncio

import pytest
from sqlalchemy.pool import StaticPool

from erblocks.db.models import Base, Diagram
from erblocks.db.session import build_engine, build_sessionmaker


MEMORY_URL = "sqlite+aiosqlite:///:memory:"


async def make_database(diagrams, url=MEMORY_URL):
    """Database with one diagram row per id, in memory unless `url` is given."""
    if url == MEMORY_URL:
        engine = build_engine(url, poolclass=StaticPool)
    else:
        engine = build_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sessionmaker = build_sessionmaker(engine)
    async with sessionmaker() as session, session.begin():
        for diagram_id in diagrams:
            source = diagrams[diagram_id] if isinstance(diagrams, dict) else ""
            session.add(Diagram(id=diagram_id, title=f"Diagram {diagram_id}", mermaid_source=source))

    return engine, sessionmaker


@pytest.fixture
def run_with_db():
    """
    Run `scenario(sessionmaker)` against a fresh database.

    diagrams: iterable of ids, or a dict of id -> mermaid source.
    url: database URL; a file database lets sessions run concurrently.
    """
    def runner(scenario, diagrams=("A", "B", "C", "D"), url=MEMORY_URL):
        async def main():
            engine, sessionmaker = await make_database(diagrams, url)
            try:
                return await scenario(sessionmaker)
            finally:
                await engine.dispose()

        return asyncio.run(main())

    return runner
