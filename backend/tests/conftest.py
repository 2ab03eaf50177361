"""
ComplyWatch Test Configuration

Pytest fixtures and configuration.
"""

import asyncio

import pytest

from complywatch.database import create_engine_for, create_session_factory, init_db


@pytest.fixture
def run_with_db(tmp_path):
    """
    Run an async scenario against a fresh SQLite database.

    The scenario receives a session factory; engine setup, schema creation
    and disposal happen inside the same event loop.
    """
    def run(scenario, create_schema: bool = True):
        async def main():
            engine = create_engine_for(f"sqlite:///{tmp_path / 'complywatch-test.db'}")
            try:
                if create_schema:
                    await init_db(engine)
                return await scenario(create_session_factory(engine))
            finally:
                await engine.dispose()

        return asyncio.run(main())

    return run
