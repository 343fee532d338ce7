import asyncio

import pytest

from lexirank.config import Config
from lexirank.database.database import Database

from helpers import fresh_words


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    monkeypatch.setattr(Config, "JWT_SECRET_KEY", "test-secret")


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'test_lexirank.db'}"


@pytest.fixture
def run_db(db_url):
    """Run an async scenario against a fresh database inside one event loop."""
    def runner(scenario, word_bank=False):
        async def wrapper():
            db = Database(db_url)
            await db.initialize()
            try:
                if word_bank:
                    await db.seed_words(fresh_words())
                return await scenario(db)
            finally:
                await db.close()
        return asyncio.run(wrapper())
    return runner
