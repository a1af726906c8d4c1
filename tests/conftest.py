import asyncio

import pytest

from sessiontab.core.config import Settings
from sessiontab.db.memory import InMemoryRepository
from sessiontab.models.membership import Role
from sessiontab.schemas.webhook import Chat, InboundEvent, Sender
from sessiontab.services.container import build_services

DEFAULT_ADMIN_EXTERNAL_ID = 999
GROUP_EXTERNAL_ID = -100123


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        ENVIRONMENT="development",
        STORAGE_BACKEND="memory",
        DEFAULT_ADMIN_ID=DEFAULT_ADMIN_EXTERNAL_ID,
        CURRENCY_LABEL="Toman",
    )


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def services(repository, test_settings):
    return build_services(repository, test_settings)


@pytest.fixture
def squad(services):
    """
    One group with the default admin, two registered members (sara, omid)
    and one person (nima) who never registered.
    """
    repo = services.repository

    async def setup():
        group = await repo.get_or_create_group(GROUP_EXTERNAL_ID, "Friday futsal", "group")
        admin = await repo.get_or_create_person(DEFAULT_ADMIN_EXTERNAL_ID, "Coach", "coach")
        sara = await repo.get_or_create_person(1, "Sara", "sara")
        omid = await repo.get_or_create_person(2, "Omid", "omid")
        nima = await repo.get_or_create_person(3, "Nima", "nima")
        await services.ledger.upsert_membership(sara.id, group.id, Role.STUDENT, "Sara")
        await services.ledger.upsert_membership(omid.id, group.id, Role.ADULT, "Omid")
        return {"group": group, "admin": admin, "sara": sara, "omid": omid, "nima": nima}

    return run(setup())


def make_event(external_id, text=None, callback_data=None, chat_id=None, kind="private",
               name="Someone", handle=None, bot_added=False, title=""):
    return InboundEvent(
        update_id="1",
        sender=Sender(external_id=external_id, name=name, handle=handle),
        chat=Chat(
            external_id=chat_id if chat_id is not None else external_id,
            title=title,
            kind=kind,
        ),
        text=text,
        callback_data=callback_data,
        bot_added=bot_added,
    )
