import random
from datetime import timedelta

import pytest

from app.core.db.schemas.reviews import utc_today
from app.core.db_services import FlashcardService, ReviewScheduleService


async def create_cards(api, count):
    ids = []
    for i in range(count):
        r = await api.post("/v1/flashcards", json={"front": f"Q{i}", "back": f"A{i}"})
        assert r.status_code == 201
        ids.append(r.json()["id"])
    return ids


@pytest.mark.integration
async def test_new_cards_are_due_today(api):
    ids = await create_cards(api, 2)
    r = await api.get("/v1/reviews")
    assert r.status_code == 200
    assert r.headers["cache-control"] == "private, no-cache"
    assert sorted(c["id"] for c in r.json()) == ids
    assert set(r.json()[0]) == {"id", "front", "back"}


@pytest.mark.integration
async def test_due_cards_are_owner_scoped_and_dated(api, user, other_user, session_maker):
    ids = await create_cards(api, 3)
    async with session_maker() as s:
        await FlashcardService(s).create(user_id=other_user.id, front="Theirs", back="X")
        await ReviewScheduleService(s).reschedule(
            ids[1], user.id, utc_today() + timedelta(days=3)
        )

    r = await api.get("/v1/reviews")
    assert sorted(c["id"] for c in r.json()) == [ids[0], ids[2]]


@pytest.mark.integration
async def test_nothing_due_returns_empty_list(api):
    r = await api.get("/v1/reviews")
    assert r.status_code == 200
    assert r.json() == []


@pytest.mark.integration
async def test_deleted_card_is_no_longer_due(api):
    ids = await create_cards(api, 2)
    assert (await api.delete(f"/v1/flashcards/{ids[0]}")).status_code == 204
    r = await api.get("/v1/reviews")
    assert [c["id"] for c in r.json()] == [ids[1]]


@pytest.mark.integration
async def test_due_cards_are_shuffled(api, user, session_maker):
    ids = await create_cards(api, 6)
    expected = list(ids)
    random.Random(3).shuffle(expected)

    async with session_maker() as s:
        cards = await ReviewScheduleService(s, rng=random.Random(3)).due_for_review(
            user.id
        )
    assert [c.id for c in cards] == expected


@pytest.mark.integration
async def test_review_date_can_be_moved_forward(api, user, session_maker):
    ids = await create_cards(api, 1)
    async with session_maker() as s:
        service = ReviewScheduleService(s)
        await service.reschedule(ids[0], user.id, utc_today() + timedelta(days=1))
        assert await service.due_for_review(user.id) == []
        tomorrow = await service.due_for_review(
            user.id, review_date=utc_today() + timedelta(days=1)
        )
    assert [c.id for c in tomorrow] == ids
