"""Tests for the in-memory booking repository."""

from __future__ import annotations

import threading
import time
from datetime import date

import pytest

from booking_service.domain.models import Booking, BookingStatus
from booking_service.repos.base import DuplicateKeyError, IdempotencyKeyTaken
from booking_service.repos.memory import InMemoryBookingRepository, create_booking_repository


def _make_booking(**overrides) -> Booking:
    defaults = dict(
        room_id="101",
        customer_id="alice",
        check_in=date(2025, 6, 1),
        check_out=date(2025, 6, 5),
    )
    defaults.update(overrides)
    return Booking(**defaults)


def test_add_assigns_id_and_timestamps():
    repo = InMemoryBookingRepository()
    stored = repo.add(_make_booking())
    assert stored.id
    assert stored.created_at is not None
    assert stored.updated_at == stored.created_at
    assert repo.get(stored.id) == stored


def test_returned_records_are_copies():
    repo = InMemoryBookingRepository()
    stored = repo.add(_make_booking())
    stored.guests = 9
    fetched = repo.get(stored.id)
    fetched.guests = 7
    assert repo.get(stored.id).guests == 1


def test_active_slot_is_unique():
    repo = InMemoryBookingRepository()
    first = repo.add(_make_booking())
    with pytest.raises(DuplicateKeyError) as exc_info:
        repo.add(_make_booking(customer_id="bob"))
    assert exc_info.value.existing_id == first.id
    assert len(repo.list_all()) == 1


def test_cancelled_booking_releases_slot():
    repo = InMemoryBookingRepository()
    first = repo.add(_make_booking())
    repo.update(first.id, {"status": BookingStatus.CANCELLED})
    second = repo.add(_make_booking(customer_id="bob"))
    assert second.id != first.id
    # A cancelled booking may sit on the same slot as an active one.
    repo.add(_make_booking(customer_id="carol", status=BookingStatus.CANCELLED))


def test_update_into_taken_slot_keeps_original():
    repo = InMemoryBookingRepository()
    repo.add(_make_booking())
    other = repo.add(_make_booking(check_in=date(2025, 7, 1), check_out=date(2025, 7, 3)))
    with pytest.raises(DuplicateKeyError):
        repo.update(other.id, {"check_in": date(2025, 6, 1), "check_out": date(2025, 6, 5)})
    assert repo.get(other.id).check_in == date(2025, 7, 1)
    # The original slot is still held by ``other``.
    with pytest.raises(DuplicateKeyError):
        repo.add(_make_booking(check_in=date(2025, 7, 1), check_out=date(2025, 7, 3)))


def test_update_unknown_returns_none():
    assert InMemoryBookingRepository().update("missing", {"guests": 2}) is None


def test_find_duplicate_matches_customer_in_any_status():
    repo = InMemoryBookingRepository()
    key = ("101", date(2025, 6, 1), date(2025, 6, 5))
    stored = repo.add(_make_booking())
    assert repo.find_duplicate("alice", *key) == stored
    assert repo.find_duplicate("bob", *key) is None

    cancelled = repo.update(stored.id, {"status": BookingStatus.CANCELLED})
    assert repo.find_duplicate("alice", *key) == cancelled


def test_find_duplicate_prefers_the_active_booking():
    repo = InMemoryBookingRepository()
    key = ("101", date(2025, 6, 1), date(2025, 6, 5))
    old = repo.add(_make_booking())
    repo.update(old.id, {"status": BookingStatus.CANCELLED})
    current = repo.add(_make_booking())
    repo.add(_make_booking(status=BookingStatus.CANCELLED))
    assert repo.find_duplicate("alice", *key).id == current.id


def test_list_active_for_room_excludes_cancelled_and_self():
    repo = InMemoryBookingRepository()
    a = repo.add(_make_booking())
    b = repo.add(_make_booking(check_in=date(2025, 6, 5), check_out=date(2025, 6, 7)))
    repo.add(
        _make_booking(
            check_in=date(2025, 6, 8),
            check_out=date(2025, 6, 9),
            status=BookingStatus.CANCELLED,
        )
    )
    repo.add(_make_booking(room_id="102"))

    assert {x.id for x in repo.list_active_for_room("101")} == {a.id, b.id}
    assert [x.id for x in repo.list_active_for_room("101", exclude_id=a.id)] == [b.id]


def test_idempotency_key_lookup_and_cleanup_on_delete():
    repo = InMemoryBookingRepository()
    stored = repo.add(_make_booking(), idempotency_key="k1")
    assert repo.find_by_idempotency_key("k1") == stored
    assert repo.find_by_idempotency_key("k2") is None

    assert repo.delete(stored.id).id == stored.id
    assert repo.find_by_idempotency_key("k1") is None
    assert repo.delete(stored.id) is None


def test_add_refuses_a_taken_idempotency_key():
    repo = InMemoryBookingRepository()
    first = repo.add(_make_booking(), idempotency_key="k1")
    with pytest.raises(IdempotencyKeyTaken) as exc_info:
        repo.add(_make_booking(room_id="102"), idempotency_key="k1")
    assert exc_info.value.existing_id == first.id
    assert repo.find_by_idempotency_key("k1") == first
    assert repo.list_all() == [first]


def test_lock_rooms_serialises_writers_on_the_same_room():
    repo = InMemoryBookingRepository()
    order: list[str] = []
    entered = threading.Event()

    def _holder():
        with repo.lock_rooms("101"):
            entered.set()
            time.sleep(0.05)
            order.append("holder")

    thread = threading.Thread(target=_holder)
    thread.start()
    entered.wait(timeout=1)
    with repo.lock_rooms("101", "102"):
        order.append("waiter")
    thread.join()

    assert order == ["holder", "waiter"]


def test_lock_rooms_does_not_block_other_rooms():
    repo = InMemoryBookingRepository()
    with repo.lock_rooms("101"):
        acquired = threading.Event()

        def _other_room():
            with repo.lock_rooms("202"):
                acquired.set()

        thread = threading.Thread(target=_other_room)
        thread.start()
        assert acquired.wait(timeout=1)
        thread.join()


def test_room_locks_are_dropped_when_idle():
    repo = InMemoryBookingRepository()
    with repo.lock_rooms("101", "102"):
        assert repo.held_room_locks() == ["101", "102"]
    assert repo.held_room_locks() == []

    with pytest.raises(RuntimeError):
        with repo.lock_rooms("101"):
            raise RuntimeError("boom")
    assert repo.held_room_locks() == []


def test_waiting_writer_keeps_the_room_lock_alive():
    repo = InMemoryBookingRepository()
    waiting = threading.Event()
    order: list[str] = []

    def _waiter():
        waiting.set()
        with repo.lock_rooms("101"):
            order.append("waiter")

    with repo.lock_rooms("101"):
        thread = threading.Thread(target=_waiter)
        thread.start()
        waiting.wait(timeout=1)
        time.sleep(0.05)
        order.append("holder")
    thread.join()

    assert order == ["holder", "waiter"]
    assert repo.held_room_locks() == []


def test_seeded_repository_has_no_overlaps():
    repo = create_booking_repository()
    assert len(repo.list_all()) == 3
    assert len(repo.list_active_for_room("101")) == 2
    assert repo.list_active_for_room("202") == []
    assert create_booking_repository(seed=False).list_all() == []
