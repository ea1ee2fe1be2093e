from app.core.exchange.direct import is_mutually_compatible, plan_direct_exchange
from app.core.exchange.moves import apply_moves
from app.core.exchange.schedule import Availability, AvailabilityEntry
from common.weekdays import Weekday
from tests.conftest import ALICE, BOB, MONDAY, NOW, TUESDAY, slot, weekly


def availability(*windows) -> Availability:
    return Availability([AvailabilityEntry.model_validate(w) for w in windows], MONDAY)


ALICE_SLOTS = [slot(ALICE, TUESDAY, "09:00", "10:00")]
BOB_SLOTS = [slot(BOB, MONDAY, "10:00", "11:00")]


def test_compatibility_requires_both_directions():
    alice_free_monday = availability(weekly(Weekday.MONDAY, "10:00", "11:00"))
    bob_free_tuesday = availability(weekly(Weekday.TUESDAY, "09:00", "10:00"))
    nobody = availability()

    assert is_mutually_compatible(alice_free_monday, bob_free_tuesday, ALICE_SLOTS, BOB_SLOTS)
    # Bob's slot suits Alice, but Bob cannot take Alice's Tuesday.
    assert not is_mutually_compatible(alice_free_monday, nobody, ALICE_SLOTS, BOB_SLOTS)
    # Bob could take Alice's Tuesday, but Alice is not free on Monday.
    assert not is_mutually_compatible(nobody, bob_free_tuesday, ALICE_SLOTS, BOB_SLOTS)


def test_requester_without_slots_is_never_compatible():
    everyone = availability(weekly(Weekday.MONDAY, "08:00", "20:00"), weekly(Weekday.TUESDAY, "08:00", "20:00"))

    assert not is_mutually_compatible(everyone, everyone, [], BOB_SLOTS)


def test_direct_exchange_leaves_no_double_booking():
    moves = plan_direct_exchange(ALICE, BOB, ALICE_SLOTS, BOB_SLOTS)

    result = apply_moves([*ALICE_SLOTS, *BOB_SLOTS], moves, actor_id=BOB, now=NOW, unit_minutes=30)

    assert sorted((s.user_id, s.date, s.start_time) for s in result) == [
        (ALICE, MONDAY, "10:00"),
        (BOB, TUESDAY, "09:00"),
    ]
    for i, first in enumerate(result):
        for second in result[i + 1:]:
            assert not first.overlaps(second)
