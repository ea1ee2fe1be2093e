import pytest

from app.core.exchange.errors import StalePlanError
from app.core.exchange.moves import ChainHop, DirectMove, DisplacementMove, PlanState, apply_moves
from app.core.rooms.document import ChainData
from app.core.rooms.slots import TimeRange
from common.weekdays import Weekday
from tests.conftest import ALICE, BOB, CAROL, MONDAY, NOW, slot


def at(start, end) -> TimeRange:
    return TimeRange(weekday=Weekday.MONDAY, date=MONDAY, start_time=start, end_time=end)


def test_displacement_is_split_into_unit_slots():
    bob = slot(BOB, MONDAY, "10:00", "11:00")
    moves = [
        DirectMove(user_id=ALICE, to_ranges=[at("10:00", "11:00")]),
        DisplacementMove(user_id=BOB, from_slots=[bob], to_range=at("13:00", "14:00")),
    ]

    result = apply_moves([bob], moves, actor_id=BOB, now=NOW, unit_minutes=30)

    assert [(s.user_id, s.start_time, s.end_time) for s in result] == [
        (ALICE, "10:00", "11:00"),
        (BOB, "13:00", "13:30"),
        (BOB, "13:30", "14:00"),
    ]
    assert {s.assigned_by for s in result} == {BOB}


def test_missing_source_slot_makes_plan_stale():
    bob = slot(BOB, MONDAY, "10:00", "11:00")
    moves = [DisplacementMove(user_id=BOB, from_slots=[bob], to_range=at("13:00", "14:00"))]

    with pytest.raises(StalePlanError):
        apply_moves([], moves, actor_id=BOB, now=NOW, unit_minutes=30)


def test_displacement_ending_at_midnight_keeps_its_slots():
    bob = slot(BOB, MONDAY, "10:00", "11:00")
    late = TimeRange.from_minutes(Weekday.MONDAY, MONDAY, 23 * 60, 24 * 60)
    moves = [DisplacementMove(user_id=BOB, from_slots=[bob], to_range=late)]

    result = apply_moves([bob], moves, actor_id=BOB, now=NOW, unit_minutes=30)

    assert late.end_time == "24:00"
    assert [(s.start_time, s.end_time) for s in result] == [("23:00", "23:30"), ("23:30", "24:00")]


def test_empty_destination_makes_plan_stale():
    bob = slot(BOB, MONDAY, "10:00", "11:00")
    moves = [DisplacementMove(user_id=BOB, from_slots=[bob], to_range=at("23:00", "00:00"))]

    with pytest.raises(StalePlanError):
        apply_moves([bob], moves, actor_id=BOB, now=NOW, unit_minutes=30)


def test_released_slots_without_destination_make_plan_stale():
    bob = slot(BOB, MONDAY, "10:00", "11:00")
    moves = [DirectMove(user_id=BOB, from_slots=[bob], to_ranges=[])]

    with pytest.raises(StalePlanError):
        apply_moves([bob], moves, actor_id=BOB, now=NOW, unit_minutes=30)


def test_taken_destination_makes_plan_stale():
    carol = slot(CAROL, MONDAY, "13:00", "14:00")
    moves = [DirectMove(user_id=ALICE, to_ranges=[at("13:00", "14:00")])]

    with pytest.raises(StalePlanError):
        apply_moves([carol], moves, actor_id=ALICE, now=NOW, unit_minutes=30)


def test_plan_state_tracks_released_and_claimed():
    bob = slot(BOB, MONDAY, "10:00", "11:00")
    state = PlanState([DirectMove(user_id=ALICE, to_ranges=[at("10:00", "11:00")])])
    extended = state.extended(
        ChainHop(user_id=BOB, from_slots=[bob], to_range=at("13:00", "14:00"), next_user_id=CAROL)
    )

    assert extended.released == {bob.id}
    assert extended.participants == {ALICE, BOB}
    assert extended.is_claimed(at("13:30", "14:30"))
    assert not state.is_claimed(at("13:30", "14:30"))


def test_moves_survive_document_round_trip():
    bob = slot(BOB, MONDAY, "10:00", "11:00")
    data = ChainData(
        origin_request_id="origin",
        parent_request_id="origin",
        original_requester_id=ALICE,
        intermediate_user_id=BOB,
        intermediate_slot=at("10:00", "11:00"),
        moves=[
            DirectMove(user_id=ALICE, to_ranges=[at("10:00", "11:00")]),
            ChainHop(user_id=BOB, from_slots=[bob], to_range=at("13:00", "14:00"), next_user_id=CAROL),
        ],
    )

    restored = ChainData.model_validate(data.model_dump(mode="json"))

    assert [type(move) for move in restored.moves] == [DirectMove, ChainHop]
    assert restored.moves[1].from_slots[0].id == bob.id
