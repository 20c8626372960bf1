"""RecruitmentController tests — lifecycle scenarios, rejections and invariants.

Invariants:
    - total_enrolled <= target_participants after every command
    - Rejected commands leave the study untouched and say why (outcome + code)
    - A completed cohort clears current_cohort and frees the next window

Design Decisions:
    - Pure tests: controller with a fixed clock and stub enrollee source, no DB
"""

from datetime import timedelta

import pytest

from app.core.domain_types import (
    CohortStatus, CommandOutcome, RecruitmentStatus, ShippingStatus,
)
from app.core.recruitment_snapshot import study_state_to_snapshot
from app.core.recruitment_state import StudyRecruitmentState


# --- Helpers ------------------------------------------------------------------

def _close_with(controller, study_id: str, enrolled: int):
    controller.record_enrollment(study_id, enrolled)
    return controller.close_window(study_id)


def _ship_current_cohort(controller, study_id: str):
    cohort = controller.get_recruitment_state(study_id).current_cohort
    result = None
    for i, pid in enumerate(cohort.participant_ids):
        result = controller.enter_tracking_code(study_id, pid, f"1Z{i:016d}")
        assert result.ok
    return cohort, result


# --- Scenarios A-E ------------------------------------------------------------

def test_scenario_a_initialize(controller):
    result = controller.initialize_study("s1", 50, 100)
    assert result.ok
    assert result.state.status == RecruitmentStatus.WAITLIST_ONLY
    assert result.state.total_enrolled == 0
    assert result.state.waitlist_count == 100


def test_scenario_b_go_live(controller, clock):
    controller.initialize_study("s1", 50, 100)
    state = controller.go_live("s1").state
    assert state.status == RecruitmentStatus.WINDOW_OPEN
    assert [(w.waitlist_at_open, w.enrolled) for w in state.window_history] == [(100, 0)]
    assert state.current_window_opened_at == clock.now
    assert state.current_window_ends_at == clock.now + timedelta(hours=24)


def test_scenario_c_close_window_creates_cohort(controller):
    controller.initialize_study("s1", 50, 100)
    controller.go_live("s1")
    state = _close_with(controller, "s1", 30).state

    assert state.status == RecruitmentStatus.WINDOW_CLOSED
    assert state.total_enrolled == 30
    cohort = state.current_cohort
    assert cohort is state.cohorts[-1]
    assert cohort.cohort_number == 1
    assert len(cohort.participant_ids) == 30
    assert cohort.tracking_codes_entered == 0
    assert state.window_history[-1].enrolled == 30
    assert state.current_window_enrolled == 0


def test_scenario_d_tracking_completes_cohort(controller):
    controller.initialize_study("s1", 50, 100)
    controller.go_live("s1")
    _close_with(controller, "s1", 30)
    cohort, result = _ship_current_cohort(controller, "s1")

    assert cohort.all_tracking_entered
    assert cohort.status == CohortStatus.COMPLETE
    assert cohort.tracking_codes_entered == 30
    assert result.state.status == RecruitmentStatus.READY_TO_OPEN
    assert result.state.current_cohort is None


def test_scenario_e_study_completes_at_target(controller):
    controller.initialize_study("s1", 50, 100)
    controller.go_live("s1")
    _close_with(controller, "s1", 30)
    _ship_current_cohort(controller, "s1")

    assert controller.open_window("s1").state.status == RecruitmentStatus.WINDOW_OPEN
    _close_with(controller, "s1", 20)
    _, result = _ship_current_cohort(controller, "s1")

    state = result.state
    assert state.total_enrolled == 50
    assert state.status == RecruitmentStatus.COMPLETE
    assert state.current_cohort is None
    assert [c.cohort_number for c in state.cohorts] == [1, 2]


# --- Idempotence and rejection ------------------------------------------------

def test_initialize_existing_study_is_unchanged(controller):
    controller.initialize_study("s1", 50, 100)
    controller.go_live("s1")
    result = controller.initialize_study("s1", 10, 5)
    assert result.ok
    assert result.state.target_participants == 50
    assert result.state.status == RecruitmentStatus.WINDOW_OPEN


def test_second_go_live_changes_nothing(controller):
    controller.initialize_study("s1", 50, 100)
    controller.go_live("s1")
    before = study_state_to_snapshot(controller.get_recruitment_state("s1"))

    result = controller.go_live("s1")

    assert result.outcome == CommandOutcome.INVALID_TRANSITION
    assert study_state_to_snapshot(result.state) == before


def test_unknown_study_is_not_found(controller):
    for result in (
        controller.go_live("unknown"),
        controller.open_window("unknown"),
        controller.close_window("unknown"),
        controller.record_enrollment("unknown", 1),
        controller.grow_waitlist("unknown", 1),
        controller.enter_tracking_code("unknown", "p", "1234567890"),
    ):
        assert result.outcome == CommandOutcome.NOT_FOUND
        assert result.error_code == "STUDY_NOT_FOUND"
        assert result.state is None


@pytest.mark.parametrize("target, waitlist, code", [
    (0, 10, "INVALID_TARGET"),
    (-5, 10, "INVALID_TARGET"),
    (10, -1, "INVALID_COUNT"),
])
def test_initialize_rejects_bad_input(controller, target, waitlist, code):
    result = controller.initialize_study("s1", target, waitlist)
    assert result.outcome == CommandOutcome.INVALID_INPUT
    assert result.error_code == code
    assert not controller.has_study("s1")


def test_initialize_uses_default_waitlist(make_controller):
    controller = make_controller(default_waitlist_count=7)
    assert controller.initialize_study("s1", 10).state.waitlist_count == 7


def test_open_window_requires_ready_to_open(controller):
    controller.initialize_study("s1", 10, 10)
    assert controller.open_window("s1").outcome == CommandOutcome.INVALID_TRANSITION


def test_close_window_requires_open_window(controller):
    controller.initialize_study("s1", 10, 10)
    assert controller.close_window("s1").outcome == CommandOutcome.INVALID_TRANSITION


# --- Zero-enrollment close ----------------------------------------------------

def test_zero_enrollment_close_returns_to_ready_to_open(controller, source):
    controller.initialize_study("s1", 10, 40)
    controller.go_live("s1")
    state = controller.close_window("s1").state

    assert state.status == RecruitmentStatus.READY_TO_OPEN
    assert state.cohorts == []
    assert state.current_cohort is None
    assert state.window_history[-1].enrolled == 0
    assert source.calls == []


# --- Enrollment and waitlist --------------------------------------------------

def test_record_enrollment_decrements_waitlist(controller):
    controller.initialize_study("s1", 50, 100)
    controller.go_live("s1")
    state = controller.record_enrollment("s1", 12).state
    assert state.current_window_enrolled == 12
    assert state.waitlist_count == 88


def test_record_enrollment_clamps_to_capacity(controller):
    controller.initialize_study("s1", 10, 3)
    controller.go_live("s1")
    controller.record_enrollment("s1", 4)
    state = controller.record_enrollment("s1", 20).state

    assert state.current_window_enrolled == 10
    assert state.waitlist_count == 0
    assert state.remaining_capacity == 0


def test_record_enrollment_rejects_negative(controller):
    controller.initialize_study("s1", 10, 3)
    controller.go_live("s1")
    result = controller.record_enrollment("s1", -2)
    assert result.outcome == CommandOutcome.INVALID_INPUT
    assert result.state.current_window_enrolled == 0


def test_record_enrollment_requires_open_window(controller):
    controller.initialize_study("s1", 10, 3)
    assert (
        controller.record_enrollment("s1", 1).outcome
        == CommandOutcome.INVALID_TRANSITION
    )


def test_grow_waitlist_any_status(controller):
    controller.initialize_study("s1", 10, 3)
    assert controller.grow_waitlist("s1", 5).state.waitlist_count == 8
    controller.go_live("s1")
    assert controller.grow_waitlist("s1", 0).state.waitlist_count == 8
    assert controller.grow_waitlist("s1", -1).outcome == CommandOutcome.INVALID_INPUT


# --- Conversion rate ----------------------------------------------------------

def test_conversion_rate_updates_on_close(controller):
    controller.initialize_study("s1", 100, 100)
    controller.go_live("s1")
    _close_with(controller, "s1", 20)
    _ship_current_cohort(controller, "s1")
    controller.open_window("s1")
    state = _close_with(controller, "s1", 24).state

    assert [(w.waitlist_at_open, w.enrolled) for w in state.window_history] == [
        (100, 20), (80, 24),
    ]
    assert state.conversion_rate == pytest.approx(44 / 180)


def test_conversion_rate_default_before_any_close(make_controller):
    controller = make_controller(default_conversion_rate=0.5)
    assert controller.initialize_study("s1", 10, 10).state.conversion_rate == 0.5


# --- Full target reached on open ----------------------------------------------

def test_open_window_when_full_completes(controller):
    controller.initialize_study("s1", 5, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 5)
    state = controller.get_recruitment_state("s1")
    # Only reachable through restored state
    state.status = RecruitmentStatus.READY_TO_OPEN
    state.current_cohort = None

    result = controller.open_window("s1")
    assert result.ok
    assert result.state.status == RecruitmentStatus.COMPLETE
    assert len(result.state.window_history) == 1


def test_complete_study_rejects_every_command(controller):
    controller.initialize_study("s1", 2, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 2)
    _ship_current_cohort(controller, "s1")
    assert controller.get_recruitment_state("s1").status == RecruitmentStatus.COMPLETE

    for result in (
        controller.go_live("s1"),
        controller.open_window("s1"),
        controller.close_window("s1"),
        controller.record_enrollment("s1", 1),
        controller.enter_tracking_code("s1", "s1-cohort-1-p0", "1234567890"),
    ):
        assert result.outcome == CommandOutcome.INVALID_TRANSITION


# --- Tracking -----------------------------------------------------------------

def test_tracking_sets_carrier_and_status(controller, clock):
    controller.initialize_study("s1", 10, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 2)
    clock.advance(hours=1)

    result = controller.enter_tracking_code("s1", "s1-cohort-1-p0", " 1z999aa10123456784 ")
    participant = controller.get_participant("s1-cohort-1-p0")

    assert result.ok
    assert participant.tracking_number == "1z999aa10123456784"
    assert participant.tracking_carrier == "UPS"
    assert participant.status == ShippingStatus.SHIPPED
    assert participant.shipped_at == clock.now
    assert result.state.current_cohort.status == CohortStatus.SHIPPING
    assert result.state.status == RecruitmentStatus.WINDOW_CLOSED


def test_unrecognized_code_still_saves(controller):
    controller.initialize_study("s1", 10, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 1)

    result = controller.enter_tracking_code("s1", "s1-cohort-1-p0", "CUSTOM-42")

    assert result.ok
    assert controller.get_participant("s1-cohort-1-p0").tracking_carrier is None
    assert result.state.status == RecruitmentStatus.READY_TO_OPEN


def test_resaving_code_does_not_double_count(controller):
    controller.initialize_study("s1", 10, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 3)
    controller.enter_tracking_code("s1", "s1-cohort-1-p0", "1234567890")
    state = controller.enter_tracking_code("s1", "s1-cohort-1-p0", "0987654321").state

    assert state.current_cohort.tracking_codes_entered == 1
    assert not state.current_cohort.all_tracking_entered


def test_tracking_unknown_participant(controller):
    controller.initialize_study("s1", 10, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 1)
    result = controller.enter_tracking_code("s1", "nobody", "1234567890")
    assert result.outcome == CommandOutcome.NOT_FOUND
    assert result.error_code == "PARTICIPANT_NOT_FOUND"


def test_tracking_participant_of_other_study(controller):
    for sid in ("s1", "s2"):
        controller.initialize_study(sid, 10, 10)
        controller.go_live(sid)
        _close_with(controller, sid, 1)
    result = controller.enter_tracking_code("s1", "s2-cohort-1-p0", "1234567890")
    assert result.outcome == CommandOutcome.NOT_FOUND


def test_tracking_participant_of_completed_cohort(controller):
    controller.initialize_study("s1", 10, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 1)
    _ship_current_cohort(controller, "s1")
    controller.open_window("s1")
    _close_with(controller, "s1", 1)

    result = controller.enter_tracking_code("s1", "s1-cohort-1-p0", "1234567890")
    assert result.outcome == CommandOutcome.INVALID_TRANSITION
    assert result.error_code == "COHORT_NOT_ACTIVE"
    assert controller.get_participant("s1-cohort-1-p0").tracking_number == "1Z0000000000000000"


def test_tracking_blank_code(controller):
    controller.initialize_study("s1", 10, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 1)
    result = controller.enter_tracking_code("s1", "s1-cohort-1-p0", "   ")
    assert result.outcome == CommandOutcome.INVALID_INPUT
    assert controller.get_participant("s1-cohort-1-p0").tracking_number is None


def test_tracking_requires_window_closed(controller):
    controller.initialize_study("s1", 10, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 1)
    _ship_current_cohort(controller, "s1")
    controller.open_window("s1")

    result = controller.enter_tracking_code("s1", "s1-cohort-1-p0", "1234567890")
    assert result.outcome == CommandOutcome.INVALID_TRANSITION


# --- Bulk tracking ------------------------------------------------------------

def test_bulk_tracking_skips_blank_codes(controller):
    controller.initialize_study("s1", 10, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 3)

    results = controller.enter_tracking_codes("s1", [
        ("s1-cohort-1-p0", "1234567890"),
        ("s1-cohort-1-p1", "  "),
        ("unknown", "1234567890"),
        ("s1-cohort-1-p2", "123456789012"),
    ])

    assert [r.outcome for r in results] == [
        CommandOutcome.OK, CommandOutcome.NOT_FOUND, CommandOutcome.OK,
    ]
    cohort = controller.get_recruitment_state("s1").current_cohort
    assert cohort.tracking_codes_entered == 2


def test_bulk_tracking_completes_cohort_midway(controller):
    controller.initialize_study("s1", 10, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 1)

    results = controller.enter_tracking_codes("s1", [
        ("s1-cohort-1-p0", "1234567890"),
        ("s1-cohort-1-p0", "0987654321"),
    ])

    assert results[0].ok
    assert results[1].outcome == CommandOutcome.INVALID_TRANSITION
    assert controller.get_participant("s1-cohort-1-p0").tracking_number == "1234567890"


# --- Queries ------------------------------------------------------------------

def test_cohort_progress(make_controller, stub_source_cls):
    controller = make_controller(stub_source_cls(missing_address_every=3))
    controller.initialize_study("s1", 10, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 6)
    controller.enter_tracking_code("s1", "s1-cohort-1-p0", "1234567890")

    progress = controller.cohort_progress("s1-cohort-1")
    assert progress.enrolled == 6
    assert progress.addresses_collected == 4
    assert progress.shipped == 1
    assert progress.delivered == 0
    assert progress.needs_tracking == 5
    assert not progress.all_addresses_collected
    assert not progress.can_ship


def test_cohort_participants_in_order(controller):
    controller.initialize_study("s1", 10, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 3)
    ids = [p.participant_id for p in controller.get_cohort_participants("s1-cohort-1")]
    assert ids == ["s1-cohort-1-p0", "s1-cohort-1-p1", "s1-cohort-1-p2"]


# --- Invariants ---------------------------------------------------------------

def test_total_never_exceeds_target(controller):
    controller.initialize_study("s1", 7, 100)
    controller.go_live("s1")
    for _ in range(5):
        state = controller.get_recruitment_state("s1")
        if state.status == RecruitmentStatus.COMPLETE:
            break
        if state.status == RecruitmentStatus.READY_TO_OPEN:
            controller.open_window("s1")
        _close_with(controller, "s1", 4)
        assert controller.get_recruitment_state("s1").total_enrolled <= 7
        _ship_current_cohort(controller, "s1")

    state = controller.get_recruitment_state("s1")
    assert state.total_enrolled == 7
    assert state.status == RecruitmentStatus.COMPLETE
    assert [c.size for c in state.cohorts] == [4, 3]


def test_hydrate_ignores_live_study(controller):
    live = controller.initialize_study("s1", 10, 10).state
    controller.hydrate(
        StudyRecruitmentState(study_id="s1", target_participants=99, waitlist_count=0),
        [],
    )
    assert controller.get_recruitment_state("s1") is live


def test_reset_clears_studies(controller):
    controller.initialize_study("s1", 10, 10)
    controller.go_live("s1")
    _close_with(controller, "s1", 1)
    controller.reset()
    assert not controller.has_study("s1")
    assert controller.get_participant("s1-cohort-1-p0") is None
