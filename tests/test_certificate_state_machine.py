"""
Reviewer chain state table — pure function tests, no database.

Covers:
  - who may act in each state
  - where FORWARD / APPROVE / REJECT lead
  - terminal states
  - derived status
  - dashboard state sets per role
"""

import pytest

from college_admin.models.certificate import (
    CERTIFICATE_WORKFLOW,
    WORKFLOW_STATUSES,
    actionable_states,
    acting_role,
    authorized_role,
    derive_status,
    is_terminal,
    next_state,
    visible_states,
    workflow_definition,
)


class TestAuthorizedRole:

    @pytest.mark.parametrize("state,role", [
        ("SUBMITTED", "advisor"),
        ("WITH_ADVISOR", "advisor"),
        ("WITH_HOD", "hod"),
        ("WITH_OFFICE", "office"),
        ("WITH_PRINCIPAL", "principal"),
    ])
    def test_role_per_state(self, state, role):
        assert authorized_role(state) == role

    @pytest.mark.parametrize("state", ["COMPLETED", "REJECTED"])
    def test_terminal_states_have_no_reviewer(self, state):
        assert authorized_role(state) is None
        assert is_terminal(state)

    def test_every_non_terminal_state_has_a_row(self):
        for state in WORKFLOW_STATUSES:
            assert (state in CERTIFICATE_WORKFLOW) == (not is_terminal(state))


class TestNextState:

    def test_forward_walks_the_chain(self):
        state = "SUBMITTED"
        path = [state]
        while not is_terminal(state):
            state = next_state(state, "FORWARD")
            path.append(state)
        assert path == ["SUBMITTED", "WITH_HOD", "WITH_OFFICE", "WITH_PRINCIPAL", "COMPLETED"]

    def test_approve_and_forward_are_equivalent(self):
        for state in CERTIFICATE_WORKFLOW:
            assert next_state(state, "APPROVE") == next_state(state, "FORWARD")

    def test_legacy_with_advisor_forwards_to_hod(self):
        assert next_state("WITH_ADVISOR", "FORWARD") == "WITH_HOD"

    @pytest.mark.parametrize("state", list(CERTIFICATE_WORKFLOW))
    def test_reject_from_any_active_state(self, state):
        assert next_state(state, "REJECT") == "REJECTED"

    @pytest.mark.parametrize("state", ["COMPLETED", "REJECTED"])
    def test_no_transition_out_of_terminal(self, state):
        with pytest.raises(ValueError):
            next_state(state, "FORWARD")

    def test_unknown_action(self):
        with pytest.raises(ValueError, match="Unknown action"):
            next_state("SUBMITTED", "ESCALATE")


class TestDeriveStatus:

    @pytest.mark.parametrize("state", ["SUBMITTED", "WITH_ADVISOR", "WITH_HOD", "WITH_OFFICE", "WITH_PRINCIPAL"])
    def test_in_progress_is_pending(self, state):
        assert derive_status(state) == "PENDING"

    def test_completed(self):
        assert derive_status("COMPLETED") == "APPROVED"
        assert derive_status("COMPLETED", generated=True) == "GENERATED"

    def test_rejected(self):
        assert derive_status("REJECTED") == "REJECTED"


class TestDashboardStates:

    def test_actionable(self):
        assert actionable_states("advisor") == {"SUBMITTED", "WITH_ADVISOR"}
        assert actionable_states("hod") == {"WITH_HOD"}
        assert actionable_states("principal") == {"WITH_PRINCIPAL"}
        assert actionable_states("student") == set()

    def test_visible_includes_later_stages_but_not_rejected(self):
        assert visible_states("hod") == {"WITH_HOD", "WITH_OFFICE", "WITH_PRINCIPAL", "COMPLETED"}
        assert visible_states("principal") == {"WITH_PRINCIPAL", "COMPLETED"}
        assert "REJECTED" not in visible_states("advisor")

    def test_admin_sees_everything(self):
        assert visible_states("admin") == set(WORKFLOW_STATUSES)

    def test_workflow_definition_lists_every_state(self):
        rows = {row["state"]: row for row in workflow_definition()}
        assert set(rows) == set(WORKFLOW_STATUSES)
        assert rows["WITH_OFFICE"]["role"] == "office"
        assert rows["WITH_OFFICE"]["on_forward"] == "WITH_PRINCIPAL"
        assert rows["COMPLETED"]["terminal"] is True
        assert rows["COMPLETED"]["on_reject"] is None


class TestActingRole:

    def test_picks_the_held_role_whose_turn_it_is(self):
        held = ["advisor", "hod"]
        assert acting_role("SUBMITTED", held, default="hod") == "advisor"
        assert acting_role("WITH_HOD", held, default="hod") == "hod"

    def test_falls_back_to_default(self):
        assert acting_role("WITH_OFFICE", ["advisor", "hod"], default="hod") == "hod"
        assert acting_role("COMPLETED", ["principal"], default="principal") == "principal"
