"""Tests for the review state machine."""

import itertools

import pytest

from app.core.exceptions import Forbidden, InvalidTransition
from app.domains.collaboration.workflow import StatusWorkflow, TRANSITIONS, round_half_up
from app.domains.identity.entities import Role
from app.domains.projects.entities import Question, ReviewState

ALLOWED = {
    (ReviewState.UNASSIGNED, ReviewState.DRAFT),
    (ReviewState.DRAFT, ReviewState.REVIEW),
    (ReviewState.REVIEW, ReviewState.DRAFT),
    (ReviewState.REVIEW, ReviewState.APPROVED),
    (ReviewState.APPROVED, ReviewState.DRAFT),
}


@pytest.fixture
def workflow():
    return StatusWorkflow()


def question_in(state, assigned_to="alice"):
    question = Question.create_question("Do you support SSO?", response="Yes")
    question.review_state = state
    question.assigned_to = assigned_to
    return question


@pytest.mark.parametrize("current,target", list(itertools.product(ReviewState, repeat=2)))
def test_transition_graph(workflow, current, target):
    assert workflow.can_transition(current, target) == ((current, target) in ALLOWED)


def test_graph_has_no_other_edges():
    edges = {(src, dst) for src, targets in TRANSITIONS.items() for dst in targets}
    assert edges == ALLOWED


class TestTransition:
    def test_invalid_transition_checked_before_role(self, workflow, viewer, t0):
        question = question_in(ReviewState.DRAFT)

        with pytest.raises(InvalidTransition) as exc_info:
            workflow.transition(question, ReviewState.APPROVED, viewer, Role.VIEWER, t0)

        assert exc_info.value.current == "draft"
        assert exc_info.value.target == "approved"
        assert question.review_state == ReviewState.DRAFT

    def test_viewer_cannot_change_status(self, workflow, viewer, t0):
        question = question_in(ReviewState.DRAFT)

        with pytest.raises(Forbidden):
            workflow.transition(question, ReviewState.REVIEW, viewer, Role.VIEWER, t0)

    def test_assigned_editor_submits_for_review(self, workflow, alice, t0):
        question = question_in(ReviewState.DRAFT)

        workflow.transition(question, ReviewState.REVIEW, alice, Role.EDITOR, t0)

        assert question.review_state == ReviewState.REVIEW
        assert question.status_updated_by == "alice"
        assert question.status_updated_at == t0

    def test_editor_assigned_by_email(self, workflow, alice, t0):
        question = question_in(ReviewState.DRAFT, assigned_to="alice@example.com")

        workflow.transition(question, ReviewState.REVIEW, alice, Role.EDITOR, t0)

        assert question.review_state == ReviewState.REVIEW

    def test_unassigned_editor_forbidden(self, workflow, bob, t0):
        question = question_in(ReviewState.DRAFT)

        with pytest.raises(Forbidden):
            workflow.transition(question, ReviewState.REVIEW, bob, Role.EDITOR, t0)

    def test_editor_cannot_reopen_approved(self, workflow, alice, t0):
        question = question_in(ReviewState.APPROVED)

        with pytest.raises(Forbidden):
            workflow.transition(question, ReviewState.DRAFT, alice, Role.EDITOR, t0)

    @pytest.mark.parametrize("role", [Role.OWNER, Role.ADMIN])
    def test_managers_can_drive_any_question(self, workflow, admin, role, t0):
        question = question_in(ReviewState.REVIEW, assigned_to="someone-else")

        workflow.transition(question, ReviewState.APPROVED, admin, role, t0)

        assert question.review_state == ReviewState.APPROVED

    def test_approval_stamped_and_cleared(self, workflow, admin, t0):
        question = question_in(ReviewState.REVIEW)

        workflow.transition(question, ReviewState.APPROVED, admin, Role.ADMIN, t0)
        assert question.approved_by == "admin-1"
        assert question.approved_at == t0

        workflow.transition(question, ReviewState.DRAFT, admin, Role.ADMIN, t0)
        assert question.approved_by is None
        assert question.approved_at is None

    def test_display_stage_follows_state(self, workflow, admin, t0):
        question = question_in(ReviewState.REVIEW)

        workflow.transition(question, ReviewState.APPROVED, admin, Role.ADMIN, t0)

        assert question.display_stage == "approved"


class TestCanEdit:
    def test_matrix(self, workflow, alice, bob, viewer, admin):
        draft = question_in(ReviewState.DRAFT)
        approved = question_in(ReviewState.APPROVED)

        assert workflow.can_edit(draft, admin, Role.ADMIN)
        assert workflow.can_edit(approved, admin, Role.OWNER)
        assert workflow.can_edit(draft, alice, Role.EDITOR)
        assert not workflow.can_edit(approved, alice, Role.EDITOR)
        assert not workflow.can_edit(draft, bob, Role.EDITOR)
        assert not workflow.can_edit(draft, viewer, Role.VIEWER)

    def test_ensure_can_edit_raises(self, workflow, bob):
        with pytest.raises(Forbidden):
            workflow.ensure_can_edit(question_in(ReviewState.DRAFT), bob, Role.EDITOR)


class TestProgressBreakdown:
    def test_counts_and_percentages(self, workflow, project_factory):
        project = project_factory([3])
        states = [ReviewState.DRAFT, ReviewState.REVIEW, ReviewState.APPROVED]
        for (_, _, question), state in zip(project.iter_questions(), states):
            question.review_state = state

        breakdown = workflow.progress_breakdown(project)

        assert breakdown["total"] == 3
        assert breakdown["counts"] == {"unassigned": 0, "draft": 1, "review": 1, "approved": 1}
        assert breakdown["percentages"]["draft"] == 33

    def test_empty_project(self, workflow, project_factory):
        breakdown = workflow.progress_breakdown(project_factory([]))

        assert breakdown["total"] == 0
        assert all(value == 0 for value in breakdown["percentages"].values())


@pytest.mark.parametrize("value,expected", [(0.0, 0), (12.5, 13), (66.66, 67), (99.4, 99), (100.0, 100)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
