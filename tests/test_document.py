"""Tests for the collaborative document orchestrator."""

from datetime import timedelta

import pytest

from app.core.exceptions import ConfirmationRequired, Forbidden, LockedError, NotFoundError
from app.domains.collaboration.document import CollaborativeDocument
from app.domains.collaboration.locks import LockManager
from app.domains.identity.entities import Role
from app.domains.notifications.entities import NotificationType
from app.domains.projects.entities import ProvenanceKind, ReviewState


def make_document(project):
    return CollaborativeDocument(project, locks=LockManager(ttl_seconds=300))


def first_question(project):
    return project.sections[0].questions[0]


class TestStats:
    def test_progress_follows_answers(self, project_factory, admin, t0):
        project = project_factory([5, 5])
        document = make_document(project)

        assert document.recompute_stats().progress == 0

        questions = [q for _, _, q in project.iter_questions()]
        for question in questions[:3]:
            document.save_edit(question.id, "Answer", admin, Role.ADMIN, t0)

        stats = project.stats
        assert stats.total_questions == 10
        assert stats.answered == 3
        assert stats.progress == 30

        for question in questions[:2]:
            question.review_state = ReviewState.REVIEW
            document.change_status(question.id, ReviewState.APPROVED, admin, Role.ADMIN, t0)

        assert project.stats.approved == 2
        assert project.stats.in_review == 0

    def test_empty_project_has_zero_progress(self, project_factory):
        document = make_document(project_factory([]))

        stats = document.recompute_stats()

        assert stats.total_questions == 0
        assert stats.progress == 0

    def test_fully_answered_is_hundred(self, project_factory, admin, t0):
        project = project_factory([3])
        document = make_document(project)
        for _, _, question in project.iter_questions():
            document.save_edit(question.id, "Done", admin, Role.ADMIN, t0)

        assert project.stats.progress == 100

    def test_unanswered_questions(self, project_factory, admin, t0):
        project = project_factory([3])
        document = make_document(project)
        answered = first_question(project)
        document.save_edit(answered.id, "Answer", admin, Role.ADMIN, t0)

        assert answered not in document.unanswered_questions()
        assert len(document.unanswered_questions()) == 2


class TestEditing:
    def test_second_editor_is_locked_out(self, project_factory, alice, admin, t0):
        project = project_factory([1])
        document = make_document(project)
        question = first_question(project)
        question.assigned_to = "alice"
        question.review_state = ReviewState.DRAFT

        session = document.start_edit(question.id, alice, Role.EDITOR, t0)
        assert session.locked_by == "alice"
        assert session.expires_at == t0 + timedelta(seconds=300)

        with pytest.raises(LockedError) as exc_info:
            document.start_edit(question.id, admin, Role.ADMIN, t0 + timedelta(seconds=100))

        assert exc_info.value.held_by == "alice"
        assert exc_info.value.remaining_seconds == 200
        assert "3:20" in exc_info.value.message

    def test_save_snapshots_and_clears_lock(self, project_factory, admin, t0):
        project = project_factory([1])
        document = make_document(project)
        question = first_question(project)
        question.response = "Old"

        document.start_edit(question.id, admin, Role.ADMIN, t0)
        document.save_edit(question.id, "New", admin, Role.ADMIN, t0 + timedelta(seconds=30))

        assert question.response == "New"
        assert question.status == ProvenanceKind.EDITED
        assert question.locked_by is None
        assert [v.content for v in question.versions] == ["Old"]
        assert question.last_edited_by.uid == "admin-1"

    def test_viewer_cannot_edit(self, project_factory, viewer, t0):
        project = project_factory([1])
        document = make_document(project)

        with pytest.raises(Forbidden):
            document.start_edit(first_question(project).id, viewer, Role.VIEWER, t0)
        with pytest.raises(Forbidden):
            document.save_edit(first_question(project).id, "x", viewer, Role.VIEWER, t0)

    def test_unknown_question(self, project_factory, admin, t0):
        document = make_document(project_factory([1]))

        with pytest.raises(NotFoundError):
            document.start_edit("q_missing", admin, Role.ADMIN, t0)

    def test_cancel_releases_own_lock(self, project_factory, admin, t0):
        project = project_factory([1])
        document = make_document(project)
        question = first_question(project)
        document.start_edit(question.id, admin, Role.ADMIN, t0)

        assert document.cancel_edit(question.id, admin)
        assert question.locked_by is None


class TestRegenerate:
    def test_regenerate_resets_review(self, project_factory, admin, t0):
        project = project_factory([1])
        document = make_document(project)
        question = first_question(project)
        question.response = "Old"
        question.review_state = ReviewState.REVIEW

        document.regenerate(question.id, "Fresh draft", 80, admin, Role.ADMIN, t0)

        assert question.response == "Fresh draft"
        assert question.trust_score == 80
        assert question.status == ProvenanceKind.GENERATED
        assert question.review_state == ReviewState.DRAFT
        assert [v.content for v in question.versions] == ["Old"]

    def test_regenerate_keeps_unassigned(self, project_factory, admin, t0):
        project = project_factory([1])
        document = make_document(project)
        question = first_question(project)

        document.regenerate(question.id, "Draft", 50, admin, Role.ADMIN, t0)

        assert question.review_state == ReviewState.UNASSIGNED

    def test_approved_needs_confirmation(self, project_factory, admin, t0):
        project = project_factory([1])
        document = make_document(project)
        question = first_question(project)
        question.response = "Final"
        question.review_state = ReviewState.APPROVED
        question.approved_by = "admin-1"

        with pytest.raises(ConfirmationRequired):
            document.regenerate(question.id, "New", 60, admin, Role.ADMIN, t0)
        assert question.response == "Final"

        document.regenerate(question.id, "New", 60, admin, Role.ADMIN, t0, confirm_overwrite=True)
        assert question.review_state == ReviewState.DRAFT
        assert question.approved_by is None

    def test_editing_approved_answer_needs_confirmation(self, project_factory, admin, t0):
        project = project_factory([1])
        document = make_document(project)
        question = first_question(project)
        question.response = "Final"
        question.review_state = ReviewState.APPROVED
        question.approved_by = "owner-1"
        question.approved_at = t0

        with pytest.raises(ConfirmationRequired) as exc_info:
            document.save_edit(question.id, "Tweaked", admin, Role.ADMIN, t0)
        assert exc_info.value.question_ids == [question.id]
        assert question.response == "Final"
        assert question.versions == []

        document.save_edit(question.id, "Tweaked", admin, Role.ADMIN, t0, confirm_overwrite=True)
        assert question.response == "Tweaked"
        assert question.review_state == ReviewState.DRAFT
        assert question.approved_by is None
        assert question.approved_at is None
        assert question.status_updated_by == "admin-1"
        assert [v.content for v in question.versions] == ["Final"]

    def test_unchanged_save_keeps_approval(self, project_factory, admin, t0):
        project = project_factory([1])
        document = make_document(project)
        question = first_question(project)
        question.response = "Final"
        question.review_state = ReviewState.APPROVED
        question.approved_by = "owner-1"

        document.save_edit(question.id, "Final", admin, Role.ADMIN, t0)

        assert question.review_state == ReviewState.APPROVED
        assert question.approved_by == "owner-1"

    def test_regenerate_respects_foreign_lock(self, project_factory, admin, owner, t0):
        project = project_factory([1])
        document = make_document(project)
        question = first_question(project)
        document.start_edit(question.id, owner, Role.OWNER, t0)

        with pytest.raises(LockedError):
            document.regenerate(question.id, "New", 60, admin, Role.ADMIN, t0 + timedelta(seconds=10))


class TestRestore:
    def test_restore_version(self, project_factory, admin, t0):
        project = project_factory([1])
        document = make_document(project)
        question = first_question(project)
        document.save_edit(question.id, "First", admin, Role.ADMIN, t0)
        document.save_edit(question.id, "Second", admin, Role.ADMIN, t0 + timedelta(minutes=1))
        version_id = question.versions[0].id

        document.restore_version(question.id, version_id, admin, Role.ADMIN, t0 + timedelta(minutes=2))

        assert question.response == "First"
        assert question.status == ProvenanceKind.RESTORED
        assert len(question.versions) == 1


class TestNotifications:
    def test_status_changes_queue_events(self, project_factory, alice, admin, t0):
        project = project_factory([1])
        document = make_document(project)
        question = first_question(project)
        question.response = "Answer"
        question.assigned_to = "alice"
        question.assigned_by = "admin-1"
        question.review_state = ReviewState.DRAFT

        document.change_status(question.id, ReviewState.REVIEW, alice, Role.EDITOR, t0)
        document.change_status(question.id, ReviewState.DRAFT, admin, Role.ADMIN, t0)
        document.change_status(question.id, ReviewState.REVIEW, alice, Role.EDITOR, t0)
        document.change_status(question.id, ReviewState.APPROVED, admin, Role.ADMIN, t0)

        events = document.drain_events()
        assert [(e.user_id, e.message.type) for e in events] == [
            ("admin-1", NotificationType.SUBMITTED_FOR_REVIEW),
            ("alice", NotificationType.CHANGES_REQUESTED),
            ("admin-1", NotificationType.SUBMITTED_FOR_REVIEW),
            ("alice", NotificationType.QUESTION_APPROVED),
        ]
        assert question.id in events[0].message.link
        assert document.drain_events() == []

    def test_bulk_assignment_notifies_each_editor(self, project_factory, owner, t0):
        project = project_factory([3])
        document = make_document(project)

        preview = document.assign_bulk(["alice", "bob"], owner, Role.OWNER)
        document.commit_assign(preview, owner, Role.OWNER, t0)

        events = document.drain_events()
        assert [e.user_id for e in events] == ["alice", "bob", "alice"]
        assert all(e.message.type == NotificationType.ASSIGNMENT for e in events)

    def test_editor_cannot_assign(self, project_factory, alice):
        document = make_document(project_factory([2]))

        with pytest.raises(Forbidden):
            document.assign_bulk(["alice"], alice, Role.EDITOR)

    def test_reassign_question(self, project_factory, owner, t0):
        project = project_factory([1])
        document = make_document(project)
        question = first_question(project)
        document.assign_question(question.id, "alice", owner, Role.OWNER, t0)
        document.drain_events()

        with pytest.raises(ConfirmationRequired):
            document.assign_question(question.id, "bob", owner, Role.OWNER, t0)

        document.assign_question(question.id, "bob", owner, Role.OWNER, t0, confirm_reassign=True)

        assert question.assigned_to == "bob"
        events = document.drain_events()
        assert [(e.user_id, e.message.type) for e in events] == [
            ("alice", NotificationType.UNASSIGNMENT),
            ("bob", NotificationType.ASSIGNMENT),
        ]

    def test_unassign_question(self, project_factory, owner, t0):
        project = project_factory([1])
        document = make_document(project)
        question = first_question(project)
        document.assign_question(question.id, "alice", owner, Role.OWNER, t0)
        document.drain_events()

        document.unassign_question(question.id, owner, Role.OWNER, t0)

        assert question.assigned_to is None
        assert question.review_state == ReviewState.UNASSIGNED
        events = document.drain_events()
        assert events[0].user_id == "alice"
        assert events[0].message.type == NotificationType.UNASSIGNMENT
