"""Tests for the project status state machine."""

import pytest
from statemachine.exceptions import TransitionNotAllowed

from src.bookings.state_machine import ProjectStateMachine, create_state_machine
from src.models.project import Project, ProjectStatus, ProjectType


class TestProjectStateMachine:
    """Tests for ProjectStateMachine transitions."""

    def _create_project(self, status: ProjectStatus = ProjectStatus.PENDING) -> Project:
        """Create a project with minimal required fields.

        Args:
            status: Initial project status

        Returns:
            Unsaved Project instance
        """
        return Project(
            id=1,
            client_id=1,
            project_type=ProjectType.LANDING,
            booking_month="2025-08",
            status=status,
        )

    def test_initial_state_from_pending_project(self) -> None:
        """State machine starts in pending state for pending project."""
        project = self._create_project()
        sm = ProjectStateMachine(project=project)

        assert sm.current_state == sm.pending
        assert sm.status == ProjectStatus.PENDING

    def test_initial_state_from_approved_project(self) -> None:
        """State machine picks up a non-initial stored status."""
        project = self._create_project(ProjectStatus.APPROVED)
        sm = create_state_machine(project)

        assert sm.current_state == sm.approved

    def test_approve_writes_status_to_project(self) -> None:
        project = self._create_project()
        sm = create_state_machine(project)

        sm.approve()

        assert sm.current_state == sm.approved
        assert project.status == ProjectStatus.APPROVED

    def test_decline_transition(self) -> None:
        project = self._create_project()
        sm = create_state_machine(project)

        sm.decline()

        assert project.status == ProjectStatus.DECLINED
        assert sm.current_state.final

    def test_full_paid_lifecycle(self) -> None:
        """pending -> approved -> in_progress -> completed."""
        project = self._create_project()
        sm = create_state_machine(project)

        sm.approve()
        sm.start()
        sm.complete()

        assert project.status == ProjectStatus.COMPLETED

    @pytest.mark.parametrize(
        "status", [ProjectStatus.APPROVED, ProjectStatus.IN_PROGRESS]
    )
    def test_cancel_allowed_after_approval(self, status: ProjectStatus) -> None:
        project = self._create_project(status)
        create_state_machine(project).cancel()

        assert project.status == ProjectStatus.CANCELLED

    def test_cannot_cancel_pending(self) -> None:
        project = self._create_project()

        with pytest.raises(TransitionNotAllowed):
            create_state_machine(project).cancel()
        assert project.status == ProjectStatus.PENDING

    def test_declined_is_absorbing(self) -> None:
        """A declined project can never be approved, started or completed."""
        project = self._create_project(ProjectStatus.DECLINED)
        sm = create_state_machine(project)

        for event in ("approve", "start", "complete", "cancel"):
            with pytest.raises(TransitionNotAllowed):
                sm.send(event)
        assert project.status == ProjectStatus.DECLINED

    def test_cannot_start_without_approval(self) -> None:
        project = self._create_project()

        with pytest.raises(TransitionNotAllowed):
            create_state_machine(project).start()

    def test_cannot_approve_twice(self) -> None:
        project = self._create_project(ProjectStatus.APPROVED)

        with pytest.raises(TransitionNotAllowed):
            create_state_machine(project).approve()
