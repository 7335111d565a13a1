"""Project state machine for the booking lifecycle.

Provides declarative status transitions for projects. The machine is bound
to the project's ``status`` column, so a successful transition writes the
new status straight onto the model.
"""

from typing import TYPE_CHECKING

import structlog
from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from src.models.project import ProjectStatus

if TYPE_CHECKING:
    from src.models.project import Project

logger = structlog.get_logger()


class ProjectStateMachine(StateMachine):
    """State machine for project lifecycle management.

    States match ProjectStatus enum from models:
    - pending: Booking submitted, awaiting admin review
    - approved: Admin accepted the booking, payment may be taken
    - in_progress: Payment succeeded, work underway
    - declined: Admin rejected the booking (final)
    - completed: Work delivered (final)
    - cancelled: Booking called off after approval (final)

    Transitions:
    - approve: pending -> approved
    - decline: pending -> declined
    - start: approved -> in_progress
    - complete: in_progress -> completed
    - cancel: approved/in_progress -> cancelled
    """

    # States (match ProjectStatus enum values)
    pending = State(initial=True, value=ProjectStatus.PENDING)
    approved = State(value=ProjectStatus.APPROVED)
    in_progress = State(value=ProjectStatus.IN_PROGRESS)
    declined = State(final=True, value=ProjectStatus.DECLINED)
    completed = State(final=True, value=ProjectStatus.COMPLETED)
    cancelled = State(final=True, value=ProjectStatus.CANCELLED)

    # Transitions
    approve = pending.to(approved)
    decline = pending.to(declined)
    start = approved.to(in_progress)
    complete = in_progress.to(completed)
    cancel = approved.to(cancelled) | in_progress.to(cancelled)

    def __init__(self, project: "Project") -> None:
        """Initialize state machine for a project.

        Args:
            project: Project model instance to manage. Its current status
                becomes the machine's current state.
        """
        self.project = project
        super().__init__(model=project, state_field="status")

    @property
    def status(self) -> ProjectStatus:
        """Current state as ProjectStatus enum."""
        return self.current_state.value

    def after_transition(self, event: str, source: State, target: State) -> None:
        """Log every status change."""
        logger.info(
            "project_status_changed",
            project_id=self.project.id,
            transition=event,
            from_status=source.value.value,
            to_status=target.value.value,
        )


def create_state_machine(project: "Project") -> ProjectStateMachine:
    """Factory function to create state machine for a project.

    Args:
        project: Project model instance

    Returns:
        ProjectStateMachine initialized from project's current status
    """
    return ProjectStateMachine(project=project)


__all__ = [
    "ProjectStateMachine",
    "TransitionNotAllowed",
    "create_state_machine",
]
