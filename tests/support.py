"""Shared workflow definitions for kernel tests."""

from enum import Enum


class Stage(Enum):
    """Small workflow used across kernel tests."""

    SUBMITTED = "submitted"
    BACKGROUND_CHECK = "background_check"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


STAGE_TRANSITIONS = {
    Stage.SUBMITTED: (Stage.BACKGROUND_CHECK, Stage.REJECTED),
    Stage.BACKGROUND_CHECK: (Stage.APPROVED, Stage.REJECTED),
    Stage.APPROVED: (Stage.COMPLETED,),
    Stage.REJECTED: (),
    Stage.COMPLETED: (),
}

STAGE_TERMINALS = (Stage.REJECTED, Stage.COMPLETED)


class Application:
    """Minimal mutable entity with the default ``state``/``entity_id`` attributes."""

    def __init__(self, entity_id="app-1", state=Stage.SUBMITTED, **fields):
        self.entity_id = entity_id
        self.state = state
        for key, value in fields.items():
            setattr(self, key, value)
