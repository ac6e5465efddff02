from __future__ import annotations

from enum import Enum

from sqlalchemy.orm import Session


class ActivationCommand(str, Enum):
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"


def apply_activation(db: Session, entity, command: ActivationCommand):
    """Flip the soft-active flag; records are never hard-deleted this way."""
    entity.active = ActivationCommand(command) == ActivationCommand.ACTIVATE
    db.commit()
    db.refresh(entity)
    return entity
