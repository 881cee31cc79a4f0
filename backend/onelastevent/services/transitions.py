"""
Compare-and-set status transitions.

    UPDATE <table> SET status = :target WHERE id = :id AND status = :current

The transition table is consulted first; the conditional UPDATE then makes the
move atomic per row. If another request changed the status in between
(rowcount == 0), the entity is re-read and the error for the state that won
is raised, exactly as if the request had arrived second.
"""

from enum import Enum

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from onelastevent.domain.status import StateMachine
from onelastevent.core.logging import get_logger

logger = get_logger(__name__)


async def transition(
    db: AsyncSession,
    entity,
    machine: StateMachine,
    target: Enum,
    **values,
):
    current = machine.status_type(entity.status)
    machine.ensure(current, target)

    model = type(entity)
    result = await db.execute(
        update(model)
        .where(model.id == entity.id, model.status == current.value)
        .values(status=target.value, **values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(entity)

    if result.rowcount == 0:
        logger.info(
            "status_transition_conflict",
            entity=machine.name,
            entity_id=entity.id,
            expected=current.value,
            actual=entity.status,
            target=target.value,
        )
        raise machine.rejection(entity.status, target)

    return entity
