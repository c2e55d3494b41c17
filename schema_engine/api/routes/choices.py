"""
FastAPI routes for choice lists of Dropdown, MultiSelect and Radio fields.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Path, Response, status

from schema_engine.api.schemas.field_definition import (
    ChoiceCreate,
    ChoiceOrderUpdate,
    ChoiceResponse,
    ChoiceUpdate,
)
from schema_engine.core.dependencies import AsyncDbSession
from schema_engine.db.models import FieldChoice
from schema_engine.repos import choice_repo

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Choices"])

FieldIdPath = Annotated[int, Path(description="Field definition id")]
ChoiceIdPath = Annotated[int, Path(description="Choice id")]


@router.get(
    "/fields/{field_id}/choices",
    response_model=list[ChoiceResponse],
    summary="List the choices of a field",
)
async def list_choices(field_id: FieldIdPath, db: AsyncDbSession) -> list[FieldChoice]:
    """List choices ordered by sort order, then id."""
    return await choice_repo.list_choices(db, field_id)


@router.post(
    "/fields/{field_id}/choices",
    response_model=ChoiceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a choice to a field",
    description="""
    Append an option to the field's choice list. `value` defaults to
    `display_text`; it may not contain a comma.

    **Errors:**
    - 404 Not Found: If the field does not exist
    - 409 Conflict: If the value is already used on this field
    """,
)
async def add_choice(
    field_id: FieldIdPath,
    choice: ChoiceCreate,
    db: AsyncDbSession,
) -> FieldChoice:
    """Add a choice."""
    new_choice = await choice_repo.add_choice(db, field_id, choice)
    await db.commit()
    return new_choice


@router.put(
    "/fields/{field_id}/choices/order",
    response_model=list[ChoiceResponse],
    summary="Reorder the choices of a field",
    description="""
    Assign sort order 1..n following the given list of choice ids.

    **Errors:**
    - 400 Bad Request: If the list is not exactly the field's choice ids
    - 404 Not Found: If the field does not exist
    """,
)
async def reorder_choices(
    field_id: FieldIdPath,
    order: ChoiceOrderUpdate,
    db: AsyncDbSession,
) -> list[FieldChoice]:
    """Reorder choices."""
    choices = await choice_repo.reorder_choices(db, field_id, order.choice_ids)
    await db.commit()
    return choices


@router.patch(
    "/choices/{choice_id}",
    response_model=ChoiceResponse,
    summary="Edit a choice",
    description="""
    Partially update a choice. Stored values are not rewritten when the value
    changes.

    **Errors:**
    - 404 Not Found: If the choice does not exist
    - 409 Conflict: If the new value is already used on this field
    """,
)
async def update_choice(
    choice_id: ChoiceIdPath,
    updates: ChoiceUpdate,
    db: AsyncDbSession,
) -> FieldChoice:
    """Edit a choice."""
    choice = await choice_repo.update_choice(db, choice_id, updates)
    await db.commit()
    return choice


@router.delete(
    "/choices/{choice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a choice",
    description="""
    Delete a choice. Stored values that used it are kept and still returned
    by reads.
    """,
)
async def remove_choice(choice_id: ChoiceIdPath, db: AsyncDbSession) -> Response:
    """Remove a choice."""
    await choice_repo.remove_choice(db, choice_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
