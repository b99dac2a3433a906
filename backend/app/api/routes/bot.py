"""
Chat bot webhook routes

The bot front-end forwards every button press and message here and renders whatever
comes back. An unhandled result means the event belongs to another bot feature.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_admin_module, get_db
from app.orchestration.admin import AdminModule
from app.services.bot_schemas import Directive, DispatchResult, FreeformInput

router = APIRouter()


@router.post("/directive", response_model=DispatchResult)
async def post_directive(
    directive: Directive,
    admin: AdminModule = Depends(get_admin_module),
    db: Session = Depends(get_db),
):
    """Dispatch a button press."""
    return await admin.dispatcher.dispatch(directive, db)


@router.post("/message", response_model=DispatchResult)
async def post_message(
    message: FreeformInput,
    admin: AdminModule = Depends(get_admin_module),
    db: Session = Depends(get_db),
):
    """Dispatch a free-text message (with any attached files)."""
    return await admin.dispatcher.dispatch(message, db)
