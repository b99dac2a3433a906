"""
Operation Dispatcher

Routes inbound chat events to admin handlers. Directives (button presses) are routed by
their action tag regardless of session state. Free text is routed by the operation of
the sender's active session and is left unhandled when there is none, so other bot
features can consume it.
"""
from typing import Any, Awaitable, Callable, Dict, Iterable, Union

from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.orchestration.admin.base import AdminContext, cancel_row, reply
from app.orchestration.admin import menus
from app.services.bot_schemas import Directive, DispatchResult, FreeformInput, RenderRequest
from app.services.session_store import Operation, SessionIdentity, SessionStore

logger = get_logger(__name__)

DirectiveHandler = Callable[[AdminContext, Directive], Awaitable[RenderRequest]]
Continuation = Callable[[AdminContext, FreeformInput, Dict[str, Any]], Awaitable[RenderRequest]]


class OperationDispatcher:
    """
    Admin event dispatcher.

    Handler objects contribute `directives()` (action tag -> handler) and
    `continuations()` (Operation -> handler). Every Operation must have exactly one
    continuation; this is checked when the dispatcher is built.
    """

    def __init__(self, sessions: SessionStore, handlers: Iterable[Any]):
        self.sessions = sessions
        self.directive_map: Dict[str, DirectiveHandler] = {
            "menu": self._menu,
            "cancel": self._cancel,
        }
        self.continuation_map: Dict[Operation, Continuation] = {}

        for handler in handlers:
            for action, fn in handler.directives().items():
                if action in self.directive_map:
                    raise ValueError(f"Action tag registered twice: {action}")
                self.directive_map[action] = fn
            for operation, fn in handler.continuations().items():
                if operation in self.continuation_map:
                    raise ValueError(f"Continuation registered twice: {operation.value}")
                self.continuation_map[operation] = fn

        missing = [op.value for op in Operation if op not in self.continuation_map]
        if missing:
            raise ValueError(f"No continuation registered for: {', '.join(missing)}")

    async def dispatch(self, event: Union[Directive, FreeformInput], db: Session) -> DispatchResult:
        if isinstance(event, Directive):
            return await self.handle_directive(event, db)
        return await self.handle_freeform(event, db)

    async def handle_directive(self, directive: Directive, db: Session) -> DispatchResult:
        handler = self.directive_map.get(directive.action)
        if handler is None:
            logger.debug(f"No handler for action {directive.action}")
            return DispatchResult.unhandled()

        ctx = self._context(directive, db)
        logger.info(f"Directive {directive.action} from {ctx.identity.key}")
        return await self._run(handler, ctx, directive)

    async def handle_freeform(self, event: FreeformInput, db: Session) -> DispatchResult:
        # Slash commands belong to the command router
        if event.text.strip().startswith("/"):
            return DispatchResult.unhandled()

        ctx = self._context(event, db)
        state = self.sessions.get(ctx.identity)
        if state is None:
            return DispatchResult.unhandled()

        continuation = self.continuation_map.get(state.operation)
        if continuation is None:
            return DispatchResult.unhandled()

        logger.debug(f"Continuing {state.operation.value} for {ctx.identity.key}")
        return await self._run(continuation, ctx, event, state.payload)

    def _context(self, event: Union[Directive, FreeformInput], db: Session) -> AdminContext:
        return AdminContext(
            identity=SessionIdentity.of(event.actor_id, event.conversation_id),
            db=db,
            sessions=self.sessions,
        )

    async def _run(self, fn: Callable[..., Awaitable[RenderRequest]], ctx: AdminContext, *args: Any) -> DispatchResult:
        try:
            render = await fn(ctx, *args)
        except ValidationError as e:
            # Same turn again: the session is left as it was
            render = reply(e.message, cancel_row())
        return DispatchResult.reply(render)

    async def _menu(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        return menus.main_menu()

    async def _cancel(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        ctx.sessions.clear(ctx.identity)
        return menus.main_menu("Operation cancelled.")
