"""
Side-Effect Processor - best-effort work that runs after a transaction has committed.

Tasks are detached from the caller: the caller's result is returned before they finish,
and their failures are recorded and logged here instead of being raised.
"""
import asyncio
from collections import deque
from typing import Any, Awaitable, Deque, Optional, Sequence, Set
from uuid import UUID

from app.core.exceptions import SideEffectError
from app.core.logging import get_logger
from app.services.assets import AssetService, AttachResult
from app.services.bot_schemas import Asset, RenderRequest
from app.services.transport import ChatTransport

logger = get_logger(__name__)


class SideEffectProcessor:
    """Runs detached tasks and keeps their failures on a separate channel."""

    def __init__(
        self,
        asset_service: AssetService,
        transport: ChatTransport,
        max_failures: int = 100,
    ):
        self.asset_service = asset_service
        self.transport = transport
        self.failures: Deque[SideEffectError] = deque(maxlen=max_failures)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, work: Awaitable[Any], label: str) -> asyncio.Task:
        """Start work in the background. Must be called from a running event loop."""
        task = asyncio.get_running_loop().create_task(self._run(work, label))
        # Strong reference until done; the loop only keeps weak ones
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, work: Awaitable[Any], label: str) -> Optional[Any]:
        try:
            return await work
        except asyncio.CancelledError:
            raise
        except SideEffectError as e:
            self._record(e)
        except Exception as e:
            self._record(SideEffectError(label, str(e), original_error=e))
        return None

    def _record(self, error: SideEffectError) -> None:
        self.failures.append(error)
        logger.warning(f"Side effect failed: {error.message}")

    async def attach_assets(self, vehicle_id: UUID, assets: Sequence[Asset]) -> AttachResult:
        """Attach assets; a partial failure is recorded, never raised."""
        result = await self.asset_service.attach(vehicle_id, assets)
        if result.soft_failure:
            self._record(SideEffectError(
                "attach_assets",
                f"{len(result.failed)} of {len(assets)} assets not attached to vehicle {vehicle_id}",
            ))
        else:
            logger.info(f"Attached {len(result.succeeded)} assets to vehicle {vehicle_id}")
        return result

    async def send_confirmation(self, conversation_id: str, render: RenderRequest) -> None:
        await self.transport.send(conversation_id, render)

    async def drain(self) -> None:
        """Wait for every outstanding task (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
