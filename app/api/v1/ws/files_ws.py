import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from app.core.security import verify_token
from app.services.change_notifier import change_notifier

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws/files")
async def ws_files(websocket: WebSocket):
    """Push folder/file change events of one owner's tree (all owners for an
    admin who does not pass ``owner_id``)."""
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    payload, error = verify_token(token)
    if error or not payload.get("sub"):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    actor_id = str(payload["sub"])
    is_admin = bool(payload.get("is_admin", False))
    owner_id = websocket.query_params.get("owner_id")
    if owner_id and owner_id != actor_id and not is_admin:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if not owner_id and not is_admin:
        owner_id = actor_id

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    subscription = change_notifier.subscribe(
        lambda event: loop.call_soon_threadsafe(queue.put_nowait, event),
        owner_id=owner_id or None,
    )
    try:
        await websocket.accept()
    except Exception:
        subscription.unsubscribe()
        raise
    logger.info(f"Change feed opened for {actor_id} on {owner_id or 'all owners'}")

    receiver = asyncio.create_task(websocket.receive_text())
    getter = None
    try:
        while True:
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait(
                {receiver, getter}, return_when=asyncio.FIRST_COMPLETED
            )
            if getter in done:
                await websocket.send_json(getter.result().to_dict())
            else:
                getter.cancel()
            if receiver in done:
                message = receiver.result()
                if message == "ping":
                    await websocket.send_text("pong")
                receiver = asyncio.create_task(websocket.receive_text())
    except WebSocketDisconnect:
        logger.info(f"Change feed closed by client {actor_id}")
    finally:
        subscription.unsubscribe()
        receiver.cancel()
        if getter is not None:
            getter.cancel()
