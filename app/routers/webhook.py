from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from app.logging_config import get_logger
from app.runtime import BotRuntime, get_runtime
from app.schemas.qr import ChallengeRequest, ConnectionStatusRequest
from app.schemas.webhook import InboundMessage, WebhookResponse
from app.services.conversation_service import TurnAction

logger = get_logger("webhook")

router = APIRouter(tags=["webhook"])


async def _parse_message(request: Request) -> InboundMessage:
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")
    # Some gateways wrap the event as {"data": {...}}
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        payload = payload["data"]
    try:
        return InboundMessage.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.errors(include_url=False, include_context=False))


@router.post("/webhook", response_model=WebhookResponse)
async def handle_webhook(request: Request, runtime: BotRuntime = Depends(get_runtime)):
    message = await _parse_message(request)
    conversation = runtime.conversation

    try:
        if message.from_me:
            result = await conversation.handle_outgoing(message)
        else:
            result = await conversation.handle_incoming(message)
    except Exception as e:
        logger.error(
            "Webhook processing failed",
            extra={"context": {"chat_id": message.chat_id, "error": str(e)}},
            exc_info=True,
        )
        return WebhookResponse(success=False, action=TurnAction.ERROR.value, error=str(e))

    return WebhookResponse(
        success=result.action != TurnAction.ERROR,
        action=result.action.value,
        reply=result.reply,
        error=result.error,
    )


@router.post("/webhook/credential-challenge")
async def credential_challenge(body: ChallengeRequest, runtime: BotRuntime = Depends(get_runtime)):
    if not body.data.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty challenge")
    deliveries = await runtime.challenges.on_challenge(body.data)
    return {"success": True, "deliveries": deliveries}


@router.post("/webhook/connection-status")
async def connection_status(body: ConnectionStatusRequest, runtime: BotRuntime = Depends(get_runtime)):
    await runtime.challenges.notify_connection_status(body.connected)
    return {"success": True, "connected": body.connected}
