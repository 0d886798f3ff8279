import hashlib
import hmac
import uuid

import structlog
from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    Header,
    HTTPException,
    Request,
    status,
)
from pydantic import ValidationError

from app.config import settings
from app.schemas.github import parse_event
from app.services.formatter import build_message
from app.services.slack_notifier import SlackNotifier

logger = structlog.get_logger(__name__)

webhooks_router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def get_notifier(request: Request) -> SlackNotifier:
    return request.app.state.notifier


def verify_signature(body: bytes, signature: str | None) -> None:
    if not signature:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Hub-Signature-256 header.",
        )

    secret = settings.github_webhook_secret.encode()
    digest = hmac.new(secret, body, hashlib.sha256).hexdigest()
    expected_signature = f"sha256={digest}"

    if not hmac.compare_digest(expected_signature, signature):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature.",
        )


@webhooks_router.post(
    "/github",
    status_code=status.HTTP_202_ACCEPTED,
)
async def receive_github_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    notifier: SlackNotifier = Depends(get_notifier),
    x_github_delivery: str | None = Header(None, description="GitHub delivery GUID"),
    x_github_event: str | None = Header(None, description="GitHub event name"),
    x_hub_signature_256: str | None = Header(
        None, description="GitHub webhook signature"
    ),
):
    if not x_github_delivery:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-GitHub-Delivery header.",
        )

    try:
        delivery_id = uuid.UUID(x_github_delivery)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-GitHub-Delivery header format (must be a UUID).",
        )

    if not x_github_event:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-GitHub-Event header.",
        )

    if settings.github_webhook_secret:
        verify_signature(await request.body(), x_hub_signature_256)

    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload."
        )

    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload."
        )

    try:
        event = parse_event(x_github_event, payload)
    except ValidationError as e:
        logger.warning(
            "Malformed GitHub payload",
            delivery_id=str(delivery_id),
            github_event=x_github_event,
            error=str(e),
        )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=f"Unexpected GitHub payload for {x_github_event}: {e}",
        )

    if event is None:
        return {"message": "Webhook received but ignored due to event filter."}

    message = build_message(event, settings.pr_label)
    if message is None:
        return {"message": "Webhook received but ignored due to label filter."}

    background_tasks.add_task(notifier.send, message)

    logger.info(
        "Dispatched Slack notification",
        delivery_id=str(delivery_id),
        github_event=x_github_event,
        action=event.action,
        repo=event.repository.full_name,
        pr_number=event.pull_request.number,
    )

    return {"message": "Webhook received", "event_id": str(delivery_id)}
