import hashlib
import hmac
import json
import uuid
from unittest.mock import patch

from fastapi.testclient import TestClient

from app.config import settings
from app.schemas.slack import SlackMessage
from tests.conftest import make_payload


def sign(body: bytes, secret: str | None = None) -> str:
    key = (secret or settings.github_webhook_secret).encode()
    return "sha256=" + hmac.new(key, body, hashlib.sha256).hexdigest()


def post_webhook(
    client: TestClient,
    event: str,
    payload: dict,
    signature: str | None = "valid",
    delivery_id: str | None = None,
):
    body = json.dumps(payload).encode()
    headers = {
        "Content-Type": "application/json",
        "X-GitHub-Delivery": delivery_id or str(uuid.uuid4()),
        "X-GitHub-Event": event,
    }
    if signature == "valid":
        headers["X-Hub-Signature-256"] = sign(body)
    elif signature:
        headers["X-Hub-Signature-256"] = signature
    return client.post("/api/webhooks/github", content=body, headers=headers)


def test_health(client: TestClient):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_labeled_event_dispatches_notification(client: TestClient, mock_notifier):
    delivery_id = str(uuid.uuid4())
    payload = make_payload("labeled", label={"name": "NEEDS-REVIEW"})

    response = post_webhook(client, "pull_request", payload, delivery_id=delivery_id)

    assert response.status_code == 202
    assert response.json() == {"message": "Webhook received", "event_id": delivery_id}

    mock_notifier.send.assert_called_once()
    message = mock_notifier.send.call_args.args[0]
    assert isinstance(message, SlackMessage)
    assert len(message.attachments) == 1
    assert message.attachments[0].color == "#FFC107"
    assert message.blocks[0].text.text == (
        "test-actor is requesting a review in "
        "<https://github.com/test-owner/test-repo|test-owner/test-repo>"
    )


def test_labeled_event_with_other_label_is_filtered(client: TestClient, mock_notifier):
    payload = make_payload("labeled", label={"name": "enhancement"})

    response = post_webhook(client, "pull_request", payload)

    assert response.status_code == 202
    assert response.json() == {
        "message": "Webhook received but ignored due to label filter."
    }
    mock_notifier.send.assert_not_called()


def test_commented_review_is_filtered(client: TestClient, mock_notifier):
    payload = make_payload(
        "submitted",
        review={
            "state": "commented",
            "body": "Just a note",
            "user": {"login": "reviewer"},
            "submitted_at": "2024-01-02T00:00:00Z",
        },
    )

    response = post_webhook(client, "pull_request_review", payload)

    assert response.status_code == 202
    mock_notifier.send.assert_not_called()


def test_unhandled_action_is_ignored(client: TestClient, mock_notifier):
    payload = make_payload("opened")

    response = post_webhook(client, "pull_request", payload)

    assert response.status_code == 202
    assert response.json() == {
        "message": "Webhook received but ignored due to event filter."
    }
    mock_notifier.send.assert_not_called()


def test_unhandled_event_is_ignored(client: TestClient, mock_notifier):
    payload = {"ref": "refs/heads/main", "commits": []}

    response = post_webhook(client, "push", payload)

    assert response.status_code == 202
    mock_notifier.send.assert_not_called()


def test_malformed_payload_is_rejected(client: TestClient, mock_notifier):
    payload = {"action": "closed", "repository": {"full_name": "test-owner/test-repo"}}

    response = post_webhook(client, "pull_request", payload)

    assert response.status_code == 422
    mock_notifier.send.assert_not_called()


def test_missing_signature_is_rejected(client: TestClient, mock_notifier):
    payload = make_payload("reopened")

    response = post_webhook(client, "pull_request", payload, signature=None)

    assert response.status_code == 401
    assert response.json()["detail"] == "Missing X-Hub-Signature-256 header."
    mock_notifier.send.assert_not_called()


def test_invalid_signature_is_rejected(client: TestClient, mock_notifier):
    payload = make_payload("reopened")
    wrong = sign(json.dumps(payload).encode(), secret="not-the-secret")

    response = post_webhook(client, "pull_request", payload, signature=wrong)

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid signature."
    mock_notifier.send.assert_not_called()


def test_signature_not_required_without_secret(client: TestClient, mock_notifier):
    payload = make_payload("reopened")

    with patch("app.routes.webhooks.settings.github_webhook_secret", ""):
        response = post_webhook(client, "pull_request", payload, signature=None)

    assert response.status_code == 202
    mock_notifier.send.assert_called_once()


def test_missing_delivery_header(client: TestClient):
    response = client.post(
        "/api/webhooks/github",
        json=make_payload("reopened"),
        headers={"X-GitHub-Event": "pull_request"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing X-GitHub-Delivery header."


def test_invalid_delivery_header(client: TestClient):
    response = post_webhook(
        client, "pull_request", make_payload("reopened"), delivery_id="not-a-uuid"
    )

    assert response.status_code == 400


def test_missing_event_header(client: TestClient):
    response = client.post(
        "/api/webhooks/github",
        json=make_payload("reopened"),
        headers={"X-GitHub-Delivery": str(uuid.uuid4())},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing X-GitHub-Event header."


def test_invalid_json_is_rejected(client: TestClient):
    body = b"{not json"
    response = client.post(
        "/api/webhooks/github",
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-GitHub-Delivery": str(uuid.uuid4()),
            "X-GitHub-Event": "pull_request",
            "X-Hub-Signature-256": sign(body),
        },
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid JSON payload."
