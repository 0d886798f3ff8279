from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class EventKind(str, Enum):
    LABELED = "pull_request.labeled"
    CLOSED = "pull_request.closed"
    REOPENED = "pull_request.reopened"
    REVIEW_SUBMITTED = "pull_request_review.submitted"


class GitHubModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class User(GitHubModel):
    login: str
    avatar_url: str | None = None
    html_url: str | None = None


class Label(GitHubModel):
    name: str


class Repository(GitHubModel):
    full_name: str
    html_url: str


class BranchRef(GitHubModel):
    ref: str


class PullRequest(GitHubModel):
    html_url: str
    title: str
    number: int
    created_at: str
    closed_at: str | None = None
    merged_at: str | None = None
    merged: bool = False
    merged_by: User | None = None
    user: User
    labels: list[Label] = []
    base: BranchRef


class Review(GitHubModel):
    state: str
    body: str | None = None
    user: User
    submitted_at: str


class PullRequestEvent(GitHubModel):
    action: str
    pull_request: PullRequest
    repository: Repository
    sender: User


class LabeledEvent(PullRequestEvent):
    action: Literal["labeled"]
    label: Label


class ClosedEvent(PullRequestEvent):
    action: Literal["closed"]


class ReopenedEvent(PullRequestEvent):
    action: Literal["reopened"]


class ReviewSubmittedEvent(PullRequestEvent):
    action: Literal["submitted"]
    review: Review


WebhookEvent = LabeledEvent | ClosedEvent | ReopenedEvent | ReviewSubmittedEvent

EVENT_MODELS: dict[EventKind, type[PullRequestEvent]] = {
    EventKind.LABELED: LabeledEvent,
    EventKind.CLOSED: ClosedEvent,
    EventKind.REOPENED: ReopenedEvent,
    EventKind.REVIEW_SUBMITTED: ReviewSubmittedEvent,
}


def parse_event(event_name: str, payload: dict[str, Any]) -> WebhookEvent | None:
    """
    Parse a GitHub webhook delivery into one of the handled event variants.

    `event_name` is the value of the X-GitHub-Event header. Returns None for
    any event/action pair that is not relayed. Raises
    pydantic.ValidationError when a handled event is missing fields.
    """
    try:
        kind = EventKind(f"{event_name}.{payload.get('action', '')}")
    except ValueError:
        return None

    return EVENT_MODELS[kind].model_validate(payload)
