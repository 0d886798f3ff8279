from datetime import datetime

import structlog

from app.schemas.github import (
    ClosedEvent,
    LabeledEvent,
    PullRequestEvent,
    ReopenedEvent,
    ReviewSubmittedEvent,
    User,
    WebhookEvent,
)
from app.schemas.slack import Attachment, MarkdownText, SectionBlock, SlackMessage

logger = structlog.get_logger(__name__)

AMBER = "#FFC107"
GREY = "#607D8B"
GREEN = "#388E3C"
RED = "#D33A49"

REVIEW_TEXT_LIMIT = 60


def truncate(text: str, length: int) -> str:
    return f"{text[:length]}..." if len(text) > length else text


def cut_at_first_newline(text: str) -> str:
    index = text.find("\n")
    return f"{text[:index]}..." if index >= 0 else text


def shorten_review_body(body: str | None) -> str:
    return truncate(cut_at_first_newline(body or ""), REVIEW_TEXT_LIMIT)


def to_timestamp(value: str) -> float:
    """Convert an ISO-8601 timestamp from a GitHub payload to epoch seconds."""
    return datetime.fromisoformat(value).timestamp()


def has_label(event: PullRequestEvent, label: str) -> bool:
    return any(
        candidate.name.lower() == label.lower()
        for candidate in event.pull_request.labels
    )


def is_targeted(event: WebhookEvent, label: str) -> bool:
    """
    Whether an event concerns a pull request carrying the target label.

    Label events are matched on the label that was just added, every other
    event on the pull request's current labels.
    """
    match event:
        case LabeledEvent():
            return event.label.name.lower() == label.lower()
        case ClosedEvent() | ReopenedEvent() | ReviewSubmittedEvent():
            return has_label(event, label)


def _author_fields(user: User) -> dict[str, str | None]:
    return {
        "author_name": user.login,
        "author_icon": user.avatar_url,
        "author_link": user.html_url,
    }


def format_labeled(event: LabeledEvent, label: str) -> SlackMessage:
    pr = event.pull_request
    repo = event.repository

    logger.info(
        "New labeled PR detected",
        label=label,
        repo=repo.full_name,
        pr_number=pr.number,
    )

    return SlackMessage(
        blocks=[
            SectionBlock(
                text=MarkdownText(
                    text=(
                        f"{event.sender.login} is requesting a review in "
                        f"<{repo.html_url}|{repo.full_name}>"
                    )
                )
            )
        ],
        attachments=[
            Attachment(
                color=AMBER,
                **_author_fields(pr.user),
                title=f"#{pr.number} - {pr.title}",
                title_link=pr.html_url,
                footer=repo.full_name,
                ts=to_timestamp(pr.created_at),
            )
        ],
    )


def format_closed(event: ClosedEvent, label: str) -> SlackMessage:
    pr = event.pull_request
    repo = event.repository.full_name

    if pr.merged:
        merged_by = pr.merged_by or event.sender
        logger.info(
            "Labeled PR was merged",
            label=label,
            repo=repo,
            pr_number=pr.number,
            merged_by=merged_by.login,
        )
        author = merged_by
        title = f"Merged #{pr.number} into {pr.base.ref}"
        ts = to_timestamp(pr.merged_at or pr.closed_at or pr.created_at)
    else:
        logger.info(
            "Labeled PR was closed",
            label=label,
            repo=repo,
            pr_number=pr.number,
            closed_by=event.sender.login,
        )
        author = event.sender
        title = f"Closed #{pr.number}"
        ts = to_timestamp(pr.closed_at or pr.created_at)

    return SlackMessage(
        text="",
        attachments=[
            Attachment(
                color=GREY,
                **_author_fields(author),
                title=title,
                title_link=pr.html_url,
                footer=repo,
                ts=ts,
            )
        ],
    )


def format_reopened(event: ReopenedEvent, label: str) -> SlackMessage:
    pr = event.pull_request
    repo = event.repository.full_name

    logger.info(
        "Labeled PR was reopened",
        label=label,
        repo=repo,
        pr_number=pr.number,
        reopened_by=event.sender.login,
    )

    return SlackMessage(
        text="",
        attachments=[
            Attachment(
                color=AMBER,
                **_author_fields(event.sender),
                title=f"Reopened #{pr.number} - {pr.title}",
                title_link=pr.html_url,
                footer=repo,
                ts=to_timestamp(pr.created_at),
            )
        ],
    )


def format_review_submitted(
    event: ReviewSubmittedEvent, label: str
) -> SlackMessage | None:
    pr = event.pull_request
    review = event.review
    repo = event.repository.full_name

    match review.state:
        case "approved":
            color = GREEN
            title = f"Approved #{pr.number} - {pr.title}"
            log_event = "Labeled PR was approved"
        case "changes_requested":
            color = RED
            title = f"Changes requested on #{pr.number} - {pr.title}"
            log_event = "Changes were requested on labeled PR"
        case _:
            return None

    logger.info(
        log_event,
        label=label,
        repo=repo,
        pr_number=pr.number,
        reviewer=review.user.login,
    )

    return SlackMessage(
        text="",
        attachments=[
            Attachment(
                color=color,
                **_author_fields(review.user),
                title=title,
                title_link=pr.html_url,
                text=shorten_review_body(review.body),
                footer=repo,
                ts=to_timestamp(review.submitted_at),
            )
        ],
    )


def build_message(event: WebhookEvent, label: str) -> SlackMessage | None:
    """
    Build the Slack message announcing an event, or None when the event is
    not about a targeted pull request or is not worth announcing.
    """
    if not is_targeted(event, label):
        return None

    match event:
        case LabeledEvent():
            return format_labeled(event, label)
        case ClosedEvent():
            return format_closed(event, label)
        case ReopenedEvent():
            return format_reopened(event, label)
        case ReviewSubmittedEvent():
            return format_review_submitted(event, label)
