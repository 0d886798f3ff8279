from typing import Any, Literal

from pydantic import BaseModel

GITHUB_MARK_URL = (
    "https://github.githubassets.com/images/modules/logos_page/GitHub-Mark.png"
)


class MarkdownText(BaseModel):
    type: Literal["mrkdwn"] = "mrkdwn"
    text: str


class SectionBlock(BaseModel):
    type: Literal["section"] = "section"
    text: MarkdownText


class Attachment(BaseModel):
    color: str
    author_name: str
    author_icon: str | None = None
    author_link: str | None = None
    title: str
    title_link: str
    text: str | None = None
    footer: str
    footer_icon: str = GITHUB_MARK_URL
    ts: float


class SlackMessage(BaseModel):
    text: str | None = None
    blocks: list[SectionBlock] | None = None
    attachments: list[Attachment] = []

    def to_payload(self) -> dict[str, Any]:
        """Keyword arguments for chat.postMessage, minus the channel."""
        return self.model_dump(exclude_none=True)
