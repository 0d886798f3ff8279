import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, Sequence

import structlog
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from app.schemas.slack import SlackMessage

logger = structlog.get_logger(__name__)

CHANNEL_TYPES = "public_channel,private_channel"


class SlackClient(Protocol):
    async def users_conversations(self, **kwargs: Any) -> Any: ...

    async def chat_postMessage(self, **kwargs: Any) -> Any: ...


class SlackRequestError(Exception):
    pass


class ErrorScope(str, Enum):
    WORKSPACE = "workspace"
    CHANNEL = "channel"


@dataclass(frozen=True)
class DeliveryError:
    scope: ErrorScope
    target: str
    cause: str

    def log(self) -> None:
        match self.scope:
            case ErrorScope.WORKSPACE:
                logger.error(
                    "Could not retrieve list of channels",
                    workspace=self.target,
                    error=self.cause,
                )
            case ErrorScope.CHANNEL:
                logger.error(
                    "Unable to send message to Slack channel",
                    channel=self.target,
                    error=self.cause,
                )


def _describe(err: Exception) -> str:
    if isinstance(err, SlackApiError):
        return str(err.response.get("error") or err)
    return str(err)


def _check(response: Any) -> Any:
    if not response.get("ok"):
        raise SlackRequestError(response.get("error") or "unknown error")
    return response


class SlackNotifier:
    """
    Deliver messages to every channel the bot is a member of, in every
    configured workspace.

    Workspaces and channels are handled concurrently. `send` returns only
    once every delivery attempt has finished, and logs each failure then.
    """

    def __init__(self, clients: Sequence[SlackClient]):
        self.clients = list(clients)

    @classmethod
    def from_tokens(cls, tokens: Sequence[str]) -> "SlackNotifier":
        return cls([AsyncWebClient(token=token) for token in tokens])

    async def get_channels(self, client: SlackClient) -> list[dict[str, Any]]:
        channels: list[dict[str, Any]] = []
        cursor = None

        while True:
            kwargs: dict[str, Any] = {"types": CHANNEL_TYPES}
            if cursor:
                kwargs["cursor"] = cursor
            response = _check(await client.users_conversations(**kwargs))
            channels.extend(response.get("channels") or [])

            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                return channels

    async def _send_to_channel(
        self,
        client: SlackClient,
        channel: dict[str, Any],
        message: SlackMessage,
    ) -> DeliveryError | None:
        channel_name = channel.get("name_normalized") or channel.get("id", "")
        try:
            _check(
                await client.chat_postMessage(
                    channel=channel["id"], **message.to_payload()
                )
            )
        except Exception as err:
            return DeliveryError(ErrorScope.CHANNEL, channel_name, _describe(err))

        logger.debug("Sent message to Slack channel", channel=channel_name)
        return None

    async def _send_to_workspace(
        self, index: int, client: SlackClient, message: SlackMessage
    ) -> list[DeliveryError]:
        try:
            channels = await self.get_channels(client)
        except Exception as err:
            return [DeliveryError(ErrorScope.WORKSPACE, str(index), _describe(err))]

        results = await asyncio.gather(
            *(self._send_to_channel(client, channel, message) for channel in channels)
        )
        return [error for error in results if error is not None]

    async def send(self, message: SlackMessage) -> list[DeliveryError]:
        results = await asyncio.gather(
            *(
                self._send_to_workspace(index, client, message)
                for index, client in enumerate(self.clients)
            )
        )
        errors = [error for workspace_errors in results for error in workspace_errors]

        for error in errors:
            error.log()

        if errors:
            logger.warning(
                "Slack delivery finished with errors",
                workspaces=len(self.clients),
                errors=len(errors),
            )
        return errors
