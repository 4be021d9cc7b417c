"""
Slack adapter for the Messenger contract.

Opens direct conversations and posts (optionally threaded) messages via the
async Web API client. Slack API failures are raised as MessagingError so the
services can record them per recipient or per project.
"""

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from syncbot.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class MessagingError(Exception):
    """Raised when a Slack API call fails or returns an unusable response."""

    def __init__(self, message: str, operation: str, slack_error: str | None = None):
        super().__init__(message)
        self.operation = operation
        self.slack_error = slack_error
        # Rate limits and server errors clear on their own; auth/scope errors don't
        self.recoverable = slack_error in (None, "ratelimited", "internal_error", "fatal_error")


class SlackMessenger:
    """Messenger backed by slack_sdk's AsyncWebClient."""

    def __init__(self, client: AsyncWebClient):
        self.client = client

    @classmethod
    def from_token(cls, token: str) -> "SlackMessenger":
        return cls(AsyncWebClient(token=token))

    async def open_direct_conversation(self, user_id: str) -> str:
        """Open (or reuse) a DM with the user and return its channel id."""
        try:
            response = await self.client.conversations_open(users=user_id)
        except SlackApiError as e:
            error = e.response.get("error") if e.response is not None else None
            logger.warning("Failed to open DM", slack_user_id=user_id, slack_error=error)
            raise MessagingError(
                f"Failed to open DM with {user_id}: {error or e}",
                operation="conversations_open",
                slack_error=error,
            ) from e

        channel_id = (response.get("channel") or {}).get("id")
        if not channel_id:
            raise MessagingError(
                f"Failed to open DM with {user_id}: no channel in response",
                operation="conversations_open",
            )
        return channel_id

    async def post_message(self, channel_id: str, text: str, thread_ts: str | None = None) -> str:
        """Post a message and return its timestamp (the thread id for replies)."""
        try:
            response = await self.client.chat_postMessage(
                channel=channel_id,
                text=text,
                thread_ts=thread_ts,
            )
        except SlackApiError as e:
            error = e.response.get("error") if e.response is not None else None
            logger.warning(
                "Failed to post message",
                channel_id=channel_id,
                threaded=thread_ts is not None,
                slack_error=error,
            )
            raise MessagingError(
                f"Failed to post to {channel_id}: {error or e}",
                operation="chat_postMessage",
                slack_error=error,
            ) from e

        ts = response.get("ts")
        if not ts:
            raise MessagingError(
                f"Failed to post to {channel_id}: no ts in response",
                operation="chat_postMessage",
            )
        return ts
