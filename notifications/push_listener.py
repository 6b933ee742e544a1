"""
Push-topic listener over Telegram.
The topic is a channel or group; messages posted there are logged, nothing else.
"""
import asyncio
import json
from typing import Any, Optional

from loguru import logger
from telegram import Bot, Update
from telegram.error import TelegramError

DEFAULT_TOPIC = "all_users"


def topic_chat_id(topic: str) -> str | int:
    """Telegram chat id for a topic: numeric ids pass through, names become @names."""
    topic = topic.strip()
    if topic.lstrip("-").isdigit():
        return int(topic)
    return topic if topic.startswith("@") else f"@{topic}"


class PushListener:
    """Subscribe to a topic chat and log every message posted to it."""

    def __init__(self, bot_token: str, topic: str = DEFAULT_TOPIC, bot: Optional[Bot] = None):
        self.bot = bot or Bot(token=bot_token)
        self.topic = topic
        self.chat_id = topic_chat_id(topic)
        self.subscribed = False
        self._offset: Optional[int] = None

    async def subscribe(self) -> bool:
        """Resolve the topic chat. Logs and returns False on failure."""
        try:
            chat = await self.bot.get_chat(chat_id=self.chat_id)
        except TelegramError as e:
            logger.error(f"Failed to subscribe to topic {self.topic}: {e}")
            return False
        self.chat_id = chat.id
        self.subscribed = True
        logger.info(f"Subscribed to topic {self.topic}")
        return True

    def _from_topic(self, update: Update) -> bool:
        chat = update.effective_chat
        if chat is None:
            return False
        if isinstance(self.chat_id, int):
            return chat.id == self.chat_id
        return f"@{chat.username}".lower() == str(self.chat_id).lower()

    def handle_update(self, update: Update) -> Optional[dict[str, Any]]:
        """Log one push message. Returns what was logged (None if not from the topic)."""
        if not self._from_topic(update):
            return None
        message = update.effective_message
        if message is None:
            return None
        sender = message.sender_chat or message.from_user
        sender_name = getattr(sender, "username", None) or getattr(sender, "title", None) or str(getattr(sender, "id", "unknown"))
        logger.debug(f"From: {sender_name}")

        body = message.text or message.caption or ""
        data: Optional[dict] = None
        try:
            parsed = json.loads(body) if body else None
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            data = parsed
            logger.debug(f"Data Payload: {data}")
        elif body:
            logger.debug(f"Notification Message Body: {body}")
        return {"from": sender_name, "body": None if data is not None else body, "data": data}

    async def poll_once(self, timeout: int = 0) -> int:
        """Fetch pending updates once; returns how many were from the topic."""
        updates = await self.bot.get_updates(
            offset=self._offset,
            timeout=timeout,
            allowed_updates=["message", "channel_post"],
        )
        handled = 0
        for update in updates:
            self._offset = update.update_id + 1
            if self.handle_update(update) is not None:
                handled += 1
        return handled

    async def run(self, poll_seconds: float = 30.0):
        """Long-poll the topic until cancelled."""
        if not self.subscribed and not await self.subscribe():
            return
        while True:
            try:
                await self.poll_once(timeout=int(poll_seconds))
            except TelegramError as e:
                logger.error(f"Push polling failed: {e}")
                await asyncio.sleep(poll_seconds)
