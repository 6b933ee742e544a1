"""Push-topic subscription."""
from .push_listener import PushListener, topic_chat_id

__all__ = ["PushListener", "topic_chat_id"]
