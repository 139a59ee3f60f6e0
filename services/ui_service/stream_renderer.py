"""
Stream renderer - paints controller message updates into a Streamlit placeholder.
"""

import time
from typing import Optional

from services.chat_service.models import ASSISTANT, Message
from utils.logging_config import get_logger


CURSOR = "▌"


class StreamRenderer:
    """Renders the growing assistant message with a cursor while it streams"""

    def __init__(self, placeholder, message_id: Optional[str] = None, update_every: int = 1):
        self.placeholder = placeholder
        self.message_id = message_id
        self.update_every = max(1, update_every)
        self.counter = 0

        # Timing metrics
        self.start_time = time.time()
        self.first_update_time = None

        self.logger = get_logger("streaming_metrics")

    def __call__(self, message: Message) -> None:
        if message.role != ASSISTANT:
            return
        if self.message_id is not None and message.id != self.message_id:
            return

        if message.is_streaming:
            if not message.content:
                return
            if self.first_update_time is None:
                self.first_update_time = time.time()
                ttft = (self.first_update_time - self.start_time) * 1000
                self.logger.info(f"[TTFT] Time to first text: {ttft:.1f}ms")

            self.counter += 1
            if self.counter % self.update_every == 0:
                self.placeholder.markdown(message.content + CURSOR)
            return

        # Final text without cursor
        self.placeholder.markdown(message.content)
        if self.first_update_time:
            total = (time.time() - self.start_time) * 1000
            self.logger.info(f"Response complete: {self.counter} updates in {total:.1f}ms")
