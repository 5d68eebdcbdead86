"""
Contract Service — キューコンシューマ

提案ステータスのキューをロングポーリングで読み続けるバックグラウンドループ。

  1. 最大10件を受信 (新着が無ければ最大20秒待つ)
  2. 1件ずつディスパッチャに渡す
  3. 処理結果に関わらずメッセージを削除する

注意: 処理に失敗したメッセージも削除されるため、処理は「最大1回」しか
試みられない。デッドレターキューや再試行は無い。
受信そのものが失敗した場合だけ、5秒待ってやり直す。
"""

import asyncio
import logging

from services.shared.queue import ALL_ATTRIBUTES

from .dispatcher import EventDispatcher

logger = logging.getLogger(__name__)


class MessageConsumerLoop:
    def __init__(
        self,
        queue,
        queue_name: str,
        dispatcher: EventDispatcher,
        max_messages: int = 10,
        wait_seconds: int = 20,
        retry_delay: float = 5.0,
    ):
        self.queue = queue
        self.queue_name = queue_name
        self.dispatcher = dispatcher
        self.max_messages = max_messages
        self.wait_seconds = wait_seconds
        self.retry_delay = retry_delay

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """shutdown_event がセットされるまでポーリングを繰り返す。"""
        logger.info("Consuming proposal messages from %s", self.queue_name)
        while not shutdown_event.is_set():
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Failed to consume messages from %s", self.queue_name)
                await self._pause(shutdown_event)
        logger.info("Stopped consuming from %s", self.queue_name)

    async def poll_once(self) -> int:
        """1バッチ分を受信・処理・削除し、処理した件数を返す。"""
        messages = await self.queue.receive(
            self.queue_name,
            self.max_messages,
            self.wait_seconds,
            (ALL_ATTRIBUTES,),
        )
        for message in messages:
            error = await self.dispatcher.dispatch(message)
            if error:
                logger.warning(
                    "Discarding message %s after %s failure", error.message_id, error.stage
                )
            await self.queue.delete(self.queue_name, message.receipt_handle)
        return len(messages)

    async def _pause(self, shutdown_event: asyncio.Event) -> None:
        # 停止要求があれば待機を打ち切る
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=self.retry_delay)
        except asyncio.TimeoutError:
            pass
