"""
共通 — Redis Streams キュー

Redis Pub/Sub は fire-and-forget 方式のため、購読者が停止している間の
メッセージは失われる。ここでは Redis Streams + Consumer Group を使い、
「少なくとも1回(at-least-once)」配信の永続キューとして扱う。

  send    → XADD        (メッセージを追記し、エントリ ID を返す)
  receive → XAUTOCLAIM  (可視性タイムアウトを過ぎた未 ACK メッセージを再配信)
            XREADGROUP  (新着メッセージを最大 N 件、ロングポーリングで取得)
  delete  → XACK + XDEL (処理済みとしてキューから取り除く)

メッセージ属性 (EventType など) は本文とは別のフィールドに JSON で保存する。
"""

import json
import logging
from dataclasses import dataclass, field

import redis.asyncio as aioredis
from redis.exceptions import RedisError, ResponseError

from .errors import TransportFailure

logger = logging.getLogger(__name__)

ALL_ATTRIBUTES = "All"


@dataclass(frozen=True)
class MessageAttribute:
    """キューメッセージに付与されるキー/値属性"""
    string_value: str
    data_type: str = "String"

    def to_dict(self) -> dict:
        return {"DataType": self.data_type, "StringValue": self.string_value}

    @classmethod
    def from_dict(cls, data: dict) -> "MessageAttribute":
        return cls(
            string_value=data.get("StringValue", ""),
            data_type=data.get("DataType", "String"),
        )


@dataclass
class QueueMessage:
    """receive で受け取った1件のメッセージ"""
    message_id: str
    body: str
    receipt_handle: str
    attributes: dict[str, MessageAttribute] = field(default_factory=dict)


class RedisStreamQueue:
    """Redis Stream を Consumer Group 経由で読み書きするキュートランスポート"""

    def __init__(
        self,
        redis: aioredis.Redis,
        group: str = "default",
        consumer: str = "default",
        visibility_timeout: float = 30.0,
    ):
        self.redis = redis
        self.group = group
        self.consumer = consumer
        self.visibility_timeout = visibility_timeout
        self._groups_ready: set[str] = set()

    async def send(
        self,
        destination: str,
        body: str,
        attributes: dict[str, MessageAttribute] | None = None,
    ) -> str:
        """メッセージを追記し、メッセージ ID を返す。"""
        fields = {
            "body": body,
            "attributes": json.dumps(
                {name: attr.to_dict() for name, attr in (attributes or {}).items()}
            ),
        }
        try:
            message_id = await self.redis.xadd(destination, fields)
        except RedisError as e:
            raise TransportFailure(f"send to {destination} failed: {e}") from e
        logger.debug("Sent message %s to %s", message_id, destination)
        return message_id

    async def receive(
        self,
        destination: str,
        max_messages: int,
        wait_seconds: int,
        attribute_names: tuple[str, ...] = (ALL_ATTRIBUTES,),
    ) -> list[QueueMessage]:
        """
        最大 max_messages 件のメッセージを受信する。

        1. 可視性タイムアウトを超えて ACK されていないメッセージを奪い直す
           (処理中にクラッシュしたコンシューマの分を再配信する)
        2. 残りの枠を新着メッセージで埋める。新着が無ければ
           wait_seconds 秒までブロックして待つ (ロングポーリング)
        """
        try:
            await self._ensure_group(destination)
            entries = await self._claim_stale(destination, max_messages)
            remaining = max_messages - len(entries)
            if remaining > 0:
                response = await self.redis.xreadgroup(
                    self.group,
                    self.consumer,
                    streams={destination: ">"},
                    count=remaining,
                    block=wait_seconds * 1000 if wait_seconds > 0 else None,
                )
                for _stream, stream_entries in response or []:
                    entries.extend(stream_entries)
        except RedisError as e:
            raise TransportFailure(f"receive from {destination} failed: {e}") from e

        return [
            self._to_message(entry_id, fields, attribute_names)
            for entry_id, fields in entries
        ]

    async def delete(self, destination: str, receipt_handle: str) -> None:
        """処理済みメッセージを ACK してストリームから削除する。"""
        try:
            await self.redis.xack(destination, self.group, receipt_handle)
            await self.redis.xdel(destination, receipt_handle)
        except RedisError as e:
            raise TransportFailure(f"delete from {destination} failed: {e}") from e

    # ── 内部ヘルパー ─────────────────────────────────

    async def _ensure_group(self, destination: str) -> None:
        if destination in self._groups_ready:
            return
        try:
            await self.redis.xgroup_create(destination, self.group, id="0", mkstream=True)
            logger.info("Created consumer group %s on %s", self.group, destination)
        except ResponseError as e:
            # 既にグループがある場合は BUSYGROUP が返る
            if "BUSYGROUP" not in str(e):
                raise
        self._groups_ready.add(destination)

    async def _claim_stale(self, destination: str, count: int) -> list[tuple]:
        result = await self.redis.xautoclaim(
            destination,
            self.group,
            self.consumer,
            min_idle_time=int(self.visibility_timeout * 1000),
            start_id="0-0",
            count=count,
        )
        claimed = result[1] if result and len(result) > 1 else []
        # 削除済みエントリは (None, None) や空フィールドで返ることがある
        return [(entry_id, fields) for entry_id, fields in claimed if entry_id and fields]

    @staticmethod
    def _to_message(
        entry_id: str,
        fields: dict,
        attribute_names: tuple[str, ...],
    ) -> QueueMessage:
        try:
            raw_attributes = json.loads(fields.get("attributes") or "{}")
        except ValueError:
            logger.warning("Message %s has unreadable attributes", entry_id)
            raw_attributes = {}
        attributes = {
            name: MessageAttribute.from_dict(value)
            for name, value in raw_attributes.items()
            if ALL_ATTRIBUTES in attribute_names or name in attribute_names
        }
        return QueueMessage(
            message_id=entry_id,
            body=fields.get("body", ""),
            receipt_handle=entry_id,
            attributes=attributes,
        )
