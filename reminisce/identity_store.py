"""Identity records backed by DynamoDB.

One item per enrolled person, keyed by ``name``:

    {
      "name": "Ada",
      "bio": "Granddaughter, visits on Sundays",
      "contact": "+1 555 0100",
      "embedding": [Decimal, ...],          # 128-d face encoding
      "history": [{"date", "summary", "emotion", "transcript"}, ...],
      "tags": ["garden", "school"]
    }

Memory updates re-read the item, merge and write it back; the last writer
wins, which is fine because each identity's consolidations are applied in
order on the device.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.exceptions import ClientError

from .schema import Identity, MemoryEntry, merge_memory

logger = logging.getLogger(__name__)


class IdentityExistsError(ValueError):
    """Raised when enrolling a name that is already taken."""


class IdentityStore:
    def __init__(
        self,
        table_name: str,
        region_name: str,
        *,
        table: Any = None,
    ) -> None:
        self._table = (
            table
            if table is not None
            else boto3.resource("dynamodb", region_name=region_name).Table(table_name)
        )

    # ---- Reads ----
    def list_identities(self) -> List[Identity]:
        items: List[Dict[str, Any]] = []
        kwargs: Dict[str, Any] = {}
        while True:
            resp = self._table.scan(**kwargs)
            items.extend(resp.get("Items", []) or [])
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
        identities = [Identity.from_item(item) for item in items if item.get("name")]
        identities.sort(key=lambda ident: ident.name.lower())
        logger.debug("Loaded %d identities", len(identities))
        return identities

    def get(self, name: str) -> Optional[Identity]:
        resp = self._table.get_item(Key={"name": name})
        item = resp.get("Item")
        if not item:
            return None
        return Identity.from_item(item)

    # ---- Writes ----
    def create(self, identity: Identity) -> Identity:
        name = identity.name.strip()
        if not name:
            raise ValueError("Identity name must not be empty")
        if not identity.embedding:
            raise ValueError(f"Identity {name!r} has no face embedding")
        try:
            self._table.put_item(
                Item=identity.to_item(),
                ConditionExpression="attribute_not_exists(#n)",
                ExpressionAttributeNames={"#n": "name"},
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code == "ConditionalCheckFailedException":
                raise IdentityExistsError(f"{name!r} is already enrolled") from exc
            raise
        logger.info("[identity] enrolled %s", name)
        return identity

    def append_memory(
        self,
        name: str,
        entry: MemoryEntry,
        tags: Sequence[str] = (),
        *,
        max_history: int,
        max_tags: int,
    ) -> Optional[Identity]:
        """Merge one memory into the stored record; returns None for unknown names."""
        current = self.get(name)
        if current is None:
            logger.warning("[identity] cannot store memory for unknown identity %s", name)
            return None
        merged = merge_memory(
            current, entry, tags, max_history=max_history, max_tags=max_tags
        )
        self._table.put_item(Item=merged.to_item())
        logger.info(
            "[identity] stored memory for %s (%d entries, emotion=%s)",
            name,
            len(merged.history),
            entry.emotion.value,
        )
        return merged

    def update_contact(self, name: str, contact: str) -> bool:
        try:
            self._table.update_item(
                Key={"name": name},
                UpdateExpression="SET contact = :c",
                ConditionExpression="attribute_exists(#n)",
                ExpressionAttributeNames={"#n": "name"},
                ExpressionAttributeValues={":c": contact},
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code == "ConditionalCheckFailedException":
                return False
            raise
        return True

    def delete(self, name: str) -> bool:
        resp = self._table.delete_item(Key={"name": name}, ReturnValues="ALL_OLD")
        removed = bool(resp.get("Attributes"))
        if removed:
            logger.info("[identity] deleted %s", name)
        return removed


__all__ = ["IdentityExistsError", "IdentityStore"]
