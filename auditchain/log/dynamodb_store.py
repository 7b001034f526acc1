"""
DynamoDB-based audit store.

Table layout:
- Partition key principalId, sort key seq (N): one item per chain position.
- Each item carries the entry body (canonical JSON) plus index attributes.
- GSIs, all sorted by tsId ("<timestamp>#<id>"):
  principalId-timestamp-index, eventType-timestamp-index,
  resourceId-timestamp-index (sparse), feed-timestamp-index.

Appends read the tail with a consistent read and write seq = tail.seq + 1
with attribute_not_exists, so two writers that observed the same tail
contend for the same slot and only one commits. The same transaction puts
an id marker item (principalId "#entry#<id>", seq 0) pointing at the slot,
so an entry id is stored at most once. Markers carry no index attributes
and never appear in GSI scans.
"""

import json
from typing import Any, Dict, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..core.canonical import canonical_json_str
from ..core.entry import AuditLogEntry
from ..core.errors import StoreError
from .integrity import GENESIS
from .store import (
    FEED_KEY,
    SORT_KEY_CEILING,
    AuditStore,
    PutResult,
    ScanIndex,
    ScanPage,
    ScanRow,
    SortOrder,
    position_fields,
)

INDEXES: Dict[ScanIndex, Tuple[str, str]] = {
    ScanIndex.PRINCIPAL: ("principalId-timestamp-index", "principalId"),
    ScanIndex.EVENT_TYPE: ("eventType-timestamp-index", "eventType"),
    ScanIndex.RESOURCE: ("resourceId-timestamp-index", "resourceId"),
    ScanIndex.FEED: ("feed-timestamp-index", "feed"),
}

ENTRY_ID_PREFIX = "#entry#"


class DynamoDBAuditStore(AuditStore):
    """
    DynamoDB-based append-only audit store.

    Guarantees:
    - Append-only (conditional puts never overwrite an existing slot)
    - Consistent tail reads on the base table
    - Index scans are eventually consistent (GSI semantics)
    """

    def __init__(
        self,
        table_name: str = "AuditLog",
        endpoint_url: Optional[str] = None,
        region: str = "us-east-1",
        client=None,
        check_table: bool = True,
    ) -> None:
        """
        Initialize DynamoDB audit store.

        Args:
            table_name: DynamoDB table name
            endpoint_url: DynamoDB endpoint URL (for DynamoDB Local, localstack, etc.)
            region: AWS region (default: us-east-1)
            client: Preconfigured boto3 DynamoDB client
            check_table: Verify the table is reachable at construction

        Raises:
            StoreError: If client creation fails or the table is not accessible
        """
        self.table_name = table_name

        # Credentials from environment: AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY
        if client is None:
            try:
                client = boto3.client("dynamodb", endpoint_url=endpoint_url, region_name=region)
            except (BotoCoreError, ValueError) as e:
                raise StoreError(f"Failed to create DynamoDB client: {e}") from e
        self.client = client

        if check_table:
            try:
                self.client.describe_table(TableName=table_name)
            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                raise StoreError(
                    f"Table '{table_name}' not accessible (code: {error_code})"
                ) from e
            except BotoCoreError as e:
                raise StoreError(f"Table '{table_name}' not accessible: {e}") from e

    @classmethod
    def create_table(cls, client, table_name: str = "AuditLog") -> None:
        """Create the audit table and its indexes (on-demand billing)."""
        gsis = []
        for index_name, partition_attr in INDEXES.values():
            gsis.append(
                {
                    "IndexName": index_name,
                    "KeySchema": [
                        {"AttributeName": partition_attr, "KeyType": "HASH"},
                        {"AttributeName": "tsId", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                }
            )
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "principalId", "KeyType": "HASH"},
                {"AttributeName": "seq", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "principalId", "AttributeType": "S"},
                {"AttributeName": "seq", "AttributeType": "N"},
                {"AttributeName": "tsId", "AttributeType": "S"},
                {"AttributeName": "eventType", "AttributeType": "S"},
                {"AttributeName": "resourceId", "AttributeType": "S"},
                {"AttributeName": "feed", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=gsis,
            BillingMode="PAY_PER_REQUEST",
        )
        client.get_waiter("table_exists").wait(TableName=table_name)

    def _item_for(self, entry: AuditLogEntry, seq: int) -> Dict[str, Any]:
        item = {
            "principalId": {"S": entry.principal_id},
            "seq": {"N": str(seq)},
            "tsId": {"S": f"{entry.timestamp}#{entry.id}"},
            "eventType": {"S": entry.event_type},
            "feed": {"S": FEED_KEY},
            "hash": {"S": entry.hash},
            "body": {"S": canonical_json_str(entry.to_dict())},
        }
        if entry.resource_id is not None:
            item["resourceId"] = {"S": entry.resource_id}
        return item

    def _id_marker_for(self, entry: AuditLogEntry, seq: int) -> Dict[str, Any]:
        return {
            "principalId": {"S": ENTRY_ID_PREFIX + entry.id},
            "seq": {"N": "0"},
            "entryPrincipalId": {"S": entry.principal_id},
            "entrySeq": {"N": str(seq)},
        }

    def _entry_from_item(self, item: Dict[str, Any]) -> AuditLogEntry:
        try:
            return AuditLogEntry.from_dict(json.loads(item["body"]["S"]))
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Malformed audit item in '{self.table_name}'") from e

    def _latest_item(self, principal_id: str) -> Optional[Dict[str, Any]]:
        response = self.client.query(
            TableName=self.table_name,
            KeyConditionExpression="principalId = :p",
            ExpressionAttributeValues={":p": {"S": principal_id}},
            ScanIndexForward=False,
            Limit=1,
            ConsistentRead=True,
        )
        items = response.get("Items", [])
        return items[0] if items else None

    def _stored_by_id(self, entry_id: str) -> Optional[AuditLogEntry]:
        marker = self.client.get_item(
            TableName=self.table_name,
            Key={"principalId": {"S": ENTRY_ID_PREFIX + entry_id}, "seq": {"N": "0"}},
            ConsistentRead=True,
        ).get("Item")
        if marker is None:
            return None
        item = self.client.get_item(
            TableName=self.table_name,
            Key={"principalId": marker["entryPrincipalId"], "seq": marker["entrySeq"]},
            ConsistentRead=True,
        ).get("Item")
        if item is None:
            raise StoreError(f"Entry id marker for '{entry_id}' has no entry in '{self.table_name}'")
        return self._entry_from_item(item)

    def get_latest_by_principal(self, principal_id: str) -> Optional[AuditLogEntry]:
        try:
            item = self._latest_item(principal_id)
        except (BotoCoreError, ClientError) as e:
            raise StoreError(f"Failed to read chain tail for '{principal_id}': {e}") from e
        return self._entry_from_item(item) if item is not None else None

    def put_entry_if_tail_unchanged(
        self, entry: AuditLogEntry, expected_previous_hash: Optional[str]
    ) -> PutResult:
        """
        Append entry into the next chain slot.

        Raises:
            StoreError: If the write fails for reasons other than contention
        """
        try:
            latest = self._latest_item(entry.principal_id)
            observed = latest["hash"]["S"] if latest is not None else GENESIS

            if expected_previous_hash is not None and expected_previous_hash != observed:
                return PutResult(
                    entry=entry,
                    committed=False,
                    conflict=True,
                    observed_previous_hash=observed,
                )

            seq = int(latest["seq"]["N"]) + 1 if latest is not None else 0
            try:
                self.client.transact_write_items(
                    TransactItems=[
                        {
                            "Put": {
                                "TableName": self.table_name,
                                "Item": self._item_for(entry, seq),
                                "ConditionExpression": "attribute_not_exists(principalId)",
                            }
                        },
                        {
                            "Put": {
                                "TableName": self.table_name,
                                "Item": self._id_marker_for(entry, seq),
                                "ConditionExpression": "attribute_not_exists(principalId)",
                            }
                        },
                    ]
                )
            except ClientError as e:
                code = e.response.get("Error", {}).get("Code", "")
                if code != "TransactionCanceledException":
                    raise
                stored = self._stored_by_id(entry.id)
                if stored is not None:
                    return PutResult(
                        entry=stored,
                        committed=False,
                        conflict=False,
                        observed_previous_hash=observed,
                        duplicate=True,
                    )
                # Slot taken by a concurrent writer; refresh observed tail
                latest = self._latest_item(entry.principal_id)
                return PutResult(
                    entry=entry,
                    committed=False,
                    conflict=True,
                    observed_previous_hash=latest["hash"]["S"] if latest is not None else GENESIS,
                )

            return PutResult(
                entry=entry,
                committed=True,
                conflict=False,
                observed_previous_hash=observed,
            )

        except (BotoCoreError, ClientError) as e:
            raise StoreError(f"Failed to append audit entry to DynamoDB: {e}") from e

    def scan(
        self,
        index: ScanIndex,
        key: Optional[str] = None,
        sort: SortOrder = SortOrder.DESC,
        limit: int = 50,
        after: Optional[Dict[str, Any]] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
    ) -> ScanPage:
        index_name, partition_attr = INDEXES[index]
        partition_value = FEED_KEY if index == ScanIndex.FEED else key
        if partition_value is None:
            raise StoreError(f"scan on {index.value} requires a key")

        condition = "#pk = :pk"
        values: Dict[str, Any] = {":pk": {"S": partition_value}}
        if start_time is not None and end_time is not None:
            condition += " AND tsId BETWEEN :lo AND :hi"
            values[":lo"] = {"S": start_time}
            values[":hi"] = {"S": end_time + SORT_KEY_CEILING}
        elif start_time is not None:
            condition += " AND tsId >= :lo"
            values[":lo"] = {"S": start_time}
        elif end_time is not None:
            condition += " AND tsId <= :hi"
            values[":hi"] = {"S": end_time + SORT_KEY_CEILING}

        params: Dict[str, Any] = {
            "TableName": self.table_name,
            "IndexName": index_name,
            "KeyConditionExpression": condition,
            "ExpressionAttributeNames": {"#pk": partition_attr},
            "ExpressionAttributeValues": values,
            "ScanIndexForward": sort == SortOrder.ASC,
            "Limit": limit,
        }
        if after is not None:
            after_principal, after_seq, after_ts_id = position_fields(after, "principalId", "seq", "tsId")
            params["ExclusiveStartKey"] = {
                "principalId": {"S": str(after_principal)},
                "seq": {"N": str(after_seq)},
                "tsId": {"S": str(after_ts_id)},
                partition_attr: {"S": partition_value},
            }

        try:
            response = self.client.query(**params)
        except (BotoCoreError, ClientError) as e:
            raise StoreError(f"Failed to scan {index_name}: {e}") from e

        rows = []
        for item in response.get("Items", []):
            position = {
                "principalId": item["principalId"]["S"],
                "seq": int(item["seq"]["N"]),
                "tsId": item["tsId"]["S"],
            }
            rows.append(ScanRow(entry=self._entry_from_item(item), position=position))

        next_position = rows[-1].position if rows and response.get("LastEvaluatedKey") else None
        return ScanPage(rows=rows, next_position=next_position)
