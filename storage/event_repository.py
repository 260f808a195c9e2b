"""DynamoDB repository for event documents."""
import json
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

from planner.models import touch_timestamp

logger = logging.getLogger(__name__)


def to_item(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a JSON event document to a DynamoDB item.

    DynamoDB rejects floats, so every number becomes a Decimal; None values
    are dropped.
    """
    item = json.loads(json.dumps(document), parse_float=Decimal)
    return {key: value for key, value in item.items() if value is not None}


def from_item(value: Any) -> Any:
    """Convert DynamoDB Decimals back to int/float, recursively."""
    if isinstance(value, list):
        return [from_item(item) for item in value]
    if isinstance(value, dict):
        return {key: from_item(item) for key, item in value.items()}
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


class EventRepository:
    """Stores one document per event, RSVPs and expenses nested inside it."""

    # fields a client update may never overwrite
    IMMUTABLE_FIELDS = ('id', 'createdAt')

    def __init__(self, table_name: str):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table, hash key 'id'
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized EventRepository for table: {table_name}")

    def list_events(self) -> List[Dict[str, Any]]:
        """
        Retrieve all events using a paginated Scan.

        Returns:
            Event documents sorted by date, then time
        """
        logger.info("Scanning DynamoDB table for all events")

        try:
            response = self.table.scan()
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))

        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise

        events = [from_item(item) for item in items]
        events.sort(key=lambda event: (event.get('date', ''), event.get('time', '')))
        logger.info(f"Retrieved {len(events)} events from DynamoDB")
        return events

    def get_event(self, event_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = self.table.get_item(Key={'id': event_id})
        except ClientError as e:
            logger.error(f"Error reading event {event_id}: {e}")
            raise

        item = response.get('Item')
        return from_item(item) if item else None

    def put_event(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """Write a complete event document, replacing any previous version."""
        try:
            self.table.put_item(Item=to_item(document))
        except ClientError as e:
            logger.error(f"Error writing event {document.get('id')}: {e}")
            raise
        return document

    def update_event(
        self, event_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """
        Merge top-level fields into an event and stamp updatedAt.

        Nested lists (rsvps, expenses) are replaced as a whole.

        Args:
            event_id: Event to update
            changes: Partial event document

        Returns:
            The merged document, or None if the event does not exist
        """
        current = self.get_event(event_id)
        if current is None:
            return None

        merged = dict(current)
        for key, value in changes.items():
            if key in self.IMMUTABLE_FIELDS:
                continue
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value
        merged['updatedAt'] = touch_timestamp(current.get('updatedAt'))

        self.put_event(merged)
        logger.info(f"Updated event {event_id}: {', '.join(sorted(changes)) or 'no fields'}")
        return merged

    def archive_event(self, event_id: str) -> Optional[Dict[str, Any]]:
        return self.update_event(event_id, {'isArchived': True})

    def delete_event(self, event_id: str) -> bool:
        """
        Permanently delete an event.

        Returns:
            True if deleted, False if no such event existed
        """
        try:
            self.table.delete_item(
                Key={'id': event_id},
                ConditionExpression='attribute_exists(#id)',
                ExpressionAttributeNames={'#id': 'id'}
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                return False
            logger.error(f"Error deleting event {event_id}: {e}")
            raise

        logger.info(f"Deleted event {event_id}")
        return True
