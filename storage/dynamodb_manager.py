"""DynamoDB manager for calendar event storage."""
import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

from calendar_engine.errors import CalendarError
from calendar_engine.event_processor import EventProcessor
from calendar_engine.models import Event, UpsertResult

logger = logging.getLogger(__name__)

# Fields that change on every write and do not count as a content change.
VOLATILE_FIELDS = ('id', 'created_at', 'updated_at')


def _to_dynamo(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_to_dynamo(v) for v in value]
    return value


class DynamoDBManager:
    """Manager for DynamoDB operations on the events table."""

    BATCH_SIZE = 25  # DynamoDB batch operation limit

    def __init__(self, table_name: str, processor: Optional[EventProcessor] = None):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
            processor: Record normalizer used when reading items
        """
        self.table_name = table_name
        self.processor = processor or EventProcessor()
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBManager for table: {table_name}")

    def get_all_events(self) -> Dict[str, Event]:
        """
        Retrieve all events from DynamoDB using Scan operation.

        Returns:
            Dictionary mapping event id to Event objects
        """
        logger.info("Scanning DynamoDB table for all events")
        events = {}

        try:
            response = self.table.scan()
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))

            for item in items:
                event = self._item_to_event(item)
                if event:
                    events[event.id] = event

            logger.info(f"Retrieved {len(events)} events from DynamoDB")
            return events

        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise

    def get_event(self, event_id: str) -> Optional[Event]:
        """
        Fetch a single event by id.

        Returns:
            Event, or None when missing or unreadable
        """
        try:
            response = self.table.get_item(Key={'event_id': event_id})
        except ClientError as e:
            logger.error(f"Error reading event {event_id}: {e}")
            raise

        item = response.get('Item')
        return self._item_to_event(item) if item else None

    def put_event(self, event: Event) -> None:
        self.table.put_item(Item=self._event_to_item(event))
        logger.info(f"Stored event {event.id}")

    def delete_event(self, event_id: str) -> None:
        self.table.delete_item(Key={'event_id': event_id})
        logger.info(f"Deleted event {event_id}")

    def upsert_events(self, new_events: List[Event]) -> UpsertResult:
        """
        Add or update imported events, matched on external_id.

        An event whose external_id is already stored keeps the stored id
        and creation time, and is only written when its content changed.
        Events without external_id are always added.

        Args:
            new_events: Events produced by an import

        Returns:
            UpsertResult with counts of added and updated events
        """
        logger.info(f"Starting upsert of {len(new_events)} events")
        errors = []

        try:
            existing_by_external_id = {
                event.external_id: event
                for event in self.get_all_events().values()
                if event.external_id
            }

            events_to_add = []
            events_to_update = []
            for event in new_events:
                existing = existing_by_external_id.get(event.external_id)
                if existing is None or not event.external_id:
                    events_to_add.append(event)
                elif self._events_differ(event, existing):
                    events_to_update.append(
                        replace(event, id=existing.id, created_at=existing.created_at)
                    )

            logger.info(
                f"Upsert plan: {len(events_to_add)} to add, "
                f"{len(events_to_update)} to update"
            )

            added_count = 0
            updated_count = 0
            if events_to_add or events_to_update:
                write_count = self.batch_write_events(events_to_add + events_to_update)
                added_count = min(write_count, len(events_to_add))
                updated_count = write_count - added_count

            logger.info(f"Upsert complete: {added_count} added, {updated_count} updated")
            return UpsertResult(added=added_count, updated=updated_count, errors=errors)

        except ClientError as e:
            error_msg = f"Error during upsert operation: {e}"
            logger.error(error_msg)
            errors.append(error_msg)
            return UpsertResult(added=0, updated=0, errors=errors)

    def batch_write_events(self, events: List[Event]) -> int:
        """
        Write events to DynamoDB in batches of 25 items.

        Args:
            events: Events to write

        Returns:
            Count of successfully written events
        """
        if not events:
            return 0

        logger.info(f"Writing {len(events)} events to DynamoDB")
        success_count = 0

        for i in range(0, len(events), self.BATCH_SIZE):
            batch = events[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for event in batch:
                        writer.put_item(Item=self._event_to_item(event))
                success_count += len(batch)

            except ClientError as e:
                logger.error(
                    f"Error writing batch {i // self.BATCH_SIZE + 1}: {e}"
                )
                continue

        logger.info(f"Successfully wrote {success_count} events")
        return success_count

    def batch_delete_events(self, event_ids: List[str]) -> int:
        """
        Delete events from DynamoDB in batches of 25 items.

        Args:
            event_ids: Ids of the events to delete

        Returns:
            Count of successfully deleted events
        """
        if not event_ids:
            return 0

        logger.info(f"Deleting {len(event_ids)} events from DynamoDB")
        success_count = 0

        for i in range(0, len(event_ids), self.BATCH_SIZE):
            batch = event_ids[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for event_id in batch:
                        writer.delete_item(Key={'event_id': event_id})
                success_count += len(batch)

            except ClientError as e:
                logger.error(
                    f"Error deleting batch {i // self.BATCH_SIZE + 1}: {e}"
                )
                continue

        logger.info(f"Successfully deleted {success_count} events")
        return success_count

    def _item_to_event(self, item: dict) -> Optional[Event]:
        """
        Convert DynamoDB item to Event object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Event object or None if conversion fails
        """
        record = dict(item)
        record['id'] = record.pop('event_id', None)
        try:
            return self.processor.parse_record(record)
        except (KeyError, ValueError, TypeError, CalendarError) as e:
            logger.warning(f"Failed to convert item {record.get('id')} to Event: {e}")
            return None

    def _event_to_item(self, event: Event) -> dict:
        """
        Convert Event object to DynamoDB item.

        Optional fields that are unset are left out of the item.

        Args:
            event: Event object

        Returns:
            DynamoDB item dictionary
        """
        record = event.to_dict()
        record['event_id'] = record.pop('id')
        record.pop('series_id', None)
        return _to_dynamo(record)

    def _events_differ(self, event1: Event, event2: Event) -> bool:
        """
        Compare two events, ignoring id and bookkeeping timestamps.

        Returns:
            True if events differ, False otherwise
        """
        first = event1.to_dict()
        second = event2.to_dict()
        for name in VOLATILE_FIELDS:
            first.pop(name, None)
            second.pop(name, None)
        return first != second
