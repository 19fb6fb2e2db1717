"""AWS Lambda handler for the personal calendar engine."""
import json
import logging
import os
import time
from datetime import timedelta
from typing import Any, Callable, Dict, List

from calendar_engine.conflicts import detect_conflicts
from calendar_engine.errors import CalendarError
from calendar_engine.event_processor import EventProcessor
from calendar_engine.models import Event, ViewSettings
from calendar_engine.recurrence import expand_events
from calendar_engine.views import compose_view
from canvas_import.client import CanvasApiError, CanvasClient
from canvas_import.importer import CanvasImporter, import_summary
from storage.dynamodb_manager import DynamoDBManager

# Attributes every LogRecord carries; anything else came in through extra=.
_RESERVED_LOG_ATTRS = frozenset(
    logging.LogRecord('', 0, '', 0, '', (), None).__dict__
) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including fields passed via extra."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_LOG_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body, default=str)}


def _error_response(status_code: int, message: str, error: Exception,
                    start_time: float) -> Dict[str, Any]:
    return _response(status_code, {
        'message': message,
        'error': str(error),
        'error_type': type(error).__name__,
        'duration_seconds': round(time.time() - start_time, 2)
    })


def handle_view(event: Dict[str, Any], manager: DynamoDBManager,
                settings: ViewSettings) -> Dict[str, Any]:
    """Compose a day, week or month layout from the stored events."""
    if not event.get('date'):
        raise ValueError("missing required field: date")
    mode = event.get('mode', 'week')

    stored = list(manager.get_all_events().values())
    layout = compose_view(mode, event['date'], stored, settings)
    return layout.to_dict()


def handle_conflicts(event: Dict[str, Any], manager: DynamoDBManager,
                     settings: ViewSettings) -> Dict[str, Any]:
    """List stored events, recurring ones included, overlapping a candidate."""
    candidate_record = event.get('candidate')
    if not isinstance(candidate_record, dict):
        raise ValueError("missing required field: candidate")
    candidate = EventProcessor().parse_record(candidate_record)

    # Drop the stored version first so an edited series does not collide
    # with its own occurrences.
    stored: List[Event] = [
        stored_event for stored_event in manager.get_all_events().values()
        if stored_event.id != candidate.id
    ]
    longest = max((e.duration for e in stored if e.is_recurring), default=timedelta(0))
    existing = expand_events(stored, candidate.start - longest, candidate.end)
    conflicts = detect_conflicts(candidate, existing)
    return {
        'has_conflicts': bool(conflicts),
        'conflicts': [conflict.to_dict() for conflict in conflicts],
    }


def handle_import_canvas(event: Dict[str, Any], manager: DynamoDBManager,
                         settings: ViewSettings) -> Dict[str, Any]:
    """Import Canvas data and upsert it into the events table."""
    client = CanvasClient(
        base_url=os.environ.get('CANVAS_BASE_URL', ''),
        access_token=os.environ.get('CANVAS_ACCESS_TOKEN', ''),
        timeout=int(os.environ.get('TIMEOUT_SECONDS', '30')),
    )
    events, stats = CanvasImporter(client).run()
    result = manager.upsert_events(events)
    return {
        'message': 'Canvas import completed',
        'statistics': import_summary(stats),
        'events_added': result.added,
        'events_updated': result.updated,
        'errors': stats.errors + result.errors,
    }


ACTIONS: Dict[str, Callable[..., Dict[str, Any]]] = {
    'view': handle_view,
    'conflicts': handle_conflicts,
    'import_canvas': handle_import_canvas,
}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for calendar requests.

    Args:
        event: Request payload with an 'action' key ('view', 'conflicts'
            or 'import_canvas') and the action's fields
        context: Lambda context object

    Returns:
        Response dict with statusCode and JSON body
    """
    # Read configuration from environment variables
    table_name = os.environ.get('TABLE_NAME', 'calendar-events')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    action = (event or {}).get('action', 'view')
    logger.info(
        "Lambda execution started",
        extra={'table_name': table_name, 'action': action}
    )

    handler = ACTIONS.get(action)
    if handler is None:
        logger.warning(f"Unknown action: {action}")
        return _response(400, {'message': f"Unknown action: {action}"})

    try:
        settings = ViewSettings.from_env()
    except ValueError as e:
        logger.error(
            f"Invalid view configuration: {e}",
            extra={'error_type': type(e).__name__}
        )
        return _error_response(500, 'Invalid configuration', e, start_time)

    try:
        manager = DynamoDBManager(table_name=table_name)
        body = handler(event, manager, settings)

    except CanvasApiError as e:
        logger.error(
            f"Canvas request failed: {e}",
            extra={'error_type': type(e).__name__, 'status': e.status},
            exc_info=True
        )
        return _error_response(502, 'Failed to import Canvas data', e, start_time)

    except (CalendarError, ValueError) as e:
        logger.warning(
            f"Rejected invalid request: {e}",
            extra={'error_type': type(e).__name__}
        )
        return _error_response(400, 'Invalid request', e, start_time)

    except Exception as e:
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(time.time() - start_time, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _error_response(500, 'Request failed', e, start_time)

    duration = time.time() - start_time
    logger.info(
        "Lambda execution completed successfully",
        extra={'action': action, 'duration_seconds': round(duration, 2)}
    )
    body['duration_seconds'] = round(duration, 2)
    return _response(200, body)
