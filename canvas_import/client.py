"""HTTP client for the Canvas LMS REST API."""
import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

logger = logging.getLogger(__name__)


class CanvasApiError(Exception):
    """Raised when Canvas answers with an error or cannot be reached."""

    def __init__(self, message: str, status: int = 0, payload: Any = None):
        super().__init__(message)
        self.status = status
        self.payload = payload


class CanvasClient:
    """Client for the Canvas endpoints the calendar import reads."""

    PER_PAGE = 100

    def __init__(self, base_url: str, access_token: str, timeout: int = 30):
        """
        Initialize the Canvas client.

        Args:
            base_url: Canvas instance URL, e.g. https://school.instructure.com
            access_token: OAuth access token for the user
            timeout: HTTP request timeout in seconds (default: 30)
        """
        if not base_url or not access_token:
            raise CanvasApiError('Canvas is not connected', status=401)
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f"Bearer {access_token}",
            'Accept': 'application/json',
        })

    def get_current_user(self) -> Dict[str, Any]:
        return self._get('/users/self')

    def get_courses(self) -> List[Dict[str, Any]]:
        """Courses with an active enrollment."""
        return self._get_paginated(
            '/courses', {'enrollment_state': 'active'}
        )

    def get_course_assignments(self, course_id: str) -> List[Dict[str, Any]]:
        """Assignments of a course, including section-specific due dates."""
        return self._get_paginated(
            f"/courses/{course_id}/assignments", {'include[]': 'all_dates'}
        )

    def get_calendar_events(
        self,
        start_date: str,
        end_date: str,
        context_codes: Optional[Sequence[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Calendar events between two dates.

        Args:
            start_date: ISO 8601 start
            end_date: ISO 8601 end
            context_codes: Course contexts such as 'course_42'

        Returns:
            List of Canvas calendar event payloads
        """
        params = [
            ('start_date', start_date),
            ('end_date', end_date),
            ('type', 'event'),
        ]
        for code in context_codes or []:
            params.append(('context_codes[]', code))
        return self._get_paginated('/calendar_events', params)

    def _get(self, endpoint: str, params=None) -> Any:
        response = self._request(f"{self.base_url}/api/v1{endpoint}", params)
        return response.json()

    def _get_paginated(self, endpoint: str, params=None) -> List[Any]:
        """
        Follow Link: rel="next" headers and concatenate every page.

        Args:
            endpoint: Path below /api/v1
            params: Query parameters for the first page

        Returns:
            Items from all pages
        """
        if isinstance(params, dict):
            params = list(params.items())
        params = list(params or []) + [('per_page', self.PER_PAGE)]

        url = f"{self.base_url}/api/v1{endpoint}"
        items = []
        page = 0
        while url:
            page += 1
            response = self._request(url, params)
            items.extend(response.json())
            url = response.links.get('next', {}).get('url')
            # The next link already carries the query string.
            params = None

        logger.info(f"Fetched {len(items)} items from {endpoint} in {page} page(s)")
        return items

    def _request(self, url: str, params=None) -> requests.Response:
        """
        Perform one GET request.

        Raises:
            CanvasApiError: On network failure or a non-2xx status
        """
        logger.debug(f"GET {url}")
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Network error communicating with Canvas: {e}")
            raise CanvasApiError(
                'Network error communicating with Canvas'
            ) from e

        if response.status_code == 401:
            raise CanvasApiError(
                'Canvas authentication expired. Please reconnect.', status=401
            )
        if not response.ok:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            message = (
                payload.get('message') if isinstance(payload, dict) else None
            ) or f"Canvas API error: {response.status_code}"
            logger.error(f"{message} ({url})")
            raise CanvasApiError(message, status=response.status_code, payload=payload)

        return response
