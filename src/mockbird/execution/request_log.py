"""
MockBird Request Logging

Writes one RequestLog entry per execution attempt. The write is handed to
the web framework as a background task, so it runs after the response has
been sent and can neither delay nor fail it.
"""

import logging
from typing import Optional

from starlette.background import BackgroundTask

from .models import IncomingRequest, RequestLog

logger = logging.getLogger("mockbird.request_log")


class RequestLogger:
    """
    Fire-and-forget request log writer.

    Example:
        request_logger = RequestLogger(store)
        task = request_logger.schedule(incoming, project.id, mock.id, 200, 12)
        return Response(..., background=task)
    """

    def __init__(self, store):
        """
        Initialize request logger.

        Args:
            store: MockStore receiving the log entries
        """
        self.store = store
        self.failures = 0

    async def write(self, entry: RequestLog) -> None:
        """Persist a log entry; failures are reported and swallowed."""
        try:
            await self.store.write_request_log(entry)
        except Exception:
            self.failures += 1
            logger.exception(
                f"Failed to write request log for {entry.request_method} {entry.request_path}"
            )

    def schedule(
        self,
        request: IncomingRequest,
        project_id: Optional[str],
        mock_id: Optional[str],
        response_status: int,
        response_time_ms: int
    ) -> BackgroundTask:
        """
        Build the log entry now and return a task that writes it later.

        Returns:
            BackgroundTask to attach to the outgoing response
        """
        entry = RequestLog.from_request(
            request,
            project_id=project_id,
            mock_id=mock_id,
            response_status=response_status,
            response_time_ms=response_time_ms,
        )
        return BackgroundTask(self.write, entry)
