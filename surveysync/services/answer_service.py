"""Survey answer submission service."""
from typing import Union

import httpx

from surveysync.core.exceptions import SubmissionError, UnresolvedMediaError
from surveysync.schemas.submission import SubmissionPayload, SubmissionReceipt
from surveysync.services.api_client import parse_error_envelope
from surveysync.services.payload_rewrite import referenced_local_uris


class AnswerService:
    """Sends completed answer payloads to the backend."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def submit(self, survey_id: Union[int, str], payload: SubmissionPayload) -> SubmissionReceipt:
        """
        POST ``/survey/{survey_id}/answers``.

        Raises:
            UnresolvedMediaError: payload still holds local media references
            SubmissionError: network failure or non-2xx response
        """
        pending = referenced_local_uris(payload)
        if pending:
            raise UnresolvedMediaError(pending)

        try:
            response = await self.client.post(
                f"/survey/{survey_id}/answers", json=payload.to_request_body()
            )
        except httpx.HTTPError as exc:
            raise SubmissionError(f"Submission request failed: {exc}") from exc

        if response.is_error:
            code, message, retriable = parse_error_envelope(response)
            raise SubmissionError(
                message,
                status_code=response.status_code,
                code=code,
                retriable=retriable,
            )

        try:
            body = response.json()
        except ValueError:
            body = {}
        return SubmissionReceipt.model_validate(body if isinstance(body, dict) else {})
