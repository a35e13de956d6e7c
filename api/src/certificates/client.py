"""Remote completion check over HTTP.

Used when certificate issuance lives in an external function
(``certificate_check_url``). Request body ``{"userId", "lessonId"}``;
response ``{issued, code?, alreadyIssued?, progress?}``.
"""

from uuid import UUID

import httpx

from src.core.logging import get_logger

from .schemas import CompletionCheckResult
from .service import CompletionCheckError


logger = get_logger(__name__)


class RemoteCompletionChecker:
    """Completion checker calling an external HTTP endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self._api_key = api_key
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def check(self, user_id: UUID, lesson_id: UUID) -> CompletionCheckResult:
        """Ask the remote endpoint to evaluate course completion.

        Raises:
            CompletionCheckError: On timeout, transport error, non-200 or bad body
        """
        body = {"userId": str(user_id), "lessonId": str(lesson_id)}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.url, json=body, headers=self._headers()
                )

                if response.status_code != httpx.codes.OK:
                    logger.error(
                        "completion_check_request_failed",
                        status_code=response.status_code,
                        response_text=response.text[:500],
                    )
                    raise CompletionCheckError(
                        f"Completion check error: {response.status_code}"
                    )

                data = response.json()

        except httpx.TimeoutException as e:
            logger.error("completion_check_timeout", error=str(e))
            raise CompletionCheckError("Completion check timeout") from e
        except httpx.RequestError as e:
            logger.error("completion_check_request_error", error=str(e))
            raise CompletionCheckError(f"Completion check request error: {e}") from e
        except ValueError as e:
            raise CompletionCheckError("Completion check returned invalid JSON") from e

        if not isinstance(data, dict):
            raise CompletionCheckError("Completion check returned invalid body")

        return CompletionCheckResult.model_validate(data)
