import asyncio
from typing import Any, List, Optional

import google.auth.transport.requests
import httpx
from google.oauth2 import service_account

from app.logging_config import get_logger
from app.services.nlu.base import NLUError, NLUProvider, NLUResult

logger = get_logger("nlu.dialogflow")

DIALOGFLOW_SCOPES = ["https://www.googleapis.com/auth/cloud-platform", "https://www.googleapis.com/auth/dialogflow"]
CONTEXT_LIFESPAN = 5


def _context_short_name(name: str) -> str:
    return name.rsplit("/", 1)[-1]


class DialogflowProvider(NLUProvider):
    """Dialogflow ES v2 detectIntent over REST."""

    BASE_URL = "https://dialogflow.googleapis.com/v2"

    def __init__(
        self,
        project_id: str,
        credentials: Optional[service_account.Credentials] = None,
        credentials_file: Optional[str] = None,
        timeout_seconds: float = 15.0,
    ):
        self.project_id = project_id
        self.timeout_seconds = timeout_seconds
        if credentials is None and credentials_file:
            credentials = service_account.Credentials.from_service_account_file(
                credentials_file, scopes=DIALOGFLOW_SCOPES
            )
        self.credentials = credentials

    def _session_path(self, session_id: str) -> str:
        return f"projects/{self.project_id}/agent/sessions/{session_id}"

    async def _access_token(self) -> str:
        if self.credentials is None:
            raise NLUError("Dialogflow credentials are not configured")
        if not self.credentials.valid:
            try:
                # google-auth refresh is blocking
                await asyncio.to_thread(self.credentials.refresh, google.auth.transport.requests.Request())
            except Exception as e:
                raise NLUError(f"Dialogflow token refresh failed: {e}") from e
        return self.credentials.token

    def build_request(self, session_id: str, text: str, language_code: str, contexts: List[str]) -> dict:
        session_path = self._session_path(session_id)
        body: dict[str, Any] = {
            "queryInput": {"text": {"text": text, "languageCode": language_code}},
        }
        active = [ctx for ctx in contexts if ctx]
        if active:
            body["queryParams"] = {
                "contexts": [
                    {"name": f"{session_path}/contexts/{ctx}", "lifespanCount": CONTEXT_LIFESPAN} for ctx in active
                ]
            }
        return body

    async def detect_intent(
        self,
        session_id: str,
        text: str,
        language_code: str,
        contexts: Optional[List[str]] = None,
    ) -> NLUResult:
        token = await self._access_token()
        url = f"{self.BASE_URL}/{self._session_path(session_id)}:detectIntent"
        body = self.build_request(session_id, text, language_code, contexts or [])

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(url, headers={"Authorization": f"Bearer {token}"}, json=body)
        except httpx.HTTPError as e:
            raise NLUError(f"Dialogflow request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Dialogflow error: status={response.status_code}, body={response.text[:300]}")
            raise NLUError(f"Dialogflow API error: {response.status_code}")

        return self.parse_response(response.json())

    @staticmethod
    def parse_response(data: dict) -> NLUResult:
        query_result = data.get("queryResult") or {}
        intent = query_result.get("intent") or {}
        contexts = [_context_short_name(ctx.get("name", "")) for ctx in query_result.get("outputContexts") or []]
        result = NLUResult(
            intent_name=intent.get("displayName"),
            parameters=query_result.get("parameters") or {},
            output_contexts=[ctx for ctx in contexts if ctx],
            language_code=query_result.get("languageCode"),
        )
        logger.debug(f"Dialogflow intent={result.intent_name}, contexts={result.output_contexts}")
        return result
