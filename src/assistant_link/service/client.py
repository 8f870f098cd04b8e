"""HTTP Integration Client

데스크톱 백엔드의 coding-assistant 연동 API 클라이언트.
sandbox handshake 시작, 상태 폴링, 코드 제출, 연결 해제, 상태 조회.
"""

import logging
from typing import Any

import httpx

from assistant_link.config import LinkConfig
from assistant_link.exceptions import InvalidInput, RequestFailure
from assistant_link.service.base import (
    AuthStatus,
    HandshakeSession,
    IntegrationService,
    IntegrationStatus,
)

logger = logging.getLogger(__name__)


class IntegrationClient(IntegrationService):
    """IntegrationService의 HTTP 구현.

    Example:
        client = IntegrationClient(LinkConfig.from_env())
        session = await client.begin_handshake("team-1")
        status = await client.poll_status(
            "team-1", session.sandbox_url, session.session_id
        )
    """

    START_AUTH_PATH = "/api/claude-code/start-auth"
    AUTH_STATUS_PATH = "/api/claude-code/auth-status"
    SUBMIT_CODE_PATH = "/api/claude-code/submit-code"
    DISCONNECT_PATH = "/api/claude-code/disconnect"
    INTEGRATION_PATH = "/api/claude-code/integration"

    def __init__(self, config: LinkConfig | None = None):
        """초기화.

        Args:
            config: 연동 설정 (None이면 환경 변수에서 생성)
        """
        self.config = config or LinkConfig.from_env()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.auth_token:
            headers["Authorization"] = f"Bearer {self.config.auth_token}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.config.api_url}{path}"

    @staticmethod
    def _error_message(response: httpx.Response, fallback: str) -> str:
        """에러 응답 본문에서 사람이 읽을 수 있는 메시지 추출."""
        try:
            data = response.json()
        except ValueError:
            return response.text.strip() or fallback

        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return error["message"]
            if isinstance(error, str) and error:
                return error
            if data.get("message"):
                return data["message"]
        return fallback

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        context_id: str,
        fallback: str,
        **kwargs: Any,
    ) -> Any:
        """요청 실행 및 실패를 RequestFailure로 변환.

        Returns:
            Any: JSON 응답 (본문이 없으면 None)

        Raises:
            InvalidInput: context id 누락
            RequestFailure: 전송 오류, 2xx 이외 응답, 잘못된 본문
        """
        if not context_id:
            raise InvalidInput("context id is required", field="context_id")

        try:
            async with httpx.AsyncClient(timeout=self.config.request_timeout) as client:
                if method == "GET":
                    response = await client.get(
                        self._url(path), headers=self._headers(), **kwargs
                    )
                else:
                    response = await client.post(
                        self._url(path), headers=self._headers(), **kwargs
                    )
        except httpx.HTTPError as e:
            logger.warning("%s transport error: %s", operation, e)
            raise RequestFailure(
                fallback, operation=operation, context_id=context_id
            ) from e

        if response.status_code >= 400:
            message = self._error_message(response, fallback)
            logger.warning(
                "%s failed: %d %s", operation, response.status_code, message
            )
            raise RequestFailure(
                message,
                operation=operation,
                status_code=response.status_code,
                context_id=context_id,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RequestFailure(
                f"{fallback}: invalid response",
                operation=operation,
                status_code=response.status_code,
                context_id=context_id,
            ) from e

    async def begin_handshake(self, context_id: str) -> HandshakeSession:
        data = await self._request(
            "begin_handshake",
            "POST",
            self.START_AUTH_PATH,
            context_id,
            "Failed to start authentication",
            json={"teamId": context_id},
        )
        try:
            session = HandshakeSession.from_dict(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise RequestFailure(
                "Failed to start authentication: incomplete sandbox response",
                operation="begin_handshake",
                context_id=context_id,
            ) from e

        logger.info(
            "Handshake started: sandbox=%s session=%s...",
            session.sandbox_id,
            session.session_id[:8],
        )
        return session

    async def poll_status(
        self, context_id: str, sandbox_url: str, session_id: str
    ) -> AuthStatus:
        data = await self._request(
            "poll_status",
            "GET",
            self.AUTH_STATUS_PATH,
            context_id,
            "Failed to poll authentication status",
            params={
                "teamId": context_id,
                "sandboxUrl": sandbox_url,
                "sessionId": session_id,
            },
        )
        try:
            return AuthStatus.from_dict(data or {})
        except (AttributeError, TypeError, ValueError) as e:
            raise RequestFailure(
                "Failed to poll authentication status: malformed response",
                operation="poll_status",
                context_id=context_id,
            ) from e

    async def submit_authorization_code(
        self,
        context_id: str,
        sandbox_id: str,
        sandbox_url: str,
        session_id: str,
        code: str,
    ) -> None:
        await self._request(
            "submit_authorization_code",
            "POST",
            self.SUBMIT_CODE_PATH,
            context_id,
            "Failed to complete authentication",
            json={
                "teamId": context_id,
                "sandboxId": sandbox_id,
                "sandboxUrl": sandbox_url,
                "sessionId": session_id,
                "code": code,
            },
        )

    async def disconnect_integration(self, context_id: str) -> None:
        await self._request(
            "disconnect_integration",
            "POST",
            self.DISCONNECT_PATH,
            context_id,
            "Failed to disconnect",
            json={"teamId": context_id},
        )

    async def get_integration_status(self, context_id: str) -> IntegrationStatus:
        data = await self._request(
            "get_integration_status",
            "GET",
            self.INTEGRATION_PATH,
            context_id,
            "Failed to load integration status",
            params={"teamId": context_id},
        )
        try:
            return IntegrationStatus.from_dict(data or {})
        except (AttributeError, TypeError, ValueError) as e:
            raise RequestFailure(
                "Failed to load integration status: malformed response",
                operation="get_integration_status",
                context_id=context_id,
            ) from e
