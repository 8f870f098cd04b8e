"""Integration Service 추상 클래스

원격 연동 서비스가 구현해야 하는 인터페이스와 응답 모델 정의.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

# 폴링 상태 값 - 인증 URL이 준비되어 코드 입력을 기다리는 중
STATE_WAITING_CODE = "waiting_code"


@dataclass(frozen=True)
class HandshakeSession:
    """Handshake 세션 식별자.

    handshake 시작 시 한 번 할당되며 이후 변경되지 않음.
    """

    sandbox_id: str
    sandbox_url: str
    session_id: str

    @classmethod
    def from_dict(cls, data: dict) -> "HandshakeSession":
        """응답 딕셔너리에서 생성"""
        return cls(
            sandbox_id=data["sandboxId"],
            sandbox_url=data["sandboxUrl"],
            session_id=data["sessionId"],
        )


@dataclass(frozen=True)
class AuthStatus:
    """폴링 응답"""

    state: str
    oauth_url: str | None = None

    @property
    def has_url(self) -> bool:
        """인증 URL 준비 여부"""
        return self.state == STATE_WAITING_CODE and bool(self.oauth_url)

    @classmethod
    def from_dict(cls, data: dict) -> "AuthStatus":
        return cls(
            state=data.get("state", "idle"),
            oauth_url=data.get("oauthUrl"),
        )


@dataclass(frozen=True)
class IntegrationStatus:
    """연동 상태 (조회 전용)"""

    is_connected: bool
    connected_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "IntegrationStatus":
        connected_at = None
        if data.get("connectedAt"):
            connected_at = datetime.fromisoformat(
                data["connectedAt"].replace("Z", "+00:00")
            )
        return cls(
            is_connected=bool(data.get("isConnected", False)),
            connected_at=connected_at,
        )


class IntegrationService(ABC):
    """원격 연동 서비스 추상 베이스 클래스

    모든 실패는 RequestFailure로 전달해야 함.
    """

    @abstractmethod
    async def begin_handshake(self, context_id: str) -> HandshakeSession:
        """Sandbox 요청 및 handshake 시작

        Args:
            context_id: 연동 대상 컨텍스트 (team id)

        Returns:
            HandshakeSession: sandbox/session 식별자
        """
        pass

    @abstractmethod
    async def poll_status(
        self, context_id: str, sandbox_url: str, session_id: str
    ) -> AuthStatus:
        """인증 URL 준비 상태 조회"""
        pass

    @abstractmethod
    async def submit_authorization_code(
        self,
        context_id: str,
        sandbox_id: str,
        sandbox_url: str,
        session_id: str,
        code: str,
    ) -> None:
        """인증 코드 제출"""
        pass

    @abstractmethod
    async def disconnect_integration(self, context_id: str) -> None:
        """연동 해제"""
        pass

    @abstractmethod
    async def get_integration_status(self, context_id: str) -> IntegrationStatus:
        """연동 상태 조회"""
        pass
