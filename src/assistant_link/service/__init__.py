"""Integration Service

원격 연동 서비스 인터페이스와 HTTP 클라이언트.
"""

from assistant_link.service.base import (
    STATE_WAITING_CODE,
    AuthStatus,
    HandshakeSession,
    IntegrationService,
    IntegrationStatus,
)
from assistant_link.service.client import IntegrationClient

__all__ = [
    "AuthStatus",
    "HandshakeSession",
    "IntegrationClient",
    "IntegrationService",
    "IntegrationStatus",
    "STATE_WAITING_CODE",
]
