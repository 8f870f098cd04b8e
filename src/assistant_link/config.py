"""Link configuration.

API 주소와 플로우 타이밍 설정.
패키징된 빌드에서는 항상 운영 URL을 사용해 개발용 주소가 릴리스에 섞이지 않도록 합니다.
"""

import os
import sys
from dataclasses import dataclass

DEFAULT_API_URL = "https://21st.dev"

ENV_API_URL = "ASSISTANT_LINK_API_URL"
ENV_DEV_SERVER_URL = "ASSISTANT_LINK_DEV_SERVER_URL"
ENV_TOKEN = "ASSISTANT_LINK_TOKEN"


def is_packaged() -> bool:
    """PyInstaller 등으로 패키징된 실행 파일인지 여부"""
    return bool(getattr(sys, "frozen", False))


def is_dev() -> bool:
    """개발 모드 여부 (dev 서버 URL이 설정된 경우)"""
    return bool(os.getenv(ENV_DEV_SERVER_URL))


def get_api_url() -> str:
    """API base URL.

    패키징된 앱은 항상 운영 URL, 개발 중에는 환경 변수로 덮어쓰기 허용.

    Returns:
        str: API base URL (끝의 '/' 제거)
    """
    if is_packaged():
        return DEFAULT_API_URL
    return (os.getenv(ENV_API_URL) or DEFAULT_API_URL).rstrip("/")


@dataclass
class LinkConfig:
    """연동 플로우 설정.

    Attributes:
        api_url: 원격 연동 서비스 base URL
        auth_token: 데스크톱 세션 토큰 (Bearer 헤더로 전송)
        poll_interval: 인증 URL 폴링 간격 (초)
        auto_submit_delay: 붙여넣은 코드 자동 제출 전 대기 (초)
        request_timeout: 요청별 HTTP 타임아웃 (초)
        poll_failure_warning_threshold: 연속 폴링 실패 경고 기준 횟수
    """

    api_url: str = DEFAULT_API_URL
    auth_token: str | None = None
    poll_interval: float = 1.5
    auto_submit_delay: float = 0.1
    request_timeout: float = 30.0
    poll_failure_warning_threshold: int = 5

    @classmethod
    def from_env(cls) -> "LinkConfig":
        """환경 변수에서 설정 생성"""
        return cls(
            api_url=get_api_url(),
            auth_token=os.getenv(ENV_TOKEN) or None,
        )
