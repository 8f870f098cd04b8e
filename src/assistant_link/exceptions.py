"""Integration exceptions.

연동(Integration) 플로우 관련 예외 클래스 정의.
원격 요청 실패와 잘못된 입력을 구분하는 계층 구조 제공.
"""


class IntegrationError(Exception):
    """기본 연동 예외.

    모든 연동 관련 예외의 베이스 클래스.

    Attributes:
        context_id: 연동 대상 컨텍스트 (예: team id)
    """

    def __init__(self, message: str, context_id: str | None = None):
        self.context_id = context_id
        super().__init__(message)


class RequestFailure(IntegrationError):
    """원격 요청 실패.

    handshake 시작, 코드 제출, 연결 해제, 상태 조회 호출이
    네트워크 오류 또는 서버 거부로 실패했음을 나타냄.

    Attributes:
        operation: 실패한 원격 작업 이름 (예: 'begin_handshake')
        status_code: HTTP 상태 코드 (전송 오류면 None)
        context_id: 연동 대상 컨텍스트
    """

    def __init__(
        self,
        message: str,
        operation: str,
        status_code: int | None = None,
        context_id: str | None = None,
    ):
        self.operation = operation
        self.status_code = status_code
        super().__init__(message, context_id)


class InvalidInput(IntegrationError):
    """잘못된 입력.

    빈 인증 코드나 누락된 context id. 컨트롤러는 이 경우를
    알림 없이 무시(no-op)합니다.

    Attributes:
        field: 문제가 된 입력 이름
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)
