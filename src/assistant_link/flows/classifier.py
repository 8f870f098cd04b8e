"""Authorization code classifier."""

# 인증 코드는 보통 '#' 구분자를 포함한 긴 문자열 (XXX#YYY)
CODE_SEPARATOR = "#"
MIN_CODE_LENGTH = 50


def looks_valid(text: str) -> bool:
    """붙여넣은 값이 완전한 인증 코드처럼 보이는지 판단.

    검증이 아닌 휴리스틱. 놓친 코드는 수동 제출하면 되고,
    잘못 통과한 코드는 서버가 거부해 error 상태가 됩니다.

    Args:
        text: 입력 필드 값

    Returns:
        bool: 자동 제출 대상 여부
    """
    trimmed = text.strip()
    return len(trimmed) > MIN_CODE_LENGTH and CODE_SEPARATOR in trimmed
