"""Paste event routing.

붙여넣기 데이터에서 이미지는 첨부 핸들러로 보내고,
그 외에는 plain text만 사용합니다 (HTML 붙여넣기 방지).
"""

from collections.abc import Callable
from dataclasses import dataclass, field

TEXT_MIME_TYPE = "text/plain"


@dataclass(frozen=True)
class ClipboardItem:
    """클립보드 항목.

    Attributes:
        mime_type: MIME 타입 (예: 'image/png', 'text/plain')
        data: 원본 데이터
        name: 파일 이름 (파일 항목인 경우)
    """

    mime_type: str
    data: bytes | str
    name: str | None = None

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")


@dataclass(frozen=True)
class PasteData:
    """붙여넣기 이벤트 데이터"""

    items: list[ClipboardItem] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str) -> "PasteData":
        return cls(items=[ClipboardItem(mime_type=TEXT_MIME_TYPE, data=text)])

    def get_text(self) -> str:
        """첫 번째 plain text 항목 (없으면 빈 문자열)"""
        for item in self.items:
            if item.mime_type == TEXT_MIME_TYPE:
                data = item.data
                return data.decode("utf-8") if isinstance(data, bytes) else data
        return ""


def handle_paste(
    paste: PasteData,
    on_attachments: Callable[[list[ClipboardItem]], None] | None = None,
) -> str | None:
    """붙여넣기 이벤트 처리.

    Args:
        paste: 붙여넣기 데이터
        on_attachments: 이미지 첨부 핸들러

    Returns:
        str | None: 입력에 반영할 plain text. 이미지가 처리되었거나
        텍스트가 없으면 None
    """
    images = [item for item in paste.items if item.is_image]
    if images:
        if on_attachments is not None:
            on_attachments(images)
        return None

    text = paste.get_text()
    return text or None
