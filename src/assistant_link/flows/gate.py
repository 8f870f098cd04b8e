"""One-shot side effect gate."""

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class SideEffectGate:
    """세션당 한 번만 실행되는 side effect 가드.

    "URL 준비"와 "Connect 클릭"이 어떤 순서로 도착해도
    인증 탭이 한 번만 열리도록 보장합니다.

    Example:
        gate = SideEffectGate()
        gate.fire(webbrowser.open_new_tab, url)  # 실행됨
        gate.fire(webbrowser.open_new_tab, url)  # 무시됨
        gate.reset()                             # 새 세션
    """

    def __init__(self) -> None:
        self._fired = False
        self._lock = threading.Lock()

    @property
    def fired(self) -> bool:
        """마지막 reset 이후 실행 여부"""
        return self._fired

    def fire(self, action: Callable[..., Any], *args: Any) -> bool:
        """아직 실행되지 않았다면 action 실행.

        Returns:
            bool: 이번 호출에서 실행했는지 여부
        """
        with self._lock:
            if self._fired:
                logger.debug("Gate already fired, skipping %r", action)
                return False
            self._fired = True

        action(*args)
        return True

    def reset(self) -> None:
        with self._lock:
            self._fired = False
