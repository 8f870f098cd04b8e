"""Session-bound status polling loop.

인증 URL이 준비될 때까지 고정 간격으로 상태를 조회합니다.
한 세션에만 묶이며, 실패한 조회는 "이번 주기 결과 없음"으로 처리하고
다음 주기에 다시 시도합니다.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from assistant_link.service.base import AuthStatus

logger = logging.getLogger(__name__)


def log_task_failure(task: asyncio.Task) -> None:
    """완료된 백그라운드 태스크의 예외를 로그로 남김 (취소는 무시)."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(
            "Background task %s failed: %s",
            task.get_name(),
            error,
            exc_info=error,
        )


class PollingLoop:
    """고정 간격 상태 폴링.

    Example:
        loop = PollingLoop(
            session_id="s1",
            query=lambda: service.poll_status("team-1", "u1", "s1"),
            on_result=controller.on_poll_result,
            interval=1.5,
        )
        loop.start()
        ...
        loop.stop()
    """

    def __init__(
        self,
        session_id: str,
        query: Callable[[], Awaitable[AuthStatus]],
        on_result: Callable[[str, AuthStatus], None],
        interval: float = 1.5,
        failure_warning_threshold: int = 5,
    ):
        """초기화.

        Args:
            session_id: 이 루프가 묶인 세션 (변경 불가)
            query: 상태 조회 코루틴 함수
            on_result: (session_id, status) 결과 콜백
            interval: 조회 간격 (초)
            failure_warning_threshold: 연속 실패 경고 기준
        """
        self.session_id = session_id
        self.interval = interval
        self.failure_warning_threshold = failure_warning_threshold
        self._query = query
        self._on_result = on_result
        self._task: asyncio.Task | None = None
        self._stopped = False
        self.consecutive_failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._stopped

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self) -> None:
        """현재 이벤트 루프에서 폴링 태스크 시작."""
        if self._task is not None or self._stopped:
            return
        self._task = asyncio.create_task(
            self._run(), name=f"poll-{self.session_id[:8]}"
        )
        self._task.add_done_callback(log_task_failure)

    def stop(self) -> None:
        """폴링 중지 (중복 호출은 무시)."""
        if self._stopped:
            return
        self._stopped = True
        # 콜백 안에서 stop()이 호출되면 루프가 스스로 빠져나감
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        logger.debug("Polling stopped: %s...", self.session_id[:8])

    async def _run(self) -> None:
        logger.debug(
            "Polling started: %s... (interval: %.1fs)",
            self.session_id[:8],
            self.interval,
        )
        while not self._stopped:
            try:
                result = await self._query()
            except Exception as e:
                self._record_failure(e)
            else:
                self.consecutive_failures = 0
                # stop()과 진행 중인 응답이 경합할 수 있음
                if self._stopped:
                    break
                self._on_result(self.session_id, result)

            if self._stopped:
                break
            await asyncio.sleep(self.interval)

    def _record_failure(self, error: Exception) -> None:
        self.consecutive_failures += 1
        if self.consecutive_failures == self.failure_warning_threshold:
            logger.warning(
                "Status poll failed %d times in a row for %s...: %s",
                self.consecutive_failures,
                self.session_id[:8],
                error,
            )
        else:
            logger.debug("Status poll failed: %s", error)
