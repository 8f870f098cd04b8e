"""Authorization Flow Controller

coding-assistant 계정 연동을 위한 out-of-band 인증 플로우 오케스트레이터.

플로우:
1. sandbox 요청 (begin_handshake)
2. sandbox 상태를 폴링하여 인증 URL 획득
3. 사용자가 Connect를 누르면 인증 URL을 새 브라우저 탭으로 한 번만 열기
4. 사용자가 붙여넣은 인증 코드 제출 (형식이 맞으면 자동 제출)
5. 성공 시 idle 복귀 및 연동 상태 재조회, 실패 시 error

모든 상태 변경은 ``transition()``을 통해서만 이루어지며, 컨트롤러는
반환된 effect를 실행하는 역할만 합니다. 모든 public 메서드는 실행 중인
asyncio 이벤트 루프 안에서 호출해야 합니다.
"""

import asyncio
import logging
import webbrowser
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from assistant_link.config import LinkConfig
from assistant_link.flows.classifier import looks_valid
from assistant_link.flows.gate import SideEffectGate
from assistant_link.flows.polling import PollingLoop, log_task_failure
from assistant_link.flows.state import (
    AbortHandshake,
    AutoSubmitDue,
    BeginHandshake,
    CancelAutoSubmit,
    CancelRequested,
    ClearDraft,
    ConnectClicked,
    Effect,
    Error,
    Event,
    FlowState,
    HandshakeFailed,
    HandshakeSucceeded,
    HasUrl,
    Idle,
    Notify,
    OpenUrl,
    PollReceived,
    RefreshStatus,
    ResetGate,
    Snapshot,
    StartPolling,
    StartRequested,
    Starting,
    StopPolling,
    SubmitCode,
    SubmitFailed,
    SubmitRequested,
    SubmitSucceeded,
    Submitting,
    WaitingUrl,
    transition,
)
from assistant_link.notify import ConsoleNotifier, Notifier
from assistant_link.paste import ClipboardItem, PasteData, handle_paste
from assistant_link.service.base import (
    AuthStatus,
    HandshakeSession,
    IntegrationService,
    IntegrationStatus,
)

logger = logging.getLogger(__name__)

DISCONNECTED_MESSAGE = "Coding assistant disconnected"
DISCONNECT_FAILED_MESSAGE = "Failed to disconnect"

Listener = Callable[[Snapshot], None]


@dataclass(frozen=True)
class FlowView:
    """UI가 어떤 패널을 보여줄지 결정하는 요약.

    Attributes:
        mode: 'loading' | 'connected' | 'code_entry' | 'error' | 'connect'
        busy: sandbox 요청/URL 대기 중 (connect 버튼 스피너)
        submitting: 코드 제출 중 (입력 비활성화)
        message: error 모드의 메시지
        oauth_url: 인증 URL (code_entry 모드)
    """

    mode: str
    busy: bool = False
    submitting: bool = False
    message: str | None = None
    oauth_url: str | None = None


class AuthFlowController:
    """연동 인증 플로우 상태 머신.

    (사용자, 연동 대상) 하나당 인스턴스 하나를 사용합니다.

    Example:
        controller = AuthFlowController(IntegrationClient())
        await controller.refresh_status("team-1")
        controller.on_user_connect_click("team-1")
        ...
        controller.on_code_input_changed("team-1", pasted_text)
    """

    def __init__(
        self,
        service: IntegrationService,
        notifier: Notifier | None = None,
        open_url: Callable[[str], Any] | None = None,
        config: LinkConfig | None = None,
    ):
        """초기화.

        Args:
            service: 원격 연동 서비스
            notifier: 사용자 알림 (기본: rich 콘솔)
            open_url: 새 브라우징 컨텍스트로 URL 열기 (기본: 새 브라우저 탭)
            config: 타이밍 설정
        """
        self.service = service
        self.notifier = notifier or ConsoleNotifier()
        self.open_url = open_url or webbrowser.open_new_tab
        self.config = config or LinkConfig()
        self.gate = SideEffectGate()

        self.code_input = ""
        self.integration: IntegrationStatus | None = None
        self.status_loading = False
        self.disconnecting = False

        self._snapshot = Snapshot()
        self._poller: PollingLoop | None = None
        self._handshake_task: asyncio.Task | None = None
        self._auto_submit_tasks: set[asyncio.Task] = set()
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def state(self) -> FlowState:
        return self._snapshot.state

    @property
    def connect_intent(self) -> bool:
        return self._snapshot.connect_intent

    @property
    def url_opened(self) -> bool:
        """현재 세션에서 인증 URL을 이미 열었는지"""
        return self.gate.fired

    @property
    def poller(self) -> PollingLoop | None:
        return self._poller

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """스냅샷 변경 리스너 등록.

        Returns:
            Callable[[], None]: 등록 해제 함수
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def view(self) -> FlowView:
        state = self.state
        if self.integration is None and self.status_loading:
            return FlowView(mode="loading")
        if isinstance(state, Idle) and self.integration and self.integration.is_connected:
            return FlowView(mode="connected")
        if isinstance(state, HasUrl):
            return FlowView(mode="code_entry", oauth_url=state.oauth_url)
        if isinstance(state, Submitting):
            return FlowView(mode="code_entry", submitting=True)
        if isinstance(state, Error):
            return FlowView(mode="error", message=state.message)
        return FlowView(mode="connect", busy=isinstance(state, Starting | WaitingUrl))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start(self, context_id: str | None) -> None:
        """새 handshake 시작 (idle 또는 error에서만)."""
        if not context_id:
            logger.debug("start ignored: missing context id")
            return
        self._dispatch(StartRequested(context_id=context_id))

    def on_user_connect_click(self, context_id: str | None) -> None:
        """Connect 클릭.

        idle이면 시작, error면 새 세션으로 재시작,
        has_url이면 인증 URL을 즉시 열기 (세션당 한 번).
        """
        if not context_id:
            logger.debug("connect ignored: missing context id")
            return
        self._dispatch(ConnectClicked(context_id=context_id))

    def on_poll_result(self, session_id: str, status: AuthStatus) -> None:
        self._dispatch(PollReceived(session_id=session_id, status=status))

    def submit_code(self, context_id: str | None, code: str | None = None) -> None:
        """인증 코드 제출 (has_url에서만).

        Args:
            context_id: 연동 대상 컨텍스트
            code: 제출할 코드 (None이면 현재 입력값)
        """
        code = self.code_input if code is None else code
        if not context_id or not code.strip():
            logger.debug("submit ignored: missing context id or empty code")
            return
        self._dispatch(SubmitRequested(context_id=context_id, code=code))

    def on_code_input_changed(self, context_id: str | None, text: str) -> None:
        """코드 입력 변경. 완전한 코드로 보이면 잠시 후 자동 제출."""
        self.code_input = text

        state = self.state
        if not context_id or not isinstance(state, HasUrl) or not looks_valid(text):
            return

        # 예약 시점의 세션을 캡처
        session = state.session
        logger.debug("Auto-submit scheduled for %s...", session.session_id[:8])
        task = self._spawn(
            self._auto_submit(context_id, session, text),
            name=f"auto-submit-{session.session_id[:8]}",
        )
        self._auto_submit_tasks.add(task)

    def on_code_pasted(
        self,
        context_id: str | None,
        paste: PasteData,
        on_attachments: Callable[[list[ClipboardItem]], None] | None = None,
    ) -> None:
        """붙여넣기 이벤트. 이미지는 첨부로, 텍스트는 코드 입력으로."""
        text = handle_paste(paste, on_attachments)
        if text is not None:
            self.on_code_input_changed(context_id, text)

    def on_key_down(self, context_id: str | None, key: str) -> None:
        """코드 입력 필드 키 입력. Enter면 현재 입력 제출."""
        if key == "Enter" and self.code_input.strip():
            self.submit_code(context_id)

    def cancel(self) -> None:
        """진행 중인 플로우 취소 (idle/submitting에서는 무시)."""
        self._dispatch(CancelRequested())

    def disconnect(self, context_id: str | None) -> None:
        """기존 연동 해제. 실패해도 플로우 상태는 바꾸지 않음."""
        if not context_id:
            return
        if not (self.integration and self.integration.is_connected):
            logger.debug("disconnect ignored: integration not connected")
            return
        if self.disconnecting:
            return
        self.disconnecting = True
        self._spawn(self._disconnect(context_id), name="disconnect")

    async def refresh_status(self, context_id: str | None) -> IntegrationStatus | None:
        """연동 상태 조회 (마운트 시, 제출/해제 성공 후).

        Returns:
            IntegrationStatus | None: 최신 상태 (실패 시 이전 값)
        """
        if not context_id:
            return self.integration

        self.status_loading = True
        try:
            status = await self.service.get_integration_status(context_id)
        except Exception as e:
            logger.warning("Integration status query failed: %s", e)
            return self.integration
        finally:
            self.status_loading = False

        self.integration = status
        self._emit()
        return status

    async def wait_for_pending(self) -> None:
        """진행 중인 원격 호출/예약 작업이 모두 끝날 때까지 대기 (폴링 제외)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """UI 컨텍스트 종료 시 모든 작업 정리."""
        self._stop_polling()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._handshake_task = None
        self._auto_submit_tasks.clear()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, event: Event) -> None:
        previous = self._snapshot
        snapshot, effects = transition(previous, event)
        self._snapshot = snapshot

        if snapshot.state is not previous.state:
            logger.debug(
                "Flow %s -> %s (%s)",
                previous.state.step,
                snapshot.state.step,
                type(event).__name__,
            )

        for effect in effects:
            self._run_effect(effect)

        if snapshot != previous:
            self._emit()

    def _emit(self) -> None:
        for listener in list(self._listeners):
            listener(self._snapshot)

    def _run_effect(self, effect: Effect) -> None:
        if isinstance(effect, ResetGate):
            self.gate.reset()
        elif isinstance(effect, BeginHandshake):
            self._handshake_task = self._spawn(
                self._begin_handshake(effect.context_id, effect.attempt),
                name=f"handshake-{effect.attempt}",
            )
        elif isinstance(effect, AbortHandshake):
            if self._handshake_task is not None and not self._handshake_task.done():
                self._handshake_task.cancel()
            self._handshake_task = None
        elif isinstance(effect, StartPolling):
            self._start_polling(effect.context_id, effect.session)
        elif isinstance(effect, StopPolling):
            self._stop_polling()
        elif isinstance(effect, OpenUrl):
            self.gate.fire(self._open_url, effect.url)
        elif isinstance(effect, SubmitCode):
            self._spawn(
                self._submit(effect.context_id, effect.session, effect.code),
                name=f"submit-{effect.session.session_id[:8]}",
            )
        elif isinstance(effect, CancelAutoSubmit):
            self._cancel_auto_submits()
        elif isinstance(effect, ClearDraft):
            self.code_input = ""
        elif isinstance(effect, Notify):
            if effect.level == "success":
                self.notifier.success(effect.message)
            else:
                self.notifier.error(effect.message)
        elif isinstance(effect, RefreshStatus):
            self._spawn(self.refresh_status(effect.context_id), name="refresh-status")
        else:
            raise TypeError(f"Unknown flow effect: {effect!r}")

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(log_task_failure)
        return task

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    def _open_url(self, url: str) -> None:
        logger.info("Opening authorization URL")
        try:
            self.open_url(url)
        except Exception as e:
            logger.warning("Failed to open authorization URL: %s", e)

    def _start_polling(self, context_id: str, session: HandshakeSession) -> None:
        self._stop_polling()

        async def query() -> AuthStatus:
            return await self.service.poll_status(
                context_id, session.sandbox_url, session.session_id
            )

        self._poller = PollingLoop(
            session_id=session.session_id,
            query=query,
            on_result=self.on_poll_result,
            interval=self.config.poll_interval,
            failure_warning_threshold=self.config.poll_failure_warning_threshold,
        )
        self._poller.start()

    def _stop_polling(self) -> None:
        if self._poller is not None:
            self._poller.stop()
            self._poller = None

    def _cancel_auto_submits(self) -> None:
        current = asyncio.current_task()
        for task in self._auto_submit_tasks:
            if task is not current:
                task.cancel()
        self._auto_submit_tasks.clear()

    async def _begin_handshake(self, context_id: str, attempt: int) -> None:
        logger.info("Starting handshake for %s (attempt %d)", context_id, attempt)
        try:
            session = await self.service.begin_handshake(context_id)
        except Exception as e:
            logger.warning("Handshake failed: %s", e)
            self._dispatch(HandshakeFailed(attempt=attempt, message=str(e)))
            return
        self._dispatch(HandshakeSucceeded(attempt=attempt, session=session))

    async def _auto_submit(
        self, context_id: str, session: HandshakeSession, code: str
    ) -> None:
        # 입력이 화면에 반영된 뒤 제출
        await asyncio.sleep(self.config.auto_submit_delay)
        self._auto_submit_tasks.discard(asyncio.current_task())
        self._dispatch(AutoSubmitDue(context_id=context_id, session=session, code=code))

    async def _submit(self, context_id: str, session: HandshakeSession, code: str) -> None:
        logger.info("Submitting authorization code for %s...", session.session_id[:8])
        try:
            await self.service.submit_authorization_code(
                context_id,
                session.sandbox_id,
                session.sandbox_url,
                session.session_id,
                code,
            )
        except Exception as e:
            logger.warning("Code submission failed: %s", e)
            self._dispatch(SubmitFailed(session_id=session.session_id, message=str(e)))
            return
        self._dispatch(SubmitSucceeded(session_id=session.session_id))

    async def _disconnect(self, context_id: str) -> None:
        try:
            await self.service.disconnect_integration(context_id)
        except Exception as e:
            logger.warning("Disconnect failed: %s", e)
            self.disconnecting = False
            self.notifier.error(str(e) or DISCONNECT_FAILED_MESSAGE)
            return

        self.disconnecting = False
        self.notifier.success(DISCONNECTED_MESSAGE)
        await self.refresh_status(context_id)
