"""Terminal front end

AuthFlowController를 터미널에서 구동하는 UI 계층.
인증 URL 안내, 코드 입력 프롬프트, 연동 상태 출력.
"""

import asyncio
import logging
from collections.abc import Callable

from rich.console import Console
from rich.panel import Panel

from assistant_link.exceptions import InvalidInput
from assistant_link.flows.controller import AuthFlowController
from assistant_link.flows.state import Error, HasUrl, Idle, Snapshot

logger = logging.getLogger(__name__)


class TerminalLink:
    """터미널 연동 세션.

    Example:
        controller = AuthFlowController(IntegrationClient())
        link = TerminalLink(controller, "team-1")
        await link.connect()
    """

    def __init__(
        self,
        controller: AuthFlowController,
        context_id: str,
        console: Console | None = None,
    ):
        if not context_id or not context_id.strip():
            raise InvalidInput("context id is required", field="context_id")
        self.controller = controller
        self.context_id = context_id.strip()
        self.console = console or Console()

    async def _wait_for(self, predicate: Callable[[Snapshot], bool]) -> Snapshot:
        """스냅샷이 조건을 만족할 때까지 대기"""
        reached = asyncio.Event()

        def on_change(snapshot: Snapshot) -> None:
            if predicate(snapshot):
                reached.set()

        unsubscribe = self.controller.subscribe(on_change)
        try:
            if not predicate(self.controller.snapshot):
                await reached.wait()
        finally:
            unsubscribe()
        return self.controller.snapshot

    async def _prompt(self, prompt: str) -> str:
        return await asyncio.to_thread(self.console.input, prompt)

    def print_status(self) -> None:
        status = self.controller.integration
        if status is None:
            self.console.print("[yellow]Integration status unavailable[/yellow]")
        elif status.is_connected:
            since = (
                f" since {status.connected_at:%Y-%m-%d %H:%M}"
                if status.connected_at
                else ""
            )
            self.console.print(f"[bold green]Connected{since}[/bold green]")
        else:
            self.console.print("[dim]Not connected[/dim]")

    async def status(self) -> bool:
        """연동 상태 조회 및 출력.

        Returns:
            bool: 연결 여부
        """
        status = await self.controller.refresh_status(self.context_id)
        self.print_status()
        return bool(status and status.is_connected)

    async def connect(self) -> bool:
        """전체 연동 플로우 실행.

        1. 상태 조회 (이미 연결되어 있으면 종료)
        2. Connect → sandbox 준비 대기
        3. 인증 URL 안내 (브라우저 자동 열기)
        4. 코드 입력 → 제출

        Returns:
            bool: 연동 성공 여부
        """
        if await self.status():
            return True

        self.controller.on_user_connect_click(self.context_id)
        self.console.print("[dim]Preparing authentication sandbox...[/dim]")

        snapshot = await self._wait_for(
            lambda s: isinstance(s.state, HasUrl | Error)
        )
        if isinstance(snapshot.state, Error):
            return False

        url = snapshot.state.oauth_url
        self.console.print()
        self.console.print(
            Panel.fit(
                "[bold cyan]A browser tab was opened for sign-in.[/bold cyan]\n\n"
                "If it did not open, visit this URL:\n"
                f"[link={url}]{url}[/link]\n\n"
                "After signing in, paste the authentication code below.",
                title="[AUTH] Connect coding assistant",
                border_style="cyan",
            )
        )
        self.console.print()

        while isinstance(self.controller.state, HasUrl):
            try:
                code = await self._prompt("> ")
            except (EOFError, KeyboardInterrupt):
                self.controller.cancel()
                self.console.print("[yellow]Cancelled[/yellow]")
                return False

            self.controller.on_code_input_changed(self.context_id, code)
            self.controller.on_key_down(self.context_id, "Enter")

        snapshot = await self._wait_for(lambda s: isinstance(s.state, Idle | Error))
        await self.controller.wait_for_pending()
        if isinstance(snapshot.state, Error):
            return False

        self.print_status()
        return True

    async def disconnect(self) -> bool:
        """연동 해제.

        Returns:
            bool: 해제 후 연결되지 않은 상태인지
        """
        if not await self.status():
            return True
        self.controller.disconnect(self.context_id)
        await self.controller.wait_for_pending()
        self.print_status()
        status = self.controller.integration
        return not (status and status.is_connected)
