"""User notifications.

토스트 알림 경계. 기본 구현은 rich 콘솔에 출력합니다.
"""

from abc import ABC, abstractmethod

from rich.console import Console


class Notifier(ABC):
    """사용자 알림 인터페이스"""

    @abstractmethod
    def success(self, message: str) -> None:
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        pass


class ConsoleNotifier(Notifier):
    """rich 콘솔 알림.

    Example:
        notifier = ConsoleNotifier()
        notifier.success("Coding assistant connected successfully!")
    """

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def success(self, message: str) -> None:
        self.console.print(f"[bold green][OK] {message}[/bold green]")

    def error(self, message: str) -> None:
        self.console.print(f"[bold red][ERROR] {message}[/bold red]")
