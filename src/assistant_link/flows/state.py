"""Authorization flow state machine.

플로우 상태(tagged variant)와 이벤트, 그리고 순수 전이 함수
``transition(snapshot, event) -> (snapshot, effects)`` 정의.

전이 함수는 새 상태와 실행할 side effect 목록을 함께 결정합니다.
URL 준비와 브라우저 열기 여부가 한 번의 전이에서 결정되므로
두 이벤트의 도착 순서와 무관하게 일관된 결과를 냅니다.

상태 그래프:
    idle → starting → waiting_url → has_url → submitting → idle
    cancel: starting | waiting_url | has_url | error → idle
    원격 실패: starting | submitting → error
    connect 클릭: error → starting (새 attempt, 이전 세션 폐기)
"""

from dataclasses import dataclass, field, replace

from assistant_link.service.base import AuthStatus, HandshakeSession

# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Idle:
    step: str = field(default="idle", init=False)


@dataclass(frozen=True)
class Starting:
    """Sandbox 요청 진행 중. attempt로 응답을 요청과 대응시킴."""

    attempt: int
    context_id: str
    step: str = field(default="starting", init=False)


@dataclass(frozen=True)
class WaitingUrl:
    session: HandshakeSession
    step: str = field(default="waiting_url", init=False)


@dataclass(frozen=True)
class HasUrl:
    session: HandshakeSession
    oauth_url: str
    step: str = field(default="has_url", init=False)


@dataclass(frozen=True)
class Submitting:
    """코드 제출 중. 제출 시점의 세션과 context를 보관."""

    session: HandshakeSession
    context_id: str
    step: str = field(default="submitting", init=False)


@dataclass(frozen=True)
class Error:
    message: str
    step: str = field(default="error", init=False)


FlowState = Idle | Starting | WaitingUrl | HasUrl | Submitting | Error

IDLE = Idle()


@dataclass(frozen=True)
class Snapshot:
    """컨트롤러가 소유하는 전체 플로우 상태.

    Attributes:
        state: 현재 FlowState
        connect_intent: 사용자가 Connect를 눌렀는지 (FlowState와 독립)
        attempt: 마지막으로 발급한 handshake attempt 번호
    """

    state: FlowState = IDLE
    connect_intent: bool = False
    attempt: int = 0


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StartRequested:
    context_id: str


@dataclass(frozen=True)
class ConnectClicked:
    context_id: str


@dataclass(frozen=True)
class HandshakeSucceeded:
    attempt: int
    session: HandshakeSession


@dataclass(frozen=True)
class HandshakeFailed:
    attempt: int
    message: str


@dataclass(frozen=True)
class PollReceived:
    session_id: str
    status: AuthStatus


@dataclass(frozen=True)
class SubmitRequested:
    context_id: str
    code: str


@dataclass(frozen=True)
class AutoSubmitDue:
    """예약된 자동 제출. 예약 시점의 세션을 보관."""

    context_id: str
    session: HandshakeSession
    code: str


@dataclass(frozen=True)
class SubmitSucceeded:
    session_id: str


@dataclass(frozen=True)
class SubmitFailed:
    session_id: str
    message: str


@dataclass(frozen=True)
class CancelRequested:
    pass


Event = (
    StartRequested
    | ConnectClicked
    | HandshakeSucceeded
    | HandshakeFailed
    | PollReceived
    | SubmitRequested
    | AutoSubmitDue
    | SubmitSucceeded
    | SubmitFailed
    | CancelRequested
)

# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResetGate:
    pass


@dataclass(frozen=True)
class BeginHandshake:
    context_id: str
    attempt: int


@dataclass(frozen=True)
class AbortHandshake:
    pass


@dataclass(frozen=True)
class StartPolling:
    context_id: str
    session: HandshakeSession


@dataclass(frozen=True)
class StopPolling:
    pass


@dataclass(frozen=True)
class OpenUrl:
    url: str


@dataclass(frozen=True)
class SubmitCode:
    context_id: str
    session: HandshakeSession
    code: str


@dataclass(frozen=True)
class CancelAutoSubmit:
    pass


@dataclass(frozen=True)
class ClearDraft:
    pass


@dataclass(frozen=True)
class Notify:
    level: str  # "success" | "error"
    message: str


@dataclass(frozen=True)
class RefreshStatus:
    context_id: str


Effect = (
    ResetGate
    | BeginHandshake
    | AbortHandshake
    | StartPolling
    | StopPolling
    | OpenUrl
    | SubmitCode
    | CancelAutoSubmit
    | ClearDraft
    | Notify
    | RefreshStatus
)

HANDSHAKE_FAILED_MESSAGE = "Failed to start authentication"
SUBMIT_FAILED_MESSAGE = "Failed to complete authentication"
CONNECTED_MESSAGE = "Coding assistant connected successfully!"

def _begin(snapshot: Snapshot, context_id: str, connect_intent: bool):
    attempt = snapshot.attempt + 1
    new = Snapshot(
        state=Starting(attempt=attempt, context_id=context_id),
        connect_intent=connect_intent,
        attempt=attempt,
    )
    return new, [ResetGate(), BeginHandshake(context_id=context_id, attempt=attempt)]


def _submit(snapshot: Snapshot, context_id: str, session: HandshakeSession, code: str):
    new = replace(snapshot, state=Submitting(session=session, context_id=context_id))
    return new, [
        CancelAutoSubmit(),
        SubmitCode(context_id=context_id, session=session, code=code),
    ]


def transition(snapshot: Snapshot, event: Event) -> tuple[Snapshot, list[Effect]]:
    """이벤트를 적용한 새 스냅샷과 실행할 effect 목록 반환.

    부수 효과 없는 순수 함수. 무시되는 이벤트는 입력 스냅샷을
    그대로, 빈 effect 목록과 함께 반환합니다.

    Args:
        snapshot: 현재 스냅샷
        event: 도착한 이벤트

    Returns:
        tuple[Snapshot, list[Effect]]: (새 스냅샷, effect 목록)
    """
    state = snapshot.state

    if isinstance(event, StartRequested):
        if not event.context_id or not isinstance(state, Idle | Error):
            return snapshot, []
        # 이전 세션의 Connect 의도는 새 세션으로 넘기지 않음
        return _begin(snapshot, event.context_id, connect_intent=False)

    if isinstance(event, ConnectClicked):
        if not event.context_id:
            return snapshot, []
        if isinstance(state, Idle):
            return _begin(snapshot, event.context_id, connect_intent=True)
        if isinstance(state, Error):
            # 재시도: 새 세션으로 시작하고 URL 자동 열기는 하지 않음
            return _begin(snapshot, event.context_id, connect_intent=False)
        if isinstance(state, HasUrl):
            return replace(snapshot, connect_intent=True), [OpenUrl(state.oauth_url)]
        if isinstance(state, Starting | WaitingUrl):
            if snapshot.connect_intent:
                return snapshot, []
            return replace(snapshot, connect_intent=True), []
        return snapshot, []

    if isinstance(event, HandshakeSucceeded):
        if not isinstance(state, Starting) or state.attempt != event.attempt:
            return snapshot, []
        new = replace(snapshot, state=WaitingUrl(session=event.session))
        return new, [
            StopPolling(),
            StartPolling(context_id=state.context_id, session=event.session),
        ]

    if isinstance(event, HandshakeFailed):
        if not isinstance(state, Starting) or state.attempt != event.attempt:
            return snapshot, []
        message = event.message or HANDSHAKE_FAILED_MESSAGE
        new = Snapshot(state=Error(message=message), attempt=snapshot.attempt)
        return new, [
            Notify("error", message)
        ]

    if isinstance(event, PollReceived):
        if not isinstance(state, WaitingUrl):
            return snapshot, []
        if state.session.session_id != event.session_id:
            return snapshot, []
        if not event.status.has_url:
            return snapshot, []
        new = replace(
            snapshot,
            state=HasUrl(session=state.session, oauth_url=event.status.oauth_url),
        )
        effects: list[Effect] = [StopPolling()]
        if snapshot.connect_intent:
            effects.append(OpenUrl(event.status.oauth_url))
        return new, effects

    if isinstance(event, SubmitRequested):
        code = event.code.strip()
        if not code or not event.context_id or not isinstance(state, HasUrl):
            return snapshot, []
        return _submit(snapshot, event.context_id, state.session, code)

    if isinstance(event, AutoSubmitDue):
        code = event.code.strip()
        if not code or not isinstance(state, HasUrl):
            return snapshot, []
        if state.session != event.session:
            return snapshot, []
        return _submit(snapshot, event.context_id, event.session, code)

    if isinstance(event, SubmitSucceeded):
        if not isinstance(state, Submitting):
            return snapshot, []
        if state.session.session_id != event.session_id:
            return snapshot, []
        new = Snapshot(state=IDLE, connect_intent=False, attempt=snapshot.attempt)
        return new, [
            ResetGate(),
            ClearDraft(),
            Notify("success", CONNECTED_MESSAGE),
            RefreshStatus(state.context_id),
        ]

    if isinstance(event, SubmitFailed):
        if not isinstance(state, Submitting):
            return snapshot, []
        if state.session.session_id != event.session_id:
            return snapshot, []
        message = event.message or SUBMIT_FAILED_MESSAGE
        new = Snapshot(state=Error(message=message), attempt=snapshot.attempt)
        return new, [
            ClearDraft(),
            Notify("error", message),
        ]

    if isinstance(event, CancelRequested):
        if isinstance(state, Idle | Submitting):
            return snapshot, []
        new = Snapshot(state=IDLE, connect_intent=False, attempt=snapshot.attempt)
        return new, [
            StopPolling(),
            AbortHandshake(),
            CancelAutoSubmit(),
            ResetGate(),
            ClearDraft(),
        ]

    raise TypeError(f"Unknown flow event: {event!r}")
