"""Authorization Flows

sandbox 기반 out-of-band 인증 플로우 구현.
상태 머신(state), 폴링(polling), 1회성 side effect 가드(gate),
코드 판별(classifier), 그리고 이들을 묶는 컨트롤러(controller).
"""

from assistant_link.flows.classifier import looks_valid
from assistant_link.flows.controller import AuthFlowController, FlowView
from assistant_link.flows.gate import SideEffectGate
from assistant_link.flows.polling import PollingLoop
from assistant_link.flows.state import (
    Error,
    FlowState,
    HasUrl,
    Idle,
    Snapshot,
    Starting,
    Submitting,
    WaitingUrl,
    transition,
)

__all__ = [
    # Controller
    "AuthFlowController",
    "FlowView",
    # Components
    "PollingLoop",
    "SideEffectGate",
    "looks_valid",
    # State
    "FlowState",
    "Snapshot",
    "Idle",
    "Starting",
    "WaitingUrl",
    "HasUrl",
    "Submitting",
    "Error",
    "transition",
]
