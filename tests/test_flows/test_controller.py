"""AuthFlowController 테스트

연동 인증 플로우의 동시성/순서 관련 성질 검증.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from assistant_link.exceptions import RequestFailure
from assistant_link.flows.state import Error, HasUrl, Idle, Starting, Submitting, WaitingUrl
from assistant_link.paste import ClipboardItem, PasteData
from assistant_link.service.base import AuthStatus, HandshakeSession

CONTEXT_ID = "team-1"
VALID_CODE = "a" * 60 + "#" + "b" * 5


async def reach_has_url(controller, service, wait_until, url="https://auth/x"):
    """start → waiting_url → has_url 까지 진행."""
    controller.start(CONTEXT_ID)
    await controller.wait_for_pending()
    session_id = controller.state.session.session_id
    service.publish_url(session_id, url)
    await wait_until(lambda: isinstance(controller.state, HasUrl))
    return controller.state.session


class TestEndToEnd:
    """정상 연동 시나리오."""

    @pytest.mark.asyncio
    async def test_full_flow(self, controller, service, opener, notifier, wait_until):
        controller.start(CONTEXT_ID)
        assert isinstance(controller.state, Starting)

        await controller.wait_for_pending()
        assert controller.state == WaitingUrl(
            session=HandshakeSession(sandbox_id="sb1", sandbox_url="u1", session_id="s1")
        )
        assert controller.poller is not None and controller.poller.running

        service.publish_url("s1", "https://auth/x")
        await wait_until(lambda: isinstance(controller.state, HasUrl))
        assert controller.state.oauth_url == "https://auth/x"
        assert controller.poller is None
        opener.assert_not_called()

        controller.on_user_connect_click(CONTEXT_ID)
        opener.assert_called_once_with("https://auth/x")

        controller.submit_code(CONTEXT_ID, "AUTHCODE#" + "1234" * 12)
        assert isinstance(controller.state, Submitting)

        await controller.wait_for_pending()
        assert isinstance(controller.state, Idle)
        assert service.submit_calls == [
            (CONTEXT_ID, "sb1", "u1", "s1", "AUTHCODE#" + "1234" * 12)
        ]
        assert service.status_calls == 1
        assert controller.integration.is_connected is True
        assert controller.connect_intent is False
        assert controller.url_opened is False
        assert controller.code_input == ""
        notifier.success.assert_called_once()

        await controller.close()

    @pytest.mark.asyncio
    async def test_poll_uses_session_identifiers(self, controller, service, wait_until):
        controller.start(CONTEXT_ID)
        await controller.wait_for_pending()
        await wait_until(lambda: len(service.poll_calls) >= 2)

        assert set(service.poll_calls) == {"s1"}
        await controller.close()


class TestNoDoubleOpen:
    """Connect 클릭과 URL 준비의 순서와 무관하게 한 번만 열기."""

    @pytest.mark.asyncio
    async def test_click_then_url(self, controller, service, opener, wait_until):
        controller.on_user_connect_click(CONTEXT_ID)
        controller.on_user_connect_click(CONTEXT_ID)
        await controller.wait_for_pending()
        controller.on_user_connect_click(CONTEXT_ID)

        service.publish_url("s1", "https://auth/x")
        await wait_until(lambda: isinstance(controller.state, HasUrl))
        controller.on_user_connect_click(CONTEXT_ID)

        opener.assert_called_once_with("https://auth/x")
        assert len(service.handshake_calls) == 1
        await controller.close()

    @pytest.mark.asyncio
    async def test_url_then_click(self, controller, service, opener, wait_until):
        await reach_has_url(controller, service, wait_until)
        opener.assert_not_called()

        controller.on_user_connect_click(CONTEXT_ID)
        controller.on_user_connect_click(CONTEXT_ID)

        opener.assert_called_once_with("https://auth/x")
        await controller.close()

    @pytest.mark.asyncio
    async def test_reopens_after_cancel_for_new_session(
        self, controller, service, opener, wait_until
    ):
        controller.on_user_connect_click(CONTEXT_ID)
        await controller.wait_for_pending()
        service.publish_url("s1", "https://auth/first")
        await wait_until(lambda: isinstance(controller.state, HasUrl))
        assert opener.call_count == 1

        controller.cancel()
        assert controller.url_opened is False

        controller.on_user_connect_click(CONTEXT_ID)
        await controller.wait_for_pending()
        assert controller.state.session.session_id == "s2"
        service.publish_url("s2", "https://auth/second")
        await wait_until(lambda: isinstance(controller.state, HasUrl))
        controller.on_user_connect_click(CONTEXT_ID)

        assert opener.call_count == 2
        assert opener.call_args.args == ("https://auth/second",)
        await controller.close()

    @pytest.mark.asyncio
    async def test_open_failure_is_logged(self, controller, service, opener, wait_until):
        opener.side_effect = OSError("no browser")
        await reach_has_url(controller, service, wait_until)

        controller.on_user_connect_click(CONTEXT_ID)

        assert isinstance(controller.state, HasUrl)
        assert controller.url_opened is True
        await controller.close()


class TestStalePoll:
    """이전 세션의 폴링 결과는 무시."""

    @pytest.mark.asyncio
    async def test_poll_from_cancelled_session_is_ignored(self, controller, service):
        controller.start(CONTEXT_ID)
        await controller.wait_for_pending()
        first_poller = controller.poller

        controller.cancel()
        assert first_poller.stopped is True
        controller.start(CONTEXT_ID)
        await controller.wait_for_pending()
        assert controller.state.session.session_id == "s2"

        controller.on_poll_result(
            "s1", AuthStatus(state="waiting_code", oauth_url="https://auth/stale")
        )

        assert controller.state == WaitingUrl(
            session=HandshakeSession(sandbox_id="sb2", sandbox_url="u2", session_id="s2")
        )
        await controller.close()

    @pytest.mark.asyncio
    async def test_handshake_from_cancelled_attempt_is_ignored(self, controller, service):
        service.handshake_gate = asyncio.Event()
        controller.start(CONTEXT_ID)
        controller.cancel()
        assert isinstance(controller.state, Idle)

        service.handshake_gate.set()
        await controller.wait_for_pending()

        assert isinstance(controller.state, Idle)
        assert controller.poller is None


class TestAutoSubmit:
    """붙여넣은 코드 자동 제출."""

    @pytest.mark.asyncio
    async def test_valid_looking_code_submits(self, controller, service, wait_until):
        await reach_has_url(controller, service, wait_until)

        controller.on_code_input_changed(CONTEXT_ID, VALID_CODE)
        assert isinstance(controller.state, HasUrl)

        await controller.wait_for_pending()
        assert service.submit_calls == [(CONTEXT_ID, "sb1", "u1", "s1", VALID_CODE)]
        assert isinstance(controller.state, Idle)
        await controller.close()

    @pytest.mark.asyncio
    async def test_short_code_does_not_submit(self, controller, service, wait_until):
        await reach_has_url(controller, service, wait_until)

        controller.on_code_input_changed(CONTEXT_ID, "short#code")
        await controller.wait_for_pending()

        assert service.submit_calls == []
        assert isinstance(controller.state, HasUrl)
        assert controller.code_input == "short#code"
        await controller.close()

    @pytest.mark.asyncio
    async def test_not_scheduled_outside_has_url(self, controller, service):
        controller.start(CONTEXT_ID)
        await controller.wait_for_pending()

        controller.on_code_input_changed(CONTEXT_ID, VALID_CODE)
        await controller.wait_for_pending()

        assert service.submit_calls == []
        await controller.close()

    @pytest.mark.asyncio
    async def test_repeated_edits_submit_once(self, controller, service, wait_until):
        await reach_has_url(controller, service, wait_until)

        controller.on_code_input_changed(CONTEXT_ID, VALID_CODE)
        controller.on_code_input_changed(CONTEXT_ID, VALID_CODE + "c")
        await controller.wait_for_pending()

        assert len(service.submit_calls) == 1
        await controller.close()

    @pytest.mark.asyncio
    async def test_cancel_discards_pending_auto_submit(self, controller, service, wait_until):
        await reach_has_url(controller, service, wait_until)

        controller.on_code_input_changed(CONTEXT_ID, VALID_CODE)
        controller.cancel()
        await controller.wait_for_pending()

        assert service.submit_calls == []
        assert isinstance(controller.state, Idle)
        assert controller.code_input == ""

    @pytest.mark.asyncio
    async def test_pasted_text_goes_to_code_input(self, controller, service, wait_until):
        await reach_has_url(controller, service, wait_until)

        controller.on_code_pasted(CONTEXT_ID, PasteData.from_text(VALID_CODE))
        await controller.wait_for_pending()

        assert service.submit_calls[0][-1] == VALID_CODE
        await controller.close()

    @pytest.mark.asyncio
    async def test_pasted_image_goes_to_attachments(self, controller, service, wait_until):
        await reach_has_url(controller, service, wait_until)
        on_attachments = MagicMock()
        image = ClipboardItem(mime_type="image/png", data=b"\x89PNG", name="shot.png")

        controller.on_code_pasted(
            CONTEXT_ID,
            PasteData(items=[image, ClipboardItem("text/plain", VALID_CODE)]),
            on_attachments,
        )
        await controller.wait_for_pending()

        on_attachments.assert_called_once_with([image])
        assert controller.code_input == ""
        assert service.submit_calls == []
        await controller.close()


class TestManualSubmit:
    @pytest.mark.asyncio
    async def test_enter_submits_draft(self, controller, service, wait_until):
        await reach_has_url(controller, service, wait_until)
        controller.on_code_input_changed(CONTEXT_ID, "short#code")

        controller.on_key_down(CONTEXT_ID, "Tab")
        assert isinstance(controller.state, HasUrl)

        controller.on_key_down(CONTEXT_ID, "Enter")
        assert isinstance(controller.state, Submitting)
        await controller.wait_for_pending()

        assert service.submit_calls == [(CONTEXT_ID, "sb1", "u1", "s1", "short#code")]
        await controller.close()

    @pytest.mark.asyncio
    async def test_enter_with_empty_draft_is_noop(self, controller, service, wait_until):
        await reach_has_url(controller, service, wait_until)
        controller.on_code_input_changed(CONTEXT_ID, "   ")

        controller.on_key_down(CONTEXT_ID, "Enter")

        assert isinstance(controller.state, HasUrl)
        await controller.close()

    @pytest.mark.asyncio
    async def test_empty_code_is_noop(self, controller, service, wait_until):
        await reach_has_url(controller, service, wait_until)

        controller.submit_code(CONTEXT_ID, "")
        controller.submit_code(None, "CODE#1")

        assert isinstance(controller.state, HasUrl)
        await controller.close()

    @pytest.mark.asyncio
    async def test_session_identifiers_captured_at_submission(
        self, controller, service, wait_until
    ):
        await reach_has_url(controller, service, wait_until)
        service.submit_gate = asyncio.Event()

        controller.submit_code(CONTEXT_ID, "CODE#1")
        await asyncio.sleep(0)
        controller.cancel()
        controller.start(CONTEXT_ID)
        controller.on_user_connect_click(CONTEXT_ID)
        assert isinstance(controller.state, Submitting)

        service.submit_gate.set()
        await controller.wait_for_pending()

        assert service.submit_calls == [(CONTEXT_ID, "sb1", "u1", "s1", "CODE#1")]
        assert len(service.handshake_calls) == 1
        await controller.close()


class TestErrors:
    @pytest.mark.asyncio
    async def test_handshake_failure(self, controller, service, notifier):
        service.handshake_error = RequestFailure(
            "Sandbox quota exceeded", operation="begin_handshake"
        )

        controller.start(CONTEXT_ID)
        await controller.wait_for_pending()

        assert controller.state == Error("Sandbox quota exceeded")
        notifier.error.assert_called_once_with("Sandbox quota exceeded")
        assert controller.poller is None

    @pytest.mark.asyncio
    async def test_submit_failure_then_restart_uses_new_session(
        self, controller, service, notifier, opener, wait_until
    ):
        await reach_has_url(controller, service, wait_until)
        service.submit_error = RequestFailure(
            "Invalid authorization code", operation="submit_authorization_code"
        )

        controller.submit_code(CONTEXT_ID, "CODE#1")
        await controller.wait_for_pending()
        assert controller.state == Error("Invalid authorization code")
        assert controller.code_input == ""
        notifier.error.assert_called_once_with("Invalid authorization code")

        service.submit_error = None
        controller.on_user_connect_click(CONTEXT_ID)
        assert isinstance(controller.state, Starting)
        assert controller.connect_intent is False

        await controller.wait_for_pending()
        assert len(service.handshake_calls) == 2
        assert controller.state.session == HandshakeSession(
            sandbox_id="sb2", sandbox_url="u2", session_id="s2"
        )
        await controller.close()

    @pytest.mark.asyncio
    async def test_restart_after_failure_does_not_open_new_url(
        self, controller, service, opener, wait_until
    ):
        await reach_has_url(controller, service, wait_until, url="https://auth/one")
        controller.on_user_connect_click(CONTEXT_ID)
        opener.assert_called_once_with("https://auth/one")

        service.submit_error = RequestFailure(
            "Invalid authorization code", operation="submit_authorization_code"
        )
        controller.submit_code(CONTEXT_ID, "CODE#1")
        await controller.wait_for_pending()
        assert isinstance(controller.state, Error)
        assert controller.connect_intent is False

        controller.start(CONTEXT_ID)
        await controller.wait_for_pending()
        service.publish_url(controller.state.session.session_id, "https://auth/two")
        await wait_until(lambda: isinstance(controller.state, HasUrl))

        opener.assert_called_once_with("https://auth/one")
        await controller.close()

    @pytest.mark.asyncio
    async def test_unexpected_exception_moves_to_error(self, controller, service):
        service.handshake_error = RuntimeError("connection reset")

        controller.start(CONTEXT_ID)
        await controller.wait_for_pending()

        assert controller.state == Error("connection reset")

    @pytest.mark.asyncio
    async def test_notifier_error_in_background_task_is_logged(
        self, controller, service, notifier, caplog
    ):
        service.handshake_error = RequestFailure("boom", operation="begin_handshake")
        notifier.error.side_effect = RuntimeError("notifier down")

        with caplog.at_level("ERROR", logger="assistant_link.flows.polling"):
            controller.start(CONTEXT_ID)
            await controller.wait_for_pending()
            await asyncio.sleep(0)

        assert controller.state == Error("boom")
        messages = [r.getMessage() for r in caplog.records if r.levelname == "ERROR"]
        assert any("handshake-1" in m and "notifier down" in m for m in messages)


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_when_idle_is_noop(self, controller):
        listener = MagicMock()
        controller.subscribe(listener)

        controller.cancel()
        controller.cancel()

        listener.assert_not_called()
        assert isinstance(controller.state, Idle)

    @pytest.mark.asyncio
    async def test_cancel_twice(self, controller, service):
        controller.start(CONTEXT_ID)
        await controller.wait_for_pending()
        listener = MagicMock()
        controller.subscribe(listener)

        controller.cancel()
        controller.cancel()

        assert listener.call_count == 1
        assert isinstance(controller.state, Idle)
        assert controller.poller is None

    @pytest.mark.asyncio
    async def test_cancel_from_error(self, controller, service):
        service.handshake_error = RequestFailure("boom", operation="begin_handshake")
        controller.start(CONTEXT_ID)
        await controller.wait_for_pending()

        controller.cancel()

        assert isinstance(controller.state, Idle)

    @pytest.mark.asyncio
    async def test_start_without_context_is_noop(self, controller, service):
        controller.start("")
        controller.start(None)
        controller.on_user_connect_click("")

        assert isinstance(controller.state, Idle)
        assert service.handshake_calls == []


class TestIntegrationStatus:
    @pytest.mark.asyncio
    async def test_refresh_status(self, controller, service):
        service.connected = True

        status = await controller.refresh_status(CONTEXT_ID)

        assert status.is_connected is True
        assert controller.view().mode == "connected"

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_previous(self, controller, service):
        service.connected = True
        await controller.refresh_status(CONTEXT_ID)
        service.status_error = RequestFailure("down", operation="get_integration_status")

        status = await controller.refresh_status(CONTEXT_ID)

        assert status.is_connected is True
        assert controller.status_loading is False

    @pytest.mark.asyncio
    async def test_disconnect(self, controller, service, notifier):
        service.connected = True
        await controller.refresh_status(CONTEXT_ID)

        controller.disconnect(CONTEXT_ID)
        await controller.wait_for_pending()

        assert service.disconnect_calls == [CONTEXT_ID]
        assert controller.integration.is_connected is False
        notifier.success.assert_called_once_with("Coding assistant disconnected")
        assert controller.view().mode == "connect"

    @pytest.mark.asyncio
    async def test_disconnect_failure_keeps_connected(self, controller, service, notifier):
        service.connected = True
        await controller.refresh_status(CONTEXT_ID)
        service.disconnect_error = RequestFailure(
            "Failed to disconnect", operation="disconnect_integration"
        )

        controller.disconnect(CONTEXT_ID)
        await controller.wait_for_pending()

        notifier.error.assert_called_once_with("Failed to disconnect")
        assert controller.integration.is_connected is True
        assert isinstance(controller.state, Idle)
        assert controller.disconnecting is False
        assert controller.view().mode == "connected"

    @pytest.mark.asyncio
    async def test_disconnect_requires_connection(self, controller, service):
        controller.disconnect(CONTEXT_ID)
        await controller.wait_for_pending()

        assert service.disconnect_calls == []


class TestView:
    @pytest.mark.asyncio
    async def test_modes(self, controller, service, wait_until):
        assert controller.view().mode == "connect"
        assert controller.view().busy is False

        controller.start(CONTEXT_ID)
        assert controller.view().busy is True
        await controller.wait_for_pending()
        assert controller.view().busy is True

        service.publish_url("s1", "https://auth/x")
        await wait_until(lambda: isinstance(controller.state, HasUrl))
        view = controller.view()
        assert view.mode == "code_entry"
        assert view.oauth_url == "https://auth/x"

        service.submit_gate = asyncio.Event()
        controller.submit_code(CONTEXT_ID, "CODE#1")
        assert controller.view().submitting is True

        service.submit_gate.set()
        await controller.wait_for_pending()
        assert controller.view().mode == "connected"
        await controller.close()

    @pytest.mark.asyncio
    async def test_error_mode(self, controller, service):
        service.handshake_error = RequestFailure("boom", operation="begin_handshake")
        controller.start(CONTEXT_ID)
        await controller.wait_for_pending()

        view = controller.view()
        assert view.mode == "error"
        assert view.message == "boom"

    @pytest.mark.asyncio
    async def test_unsubscribe(self, controller):
        listener = MagicMock()
        unsubscribe = controller.subscribe(listener)
        unsubscribe()
        unsubscribe()

        controller.start(CONTEXT_ID)
        listener.assert_not_called()
        await controller.close()
