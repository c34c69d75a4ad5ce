import io

from sdautomate.core.config import CancelToken
from sdautomate.keyboard import KeyboardController


def controller():
    exits = []
    ctl = KeyboardController(CancelToken(), stdin=io.StringIO(), out=io.StringIO(), exit_fn=exits.append)
    return ctl, exits


class TestKeyboardController:
    def test_z_requests_graceful_stop(self):
        ctl, exits = controller()
        ctl.handle_key("z")
        assert ctl.token.stop_requested
        assert "Graceful exit requested" in ctl.out.getvalue()
        assert exits == []

    def test_upper_case_z(self):
        ctl, _ = controller()
        ctl.handle_key("Z")
        assert ctl.token.stop_requested

    def test_repeat_z_acknowledged_once(self):
        ctl, _ = controller()
        ctl.handle_key("z")
        ctl.handle_key("z")
        assert ctl.out.getvalue().count("Graceful exit requested") == 1

    def test_ctrl_c_forces_exit(self):
        ctl, exits = controller()
        ctl.handle_key("\x03")
        assert exits == [1]
        assert not ctl.token.stop_requested

    def test_other_keys_ignored(self):
        ctl, exits = controller()
        for k in "aqx \n\x1b":
            ctl.handle_key(k)
        assert not ctl.token.stop_requested
        assert exits == []
        assert ctl.out.getvalue() == ""

    def test_inactive_without_terminal(self):
        ctl, _ = controller()
        assert not ctl.available
        assert ctl.start() is False
        ctl.restore()


class TestCancelToken:
    def test_one_way(self):
        t = CancelToken()
        assert not t.stop_requested
        assert t.request_stop() is True
        assert t.request_stop() is False
        assert t.stop_requested
