from __future__ import annotations

import curses

import numpy as np
import pytest

import fireworks
from fireworks import FAREWELL, STATUS_LINE, ColorMap, FireworksShow, main, run
from fireworks_bench import FakeWindow


@pytest.fixture
def fake_curses(monkeypatch):
    """Stand in for the curses calls main() makes outside the window."""
    monkeypatch.setattr(curses, "curs_set", lambda visibility: None)
    monkeypatch.setattr(curses, "mousemask", lambda mask: (mask, 0))
    monkeypatch.setattr(curses, "mouseinterval", lambda interval: 0)
    monkeypatch.setattr(ColorMap, "setup", lambda self: None)
    mouse = {"event": (0, 0, 0, 0, 0)}

    def getmouse():
        if isinstance(mouse["event"], Exception):
            raise mouse["event"]
        return mouse["event"]

    monkeypatch.setattr(curses, "getmouse", getmouse)
    return mouse


def make_show() -> FireworksShow:
    return FireworksShow(rng=np.random.default_rng(8))


class ResizingWindow(FakeWindow):
    """Changes size when it hands out KEY_RESIZE, like a real terminal."""

    def __init__(self, rows, cols, keys, new_size):
        super().__init__(rows, cols, keys)
        self._new_size = new_size

    def getch(self) -> int:
        key = super().getch()
        if key == curses.KEY_RESIZE:
            self.resize(*self._new_size)
        return key


# ── Event loop ──────────────────────────────────────────────────────────

@pytest.mark.parametrize("key", ["q", "Q"])
def test_quit_key_ends_loop(fake_curses, capsys, key):
    show = make_show()
    main(FakeWindow(24, 80, [ord(key)]), show)
    assert show.quitting
    assert (show.width, show.height) == (80, 24)


def test_motion_tracking_is_switched_off_on_exit(fake_curses, capsys):
    main(FakeWindow(24, 80, [ord("q")]), make_show())
    out = capsys.readouterr().out
    assert out.index("\033[?1003h") < out.index("\033[?1003l")


def test_click_launches_rocket(fake_curses, capsys):
    fake_curses["event"] = (0, 4, 3, 0, curses.BUTTON1_PRESSED)
    show = make_show()
    win = FakeWindow(24, 80, [curses.KEY_MOUSE, ord("q")])
    main(win, show)
    assert (show.pointer_x, show.pointer_y) == (4, 3)
    assert len(show.rockets) == 1
    assert show.rockets[0].x == 4
    # the frame drawn after the click ends with the dimmed status line
    assert win.calls[-1] == (23, 0, STATUS_LINE, curses.A_DIM)


def test_pointer_motion_only_moves_cursor(fake_curses, capsys):
    fake_curses["event"] = (0, 10, 5, 0, curses.REPORT_MOUSE_POSITION)
    show = make_show()
    main(FakeWindow(24, 80, [curses.KEY_MOUSE, ord("q")]), show)
    assert (show.pointer_x, show.pointer_y) == (10, 5)
    assert show.rockets == []


def test_unreadable_mouse_event_is_ignored(fake_curses, capsys):
    fake_curses["event"] = curses.error("getmouse() returned ERR")
    show = make_show()
    main(FakeWindow(24, 80, [curses.KEY_MOUSE, ord("q")]), show)
    assert show.quitting
    assert (show.pointer_x, show.pointer_y) == (-1, -1)


def test_resize_key_updates_dimensions(fake_curses, capsys):
    show = make_show()
    win = ResizingWindow(24, 80, [curses.KEY_RESIZE, ord("q")], (30, 100))
    main(win, show)
    assert (show.width, show.height) == (100, 30)


def test_loop_waits_for_next_timer(fake_curses, capsys):
    win = FakeWindow(24, 80, [-1, ord("q")])
    main(win, make_show())
    assert win.timeouts
    assert all(0 <= t <= 1100 for t in win.timeouts)


# ── Process exit ────────────────────────────────────────────────────────

def test_normal_quit_prints_farewell(monkeypatch, capsys):
    monkeypatch.setattr(curses, "wrapper", lambda func, *args: None)
    assert run() == 0
    captured = capsys.readouterr()
    assert captured.out == FAREWELL
    assert captured.err == ""


def test_interrupt_is_a_normal_quit(monkeypatch, capsys):
    def interrupted(func, *args):
        raise KeyboardInterrupt

    monkeypatch.setattr(curses, "wrapper", interrupted)
    assert run() == 0
    assert capsys.readouterr().out == FAREWELL


@pytest.mark.parametrize(
    "error",
    [curses.error("setupterm: could not find terminal"), OSError("stdin is not a tty")],
)
def test_terminal_failure_reports_and_exits_nonzero(monkeypatch, capsys, error):
    def broken(func, *args):
        raise error

    monkeypatch.setattr(curses, "wrapper", broken)
    assert run() == 1
    captured = capsys.readouterr()
    assert captured.err == f"Kaboom, there's been an error: {error}\n"
    assert captured.out == ""


def test_run_hands_a_fresh_show_to_main(monkeypatch, capsys):
    seen = []
    monkeypatch.setattr(curses, "wrapper", lambda func, *args: seen.append((func, args)))
    run()
    (func, args), = seen
    assert func is fireworks.main
    assert isinstance(args[0], FireworksShow)
