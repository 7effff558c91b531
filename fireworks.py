#!/usr/bin/env python3
"""
  *  K A B O O M  *
  A terminal fireworks show.

  Rockets climb from the bottom of the screen and burst into showers of
  sparks that sag under gravity and fade out. The sky launches rockets on
  its own at random intervals; click anywhere to launch one of your own
  from that column.

  Controls:
    q / Ctrl+C   quit
    mouse        move the cursor, click to launch
"""

from __future__ import annotations

import curses
import heapq
import itertools
import logging
import math
import sys
import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, Sequence

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger("fireworks")

# ── Palette ─────────────────────────────────────────────────────────────
# xterm-256 color numbers
PALETTE: tuple[int, ...] = (
    226,  # yellow
    208,  # orange
    196,  # red
    87,   # light blue
    201,  # magenta
    46,   # green
)
CURSOR_COLOR: int = 255  # bright white
NO_COLOR: int = -1

# ── Glyphs ──────────────────────────────────────────────────────────────
ROCKET_CHAR = "↑"
PARTICLE_CHAR = "*"
EMBER_CHAR = "."
BLANK = " "

# ── Timing ──────────────────────────────────────────────────────────────
TICK_INTERVAL: float = 1.0 / 15.0       # seconds
SPAWN_DELAY_MS: tuple[int, int] = (100, 1100)  # [lo, hi) milliseconds

# ── Physics ─────────────────────────────────────────────────────────────
ROCKET_SPEED: float = -1.5      # rows per tick, negative is up
EXPLODE_CHANCE: float = 0.1     # per tick, inside the lower-middle band
BURST_SIZE: tuple[int, int] = (30, 50)
BURST_SPEED: tuple[float, float] = (1.0, 3.5)
BURST_FLATTEN: float = 0.5      # vertical squash of the burst ellipse
LIFESPAN: tuple[int, int] = (15, 35)
GRAVITY: float = 0.08

# ── Fading ──────────────────────────────────────────────────────────────
FADE_SPAN: float = 35.0
EMBER_BELOW: float = 0.5
DARK_BELOW: float = 0.2

# ── Text ────────────────────────────────────────────────────────────────
STATUS_LINE = "Click to launch a firework! Press 'q' to quit."
LOADING = "Loading..."
FAREWELL = "Bye! Thanks for watching the show.\n"

# ── Scheduler events ────────────────────────────────────────────────────
TICK = "tick"
SPAWN = "spawn"


# ═══════════════════════════════════════════════════════════════════════
#  Timers
# ═══════════════════════════════════════════════════════════════════════

class Scheduler:
    """Fire-and-reschedule timer queue.

    Handlers never sleep: they ask for their successor with
    ``schedule(event, delay)`` and the event loop collects whatever has
    come due with ``pop_due()``. Entries due at the same instant come out
    in the order they were scheduled.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._queue: list[tuple[float, int, str]] = []
        self._seq = itertools.count()

    def __len__(self) -> int:
        return len(self._queue)

    def schedule(self, event: str, delay: float) -> None:
        due = self._clock() + max(0.0, delay)
        heapq.heappush(self._queue, (due, next(self._seq), event))

    def pop_due(self) -> list[str]:
        """Remove and return every event whose due time has passed."""
        now = self._clock()
        due: list[str] = []
        while self._queue and self._queue[0][0] <= now:
            due.append(heapq.heappop(self._queue)[2])
        return due

    def time_until_next(self) -> float | None:
        """Seconds until the earliest pending event (None when idle)."""
        if not self._queue:
            return None
        return max(0.0, self._queue[0][0] - self._clock())


# ═══════════════════════════════════════════════════════════════════════
#  Entities
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class Rocket:
    """An ascending firework shell, one terminal cell in size."""
    x: int
    y: int
    vy: float = ROCKET_SPEED
    char: str = ROCKET_CHAR
    color: int = PALETTE[0]


@dataclass
class Particle:
    """A single spark, as seen from outside the particle arrays."""
    x: float
    y: float
    vx: float
    vy: float
    lifespan: int
    color: int
    char: str = PARTICLE_CHAR


class ParticleField:
    """Column-wise particle storage.

    Every spark lives at the same index across the position, velocity,
    lifespan and color arrays, so a whole tick is a handful of vectorized
    numpy operations instead of a Python loop per spark.
    """

    def __init__(self) -> None:
        self.x: NDArray[np.float64] = np.empty(0, dtype=np.float64)
        self.y: NDArray[np.float64] = np.empty(0, dtype=np.float64)
        self.vx: NDArray[np.float64] = np.empty(0, dtype=np.float64)
        self.vy: NDArray[np.float64] = np.empty(0, dtype=np.float64)
        self.life: NDArray[np.int32] = np.empty(0, dtype=np.int32)
        self.color: NDArray[np.int16] = np.empty(0, dtype=np.int16)

    def __len__(self) -> int:
        return int(self.life.shape[0])

    def __iter__(self) -> Iterator[Particle]:
        for i in range(len(self)):
            yield Particle(
                x=float(self.x[i]),
                y=float(self.y[i]),
                vx=float(self.vx[i]),
                vy=float(self.vy[i]),
                lifespan=int(self.life[i]),
                color=int(self.color[i]),
            )

    def add_burst(
        self,
        x: float,
        y: float,
        vx: NDArray[np.float64],
        vy: NDArray[np.float64],
        life: NDArray[np.integer],
        color: int,
    ) -> None:
        """Append a batch of sparks sharing an origin and a color."""
        n = len(vx)
        self.x = np.concatenate((self.x, np.full(n, x, dtype=np.float64)))
        self.y = np.concatenate((self.y, np.full(n, y, dtype=np.float64)))
        self.vx = np.concatenate((self.vx, np.asarray(vx, dtype=np.float64)))
        self.vy = np.concatenate((self.vy, np.asarray(vy, dtype=np.float64)))
        self.life = np.concatenate((self.life, np.asarray(life, dtype=np.int32)))
        self.color = np.concatenate((self.color, np.full(n, color, dtype=np.int16)))

    def add(self, particle: Particle) -> None:
        """Append a single spark."""
        self.add_burst(
            particle.x,
            particle.y,
            np.array([particle.vx]),
            np.array([particle.vy]),
            np.array([particle.lifespan]),
            particle.color,
        )

    def step(self, gravity: float = GRAVITY) -> int:
        """Advance every spark one tick. Returns how many burned out."""
        if not len(self):
            return 0
        self.x += self.vx
        self.y += self.vy
        self.vy += gravity
        self.life -= 1

        alive = self.life > 0
        expired = len(self) - int(alive.sum())
        if expired:
            self.x = self.x[alive]
            self.y = self.y[alive]
            self.vx = self.vx[alive]
            self.vy = self.vy[alive]
            self.life = self.life[alive]
            self.color = self.color[alive]
        return expired


# ═══════════════════════════════════════════════════════════════════════
#  The show
# ═══════════════════════════════════════════════════════════════════════

class FireworksShow:
    """
    The simulation state and its event handlers.

    Nothing moves until the terminal size is known. After that, every tick
    rockets climb one step or burst, and every spark drifts, sags and
    burns down. Randomness comes from the injected generator only, so a
    seeded generator replays the same show.
    """

    def __init__(
        self,
        rng: np.random.Generator | None = None,
        scheduler: Scheduler | None = None,
        palette: Sequence[int] = PALETTE,
    ) -> None:
        self.rng = rng if rng is not None else np.random.default_rng()
        self.scheduler = scheduler if scheduler is not None else Scheduler()
        self.palette: tuple[int, ...] = tuple(palette)

        self.width: int = 0
        self.height: int = 0
        self.pointer_x: int = -1  # off screen until the mouse moves
        self.pointer_y: int = -1
        self.rockets: list[Rocket] = []
        self.particles: ParticleField = ParticleField()
        self.quitting: bool = False

        # ── Counters (read by telemetry and the bench) ────────────
        self.frames: int = 0
        self.launched: int = 0
        self.exploded: int = 0
        self.peak_particles: int = 0

        self._handlers: dict[str, Callable[[], None]] = {
            TICK: self.handle_tick,
            SPAWN: self.handle_spawn,
        }

    @property
    def ready(self) -> bool:
        return self.width > 0 and self.height > 0

    # ── Timers ──────────────────────────────────────────────────────

    def start(self) -> None:
        """Arm the animation tick and the first random launch."""
        self.scheduler.schedule(TICK, TICK_INTERVAL)
        self.scheduler.schedule(SPAWN, self._spawn_delay())

    def dispatch(self, event: str) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            raise ValueError(f"unknown event: {event!r}")
        handler()

    def _spawn_delay(self) -> float:
        lo, hi = SPAWN_DELAY_MS
        return int(self.rng.integers(lo, hi)) / 1000.0

    # ── Input ───────────────────────────────────────────────────────

    def handle_resize(self, width: int, height: int) -> None:
        # Entities keep their old coordinates; only later ticks see the new size
        self.width = width
        self.height = height

    def handle_pointer(self, x: int, y: int, clicked: bool = False) -> None:
        self.pointer_x = x
        self.pointer_y = y
        if clicked:
            self.launch(x)

    def handle_spawn(self) -> None:
        if self.ready:
            self.launch(int(self.rng.integers(self.width)))
        self.scheduler.schedule(SPAWN, self._spawn_delay())

    def handle_tick(self) -> None:
        self.advance()
        self.scheduler.schedule(TICK, TICK_INTERVAL)

    def request_quit(self) -> None:
        self.quitting = True

    # ── Simulation ──────────────────────────────────────────────────

    def launch(self, x: int) -> Rocket | None:
        """Put a new rocket on the bottom row at column x."""
        if not self.ready:
            return None
        color = self.palette[int(self.rng.integers(len(self.palette)))]
        rocket = Rocket(x=x, y=self.height - 1, color=color)
        self.rockets.append(rocket)
        self.launched += 1
        logger.debug("launch x=%d color=%d", x, color)
        return rocket

    def explode(self, rocket: Rocket) -> int:
        """Burst a rocket into sparks at its current cell. Returns the count."""
        n = int(self.rng.integers(*BURST_SIZE))
        angles = (2 * math.pi / n) * np.arange(n)
        speeds = self.rng.uniform(*BURST_SPEED, size=n)
        vx = np.cos(angles) * speeds
        vy = np.sin(angles) * speeds * BURST_FLATTEN
        life = self.rng.integers(*LIFESPAN, size=n)
        self.particles.add_burst(float(rocket.x), float(rocket.y), vx, vy, life, rocket.color)
        self.exploded += 1
        logger.debug("burst at (%d, %d): %d sparks", rocket.x, rocket.y, n)
        return n

    def _should_explode(self, rocket: Rocket) -> bool:
        if rocket.y < self.height // 3:
            return True
        return rocket.y < self.height * 2 // 3 and self.rng.random() < EXPLODE_CHANCE

    def advance(self) -> int:
        """Advance one frame. Returns the number of rockets that burst."""
        if not self.ready:
            return 0

        bursts = 0
        climbing: list[Rocket] = []
        for rocket in self.rockets:
            if self._should_explode(rocket):
                self.explode(rocket)
                bursts += 1
            else:
                # Only the whole part of vy is applied; fractions are lost
                rocket.y += int(rocket.vy)
                climbing.append(rocket)
        self.rockets = climbing

        # Sparks born this frame move this frame too
        self.particles.step(GRAVITY)

        self.frames += 1
        self.peak_particles = max(self.peak_particles, len(self.particles))
        return bursts


# ═══════════════════════════════════════════════════════════════════════
#  Compositing
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class Frame:
    """A height x width grid of glyphs and their colors."""
    glyphs: NDArray[np.str_]
    colors: NDArray[np.int16]
    status: str = STATUS_LINE

    @property
    def height(self) -> int:
        return int(self.glyphs.shape[0])

    @property
    def width(self) -> int:
        return int(self.glyphs.shape[1])

    def rows(self) -> list[str]:
        """Body rows; the grid's last row is reserved for the status line."""
        return ["".join(row) for row in self.glyphs[:-1].tolist()]

    def text(self) -> str:
        return "".join(row + "\n" for row in self.rows()) + self.status


def fade_glyphs(life: NDArray[np.integer]) -> NDArray[np.str_]:
    """Pick a spark glyph from how much of its life is left."""
    alpha = life / FADE_SPAN
    return np.where(
        alpha < DARK_BELOW, BLANK,
        np.where(alpha < EMBER_BELOW, EMBER_CHAR, PARTICLE_CHAR),
    )


def compose(show: FireworksShow) -> Frame:
    """Rasterize the show: rockets, then sparks, then the cursor on top."""
    h, w = show.height, show.width
    glyphs = np.full((h, w), BLANK, dtype="<U1")
    colors = np.full((h, w), NO_COLOR, dtype=np.int16)

    for rocket in show.rockets:
        if 0 <= rocket.y < h and 0 <= rocket.x < w:
            glyphs[rocket.y, rocket.x] = rocket.char
            colors[rocket.y, rocket.x] = rocket.color

    sparks = show.particles
    if len(sparks):
        # astype truncates toward zero, the same as int()
        rows = sparks.y.astype(np.intp)
        cols = sparks.x.astype(np.intp)
        visible = (rows >= 0) & (rows < h) & (cols >= 0) & (cols < w)
        vr, vc = rows[visible], cols[visible]
        glyphs[vr, vc] = fade_glyphs(sparks.life[visible])
        colors[vr, vc] = sparks.color[visible]

    px, py = show.pointer_x, show.pointer_y
    if 0 <= px < w and 0 <= py < h - 1:
        glyphs[py, px] = ROCKET_CHAR
        colors[py, px] = CURSOR_COLOR

    return Frame(glyphs=glyphs, colors=colors)


def render(show: FireworksShow, quitting: bool | None = None) -> str:
    """The show as plain text, or the farewell / loading placeholders."""
    if quitting is None:
        quitting = show.quitting
    if quitting:
        return FAREWELL
    if not show.ready:
        return LOADING
    return compose(show).text()


# ═══════════════════════════════════════════════════════════════════════
#  Color management
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class ColorMap:
    """Maps xterm-256 color numbers to curses color pairs."""

    colors: tuple[int, ...] = PALETTE + (CURSOR_COLOR,)
    _pairs: dict[int, int] = field(default_factory=dict)

    def setup(self) -> None:
        curses.start_color()
        curses.use_default_colors()

        max_pairs = curses.COLOR_PAIRS - 1
        pair_id = 1
        for c in self.colors:
            if pair_id > max_pairs:
                break
            # 8/16-color terminals fall back to the default foreground
            if c >= curses.COLORS:
                continue
            curses.init_pair(pair_id, c, -1)
            self._pairs[c] = pair_id
            pair_id += 1

    def pair(self, color: int) -> int:
        return self._pairs.get(color, 0)


def draw(stdscr: curses.window, frame: Frame, cmap: ColorMap) -> None:
    """Paint a composed frame plus the dimmed status line."""
    max_y, max_x = stdscr.getmaxyx()
    draw_rows = min(frame.height - 1, max_y - 1)
    draw_cols = min(frame.width, max_x)

    body = frame.glyphs[:draw_rows, :draw_cols]
    ys, xs = np.nonzero(body != BLANK)

    _addstr = stdscr.addstr
    _color_pair = curses.color_pair
    _pair = cmap.pair
    _BOLD = curses.A_BOLD

    for y, x, ch, c in zip(
        ys.tolist(), xs.tolist(),
        body[ys, xs].tolist(), frame.colors[ys, xs].tolist(),
    ):
        # Pair 0 is the terminal default; color_pair() needs an initialized screen
        pair = _pair(c) if c != NO_COLOR else 0
        attr = _color_pair(pair) if pair else curses.A_NORMAL
        if c == CURSOR_COLOR:
            attr |= _BOLD
        try:
            _addstr(y, x, ch, attr)
        except curses.error:
            pass

    if max_y > 0 and max_x > 1:
        try:
            stdscr.addstr(max_y - 1, 0, frame.status[: max_x - 1], curses.A_DIM)
        except curses.error:
            pass


# ═══════════════════════════════════════════════════════════════════════
#  Main loop
# ═══════════════════════════════════════════════════════════════════════

CLICK_MASK = curses.BUTTON1_PRESSED | curses.BUTTON1_CLICKED

# xterm any-event mouse tracking: report motion even with no button held
_MOTION_ON = "\033[?1003h"
_MOTION_OFF = "\033[?1003l"


def _set_motion_tracking(on: bool) -> None:
    sys.stdout.write(_MOTION_ON if on else _MOTION_OFF)
    sys.stdout.flush()


def main(stdscr: curses.window, show: FireworksShow) -> None:
    curses.curs_set(0)
    stdscr.keypad(True)
    curses.mousemask(curses.ALL_MOUSE_EVENTS | curses.REPORT_MOUSE_POSITION)
    curses.mouseinterval(0)
    _set_motion_tracking(True)

    cmap = ColorMap()
    cmap.setup()

    max_y, max_x = stdscr.getmaxyx()
    show.handle_resize(max_x, max_y)
    show.start()

    try:
        while not show.quitting:
            # ── Wait for input or the next timer ──────────────────
            wait = show.scheduler.time_until_next()
            stdscr.timeout(-1 if wait is None else int(math.ceil(wait * 1000)))
            try:
                key = stdscr.getch()
            except curses.error:
                key = -1

            if key in (ord("q"), ord("Q")):
                show.request_quit()
                break
            elif key == curses.KEY_MOUSE:
                try:
                    _, mx, my, _, bstate = curses.getmouse()
                    show.handle_pointer(mx, my, bool(bstate & CLICK_MASK))
                except curses.error:
                    pass
            elif key == curses.KEY_RESIZE:
                max_y, max_x = stdscr.getmaxyx()
                show.handle_resize(max_x, max_y)

            # ── Timers ─────────────────────────────────────────────
            for event in show.scheduler.pop_due():
                show.dispatch(event)

            # ── Render ─────────────────────────────────────────────
            stdscr.erase()
            if show.ready:
                draw(stdscr, compose(show), cmap)
            else:
                try:
                    stdscr.addstr(0, 0, LOADING)
                except curses.error:
                    pass
            stdscr.refresh()
    finally:
        _set_motion_tracking(False)


def run() -> int:
    """Run the show until the user quits. Returns the process exit status."""
    show = FireworksShow()
    try:
        curses.wrapper(main, show)
    except KeyboardInterrupt:
        show.request_quit()
    except (curses.error, OSError) as exc:
        print(f"Kaboom, there's been an error: {exc}", file=sys.stderr)
        return 1

    show.request_quit()
    sys.stdout.write(render(show))
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(run())
