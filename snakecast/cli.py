import argparse
import logging
import sys
import threading

from .config import BoundaryMode, GameConfig, NetConfig
from .controller import Controller
from .display import DisplayHost
from .gui import run_controller_gui, run_display_gui
from .net.protocol import Direction

log = logging.getLogger("snakecast")

TEXT_DIRECTIONS = {
    "u": Direction.UP, "up": Direction.UP,
    "d": Direction.DOWN, "down": Direction.DOWN,
    "l": Direction.LEFT, "left": Direction.LEFT,
    "r": Direction.RIGHT, "right": Direction.RIGHT,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SnakeCast - Snake on one screen, steered from another")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level (DEBUG, INFO, ...)")
    subparsers = parser.add_subparsers(dest="mode", required=True)

    disp = subparsers.add_parser("display", help="Run the game screen and wait for a controller")
    disp.add_argument("--bind", type=str, default=None, help="Bind address")
    disp.add_argument("--grid", type=int, nargs=2, metavar=("W", "H"), default=None, help="Grid size in cells")
    disp.add_argument("--walls", action="store_true", help="Grid edges kill instead of wrapping around")
    disp.add_argument("--tick-ms", type=int, default=None, help="Initial tick interval")
    disp.add_argument("--min-tick-ms", type=int, default=None, help="Fastest tick interval")
    disp.add_argument("--no-advertise", action="store_true", help="Do not publish the display on the LAN")
    disp.add_argument("--headless", action="store_true", help="No window; log game events only")

    ctrl = subparsers.add_parser("controller", help="Find a display and steer the snake")
    ctrl.add_argument("--address", type=str, default=None, help="Display IP, skips discovery")
    ctrl.add_argument("--port", type=int, default=None, help="Display TCP port (with --address)")
    ctrl.add_argument("--scan-timeout", type=float, default=3.0, help="Seconds to scan for displays")
    ctrl.add_argument("--timeout-ms", type=int, default=None, help="Connect timeout")
    ctrl.add_argument("--headless", action="store_true", help="Read directions (u/d/l/r) from stdin")
    return parser


def game_config_from_args(args: argparse.Namespace) -> GameConfig:
    cfg = GameConfig.from_env()
    changes = {}
    if args.grid:
        changes["grid_width"], changes["grid_height"] = args.grid
    if args.walls:
        changes["boundary"] = BoundaryMode.WALLS
    if args.tick_ms is not None:
        changes["initial_tick_ms"] = args.tick_ms
    if args.min_tick_ms is not None:
        changes["min_tick_ms"] = args.min_tick_ms
    return cfg.with_(**changes)


def run_display(args: argparse.Namespace) -> int:
    net = NetConfig.from_env()
    if args.bind:
        net = net.with_(bind=args.bind)
    host = DisplayHost(game_config_from_args(args), net, advertise=not args.no_advertise)
    try:
        port = host.start()
        log.info("Display ready on port %d", port)
        if args.headless:
            host.engine.game_state.subscribe(_log_game_event(), replay=False)
            threading.Event().wait()
        else:
            run_display_gui(host)
    except KeyboardInterrupt:
        pass
    finally:
        host.close()
    return 0


def _log_game_event():
    last = {}

    def on_state(snap) -> None:
        if last.get("status") is not snap.status or last.get("score") != snap.score:
            log.info("status=%s score=%d length=%d", snap.status.value, snap.score, snap.length)
            last["status"], last["score"] = snap.status, snap.score

    return on_state


def run_controller(args: argparse.Namespace) -> int:
    net = NetConfig.from_env()
    if args.timeout_ms is not None:
        net = net.with_(connect_timeout_ms=args.timeout_ms)
    controller = Controller(net)
    try:
        if args.address:
            if args.port is None:
                print("--port is required with --address", file=sys.stderr)
                return 2
            if not controller.connect(args.address, args.port):
                print(f"Could not connect to {args.address}:{args.port}", file=sys.stderr)
                return 1
        elif args.headless:
            endpoints = controller.scan(args.scan_timeout)
            if not endpoints:
                print("No display found on the network", file=sys.stderr)
                return 1
            if not controller.connect_to(endpoints[0]):
                return 1
        if args.headless:
            for line in sys.stdin:
                direction = TEXT_DIRECTIONS.get(line.strip().lower())
                if direction is not None:
                    controller.send_direction(direction)
        else:
            run_controller_gui(controller, args.scan_timeout)
    except KeyboardInterrupt:
        pass
    finally:
        controller.close()
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.mode == "display":
        return run_display(args)
    return run_controller(args)


if __name__ == "__main__":
    sys.exit(main())
