#!/usr/bin/env python3
"""
leftwm-xmobar CLI

Command-line entry point: drives xmobar bars from leftwm's state socket.

Commands:
- bars:       one xmobar per leftwm viewport, started and stopped by us
- pipe:       one markup line per state change on stdout (pipe into a bar)
- change-tag: click helper, sends a viewport to a tag via leftwm-command
"""

import argparse
import asyncio
import logging
import signal
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from setproctitle import setproctitle

from .bar_pool import BarPool
from .config import BarConfig, ClassificationPolicy, LabelStyle, TagColors, state_socket_path
from .dispatcher import Dispatcher, StdoutOutput
from .errors import LeftwmBarError, LeftwmCommandError, SocketConnectError
from .markup import MarkupFormatter, validate_action_template
from .state_reader import read_state_lines

logger = logging.getLogger(__name__)

PROCESS_TITLE = "leftwm-xmobar"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """Configure logging once for the whole process.

    Logs go to stderr by default; stdout is reserved for bar markup in pipe mode.
    """
    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler(sys.stderr)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[handler],
        force=True
    )


def send_workspace_to_tag(view: int, tag: int, leftwm_command: str = "leftwm-command") -> None:
    """Ask leftwm to show tag `tag` on viewport `view`.

    Raises:
        LeftwmCommandError: If leftwm-command is missing, times out or fails
    """
    command = [leftwm_command, f"SendWorkspaceToTag {view} {tag}"]
    try:
        subprocess.run(
            command,
            check=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            timeout=2
        )
    except FileNotFoundError as e:
        raise LeftwmCommandError(command, f"{leftwm_command} not found") from e
    except subprocess.TimeoutExpired as e:
        raise LeftwmCommandError(command, "timed out") from e
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode(errors="replace").strip() if e.stderr else ""
        raise LeftwmCommandError(command, stderr or f"exit status {e.returncode}") from e
    logger.debug(f"Executed: {' '.join(command)}")


class LeftwmXmobarCLI:
    """CLI for the leftwm xmobar control program."""

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="leftwm-xmobar",
            description="Drive xmobar from leftwm's state socket"
        )
        parser.add_argument("--log-file", help="Write logs to this file instead of stderr")
        parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

        subparsers = parser.add_subparsers(dest="command", help="Command to execute")

        # Shared rendering options
        render = argparse.ArgumentParser(add_help=False)
        render.add_argument("--socket", type=Path, help="leftwm state socket (default: $XDG_RUNTIME_DIR/leftwm/current_state.sock)")
        render.add_argument("--action", dest="action_template", help="Click command template; fields: {view} {tag} {name}, literal braces as {{ and }}")
        render.add_argument("--policy", choices=[p.value for p in ClassificationPolicy], help="Tag classification policy")
        render.add_argument("--no-title", dest="show_title", action="store_false", help="Do not show the focused window title")
        render.add_argument("--focused-color", default=TagColors.focused, help="Color of focused tags")
        render.add_argument("--visible-color", default=TagColors.visible, help="Color of tags shown on a viewport")
        render.add_argument("--title-color", default=TagColors.title, help="Color of the window title")

        # Bars command
        bars_parser = subparsers.add_parser("bars", parents=[render], help="Run one xmobar per viewport")
        bars_parser.add_argument("--xmobar", default="xmobar", help="xmobar executable")
        bars_parser.add_argument("--xmobar-config", type=Path, help="xmobar configuration file")
        bars_parser.add_argument("--height", type=int, default=15, help="Bar height in pixels")

        # Pipe command
        subparsers.add_parser("pipe", parents=[render], help="Print markup for a single bar on stdout")

        # Change-tag command
        change_parser = subparsers.add_parser("change-tag", help="Send a viewport to a tag (click helper)")
        change_parser.add_argument("view", type=int, help="Viewport index")
        change_parser.add_argument("tag", type=int, help="Tag index")
        change_parser.add_argument("--leftwm-command", default="leftwm-command", help="leftwm-command executable")

        return parser

    def config_from_args(self, args) -> BarConfig:
        """Build the configuration for the bars or pipe command."""
        pipe_mode = args.command == "pipe"
        config = BarConfig(
            socket_path=args.socket or state_socket_path(),
            policy=ClassificationPolicy.GLOBAL if pipe_mode else ClassificationPolicy.VIEWPORT,
            label_style=LabelStyle.BRACKETED if pipe_mode else LabelStyle.PADDED,
            show_title=args.show_title,
            colors=TagColors(
                focused=args.focused_color,
                visible=args.visible_color,
                title=args.title_color
            )
        )
        if pipe_mode:
            config.action_template = "xdotool key alt+{name}"
        else:
            config.xmobar_command = args.xmobar
            config.bar_height = args.height
            if args.xmobar_config:
                config.xmobar_config = args.xmobar_config
        if args.policy:
            config.policy = ClassificationPolicy(args.policy)
        if args.action_template:
            config.action_template = validate_action_template(args.action_template)
        return config

    async def serve(self, config: BarConfig, output) -> int:
        """Run the dispatch loop until leftwm closes the socket or we are signalled."""
        dispatcher = Dispatcher(MarkupFormatter(config), output)
        task = asyncio.ensure_future(dispatcher.run(read_state_lines(config.socket_path)))

        loop = asyncio.get_running_loop()

        def signal_handler():
            logger.info("Received shutdown signal")
            task.cancel()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        try:
            await task
            return 1 if output.exhausted else 0
        except asyncio.CancelledError:
            logger.info("Dispatch loop cancelled")
            return 0
        except SocketConnectError as e:
            logger.error(f"{e.message} ({e.suggestion})")
            return 1
        except OSError as e:
            logger.error(f"Lost connection to leftwm state socket {config.socket_path}: {e}")
            return 1
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            await output.stop()

    def cmd_bars(self, args) -> int:
        config = self.config_from_args(args)
        logger.info(f"Starting bars from {config.socket_path} with {config.xmobar_config}")
        return asyncio.run(self.serve(config, BarPool(config)))

    def cmd_pipe(self, args) -> int:
        config = self.config_from_args(args)
        logger.info(f"Piping markup from {config.socket_path}")
        return asyncio.run(self.serve(config, StdoutOutput()))

    def cmd_change_tag(self, args) -> int:
        try:
            send_workspace_to_tag(args.view, args.tag, args.leftwm_command)
            return 0
        except LeftwmCommandError as e:
            logger.error(f"{e.message} ({e.suggestion})")
            return 1

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Parse arguments and run the chosen command."""
        parser = self.build_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return 1

        setup_logging(args.log_file, args.verbose)

        # Route to command handler
        cmd_map = {
            "bars": self.cmd_bars,
            "pipe": self.cmd_pipe,
            "change-tag": self.cmd_change_tag,
        }

        if args.command != "change-tag":
            setproctitle(PROCESS_TITLE)

        try:
            return cmd_map[args.command](args)
        except KeyboardInterrupt:
            return 130
        except LeftwmBarError as e:
            logger.error(f"Fatal error: {e.message}")
            return 1


def main():
    """Main entry point."""
    cli = LeftwmXmobarCLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
