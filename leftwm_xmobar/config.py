"""Configuration dataclasses for the leftwm xmobar control program."""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

STATE_SOCKET_NAME = "current_state.sock"


class ClassificationPolicy(str, Enum):
    """How a tag is classified relative to the viewport being rendered."""
    VIEWPORT = "viewport"   # focused here / shown on another viewport / idle
    SHOWN = "shown"         # focused here / shown on any viewport, this one included / idle
    FOCUS = "focus"         # focused here / idle
    GLOBAL = "global"       # focused anywhere / shown on some viewport / idle


class LabelStyle(str, Enum):
    """How tag labels are padded and decorated."""
    PADDED = "padded"       # "  1  "
    BRACKETED = "bracketed" # "  [1]  ", "  (1)  ", "   1   "


@dataclass
class TagColors:
    """Color theme for tag labels.

    Default theme: Catppuccin Mocha
    """
    focused: str = "#f38ba8"   # Red
    visible: str = "#89b4fa"   # Blue
    title: str = "#6c7086"     # Gray


@dataclass
class BarConfig:
    """Complete control program configuration.

    Built from command line flags by the CLI; defaults match the bars mode.
    """

    socket_path: Path = None
    xmobar_command: str = "xmobar"
    xmobar_config: Path = None
    bar_height: int = 15
    policy: ClassificationPolicy = ClassificationPolicy.VIEWPORT
    label_style: LabelStyle = LabelStyle.PADDED
    action_template: str = "leftwm-xmobar change-tag {view} {tag}"
    show_title: bool = True
    colors: TagColors = None
    stop_timeout: float = 2.0

    def __post_init__(self):
        """Fill in path and color defaults if not provided."""
        if self.socket_path is None:
            self.socket_path = state_socket_path()
        if self.xmobar_config is None:
            self.xmobar_config = Path.home() / ".config" / "leftwm" / "themes" / "current" / "xmobar-config.hs"
        if self.colors is None:
            self.colors = TagColors()


def runtime_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    """Resolve the user's runtime directory.

    Args:
        env: Environment mapping (defaults to os.environ)

    Returns:
        $XDG_RUNTIME_DIR, or /run/user/<uid> when it is unset
    """
    if env is None:
        env = os.environ
    value = env.get("XDG_RUNTIME_DIR")
    if not value:
        fallback = Path(f"/run/user/{os.getuid()}")
        logger.warning(f"XDG_RUNTIME_DIR is not set, falling back to {fallback}")
        return fallback
    return Path(value)


def state_socket_path(env: Optional[Mapping[str, str]] = None) -> Path:
    """Path of leftwm's state socket: ${XDG_RUNTIME_DIR}/leftwm/current_state.sock."""
    return runtime_dir(env) / "leftwm" / STATE_SOCKET_NAME
