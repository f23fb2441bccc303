"""xmobar markup formatting for leftwm tags.

Output format (one line per viewport, no trailing newline):

    <action=`CMD`><fc=#f38ba8>  1  </fc></action><action=`CMD`>  2  </action><fc=#6c7086>     title</fc>

Markup reference: the "Template" section of the xmobar manual (action, fc, raw).
"""

import logging
import shlex
import string
from enum import Enum
from typing import Optional

from .config import BarConfig, ClassificationPolicy, LabelStyle
from .errors import InvalidTemplateError, UnsafeCommandError
from .models import Snapshot

logger = logging.getLogger(__name__)

TITLE_PREFIX = "     "
ACTION_FIELDS = frozenset({"view", "tag", "name"})


class TagState(Enum):
    """Display state of one tag on one bar."""
    FOCUSED = "focused"
    VISIBLE = "visible"
    IDLE = "idle"


def classify_tag(name: str, view_index: int, snapshot: Snapshot,
                 policy: ClassificationPolicy = ClassificationPolicy.VIEWPORT) -> TagState:
    """Classify a tag relative to the viewport being rendered.

    Args:
        name: Tag name
        view_index: Index of the viewport the bar belongs to
        snapshot: Current leftwm state
        policy: Classification policy

    Returns:
        TagState for the tag on this bar
    """
    active = name in snapshot.active_set

    if policy == ClassificationPolicy.GLOBAL:
        if active:
            return TagState.FOCUSED
        if name in snapshot.visible_tags:
            return TagState.VISIBLE
        return TagState.IDLE

    own_tags = snapshot.viewport_tags(view_index)
    if active and name in own_tags:
        return TagState.FOCUSED
    if policy == ClassificationPolicy.VIEWPORT and name in snapshot.visible_tags and name not in own_tags:
        return TagState.VISIBLE
    if policy == ClassificationPolicy.SHOWN and name in snapshot.visible_tags:
        return TagState.VISIBLE
    return TagState.IDLE


def validate_action_template(template: str) -> str:
    """Check that a click command template only uses {view}, {tag} and {name}.

    Literal braces must be doubled ({{ and }}), as in str.format.

    Raises:
        InvalidTemplateError: On unbalanced braces, positional fields or unknown fields
    """
    try:
        parsed = list(string.Formatter().parse(template))
    except ValueError as e:
        raise InvalidTemplateError(template, str(e)) from e

    for _, field_name, format_spec, conversion in parsed:
        if field_name is None:
            continue
        if field_name not in ACTION_FIELDS:
            raise InvalidTemplateError(template, f"unknown field {{{field_name}}}")
        if format_spec or conversion:
            raise InvalidTemplateError(template, f"field {{{field_name}}} takes no conversion or format spec")
    return template


def build_action_command(template: str, **fields) -> str:
    """Fill a click command template, shell-quoting every substituted value.

    >>> build_action_command("change-tag {view} {tag}", view=0, tag=3)
    'change-tag 0 3'

    Raises:
        InvalidTemplateError: If the template is malformed
        UnsafeCommandError: If the result contains a backtick, which would end
            the xmobar action early
    """
    validate_action_template(template)
    quoted = {key: shlex.quote(str(value)) for key, value in fields.items()}
    command = template.format(**quoted)
    if "`" in command:
        raise UnsafeCommandError(command)
    return command


def escape_text(text: str) -> str:
    """Make arbitrary text safe to place between xmobar tags."""
    if "<" in text or ">" in text:
        return f"<raw={len(text)}:{text}/>"
    return text


def colored(text: str, color: Optional[str]) -> str:
    if color is None:
        return text
    return f"<fc={color}>{text}</fc>"


def action(command: Optional[str], body: str) -> str:
    if command is None:
        return body
    return f"<action=`{command}`>{body}</action>"


class MarkupFormatter:
    """Renders a Snapshot into one xmobar markup line per viewport."""

    def __init__(self, config: BarConfig):
        """Initialize formatter.

        Args:
            config: Control program configuration (policy, colors, action template)
        """
        validate_action_template(config.action_template)
        self.config = config

    def label(self, name: str, state: TagState) -> str:
        """Padded label text for a tag."""
        text = escape_text(name)
        if self.config.label_style == LabelStyle.BRACKETED:
            if state == TagState.FOCUSED:
                return f"  [{text}]  "
            if state == TagState.VISIBLE:
                return f"  ({text})  "
            return f"   {text}   "
        return f"  {text}  "

    def color_for(self, state: TagState) -> Optional[str]:
        if state == TagState.FOCUSED:
            return self.config.colors.focused
        if state == TagState.VISIBLE:
            return self.config.colors.visible
        return None

    def click_command(self, view_index: int, tag_index: int, name: str) -> Optional[str]:
        """Click command for a tag, or None if it cannot be embedded safely."""
        try:
            return build_action_command(
                self.config.action_template,
                view=view_index,
                tag=tag_index,
                name=name
            )
        except UnsafeCommandError as e:
            logger.warning(f"Dropping click action for tag {name!r}: {e.message}")
            return None

    def render_tag(self, view_index: int, tag_index: int, name: str, snapshot: Snapshot) -> str:
        state = classify_tag(name, view_index, snapshot, self.config.policy)
        body = colored(self.label(name, state), self.color_for(state))
        return action(self.click_command(view_index, tag_index, name), body)

    def format(self, view_index: int, snapshot: Snapshot) -> str:
        """Render the full bar line for one viewport.

        Args:
            view_index: Index of the viewport (and of its bar)
            snapshot: Current leftwm state

        Returns:
            Markup line without trailing newline
        """
        text = "".join(
            self.render_tag(view_index, tag_index, name, snapshot)
            for tag_index, name in enumerate(snapshot.desktop_names)
        )
        if self.config.show_title:
            text += colored(TITLE_PREFIX + escape_text(snapshot.window_title), self.config.colors.title)
        return text
