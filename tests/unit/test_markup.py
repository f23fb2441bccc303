"""Unit tests for tag classification and xmobar markup."""

import random
import re

import pytest

from leftwm_xmobar.config import BarConfig, ClassificationPolicy, LabelStyle
from leftwm_xmobar.errors import ErrorCode, InvalidTemplateError, UnsafeCommandError
from leftwm_xmobar.markup import (
    MarkupFormatter,
    TagState,
    build_action_command,
    classify_tag,
    escape_text,
    validate_action_template,
)
from leftwm_xmobar.models import Snapshot, Viewport


TAG_SPAN = re.compile(r"<action=`[^`]*`>(?:<fc=(#[0-9a-f]{6})>)?  ([^<]*)  (?:</fc>)?</action>")


def tag_colors(line: str) -> dict:
    """Map tag label -> color ("" for uncolored) from a rendered line."""
    return {name: color for color, name in TAG_SPAN.findall(line)}


def random_snapshot(rng: random.Random) -> Snapshot:
    names = [str(i) for i in range(1, rng.randint(1, 9) + 1)]
    viewports = [
        Viewport(x=i * 1920, y=0, w=1920, tags=rng.sample(names, rng.randint(0, min(2, len(names)))))
        for i in range(rng.randint(1, 3))
    ]
    return Snapshot(
        viewports=viewports,
        desktop_names=names,
        active_desktop=rng.sample(names, rng.randint(0, min(2, len(names)))),
        window_title=rng.choice(["", "term", "vim"])
    )


class TestClassifyTag:
    """Test classify_tag policies."""

    def test_focused_here(self, dual_viewport_state):
        snapshot = Snapshot(**dual_viewport_state)
        assert classify_tag("3", 1, snapshot) == TagState.FOCUSED

    def test_shown_elsewhere(self, dual_viewport_state):
        """Tag 3 is on viewport 1, so viewport 0 shows it as visible."""
        snapshot = Snapshot(**dual_viewport_state)
        assert classify_tag("3", 0, snapshot) == TagState.VISIBLE

    def test_own_unfocused_tag_idle(self, dual_viewport_state):
        """Tag 1 is shown only on viewport 0 and not focused, so viewport 0 leaves it plain."""
        snapshot = Snapshot(**dual_viewport_state)
        assert classify_tag("1", 0, snapshot) == TagState.IDLE

    def test_own_tag_also_shown_elsewhere_idle(self, dual_viewport_state):
        """Only tags missing from this viewport count as shown elsewhere."""
        dual_viewport_state["viewports"][1]["tags"] = ["1", "3"]
        snapshot = Snapshot(**dual_viewport_state)
        assert classify_tag("1", 0, snapshot) == TagState.IDLE
        assert classify_tag("1", 1, snapshot) == TagState.IDLE

    def test_shown_policy_colors_own_tags(self, dual_viewport_state):
        """The shown policy counts this bar's own unfocused tags as visible."""
        snapshot = Snapshot(**dual_viewport_state)
        policy = ClassificationPolicy.SHOWN

        assert classify_tag("1", 0, snapshot, policy) == TagState.VISIBLE
        assert classify_tag("3", 0, snapshot, policy) == TagState.VISIBLE
        assert classify_tag("3", 1, snapshot, policy) == TagState.FOCUSED
        assert classify_tag("2", 0, snapshot, policy) == TagState.IDLE

    def test_idle(self, dual_viewport_state):
        snapshot = Snapshot(**dual_viewport_state)
        assert classify_tag("2", 0, snapshot) == TagState.IDLE

    def test_focus_policy_two_state(self, dual_viewport_state):
        """The two-state policy never reports VISIBLE."""
        snapshot = Snapshot(**dual_viewport_state)
        policy = ClassificationPolicy.FOCUS

        assert classify_tag("3", 0, snapshot, policy) == TagState.IDLE
        assert classify_tag("3", 1, snapshot, policy) == TagState.FOCUSED
        assert classify_tag("1", 0, snapshot, policy) == TagState.IDLE

    def test_global_policy_ignores_viewport(self, dual_viewport_state):
        """Single-bar mode marks a focused tag focused regardless of viewport."""
        snapshot = Snapshot(**dual_viewport_state)
        policy = ClassificationPolicy.GLOBAL

        assert classify_tag("3", 0, snapshot, policy) == TagState.FOCUSED
        assert classify_tag("1", 0, snapshot, policy) == TagState.VISIBLE
        assert classify_tag("4", 0, snapshot, policy) == TagState.IDLE


class TestBuildActionCommand:
    """Test click command templating."""

    def test_indices(self):
        assert build_action_command("leftwm-xmobar change-tag {view} {tag}", view=1, tag=4) == \
            "leftwm-xmobar change-tag 1 4"

    def test_quotes_special_characters(self):
        command = build_action_command("xdotool key alt+{name}", name="web; rm -rf ~")
        assert command == "xdotool key alt+'web; rm -rf ~'"

    def test_unused_fields_allowed(self):
        assert build_action_command("echo {tag}", view=0, tag=2, name="x") == "echo 2"

    def test_backtick_rejected(self):
        with pytest.raises(UnsafeCommandError):
            build_action_command("xdotool key alt+{name}", name="`whoami`")

    def test_stray_braces_rejected(self):
        """An awk program in the template is not a format field."""
        template = "sh -c 'echo {name} | awk \"{print}\"'"

        with pytest.raises(InvalidTemplateError) as exc_info:
            build_action_command(template, view=0, tag=0, name="1")

        assert exc_info.value.code == ErrorCode.INVALID_TEMPLATE
        assert exc_info.value.code.value == 1301
        assert "print" in exc_info.value.message

    def test_doubled_braces_are_literal(self):
        template = "sh -c 'echo {name} | awk \"{{print}}\"'"
        assert build_action_command(template, name="1") == "sh -c 'echo 1 | awk \"{print}\"'"


class TestValidateActionTemplate:
    """Test click command template validation."""

    @pytest.mark.parametrize("template", [
        "leftwm-xmobar change-tag {view} {tag}",
        "xdotool key alt+{name}",
        "notify-send {{tag}}",
        "true",
    ])
    def test_valid(self, template):
        assert validate_action_template(template) == template

    @pytest.mark.parametrize("template", [
        "echo {}",
        "echo {0}",
        "echo {screen}",
        "echo {tag.real}",
        "echo {tag!r}",
        "echo {tag:>3}",
        "echo {tag",
        "echo tag}",
    ])
    def test_invalid(self, template):
        with pytest.raises(InvalidTemplateError) as exc_info:
            validate_action_template(template)

        assert exc_info.value.context["template"] == template


class TestEscapeText:
    """Test xmobar text escaping."""

    def test_plain_text_unchanged(self):
        assert escape_text("term") == "term"

    def test_angle_brackets_raw(self):
        assert escape_text("<fc=#fff>") == "<raw=9:<fc=#fff>/>"


class TestMarkupFormatter:
    """Test MarkupFormatter.format."""

    def test_single_viewport_scenario(self, sample_config, single_viewport_state):
        """Tag 1 focused, tag 2 idle, dimmed title last."""
        snapshot = Snapshot(**single_viewport_state)
        line = MarkupFormatter(sample_config).format(0, snapshot)

        colors = sample_config.colors
        assert line == (
            f"<action=`leftwm-xmobar change-tag 0 0`><fc={colors.focused}>  1  </fc></action>"
            f"<action=`leftwm-xmobar change-tag 0 1`>  2  </action>"
            f"<fc={colors.title}>     term</fc>"
        )

    def test_dual_viewport_scenario(self, sample_config, dual_viewport_state):
        snapshot = Snapshot(**dual_viewport_state)
        formatter = MarkupFormatter(sample_config)
        colors = sample_config.colors

        assert tag_colors(formatter.format(0, snapshot))["3"] == colors.visible
        assert tag_colors(formatter.format(1, snapshot))["3"] == colors.focused

    def test_no_trailing_newline(self, sample_config, single_viewport_state):
        line = MarkupFormatter(sample_config).format(0, Snapshot(**single_viewport_state))
        assert not line.endswith("\n")

    def test_no_title(self, sample_config, single_viewport_state):
        sample_config.show_title = False
        line = MarkupFormatter(sample_config).format(0, Snapshot(**single_viewport_state))
        assert "term" not in line
        assert line.endswith("</action>")

    def test_bracketed_labels(self, dual_viewport_state):
        """Pipe mode labels: [focused], (visible), plain idle."""
        config = BarConfig(
            socket_path="/dev/null",
            policy=ClassificationPolicy.GLOBAL,
            label_style=LabelStyle.BRACKETED,
            action_template="xdotool key alt+{name}",
            show_title=False
        )
        line = MarkupFormatter(config).format(0, Snapshot(**dual_viewport_state))

        assert f"<action=`xdotool key alt+3`><fc={config.colors.focused}>  [3]  </fc></action>" in line
        assert f"<action=`xdotool key alt+1`><fc={config.colors.visible}>  (1)  </fc></action>" in line
        assert "<action=`xdotool key alt+2`>   2   </action>" in line

    def test_invalid_template_fails_early(self):
        """A bad template is reported when the formatter is built, not per snapshot."""
        config = BarConfig(socket_path="/dev/null", action_template="awk {print}")

        with pytest.raises(InvalidTemplateError):
            MarkupFormatter(config)

    def test_unsafe_tag_rendered_without_action(self, dual_viewport_state):
        dual_viewport_state["desktop_names"].append("`x`")
        config = BarConfig(socket_path="/dev/null", action_template="xdotool key alt+{name}")
        line = MarkupFormatter(config).format(0, Snapshot(**dual_viewport_state))

        assert line.count("<action=") == 4
        assert "  `x`  " in line

    def test_title_markup_escaped(self, sample_config, single_viewport_state):
        single_viewport_state["window_title"] = "<b>"
        line = MarkupFormatter(sample_config).format(0, Snapshot(**single_viewport_state))
        assert line.endswith("     <raw=3:<b>/></fc>")

    def test_deterministic(self, sample_config, dual_viewport_state):
        snapshot = Snapshot(**dual_viewport_state)
        formatter = MarkupFormatter(sample_config)
        assert formatter.format(0, snapshot) == formatter.format(0, snapshot)

    def test_focused_color_exhaustive(self, sample_config):
        """Active tags on this viewport are focused-colored; unseen and own unfocused tags stay plain."""
        rng = random.Random(1234)
        formatter = MarkupFormatter(sample_config)
        colors = sample_config.colors

        for _ in range(200):
            snapshot = random_snapshot(rng)
            for index in range(len(snapshot.viewports)):
                rendered = tag_colors(formatter.format(index, snapshot))
                assert set(rendered) == set(snapshot.desktop_names)
                for name in snapshot.desktop_names:
                    if name in snapshot.active_set and name in snapshot.viewport_tags(index):
                        assert rendered[name] == colors.focused
                    if name not in snapshot.active_set and name not in snapshot.visible_tags:
                        assert rendered[name] == ""
                    if name in snapshot.viewport_tags(index) - snapshot.active_set:
                        assert rendered[name] == ""
