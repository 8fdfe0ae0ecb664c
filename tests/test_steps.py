"""Tests for the Step entity, ordering and inspection helpers."""

import pytest

from conftest import click, navigation
from cursorflow.events import InteractionKind
from cursorflow.steps import (
    Step,
    StepState,
    get_clicked_text,
    get_display_url,
    get_element_tag_name,
    get_navigation_url,
    get_step_type,
    has_valid_screenshot,
    move_step,
    renumber_positions,
    sort_steps,
    truncate_url,
)


def _steps(*positions):
    return [
        Step(id=f"s{i}", flow_id="flow-1", position=position)
        for i, position in enumerate(positions)
    ]


class TestStep:
    """Tests for Step properties."""

    def test_ids_are_unique(self):
        """Test each step gets its own id."""
        a, b = _steps(1000, 2000)
        assert Step(flow_id="f", position=1).id != Step(flow_id="f", position=1).id
        assert a.id != b.id

    def test_state(self):
        """Test the soft-delete state follows is_removed."""
        step = Step(flow_id="f", position=1000)
        assert step.state == StepState.ACTIVE
        step.is_removed = True
        assert step.state == StepState.REMOVED

    def test_has_anchor(self):
        """Test an anchor needs both coordinates."""
        assert Step(flow_id="f", position=1, cursor_position_x=1, cursor_position_y=2).has_anchor
        assert not Step(flow_id="f", position=1, cursor_position_x=1).has_anchor

    def test_viewport_from_payload(self):
        """Test the viewport is read from the element snapshot."""
        step = Step(flow_id="f", position=1, interaction_payload=click(1, 1, viewport=(800, 600)))
        assert (step.viewport.width, step.viewport.height) == (800, 600)
        assert step.viewport.device_pixel_ratio == 2


class TestOrdering:
    """Tests for position management."""

    def test_renumber_positions(self):
        """Test renumbering keeps order and restores spacing."""
        steps = renumber_positions(_steps(3, 4, 10))
        assert [step.position for step in steps] == [1000, 2000, 3000]
        assert [step.id for step in steps] == ["s0", "s1", "s2"]

    def test_sort_steps(self):
        """Test steps sort by position."""
        assert [step.id for step in sort_steps(_steps(3000, 1000, 2000))] == ["s1", "s2", "s0"]

    def test_move_between(self):
        """Test moving into a gap only changes the moved step."""
        steps = _steps(1000, 2000, 3000)
        ordered = move_step(steps, "s2", 1)
        assert [step.id for step in ordered] == ["s0", "s2", "s1"]
        assert [step.position for step in ordered] == [1000, 1500, 2000]

    def test_move_to_front(self):
        """Test moving to index 0."""
        ordered = move_step(_steps(1000, 2000, 3000), "s1", 0)
        assert [step.id for step in ordered] == ["s1", "s0", "s2"]
        assert ordered[0].position == 500

    def test_move_to_end(self):
        """Test moving past the last step."""
        ordered = move_step(_steps(1000, 2000, 3000), "s0", 10)
        assert [step.id for step in ordered] == ["s1", "s2", "s0"]
        assert ordered[-1].position == 4000

    def test_exhausted_gap_renumbers(self):
        """Test a move with no integer gap renumbers first."""
        ordered = move_step(_steps(1000, 1001, 5000), "s2", 1)
        assert [step.id for step in ordered] == ["s0", "s2", "s1"]
        positions = [step.position for step in ordered]
        assert positions == sorted(positions)
        assert len(set(positions)) == 3

    def test_repeated_inserts_stay_unique(self):
        """Test many inserts between the same neighbours never collide."""
        steps = _steps(1000, 2000, 3000)
        for _ in range(20):
            steps = move_step(steps, steps[-1].id, 1)
        positions = [step.position for step in steps]
        assert positions == sorted(positions)
        assert len(set(positions)) == len(positions)

    def test_move_unknown_step(self):
        """Test moving an unknown step raises KeyError."""
        with pytest.raises(KeyError):
            move_step(_steps(1000), "nope", 0)


class TestInspection:
    """Tests for step inspection helpers."""

    def test_step_type(self):
        """Test the step type from the payload."""
        nav = Step(flow_id="f", position=1, interaction_payload=navigation("a", "b"))
        assert get_step_type(nav) == InteractionKind.NAVIGATION
        assert get_step_type(Step(flow_id="f", position=1)) == InteractionKind.CLICK
        assert get_step_type(None) == InteractionKind.CLICK

    def test_navigation_url(self):
        """Test only navigation steps report a destination URL."""
        nav = Step(
            flow_id="f",
            position=1,
            interaction_payload=navigation("https://a/", "https://a.test/b/c?q=1"),
        )
        assert get_navigation_url(nav) == "https://a.test/b/c?q=1"
        assert get_display_url(nav) == "a.test/b/c"
        clicked = Step(flow_id="f", position=1, interaction_payload=click(1, 1))
        assert get_navigation_url(clicked) is None
        assert get_display_url(clicked) == "Unknown URL"

    def test_display_url_unparseable(self):
        """Test a URL without a host is shown as-is."""
        nav = Step(flow_id="f", position=1, interaction_payload=navigation("x", "not a url"))
        assert get_display_url(nav) == "not a url"

    def test_truncate_url(self):
        """Test query strings are dropped."""
        assert truncate_url("https://a/b?x=1&y=2") == "https://a/b"
        assert truncate_url(None) == "Unknown URL"

    def test_element_details(self):
        """Test text and tag name of the clicked element."""
        step = Step(flow_id="f", position=1, interaction_payload=click(1, 1, text="Go"))
        assert get_clicked_text(step) == "Go"
        assert get_element_tag_name(step) == "BUTTON"
        assert get_clicked_text(Step(flow_id="f", position=1)) is None

    def test_has_valid_screenshot(self):
        """Test a screenshot is valid only when a URL is set."""
        assert not has_valid_screenshot(Step(flow_id="f", position=1))
        assert has_valid_screenshot(
            Step(flow_id="f", position=1, screenshot_url="file:///tmp/a.png")
        )
        assert not has_valid_screenshot(None)
