"""Functional tests for the TUI.

Drives PingPingLiApp through a whole game with a scripted gateway and no
playback delay, pressing the same buttons a player would.

Uses anyio (already a textual dependency) for async test support.
"""

import pytest
from textual.widgets import Button, ContentSwitcher, Input, SelectionList, Static

from pingpingli.game import GameController, Phase
from pingpingli.tui import ConfirmScreen, PhaseBar, PingPingLiApp

from conftest import FakeGateway


@pytest.fixture
def app():
    return PingPingLiApp(GameController(FakeGateway(votes=(70, 30, 60))))


async def press(pilot, selector: str) -> None:
    pilot.app.screen.query_one(selector, Button).press()
    await pilot.pause()
    await pilot.app.workers.wait_for_complete()
    await pilot.pause()


async def fill_setup(pilot, p1="甲", p2="乙", topic="豆腐脑甜咸") -> None:
    app = pilot.app
    app.query_one("#p1-name", Input).value = p1
    app.query_one("#p2-name", Input).value = p2
    app.query_one("#topic", Input).value = topic
    await press(pilot, "#start")


async def draft(pilot, stance: str, picks: list[int]) -> None:
    app = pilot.app
    app.query_one("#stance", Input).value = stance
    await press(pilot, "#summon")
    player = app.controller.drafting_player()
    for i in picks:
        app.controller.toggle_argument(app.controller.state.suggestions[i], player.id)
    app._fill_suggestions()
    await press(pilot, "#draft-done")


def current_screen(app) -> str:
    return app.query_one(ContentSwitcher).current


@pytest.mark.anyio
async def test_starts_on_setup(app):
    async with app.run_test(size=(100, 40)) as pilot:
        await pilot.pause()
        assert current_screen(app) == "setup"
        assert "准备" in app.query_one(PhaseBar).phase


@pytest.mark.anyio
async def test_setup_validation_message(app):
    async with app.run_test(size=(100, 40)) as pilot:
        await fill_setup(pilot, topic="")
        assert current_screen(app) == "setup"
        assert app.controller.state.phase is Phase.SETUP
        error = app.query_one("#setup-error", Static)
        assert "昵称" in str(error.render())


@pytest.mark.anyio
async def test_summon_fills_suggestions(app):
    async with app.run_test(size=(100, 40)) as pilot:
        await fill_setup(pilot)
        assert current_screen(app) == "draft"
        app.query_one("#stance", Input).value = "必须是咸的"
        await press(pilot, "#summon")
        selection = app.query_one("#suggestions", SelectionList)
        assert selection.option_count == 3
        assert app.controller.gateway.calls[0] == ("suggest", "豆腐脑甜咸", "必须是咸的")


@pytest.mark.anyio
async def test_draft_requires_a_pick(app):
    async with app.run_test(size=(100, 40)) as pilot:
        await fill_setup(pilot)
        await press(pilot, "#draft-done")
        assert app.controller.state.phase is Phase.P1_DRAFT
        assert "至少" in str(app.query_one("#draft-error", Static).render())


@pytest.mark.anyio
async def test_full_game_with_manual_round(app):
    async with app.run_test(size=(100, 40)) as pilot:
        await fill_setup(pilot)
        await draft(pilot, "必须是咸的", [0, 1])
        assert current_screen(app) == "draft"
        await draft(pilot, "必须是甜的", [2])

        # Round 1 starts by itself
        state = app.controller.state
        assert current_screen(app) == "battle"
        assert len(state.rounds) == 1
        assert app.query_one("#verdict-box").display
        assert len(state.rounds[0].dialogue) == 3

        # Round 2: player 2 has to retort in person
        await press(pilot, "#next-round")
        assert app.query_one("#manual-box").display
        assert len(state.rounds) == 1
        app.query_one("#manual-input", Input).value = "甜的才是本味"
        await press(pilot, "#manual-submit")
        assert len(state.rounds) == 2
        assert state.rounds[1].is_p2_manual

        # Round 3: nobody has anything left
        await press(pilot, "#next-round")
        assert state.phase is Phase.RESULT
        assert current_screen(app) == "result"
        assert state.total_p1_votes + state.total_p2_votes == 200


@pytest.mark.anyio
async def test_surrender_needs_confirmation(app):
    async with app.run_test(size=(100, 40)) as pilot:
        await fill_setup(pilot)
        await draft(pilot, "必须是咸的", [0])
        await draft(pilot, "必须是甜的", [1])

        await press(pilot, "#surrender-1")
        assert isinstance(app.screen, ConfirmScreen)
        await press(pilot, "#confirm-no")
        assert app.controller.state.phase is Phase.BATTLE

        await press(pilot, "#surrender-1")
        await press(pilot, "#confirm-yes")
        state = app.controller.state
        assert state.phase is Phase.RESULT
        assert state.surrender_by == 1
        assert app.controller.final_winner() == 2
        assert "乙" in str(app.query_one("#result-winner", Static).render())


@pytest.mark.anyio
async def test_rematch_and_reset(app):
    async with app.run_test(size=(100, 40)) as pilot:
        await fill_setup(pilot)
        app.controller.surrender(2)
        app._show_phase()
        await pilot.pause()

        await press(pilot, "#rematch")
        assert current_screen(app) == "draft"
        assert app.controller.state.topic == "豆腐脑甜咸"

        app.controller.surrender(1)
        app._show_phase()
        await pilot.pause()
        await press(pilot, "#reset")
        assert current_screen(app) == "setup"
        assert app.query_one("#topic", Input).value == ""
