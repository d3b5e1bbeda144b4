import json

import pytest
import yaml

from pingpingli.game import GameController
from pingpingli.transcript import render_transcript, vote_bar

from conftest import FakeGateway


async def finished_game():
    """Two rounds played, then both sides ran dry."""
    controller = GameController(FakeGateway(votes=(70, 30, 80)))
    controller.complete_setup("甲", "乙", "豆腐脑甜咸")
    for arg in ("咸的才下饭", "老祖宗都吃咸的"):
        controller.toggle_argument(arg, 1)
    controller.confirm_draft(1, "必须是咸的")
    controller.toggle_argument("甜的才是本味", 2)
    controller.confirm_draft(2, "必须是甜的")
    await controller.advance_round()
    controller.accept_round_result()
    await controller.advance_round("甜的就是好吃")
    controller.accept_round_result()
    await controller.advance_round()
    return controller


@pytest.mark.anyio
async def test_prose_transcript():
    game = await finished_game()
    text = render_transcript(game, "prose")
    assert text.startswith("# 都来评评理：豆腐脑甜咸")
    assert "## Round 1 / 3" in text
    assert "## Round 2 / 3" in text
    assert "(乙 亲自上场)" in text
    assert "总票数：甲 100 : 100 乙" in text
    assert "🤝 平局" in text


@pytest.mark.anyio
async def test_json_transcript():
    game = await finished_game()
    data = json.loads(render_transcript(game, "json"))
    assert data["topic"] == "豆腐脑甜咸"
    assert data["phase"] == "RESULT"
    assert len(data["rounds"]) == 2
    assert data["rounds"][1]["p2_manual"] is True
    assert data["totals"]["p1"] + data["totals"]["p2"] == 100 * len(data["rounds"])
    assert data["winner"] == 0
    assert data["meta"]["model"] == "fake/referee"


@pytest.mark.anyio
async def test_yaml_transcript():
    game = await finished_game()
    data = yaml.safe_load(render_transcript(game, "yaml"))
    assert data["players"][0]["team"] == ["咸的才下饭", "老祖宗都吃咸的"]
    assert data["rounds"][0]["dialogue"][0] == {"speaker": "甲", "text": "咸的才下饭"}
    assert data["surrender_by"] is None


def test_surrender_transcript():
    controller = GameController(FakeGateway())
    controller.complete_setup("甲", "乙", "T")
    controller.surrender(2)
    text = render_transcript(controller)
    assert "乙 举白旗投降了！" in text
    assert "🎉 甲 🎉" in text


def test_unknown_format():
    with pytest.raises(ValueError):
        render_transcript(GameController(FakeGateway()), "xml")


def test_vote_bar():
    assert vote_bar(50, width=10) == "█████░░░░░"
    assert vote_bar(0, width=4) == "░░░░"
    assert vote_bar(100, width=4) == "████"
