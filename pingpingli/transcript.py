"""Render a game as prose Markdown, JSON, or YAML."""

import json
from datetime import datetime

import yaml

from .game import MAX_ROUNDS, GameController

FORMATS = ("prose", "json", "yaml")


def _winner_name(controller: GameController) -> str | None:
    winner = controller.final_winner()
    if winner == 0:
        return None
    return controller.state.player(winner).nickname


def structured_transcript(controller: GameController) -> dict:
    state = controller.state
    return {
        "schema_version": "1.0",
        "topic": state.topic,
        "phase": state.phase.value,
        "players": [
            {
                "id": player.id,
                "nickname": player.nickname,
                "main_view": player.main_view,
                "team": list(player.team),
            }
            for player in (state.p1, state.p2)
        ],
        "rounds": [
            {
                "round": r.round_number,
                "p1_arg": r.p1_arg,
                "p2_arg": r.p2_arg,
                "p1_manual": r.is_p1_manual,
                "p2_manual": r.is_p2_manual,
                "dialogue": [{"speaker": line.speaker, "text": line.text} for line in r.dialogue],
                "vote_p1": r.vote_p1,
                "winner": r.winner_id,
                "reason": r.reason,
            }
            for r in state.rounds
        ],
        "totals": {"p1": state.total_p1_votes, "p2": state.total_p2_votes},
        "winner": controller.final_winner(),
        "surrender_by": state.surrender_by,
        "meta": {
            "timestamp": datetime.now().isoformat(),
            "max_rounds": MAX_ROUNDS,
            "model": controller.gateway.model,
            "estimated_cost_usd": controller.gateway.total_cost,
        },
    }


def vote_bar(vote_p1: int, width: int = 20) -> str:
    filled = round(width * vote_p1 / 100)
    return "█" * filled + "░" * (width - filled)


def prose_transcript(controller: GameController) -> str:
    state = controller.state
    p1, p2 = state.p1.nickname, state.p2.nickname
    parts = [
        f"# 都来评评理：{state.topic}",
        f"**{p1}**：{state.p1.main_view or '—'}  \n**{p2}**：{state.p2.main_view or '—'}",
    ]
    for r in state.rounds:
        lines = [f"## Round {r.round_number} / {MAX_ROUNDS}", ""]
        for line in r.dialogue:
            lines.append(f"- **{line.speaker}**：{line.text}")
        manual = [name for name, flag in ((p1, r.is_p1_manual), (p2, r.is_p2_manual)) if flag]
        if manual:
            lines.append("")
            lines.append(f"({'、'.join(manual)} 亲自上场)")
        lines.append("")
        lines.append(f"{p1} {r.vote_p1}% {vote_bar(r.vote_p1)} {r.vote_p2}% {p2}")
        lines.append("")
        lines.append(f"> {r.reason}")
        parts.append("\n".join(lines))

    winner = _winner_name(controller)
    result = [
        "## 结果",
        "",
        controller.final_reason(),
        "",
        f"总票数：{p1} {state.total_p1_votes} : {state.total_p2_votes} {p2}",
        "",
        f"🎉 {winner} 🎉" if winner else "🤝 平局",
    ]
    parts.append("\n".join(result))
    return "\n\n".join(parts) + "\n"


def render_transcript(controller: GameController, format: str = "prose") -> str:
    if format == "json":
        return json.dumps(structured_transcript(controller), indent=2, ensure_ascii=False)
    if format == "yaml":
        return yaml.dump(structured_transcript(controller), allow_unicode=True, default_flow_style=False)
    if format == "prose":
        return prose_transcript(controller)
    raise ValueError(f"unknown format {format!r}; expected one of {', '.join(FORMATS)}")
