"""CLI entry point for pingpingli."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import yaml

from .game import LINE_DELAY, VERDICT_DELAY, GameController, Phase, winner_for_score
from .gateway import Gateway
from .models import GAME_MODEL
from .transcript import FORMATS, render_transcript, vote_bar


def _print_suggestions(topic: str, stance: str, suggestions: list[str], format: str) -> None:
    if format == "prose":
        print(f"话题：{topic}")
        print(f"观点：{stance}")
        print()
        for i, arg in enumerate(suggestions, 1):
            print(f"  {i:>2}. {arg}")
        return
    structured = {"schema_version": "1.0", "topic": topic, "stance": stance, "arguments": suggestions}
    if format == "json":
        print(json.dumps(structured, indent=2, ensure_ascii=False))
    else:
        print(yaml.dump(structured, allow_unicode=True, default_flow_style=False), end="")


def _print_verdict(args, verdict) -> None:
    winner = winner_for_score(verdict.vote_p1)
    winner_name = {1: args.p1_name, 2: args.p2_name}.get(winner)
    if args.format == "prose":
        print(f"话题：{args.topic}")
        print()
        for line in verdict.dialogue:
            print(f"{line.speaker}：{line.text}")
        print()
        print(f"{args.p1_name} {verdict.vote_p1}% {vote_bar(verdict.vote_p1)} {100 - verdict.vote_p1}% {args.p2_name}")
        print(f"\" {verdict.reason} \"")
        print(f"本轮胜者：{winner_name}" if winner_name else "本轮平局")
        return
    structured = {
        "schema_version": "1.0",
        "topic": args.topic,
        "players": [
            {"id": 1, "nickname": args.p1_name, "argument": args.judge[0]},
            {"id": 2, "nickname": args.p2_name, "argument": args.judge[1]},
        ],
        "dialogue": [{"speaker": line.speaker, "text": line.text} for line in verdict.dialogue],
        "vote_p1": verdict.vote_p1,
        "winner": winner,
        "reason": verdict.reason,
        "fallback": verdict.fallback,
    }
    if args.format == "json":
        print(json.dumps(structured, indent=2, ensure_ascii=False))
    else:
        print(yaml.dump(structured, allow_unicode=True, default_flow_style=False), end="")


def main():
    parser = argparse.ArgumentParser(
        description="都来评评理 - Two-player argument game refereed by an LLM",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pingpingli                                  # play in the terminal UI
  pingpingli --offline                        # no API calls, every round is a tie
  pingpingli -o game.md                       # save the transcript when you quit

One-shot oracle calls:
  pingpingli --topic "豆腐脑甜咸" --suggest "必须是咸的"
  pingpingli --topic "豆腐脑甜咸" --judge "咸的才下饭" "甜的才是本味" --format json

Environment:
  OPENROUTER_API_KEY   OpenRouter key (primary)
  GOOGLE_API_KEY       Google AI Studio key (fallback, or primary if alone)
        """,
    )
    parser.add_argument(
        "--topic", "-t",
        help="Dispute topic (for --suggest / --judge)",
    )
    parser.add_argument(
        "--suggest",
        metavar="STANCE",
        help="Print suggested arguments for STANCE on --topic and exit",
    )
    parser.add_argument(
        "--judge",
        nargs=2,
        metavar=("ARG1", "ARG2"),
        help="Adjudicate a single round between two arguments on --topic and exit",
    )
    parser.add_argument("--p1-name", default="P1", help="Player 1 name for --judge")
    parser.add_argument("--p2-name", default="P2", help="Player 2 name for --judge")
    parser.add_argument(
        "--format", "-f",
        choices=FORMATS,
        default="prose",
        help="Output format: json, yaml, prose (default)",
    )
    parser.add_argument(
        "--output", "-o",
        help="Save the game transcript to file when the TUI exits",
    )
    parser.add_argument(
        "--model",
        default=GAME_MODEL,
        help=f"OpenRouter model id (default: {GAME_MODEL})",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Never contact the oracle; rounds fall back to ties",
    )
    parser.add_argument(
        "--fast",
        action="store_true",
        help="Reveal dialogue immediately instead of line by line",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress status output",
    )
    args = parser.parse_args()

    if args.suggest and args.judge:
        parser.error("--suggest and --judge are mutually exclusive")
    if (args.suggest or args.judge) and not args.topic:
        parser.error("--suggest and --judge require --topic")
    if args.output and (args.suggest or args.judge):
        parser.error("--output only applies to a TUI game")

    gateway = Gateway.from_env(offline=args.offline, model=args.model, verbose=not args.quiet)
    if gateway.offline and not args.offline and not args.quiet:
        print(
            "(No OPENROUTER_API_KEY or GOOGLE_API_KEY set; playing offline, rounds fall back to ties)",
            file=sys.stderr,
        )

    if args.suggest:
        suggestions = asyncio.run(gateway.generate_arguments(args.topic, args.suggest))
        _print_suggestions(args.topic, args.suggest, suggestions, args.format)
        sys.exit(0)

    if args.judge:
        arg1, arg2 = args.judge
        verdict = asyncio.run(gateway.simulate_battle_round(
            args.topic, arg1, args.p1_name, arg2, args.p2_name,
        ))
        _print_verdict(args, verdict)
        sys.exit(0)

    # Status lines would tear the TUI; failures surface as notifications instead
    gateway.verbose = False
    controller = GameController(
        gateway,
        line_delay=0.0 if args.fast else LINE_DELAY,
        verdict_delay=0.0 if args.fast else VERDICT_DELAY,
    )

    from .tui import run_tui
    run_tui(controller)

    state = controller.state
    if args.output and (state.rounds or state.surrender_by is not None):
        Path(args.output).write_text(render_transcript(controller, args.format), encoding="utf-8")
        if not args.quiet:
            print(f"Transcript saved to: {args.output}")
    elif args.output and not args.quiet:
        print("(No rounds played; nothing saved)")

    if not args.quiet and state.phase is Phase.RESULT and gateway.total_cost:
        print(f"(~${gateway.total_cost:.3f})")


if __name__ == "__main__":
    main()
