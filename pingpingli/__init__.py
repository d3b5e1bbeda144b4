"""pingpingli (都来评评理) - Two-player argument game refereed by an LLM."""

from importlib.metadata import version as _version, PackageNotFoundError

try:
    __version__ = _version("pingpingli")
except PackageNotFoundError:
    __version__ = "dev"

from .game import (
    MAX_ROUNDS,
    TEAM_CAPACITY,
    BattleRound,
    GameController,
    GameState,
    InvalidTransition,
    Phase,
    Player,
    ValidationError,
    winner_for_score,
)

from .gateway import (
    DialogueLine,
    Gateway,
    GatewayFailure,
    RoundVerdict,
    generate_arguments,
    simulate_battle_round,
)

from .transcript import render_transcript

__all__ = [
    "GameController",
    "GameState",
    "Player",
    "BattleRound",
    "Phase",
    "ValidationError",
    "InvalidTransition",
    "winner_for_score",
    "MAX_ROUNDS",
    "TEAM_CAPACITY",
    "Gateway",
    "GatewayFailure",
    "DialogueLine",
    "RoundVerdict",
    "generate_arguments",
    "simulate_battle_round",
    "render_transcript",
]
