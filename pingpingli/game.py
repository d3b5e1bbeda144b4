"""Game flow controller: phases, drafted teams, battle rounds, scores.

Setup -> P1 draft -> P2 draft -> Battle -> Result, with Result -> P1 draft
(rematch) and Result -> Setup (reset). A surrender jumps straight to Result
from any phase after setup. Operations raise ValidationError and leave the
state untouched when their preconditions fail.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from .gateway import DialogueLine, Gateway

MAX_ROUNDS = 3
TEAM_CAPACITY = 10
NICKNAME_MAX_LEN = 8
TOPIC_MAX_LEN = 25
MAIN_VIEW_MAX_LEN = 20

OUT_OF_ARGUMENTS = "我没词了！"

# Playback pacing used by the TUI (seconds)
LINE_DELAY = 1.5
VERDICT_DELAY = 1.0


class Phase(Enum):
    SETUP = "SETUP"
    P1_DRAFT = "P1_DRAFT"
    P2_DRAFT = "P2_DRAFT"
    BATTLE = "BATTLE"
    RESULT = "RESULT"


TRANSITIONS: dict[Phase, set[Phase]] = {
    Phase.SETUP: {Phase.P1_DRAFT},
    Phase.P1_DRAFT: {Phase.P2_DRAFT, Phase.RESULT},
    Phase.P2_DRAFT: {Phase.BATTLE, Phase.RESULT},
    Phase.BATTLE: {Phase.RESULT},
    Phase.RESULT: {Phase.P1_DRAFT, Phase.SETUP},
}

DRAFT_PHASES = {1: Phase.P1_DRAFT, 2: Phase.P2_DRAFT}


class ValidationError(Exception):
    """User input missing or invalid; shown inline, state unchanged."""


class InvalidTransition(ValidationError):
    """Operation attempted in a phase that does not allow it."""


@dataclass
class Player:
    id: int
    nickname: str = ""
    avatar_id: str = ""
    main_view: str = ""
    team: list[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.avatar_id:
            self.avatar_id = str(self.id)


@dataclass(frozen=True)
class BattleRound:
    round_number: int
    p1_arg: str
    p2_arg: str
    is_p1_manual: bool
    is_p2_manual: bool
    dialogue: tuple[DialogueLine, ...]
    vote_p1: int
    winner_id: int
    reason: str

    @property
    def vote_p2(self) -> int:
        return 100 - self.vote_p1


@dataclass
class GameState:
    topic: str = ""
    p1: Player = field(default_factory=lambda: Player(1))
    p2: Player = field(default_factory=lambda: Player(2))
    rounds: list[BattleRound] = field(default_factory=list)
    current_round_index: int = 0
    total_p1_votes: int = 0
    total_p2_votes: int = 0
    phase: Phase = Phase.SETUP
    is_battle_processing: bool = False
    surrender_by: int | None = None
    # Scratch input that belongs to the current screen
    draft_input: str = ""
    suggestions: list[str] = field(default_factory=list)
    manual_input: str = ""
    result_shown: bool = False

    def player(self, player_id: int) -> Player:
        if player_id == 1:
            return self.p1
        if player_id == 2:
            return self.p2
        raise ValueError(f"no player {player_id!r}")


def winner_for_score(score: int) -> int:
    """Round winner from player 1's score: 1, 2, or 0 for an exact tie."""
    if score > 50:
        return 1
    if score < 50:
        return 2
    return 0


def _clean(text: str | None, max_len: int) -> str:
    return (text or "").strip()[:max_len]


class GameController:
    """Single writer of GameState. Drives the gateway once per round."""

    def __init__(
        self,
        gateway: Gateway,
        line_delay: float = 0.0,
        verdict_delay: float = 0.0,
    ):
        self.gateway = gateway
        self.line_delay = line_delay
        self.verdict_delay = verdict_delay
        self.state = GameState()
        # Bumped whenever a pending verdict must no longer be applied
        self._epoch = 0

    # ── transitions ─────────────────────────────────────────────────

    def _transition(self, target: Phase) -> None:
        current = self.state.phase
        if target not in TRANSITIONS[current]:
            raise InvalidTransition(f"cannot go from {current.value} to {target.value}")
        self.state.phase = target

    def _require_phase(self, *phases: Phase) -> None:
        if self.state.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise InvalidTransition(f"not allowed in {self.state.phase.value} (needs {allowed})")

    def _finish(self) -> None:
        self._transition(Phase.RESULT)
        self.state.result_shown = False
        self.state.manual_input = ""

    # ── setup & draft ───────────────────────────────────────────────

    def complete_setup(self, p1_name: str, p2_name: str, topic: str) -> None:
        self._require_phase(Phase.SETUP)
        p1_name = _clean(p1_name, NICKNAME_MAX_LEN)
        p2_name = _clean(p2_name, NICKNAME_MAX_LEN)
        topic = _clean(topic, TOPIC_MAX_LEN)
        if not p1_name or not p2_name or not topic:
            raise ValidationError("请填写好双方昵称和吵架主题哦！")
        self.state.p1.nickname = p1_name
        self.state.p2.nickname = p2_name
        self.state.topic = topic
        self._transition(Phase.P1_DRAFT)

    def drafting_player(self) -> Player | None:
        for player_id, phase in DRAFT_PHASES.items():
            if self.state.phase is phase:
                return self.state.player(player_id)
        return None

    async def suggest_arguments(self, stance: str) -> list[str]:
        """Ask the oracle for arguments backing the drafting player's stance."""
        self._require_phase(Phase.P1_DRAFT, Phase.P2_DRAFT)
        stance = _clean(stance, MAIN_VIEW_MAX_LEN)
        if not stance:
            raise ValidationError("先说说你的核心观点！")
        phase = self.state.phase
        epoch = self._epoch
        self.state.draft_input = stance
        suggestions = await self.gateway.generate_arguments(self.state.topic, stance)
        if epoch == self._epoch and self.state.phase is phase:
            self.state.suggestions = suggestions
        return suggestions

    def toggle_argument(self, arg: str, player_id: int) -> bool:
        """Add or remove arg from the player's team. Returns membership after."""
        self._require_phase(DRAFT_PHASES[player_id])
        team = self.state.player(player_id).team
        if arg in team:
            team.remove(arg)
            return False
        if len(team) >= TEAM_CAPACITY:
            return False
        team.append(arg)
        return True

    def confirm_draft(self, player_id: int, main_view: str | None = None) -> None:
        self._require_phase(DRAFT_PHASES[player_id])
        player = self.state.player(player_id)
        if not player.team:
            raise ValidationError("请至少选择一个吵架理由！")
        if main_view is None:
            main_view = self.state.draft_input
        player.main_view = _clean(main_view, MAIN_VIEW_MAX_LEN)
        self.state.draft_input = ""
        self.state.suggestions = []
        self._transition(Phase.P2_DRAFT if player_id == 1 else Phase.BATTLE)

    # ── battle queries ──────────────────────────────────────────────

    def prepared_argument(self, player_id: int, index: int | None = None) -> str | None:
        if index is None:
            index = self.state.current_round_index
        team = self.state.player(player_id).team
        if 0 <= index < len(team) and team[index]:
            return team[index]
        return None

    def round_played(self) -> bool:
        return len(self.state.rounds) > self.state.current_round_index

    def _round_open(self) -> bool:
        state = self.state
        return (
            state.phase is Phase.BATTLE
            and state.current_round_index < MAX_ROUNDS
            and not state.is_battle_processing
            and not state.result_shown
            and not self.round_played()
        )

    def should_auto_start(self) -> bool:
        """Both sides have a prepared argument for an unplayed round."""
        return (
            self._round_open()
            and self.prepared_argument(1) is not None
            and self.prepared_argument(2) is not None
        )

    def needs_manual_input(self) -> bool:
        """Exactly one side ran out of prepared arguments."""
        if not self._round_open():
            return False
        return (self.prepared_argument(1) is None) != (self.prepared_argument(2) is None)

    def manual_player_id(self) -> int | None:
        if not self.needs_manual_input():
            return None
        return 1 if self.prepared_argument(1) is None else 2

    def is_exhausted(self) -> bool:
        """Neither side has anything left for this round."""
        return (
            self._round_open()
            and self.prepared_argument(1) is None
            and self.prepared_argument(2) is None
        )

    def current_round(self) -> BattleRound | None:
        index = self.state.current_round_index
        if index < len(self.state.rounds):
            return self.state.rounds[index]
        return None

    # ── battle operations ───────────────────────────────────────────

    async def advance_round(
        self,
        manual_text: str | None = None,
        on_line: Callable[[DialogueLine], None] | None = None,
    ) -> BattleRound | None:
        """Play the current round. Returns None if the game ended instead."""
        state = self.state
        self._require_phase(Phase.BATTLE)
        if state.is_battle_processing:
            raise ValidationError("正在激烈交涉中...")

        index = state.current_round_index
        if index >= MAX_ROUNDS:
            self._finish()
            return None
        if self.round_played():
            raise ValidationError(f"第 {index + 1} 轮已经吵完了")

        p1_arg = self.prepared_argument(1, index)
        p2_arg = self.prepared_argument(2, index)
        manual_text = (manual_text or "").strip() or None

        # Both sides exhausted: nothing left to argue about
        if p1_arg is None and p2_arg is None:
            self._finish()
            return None

        is_p1_manual = is_p2_manual = False
        if p1_arg is None:
            if manual_text:
                p1_arg, is_p1_manual = manual_text, True
            else:
                p1_arg = OUT_OF_ARGUMENTS
        if p2_arg is None:
            if manual_text:
                p2_arg, is_p2_manual = manual_text, True
            else:
                p2_arg = OUT_OF_ARGUMENTS

        epoch = self._epoch
        state.is_battle_processing = True
        try:
            verdict = await self.gateway.simulate_battle_round(
                state.topic,
                p1_arg, state.p1.nickname,
                p2_arg, state.p2.nickname,
                is_p1_manual, is_p2_manual,
            )
        finally:
            if epoch == self._epoch:
                state.is_battle_processing = False
        if epoch != self._epoch:
            return None

        for line in verdict.dialogue:
            if self.line_delay:
                await asyncio.sleep(self.line_delay)
            if epoch != self._epoch:
                return None
            if on_line is not None:
                on_line(line)
        if self.verdict_delay:
            await asyncio.sleep(self.verdict_delay)
        if epoch != self._epoch:
            return None

        vote_p1 = max(0, min(100, round(verdict.vote_p1)))
        battle_round = BattleRound(
            round_number=index + 1,
            p1_arg=p1_arg,
            p2_arg=p2_arg,
            is_p1_manual=is_p1_manual,
            is_p2_manual=is_p2_manual,
            dialogue=tuple(verdict.dialogue),
            vote_p1=vote_p1,
            winner_id=winner_for_score(vote_p1),
            reason=verdict.reason,
        )
        state.rounds.append(battle_round)
        state.total_p1_votes += vote_p1
        state.total_p2_votes += 100 - vote_p1
        state.result_shown = True
        state.manual_input = ""
        return battle_round

    def accept_round_result(self) -> None:
        """Dismiss the verdict card and move on to the next round (or Result)."""
        self._require_phase(Phase.BATTLE)
        if not self.state.result_shown:
            raise ValidationError("这一轮还没出结果")
        self.state.result_shown = False
        next_index = len(self.state.rounds)
        if next_index >= MAX_ROUNDS:
            self._finish()
        else:
            self.state.current_round_index = next_index

    def surrender(self, player_id: int) -> None:
        self._require_phase(Phase.P1_DRAFT, Phase.P2_DRAFT, Phase.BATTLE)
        self.state.player(player_id)
        self._epoch += 1
        self.state.surrender_by = player_id
        self.state.is_battle_processing = False
        self._finish()

    # ── endings ─────────────────────────────────────────────────────

    def final_winner(self) -> int:
        """1 or 2; 0 when the totals are level and nobody surrendered."""
        state = self.state
        if state.surrender_by is not None:
            return 2 if state.surrender_by == 1 else 1
        if state.total_p1_votes > state.total_p2_votes:
            return 1
        if state.total_p1_votes < state.total_p2_votes:
            return 2
        return 0

    def final_reason(self) -> str:
        state = self.state
        if state.surrender_by is not None:
            return f"{state.player(state.surrender_by).nickname} 举白旗投降了！"
        if not state.rounds:
            return "双方都没词了，握手言和"
        if self.final_winner() == 0:
            return "几轮下来旗鼓相当，谁也说服不了谁"
        return "经过几轮激烈的唇枪舌战..."

    def reset(self) -> None:
        """Start over from setup with nothing kept."""
        self._require_phase(Phase.RESULT)
        self._epoch += 1
        self.state = GameState()

    def rematch(self) -> None:
        """Same topic and players; rounds and scores cleared, drafting again."""
        self._require_phase(Phase.RESULT)
        self._epoch += 1
        state = self.state
        state.rounds = []
        state.current_round_index = 0
        state.total_p1_votes = 0
        state.total_p2_votes = 0
        state.surrender_by = None
        state.is_battle_processing = False
        state.result_shown = False
        state.draft_input = ""
        state.suggestions = []
        state.manual_input = ""
        self._transition(Phase.P1_DRAFT)
