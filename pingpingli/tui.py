"""Textual TUI for pingpingli.

One screen per phase inside a ContentSwitcher: setup, draft (shared by both
players), battle with paced dialogue playback, and the final verdict. The
phase bar tracks the round, the running score and the oracle cost.
"""

import time

from rich.text import Text
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.theme import Theme
from textual.widgets import (
    Button,
    ContentSwitcher,
    Footer,
    Input,
    Label,
    ProgressBar,
    RichLog,
    SelectionList,
    Static,
)

from .game import (
    MAIN_VIEW_MAX_LEN,
    MAX_ROUNDS,
    NICKNAME_MAX_LEN,
    TEAM_CAPACITY,
    TOPIC_MAX_LEN,
    BattleRound,
    GameController,
    Phase,
    ValidationError,
)
from .gateway import DialogueLine

# Flexoki dark theme: https://stephango.com/flexoki
_FLEXOKI = Theme(
    name="flexoki-dark",
    primary="#DA702C",      # orange-400
    secondary="#4385BE",    # blue-400
    accent="#8B7EC8",       # purple-400
    foreground="#CECDC3",   # base-200
    background="#100F0F",   # black
    success="#879A39",      # green-400
    warning="#D0A215",      # yellow-400
    error="#D14D41",        # red-400
    surface="#1C1B1A",      # base-950
    panel="#282726",        # base-900
    dark=True,
    variables={
        "block-cursor-text-style": "none",
        "footer-key-foreground": "#DA702C",
        "input-selection-background": "#4385BE 35%",
    },
)

P1_STYLE = "bold #4385BE"
P2_STYLE = "bold #DA702C"

PHASE_SCREENS = {
    Phase.SETUP: "setup",
    Phase.P1_DRAFT: "draft",
    Phase.P2_DRAFT: "draft",
    Phase.BATTLE: "battle",
    Phase.RESULT: "result",
}


class PhaseBar(Static):
    """Top bar: current phase, score, elapsed time, running cost."""

    phase = reactive("准备开吵…")
    score = reactive("")
    elapsed = reactive(0.0)
    cost = reactive(0.0)

    def render(self) -> Text:
        mins, secs = divmod(int(self.elapsed), 60)
        t = Text()
        t.append(f" {self.phase} ", style="bold")
        if self.score:
            t.append(" │ ", style="dim")
            t.append(self.score, style="bold")
        t.append(" │ ", style="dim")
        t.append(f"{mins}:{secs:02d}", style="bold")
        t.append(" │ ", style="dim")
        t.append(f"${self.cost:.3f}", style="bold yellow")
        return t


class ConfirmScreen(ModalScreen[bool]):
    """Yes/no dialog, dismissed with the answer."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, question: str):
        super().__init__()
        self.question = question

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-box"):
            yield Label(Text(self.question), id="confirm-question")
            with Horizontal(classes="row"):
                yield Button("确定", variant="error", id="confirm-yes")
                yield Button("再想想", id="confirm-no")

    @on(Button.Pressed)
    def answer(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm-yes")

    def action_cancel(self) -> None:
        self.dismiss(False)


class PingPingLiApp(App):
    """Two players, one topic, three rounds, one AI referee."""

    TITLE = "都来评评理"

    CSS = """
    PhaseBar {
        dock: top;
        height: 1;
        background: $surface;
    }
    #phases {
        height: 1fr;
        padding: 1 2;
    }
    .row {
        height: auto;
    }
    .row > Input {
        width: 1fr;
    }
    .error {
        color: $error;
        height: auto;
    }
    #title, #draft-title, #round-header, #result-winner {
        text-style: bold;
        content-align: center middle;
        width: 100%;
    }
    #vs {
        width: 6;
        content-align: center middle;
    }
    #suggestions {
        height: 1fr;
    }
    #dialogue {
        height: 1fr;
        scrollbar-size: 1 1;
    }
    #manual-box, #verdict-box {
        height: auto;
        border: round $accent;
        padding: 0 1;
    }
    #processing {
        color: $warning;
        text-style: italic;
    }
    .surrender {
        min-width: 12;
    }
    ConfirmScreen {
        align: center middle;
    }
    #confirm-box {
        width: 48;
        height: auto;
        border: thick $error;
        background: $surface;
        padding: 1 2;
    }
    """

    BINDINGS = [
        Binding("f2", "surrender(1)", "P1 认输"),
        Binding("f3", "surrender(2)", "P2 认输"),
    ]

    def __init__(self, controller: GameController):
        super().__init__()
        self.controller = controller
        self.start_time: float | None = None

    def compose(self) -> ComposeResult:
        yield PhaseBar()
        with ContentSwitcher(initial="setup", id="phases"):
            with Vertical(id="setup"):
                yield Static("都来评评理", id="title")
                with Horizontal(classes="row"):
                    yield Input(placeholder="昵称 1", max_length=NICKNAME_MAX_LEN, id="p1-name")
                    yield Static("VS", id="vs")
                    yield Input(placeholder="昵称 2", max_length=NICKNAME_MAX_LEN, id="p2-name")
                yield Input(
                    placeholder="✍️ 吵架问题：需双方协商一致后填入（25字内）",
                    max_length=TOPIC_MAX_LEN,
                    id="topic",
                )
                yield Static("", id="setup-error", classes="error")
                yield Button("🔥 开始吵架！ 🔥", variant="warning", id="start")
            with Vertical(id="draft"):
                yield Static("", id="draft-title")
                with Horizontal(classes="row"):
                    yield Input(
                        placeholder="你的核心观点（20字以内），例如：豆腐脑必须是咸的！",
                        max_length=MAIN_VIEW_MAX_LEN,
                        id="stance",
                    )
                    yield Button("🧞 召唤外援", id="summon")
                yield SelectionList[str](id="suggestions")
                yield Static("", id="draft-error", classes="error")
                yield Button("", variant="primary", id="draft-done")
            with Vertical(id="battle"):
                yield Static("", id="round-header")
                with Horizontal(classes="row"):
                    yield Button("", id="surrender-1", classes="surrender")
                    yield Button("", id="surrender-2", classes="surrender")
                yield RichLog(id="dialogue", highlight=False, markup=False, wrap=True)
                yield Static("🤬 激烈交涉中...", id="processing")
                with Vertical(id="manual-box"):
                    yield Static("", id="manual-prompt")
                    yield Input(placeholder="输入你的神反击...", id="manual-input")
                    yield Button("🗣️ 亲自反击！", variant="error", id="manual-submit")
                with Vertical(id="verdict-box"):
                    yield Static("", id="verdict-score")
                    yield ProgressBar(total=100, show_eta=False, id="verdict-bar")
                    yield Static("", id="verdict-reason")
                    yield Button("", variant="primary", id="next-round")
            with Vertical(id="result"):
                yield Static("", id="result-reason")
                yield Static("", id="result-score")
                yield Static("", id="result-winner")
                with Horizontal(classes="row"):
                    yield Button("🕊️ 接受结果，和平相处", variant="primary", id="reset")
                    yield Button("😤 不服！再战", id="rematch")
        yield Footer()

    def on_mount(self) -> None:
        self.register_theme(_FLEXOKI)
        self.theme = "flexoki-dark"
        self.start_time = time.monotonic()
        self.set_interval(1.0, self._tick_elapsed)
        self._show_phase()

    def _tick_elapsed(self) -> None:
        if self.start_time is not None:
            self.query_one(PhaseBar).elapsed = time.monotonic() - self.start_time

    # ── view sync ─────────────────────────────────────────────────

    def _refresh_bar(self) -> None:
        state = self.controller.state
        bar = self.query_one(PhaseBar)
        p1, p2 = state.p1.nickname, state.p2.nickname
        labels = {
            Phase.SETUP: "准备开吵…",
            Phase.P1_DRAFT: f"{p1} 组建战队",
            Phase.P2_DRAFT: f"{p2} 组建战队",
            Phase.BATTLE: f"Round {min(state.current_round_index + 1, MAX_ROUNDS)} / {MAX_ROUNDS}",
            Phase.RESULT: "结果揭晓",
        }
        bar.phase = labels[state.phase]
        bar.score = f"{p1} {state.total_p1_votes} : {state.total_p2_votes} {p2}" if state.rounds else ""
        bar.cost = self.controller.gateway.total_cost

    def _report_gateway(self) -> None:
        error = self.controller.gateway.last_error
        if error:
            self.notify(error, title="AI 外援掉线", severity="warning")

    def _show_phase(self) -> None:
        phase = self.controller.state.phase
        self.query_one(ContentSwitcher).current = PHASE_SCREENS[phase]
        if phase is Phase.SETUP:
            self._show_setup()
        elif phase in (Phase.P1_DRAFT, Phase.P2_DRAFT):
            self._show_draft()
        elif phase is Phase.BATTLE:
            self._show_battle()
        else:
            self._show_result()
        self._refresh_bar()

    # ── setup ─────────────────────────────────────────────────────

    def _show_setup(self) -> None:
        state = self.controller.state
        self.query_one("#p1-name", Input).value = state.p1.nickname
        self.query_one("#p2-name", Input).value = state.p2.nickname
        self.query_one("#topic", Input).value = state.topic
        self.query_one("#setup-error", Static).update("")
        self.query_one("#p1-name", Input).focus()

    @on(Button.Pressed, "#start")
    @on(Input.Submitted, "#topic")
    def start_game(self) -> None:
        try:
            self.controller.complete_setup(
                self.query_one("#p1-name", Input).value,
                self.query_one("#p2-name", Input).value,
                self.query_one("#topic", Input).value,
            )
        except ValidationError as e:
            self.query_one("#setup-error", Static).update(str(e))
            return
        self._show_phase()

    # ── draft ─────────────────────────────────────────────────────

    def _show_draft(self) -> None:
        player = self.controller.drafting_player()
        stance = self.query_one("#stance", Input)
        stance.value = player.main_view
        self.query_one("#draft-error", Static).update("")
        self.query_one("#draft-done", Button).label = Text(f"✨ {player.nickname} 战队组建完成！")
        self._fill_suggestions()
        stance.focus()

    def _refresh_draft_title(self) -> None:
        player = self.controller.drafting_player()
        title = Text()
        title.append(player.nickname, style=P1_STYLE if player.id == 1 else P2_STYLE)
        title.append(f" 的回合   战队人数: {len(player.team)}/{TEAM_CAPACITY} 🚩")
        self.query_one("#draft-title", Static).update(title)

    def _fill_suggestions(self) -> None:
        player = self.controller.drafting_player()
        suggestions = self.controller.state.suggestions
        options = list(player.team) + [s for s in suggestions if s not in player.team]
        selection = self.query_one("#suggestions", SelectionList)
        selection.clear_options()
        selection.add_options([(Text(arg), arg, arg in player.team) for arg in options])
        self._refresh_draft_title()

    @on(Button.Pressed, "#summon")
    @on(Input.Submitted, "#stance")
    def summon_helpers(self) -> None:
        stance = self.query_one("#stance", Input).value
        if not stance.strip():
            self.query_one("#draft-error", Static).update("先说说你的核心观点！")
            return
        self.query_one("#draft-error", Static).update("")
        self.fetch_suggestions(stance)

    @work(exclusive=True, group="suggest")
    async def fetch_suggestions(self, stance: str) -> None:
        button = self.query_one("#summon", Button)
        button.disabled = True
        button.label = "🧠 思考中..."
        try:
            await self.controller.suggest_arguments(stance)
        except ValidationError as e:
            self.query_one("#draft-error", Static).update(str(e))
            return
        finally:
            button.disabled = False
            button.label = "🧞 召唤外援"
        self._report_gateway()
        if self.controller.drafting_player() is not None:
            self._fill_suggestions()
        self._refresh_bar()

    @on(SelectionList.SelectionToggled, "#suggestions")
    def toggle_argument(self, event: SelectionList.SelectionToggled) -> None:
        player = self.controller.drafting_player()
        if player is None:
            return
        arg = event.selection.value
        try:
            selected = self.controller.toggle_argument(arg, player.id)
        except ValidationError:
            return
        if not selected and arg in event.selection_list.selected:
            event.selection_list.deselect(arg)
            self.notify(f"战队满员啦（最多 {TEAM_CAPACITY} 个）", severity="warning")
        self._refresh_draft_title()

    @on(Button.Pressed, "#draft-done")
    def finish_draft(self) -> None:
        player = self.controller.drafting_player()
        if player is None:
            return
        stance = self.query_one("#stance", Input).value.strip()
        try:
            self.controller.confirm_draft(player.id, stance or None)
        except ValidationError as e:
            self.query_one("#draft-error", Static).update(str(e))
            return
        self.query_one("#stance", Input).value = ""
        self._show_phase()

    # ── battle ────────────────────────────────────────────────────

    def _show_battle(self) -> None:
        state = self.controller.state
        self.query_one("#surrender-1", Button).label = Text(f"🏳️ {state.p1.nickname} 认输")
        self.query_one("#surrender-2", Button).label = Text(f"🏳️ {state.p2.nickname} 认输")
        self._refresh_round_header()
        self.query_one("#processing").display = False
        self.query_one("#manual-box").display = False
        self.query_one("#verdict-box").display = False
        self.query_one("#dialogue", RichLog).clear()
        self._next_step()

    def _refresh_round_header(self) -> None:
        state = self.controller.state
        header = Text()
        header.append(f"Round {state.current_round_index + 1} / {MAX_ROUNDS}", style="bold reverse")
        header.append(f"   {state.topic}", style="dim")
        self.query_one("#round-header", Static).update(header)

    def _next_step(self) -> None:
        """Start the round, ask for a manual retort, or end the game."""
        controller = self.controller
        if controller.should_auto_start() or controller.is_exhausted():
            self.play_round()
        elif controller.needs_manual_input():
            self._ask_manual()

    def _ask_manual(self) -> None:
        state = self.controller.state
        manual_id = self.controller.manual_player_id()
        other_id = 2 if manual_id == 1 else 1
        prompt = Text()
        prompt.append(f"😲 {state.player(manual_id).nickname} 没词了！快！亲自上场反击！\n", style="bold red")
        prompt.append(f"对方说: \"{self.controller.prepared_argument(other_id)}\"", style="italic")
        self.query_one("#manual-prompt", Static).update(prompt)
        self.query_one("#manual-box").display = True
        manual_input = self.query_one("#manual-input", Input)
        manual_input.value = state.manual_input
        manual_input.focus()

    @on(Button.Pressed, "#manual-submit")
    @on(Input.Submitted, "#manual-input")
    def submit_manual(self) -> None:
        text = self.query_one("#manual-input", Input).value.strip()
        if not text or not self.controller.needs_manual_input():
            return
        self.controller.state.manual_input = text
        self.query_one("#manual-input", Input).value = ""
        self.query_one("#manual-box").display = False
        self.play_round(text)

    def _reveal_line(self, line: DialogueLine) -> None:
        self.query_one("#processing").display = False
        is_p1 = line.speaker == self.controller.state.p1.nickname
        t = Text()
        t.append(f"{line.speaker}: ", style=P1_STYLE if is_p1 else P2_STYLE)
        t.append(line.text)
        self.query_one("#dialogue", RichLog).write(t)

    @work(exclusive=True, group="battle")
    async def play_round(self, manual_text: str | None = None) -> None:
        self.query_one("#dialogue", RichLog).clear()
        self.query_one("#processing").display = True
        try:
            battle_round = await self.controller.advance_round(manual_text, on_line=self._reveal_line)
        except ValidationError as e:
            self.notify(str(e), severity="warning")
            return
        finally:
            self.query_one("#processing").display = False
        self._report_gateway()
        if self.controller.state.phase is not Phase.BATTLE:
            self._show_phase()
            return
        if battle_round is not None:
            self._show_verdict(battle_round)
        self._refresh_bar()

    def _show_verdict(self, battle_round: BattleRound) -> None:
        state = self.controller.state
        score = Text()
        score.append("⚖️ 本轮战况 ⚖️  ")
        score.append(f"{state.p1.nickname} {battle_round.vote_p1}%", style=P1_STYLE)
        score.append(" vs ")
        score.append(f"{battle_round.vote_p2}% {state.p2.nickname}", style=P2_STYLE)
        self.query_one("#verdict-score", Static).update(score)
        self.query_one("#verdict-bar", ProgressBar).update(progress=battle_round.vote_p1)
        self.query_one("#verdict-reason", Static).update(Text(f"\" {battle_round.reason} \""))
        last = battle_round.round_number >= MAX_ROUNDS
        self.query_one("#next-round", Button).label = "🏁 查看最终结果" if last else "👉 进入下一轮"
        self.query_one("#verdict-box").display = True
        self.query_one("#next-round", Button).focus()

    @on(Button.Pressed, "#next-round")
    def next_round(self) -> None:
        try:
            self.controller.accept_round_result()
        except ValidationError:
            return
        self.query_one("#verdict-box").display = False
        if self.controller.state.phase is Phase.BATTLE:
            self.query_one("#dialogue", RichLog).clear()
            self._refresh_round_header()
            self._refresh_bar()
            self._next_step()
        else:
            self._show_phase()

    @on(Button.Pressed, ".surrender")
    def surrender_pressed(self, event: Button.Pressed) -> None:
        self.action_surrender(1 if event.button.id == "surrender-1" else 2)

    def action_surrender(self, player_id: int) -> None:
        state = self.controller.state
        if state.phase not in (Phase.P1_DRAFT, Phase.P2_DRAFT, Phase.BATTLE):
            return

        def confirmed(ok: bool | None) -> None:
            if not ok:
                return
            self.workers.cancel_group(self, "battle")
            try:
                self.controller.surrender(player_id)
            except ValidationError:
                return
            self._show_phase()

        name = state.player(player_id).nickname
        self.push_screen(ConfirmScreen(f"{name} 确定要认输吗？"), confirmed)

    # ── result ────────────────────────────────────────────────────

    def _show_result(self) -> None:
        controller = self.controller
        state = controller.state
        self.query_one("#result-reason", Static).update(Text(controller.final_reason()))
        if state.surrender_by is None:
            score = Text()
            score.append(f"{state.p1.nickname} {state.total_p1_votes}", style=P1_STYLE)
            score.append("  VS  ")
            score.append(f"{state.total_p2_votes} {state.p2.nickname}", style=P2_STYLE)
            self.query_one("#result-score", Static).update(score)
        else:
            self.query_one("#result-score", Static).update("")
        winner = controller.final_winner()
        if winner:
            banner = f"结果是\n🎉 {state.player(winner).nickname} 🎉"
        else:
            banner = "结果是\n🤝 平局 🤝"
        self.query_one("#result-winner", Static).update(Text(banner))

    @on(Button.Pressed, "#reset")
    def reset_game(self) -> None:
        self.workers.cancel_group(self, "battle")
        self.controller.reset()
        self._show_phase()

    @on(Button.Pressed, "#rematch")
    def rematch(self) -> None:
        self.workers.cancel_group(self, "battle")
        self.controller.rematch()
        self._show_phase()


def run_tui(controller: GameController) -> None:
    """Launch the TUI."""
    app = PingPingLiApp(controller)
    app.run()
