"""Prompt templates and fixed fallback strings for the game oracle."""

# --- Argument suggestions ("召唤外援") ---

SUGGESTION_COUNT = 12
SUGGESTION_MAX_CHARS = 12

ARGUMENTS_SYSTEM = """This is for a Chinese debate game.
Return strictly a JSON array of strings in Simplified Chinese. No commentary, no markdown."""

ARGUMENTS_PROMPT = """The topic of a playful dispute is: "{topic}".
A user's stance is: "{stance}".
Generate {count} short, punchy, colloquial CHINESE arguments (max {max_chars} Chinese characters each) that support this stance.
They should sound like spoken language in a chat or a funny argument (e.g., "这明明就是我的理！", "根本不是那样").
Return strictly a JSON array of strings in Simplified Chinese."""

FALLBACK_ARGUMENTS = ["网络开小差了", "正在憋大招...", "这很有道理", "看情况吧", "这可不好说"]

# --- Battle round ---

MANUAL_MARKER = " (Manually input by user, be responsive to this!)"

BATTLE_SYSTEM = """You are the referee AI of the debate game "Judge for Us" (都来评评理).
Reply with ONE JSON object and nothing else:
{"dialogue": [{"speaker": "<name>", "text": "<line>"}], "voteP1": <integer 0-100>, "reason": "<comment>"}
- voteP1: Score from 0 to 100. >50 means P1 wins. <50 means P2 wins. Be decisive based on the dialogue quality.
- reason: A short, specific comment (max 20 chars) on why that specific player won this round."""

BATTLE_PROMPT = """Topic: "{topic}"

Characters:
- Player 1 ({p1_name}): Holding stance "{arg1}"{p1_marker}
- Player 2 ({p2_name}): Holding stance "{arg2}"{p2_marker}

--- INSTRUCTIONS ---

STEP 1: GENERATE THE FIGHT (Dialogue)
Create a short, spicy, and colloquial dialogue (2-4 turns).
- P1 speaks first using their stance.
- P2 MUST retort directly to what P1 said.
- Use the players' names exactly as given for "speaker".
- Focus on "divine comebacks" (神回复), sarcasm, or emotional outbursts.
- Language: Simplified Chinese.

STEP 2: JUDGE THE RESULT (The Verdict)
Based EXCLUSIVELY on the dialogue you just wrote in Step 1, decide who won.
- DO NOT Randomize. Judge based on "Emotional Damage" and Logic.
- If P2's comeback was weak or generic -> P1 Wins (Score > 60).
- If P2's comeback was a "mic drop" moment or exposed a flaw -> P2 Wins (Score < 40).
- If it's a messy tie -> Score ~50.

Reason format: A short, spicy comment from an onlooker's perspective explaining WHY one side won. (e.g., "P2这一句绝杀！", "P1逻辑感人...", "无法反驳P2的歪理")."""

FALLBACK_REASON = "信号中断，本次平局"
