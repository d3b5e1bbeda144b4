import pytest

from pingpingli.gateway import DialogueLine, RoundVerdict, fallback_verdict


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeGateway:
    """Scripted stand-in for the oracle. Votes are consumed one per round."""

    model = "fake/referee"

    def __init__(self, votes=(70, 30, 50), suggestions=None):
        self.votes = list(votes)
        self.suggestions = suggestions or ["咸的才下饭", "甜的齁死人", "我奶奶说的"]
        self.calls = []
        self.last_error = None
        self.total_cost = 0.0

    async def generate_arguments(self, topic, stance):
        self.calls.append(("suggest", topic, stance))
        return list(self.suggestions)

    async def simulate_battle_round(self, topic, arg1, p1_name, arg2, p2_name, is_p1_manual=False, is_p2_manual=False):
        self.calls.append(("battle", topic, arg1, arg2, is_p1_manual, is_p2_manual))
        if not self.votes:
            return fallback_verdict(arg1, p1_name, arg2, p2_name)
        vote = self.votes.pop(0)
        return RoundVerdict(
            dialogue=(
                DialogueLine(p1_name, arg1),
                DialogueLine(p2_name, f"{arg2}！"),
                DialogueLine(p1_name, "你这就是强词夺理"),
            ),
            vote_p1=vote,
            reason=f"{p1_name if vote > 50 else p2_name}这一句绝杀！",
        )


@pytest.fixture
def fake_gateway():
    return FakeGateway()
