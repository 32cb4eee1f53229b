import pytest

from luckydraw.backend.config import BackendSettings
from luckydraw.backend.models import GameRules, Member, RewardWeight

MEMBERS = (
    Member(name="Ánh", password="anh123"),
    Member(name="Đức", password="duc123"),
    Member(name="Thành", password="thanh123"),
)
WEIGHTS = (
    RewardWeight(value=5000, weight=50),
    RewardWeight(value=10000, weight=30),
    RewardWeight(value=20000, weight=14),
    RewardWeight(value=50000, weight=5),
    RewardWeight(value=100000, weight=0.9),
    RewardWeight(value=200000, weight=0.1),
)


def make_rules(policy: str = "sequence", draw_cap: int | None = None, total_boxes: int = 18) -> GameRules:
    return GameRules(
        members=MEMBERS,
        total_boxes=total_boxes,
        reward_policy=policy,
        reward_weights=WEIGHTS,
        reward_sequence=(20000, 10000, 50000),
        draw_cap=draw_cap,
    )


def make_settings(rules: GameRules) -> BackendSettings:
    return BackendSettings(
        rules=rules,
        admin_password="admin@lucky",
        admin_reset_pin="2026",
        poll_interval=0.01,
        database_url=None,
        host="127.0.0.1",
        port=8000,
        log_level="INFO",
    )


@pytest.fixture
def rules() -> GameRules:
    return make_rules()


@pytest.fixture
def weighted_rules() -> GameRules:
    return make_rules(policy="weighted")


@pytest.fixture
def settings(rules: GameRules) -> BackendSettings:
    return make_settings(rules)
