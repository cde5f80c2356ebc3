import pytest

from config import GameSettings
from domain.models import FixedDeposit, Holding
from domain.portfolio import (apply_monthly_yield, growth_percent, leaderboard,
                              net_worth, snapshot_portfolio)


def test_net_worth_counts_every_bucket(make_room):
    room = make_room()
    pl = room.players["p1"]
    pl.cash = 1_000
    pl.holdings["ACME"] = Holding(quantity=3, avg_price=90)
    pl.savings, pl.mutual_funds, pl.ppf = 100, 200, 300
    pl.fixed_deposits.append(FixedDeposit(1_000, 6.5, 12, 6, 32.0))

    # 1000 + 3*100 + 600 + 1032
    assert net_worth(room, pl) == 2_932


def test_leaderboard_is_ranked_and_stable(make_room):
    room = make_room()
    room.players["p2"].cash = 60_000
    room.add_player("p3", "Meera")

    rows = leaderboard(room)

    assert [r["id"] for r in rows] == ["p2", "p1", "p3"]
    assert [r["netWorth"] for r in rows] == [60_000, 50_000, 50_000]
    assert rows[0]["growth"] == 20.0
    assert rows[1]["growth"] == 0.0
    nw = [r["netWorth"] for r in rows]
    assert nw == sorted(nw, reverse=True)


@pytest.mark.parametrize("worth, expected", [
    (50_000, 0.0),
    (75_000, 50.0),
    (49_999, -0.0),
    (12_345, -75.31),
])
def test_growth_percent(worth, expected):
    assert growth_percent(worth, 50_000) == expected


def test_server_figures_ignore_reports_by_default(make_room):
    room = make_room()
    room.players["p1"].reported_net_worth = 1_000_000

    rows = {r["id"]: r for r in leaderboard(room)}

    assert rows["p1"]["netWorth"] == 50_000


def test_reported_figures_used_when_trusted(make_room):
    room = make_room()
    room.settings = GameSettings(trust_reported_networth=True)
    pl = room.players["p2"]
    pl.reported_net_worth, pl.reported_cash = 80_000, 10_000

    rows = leaderboard(room)

    assert rows[0]["id"] == "p2"
    assert rows[0]["netWorth"] == 80_000
    assert rows[0]["cash"] == 10_000
    assert rows[0]["portfolioValue"] == 70_000
    assert rows[0]["growth"] == 60.0


def test_monthly_yield_compounds(game_settings, make_room):
    pl = make_room().players["p1"]
    pl.savings, pl.mutual_funds, pl.ppf = 1_200, 1_200, 1_200

    apply_monthly_yield(pl, game_settings)

    assert pl.savings == pytest.approx(1_204)
    assert pl.mutual_funds == pytest.approx(1_212)
    assert pl.ppf == pytest.approx(1_207.1)


def test_fixed_deposit_accrues_until_term(game_settings, make_room):
    pl = make_room().players["p1"]
    fd = FixedDeposit(principal=12_000, rate=6.5, term_months=12)
    pl.fixed_deposits.append(fd)

    for _ in range(6):
        apply_monthly_yield(pl, game_settings)
    assert fd.months_elapsed == 6
    assert fd.profit == pytest.approx(12_000 * 0.065 * 6 / 12)

    for _ in range(10):
        apply_monthly_yield(pl, game_settings)
    assert fd.matured
    assert fd.months_elapsed == 12
    assert fd.profit == pytest.approx(780)


def test_snapshot_portfolio(make_room):
    room = make_room()
    pl = room.players["p1"]
    pl.holdings["ACME"] = Holding(quantity=10, avg_price=100)
    pl.cash = 49_000

    snap = snapshot_portfolio(room, pl)

    assert snap["netWorth"] == 50_000
    assert snap["holdings"] == {"ACME": {"quantity": 10, "avgPrice": 100}}
    assert snap["fixedDeposits"] == []
