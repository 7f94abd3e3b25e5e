import pytest

from backtest.exits import ExitResolver
from backtest.models import ExitConditions, ExitReason, OpenPosition, TakeProfitLevel

BASE_TIME = 1700000000

def _position(notional=1000.0, entry_price=1.0):
    return OpenPosition(
        token_mint="TokenA",
        token_symbol="TOKENA",
        entry_price=entry_price,
        entry_time=BASE_TIME,
        notional=notional,
    )

def _exit(levels=((100, 100),), stop_loss=-20, **kwargs):
    return ExitConditions(
        take_profit_levels=[TakeProfitLevel(percent_gain=g, sell_percent=s) for g, s in levels],
        stop_loss_percent=stop_loss,
        **kwargs,
    )

class TestRugExit:

    def test_rug_short_circuits_take_profits(self, make_record):
        record = make_record(peak=3.0, final=0.05, outcome="rug", outcome_recorded_at=BASE_TIME + 500)
        position = _position()
        trades = ExitResolver.resolve(position, record, _exit(exit_on_rug_signal=True))

        assert len(trades) == 1
        assert trades[0].exit_reason == ExitReason.RUG_EXIT
        assert trades[0].exit_price == pytest.approx(0.05)
        assert trades[0].exit_time == BASE_TIME + 500
        assert trades[0].sell_percent == 100
        assert position.remaining_percent == 0

    def test_rug_exit_time_fallback(self, make_record):
        record = make_record(final=0.05, outcome="rug")
        trades = ExitResolver.resolve(_position(), record, _exit(exit_on_rug_signal=True))
        assert trades[0].exit_time == BASE_TIME + 3600

    def test_rug_ignored_when_signal_disabled(self, make_record):
        record = make_record(peak=3.0, final=0.05, outcome="rug")
        trades = ExitResolver.resolve(_position(), record, _exit())
        assert [t.exit_reason for t in trades] == [ExitReason.WIN]

class TestTakeProfitLadder:

    def test_rungs_fire_in_ascending_order(self, make_record):
        record = make_record(peak=5.0, final=4.0, peak_at=BASE_TIME + 900)
        exit_conditions = _exit(levels=((300, 40), (100, 30), (500, 100)))
        trades = ExitResolver.resolve(_position(), record, exit_conditions)

        # +500% rung never reached; remainder leaves at the final price
        assert [t.exit_price for t in trades] == pytest.approx([2.0, 4.0, 4.0])
        assert all(t.exit_reason == ExitReason.WIN for t in trades)
        assert [t.sell_percent for t in trades] == pytest.approx([30, 40, 30])
        assert all(t.exit_time == BASE_TIME + 900 for t in trades[:2])

    def test_partial_fills_sum_to_full_position(self, make_record):
        record = make_record(peak=2.5, final=0.5)
        exit_conditions = _exit(levels=((50, 50), (100, 30)))
        trades = ExitResolver.resolve(_position(), record, exit_conditions)

        assert [t.exit_reason for t in trades] == [ExitReason.WIN, ExitReason.WIN, ExitReason.STOPPED_OUT]
        assert sum(t.sell_percent for t in trades) == pytest.approx(100)
        assert trades[0].profit_loss == pytest.approx(500 * 0.5)
        assert trades[1].profit_loss == pytest.approx(300 * 1.0)
        assert trades[2].exit_price == pytest.approx(0.8)
        assert trades[2].profit_loss == pytest.approx(200 * -0.2)

    def test_sell_percent_capped_at_remaining(self, make_record):
        record = make_record(peak=3.0, final=2.0)
        trades = ExitResolver.resolve(_position(), record, _exit(levels=((50, 80), (100, 80))))
        assert [t.sell_percent for t in trades] == pytest.approx([80, 20])

    def test_peak_time_fallbacks(self, make_record):
        with_ttp = make_record(peak=2.0, final=2.0, time_to_peak=120)
        trades = ExitResolver.resolve(_position(), with_ttp, _exit())
        assert trades[0].exit_time == BASE_TIME + 120

        bare = make_record(peak=2.0, final=2.0)
        trades = ExitResolver.resolve(_position(), bare, _exit())
        assert trades[0].exit_time == BASE_TIME + 3600

    def test_peak_multiplier_derived_from_prices(self, make_record):
        record = make_record(peak=2.0, final=1.0, peak_multiplier=None)
        trades = ExitResolver.resolve(_position(), record, _exit())
        assert trades[0].exit_reason == ExitReason.WIN
        assert trades[0].peak_multiplier == pytest.approx(2.0)

    def test_thirds_leave_no_dust_fill(self, make_record):
        record = make_record(peak=4.0, final=3.0)
        third = 100 / 3
        trades = ExitResolver.resolve(_position(), record, _exit(levels=((50, third), (100, third), (200, third))))
        assert all(t.sell_percent > 1e-6 for t in trades)
        assert sum(t.sell_percent for t in trades) == pytest.approx(100)

class TestRemainder:

    def test_stop_loss_fills_at_stop_price(self, make_record):
        record = make_record(peak=1.1, final=0.5, outcome_recorded_at=BASE_TIME + 7200)
        trades = ExitResolver.resolve(_position(), record, _exit())
        assert len(trades) == 1
        assert trades[0].exit_reason == ExitReason.STOPPED_OUT
        assert trades[0].exit_price == pytest.approx(0.8)
        assert trades[0].profit_loss == pytest.approx(-200)
        assert trades[0].exit_time == BASE_TIME + 7200

    def test_stop_loss_boundary_is_inclusive(self, make_record):
        trades = ExitResolver.resolve(_position(), make_record(final=0.8), _exit())
        assert trades[0].exit_reason == ExitReason.STOPPED_OUT

    def test_trailing_stop_in_profit(self, make_record):
        record = make_record(peak=1.8, final=1.2)
        exit_conditions = _exit(levels=((200, 100),), trailing_stop_percent=20, trailing_stop_activation=50)
        trades = ExitResolver.resolve(_position(), record, exit_conditions)
        assert trades[0].exit_reason == ExitReason.WIN
        assert trades[0].exit_price == pytest.approx(1.8 * 0.8)

    def test_trailing_stop_below_entry_is_loss(self, make_record):
        record = make_record(peak=1.1, final=0.85)
        exit_conditions = _exit(levels=((200, 100),), trailing_stop_percent=10)
        trades = ExitResolver.resolve(_position(), record, exit_conditions)
        assert trades[0].exit_reason == ExitReason.LOSS
        assert trades[0].exit_price == pytest.approx(0.99)

    def test_trailing_stop_uses_outcome_time(self, make_record):
        record = make_record(peak=1.8, final=1.2, outcome_recorded_at=BASE_TIME + 9000)
        exit_conditions = _exit(levels=((200, 100),), trailing_stop_percent=20)
        trades = ExitResolver.resolve(_position(), record, exit_conditions)
        assert trades[0].exit_price == pytest.approx(1.44)
        assert trades[0].exit_time == BASE_TIME + 9000
        assert trades[0].hold_time_seconds == 9000

    def test_trailing_stop_time_fallback(self, make_record):
        record = make_record(peak=1.8, final=1.2)
        exit_conditions = _exit(levels=((200, 100),), trailing_stop_percent=20)
        trades = ExitResolver.resolve(_position(), record, exit_conditions)
        assert trades[0].exit_time == BASE_TIME + 3600
        assert trades[0].hold_time_seconds == 3600

    def test_trailing_stop_not_activated(self, make_record):
        record = make_record(peak=1.2, final=1.0)
        exit_conditions = _exit(levels=((200, 100),), trailing_stop_percent=10, trailing_stop_activation=50)
        trades = ExitResolver.resolve(_position(), record, exit_conditions)
        assert trades[0].exit_reason == ExitReason.BREAKEVEN
        assert trades[0].exit_price == pytest.approx(1.0)

    def test_stop_loss_beats_trailing_stop(self, make_record):
        record = make_record(peak=1.5, final=0.7)
        exit_conditions = _exit(levels=((200, 100),), trailing_stop_percent=10)
        trades = ExitResolver.resolve(_position(), record, exit_conditions)
        assert trades[0].exit_reason == ExitReason.STOPPED_OUT

    def test_time_exit(self, make_record):
        record = make_record(peak=1.2, final=1.1)
        trades = ExitResolver.resolve(_position(), record, _exit(max_hold_time_hours=6))
        assert trades[0].exit_reason == ExitReason.TIME_EXIT
        assert trades[0].exit_price == pytest.approx(1.1)
        assert trades[0].exit_time == BASE_TIME + 6 * 3600
        assert trades[0].hold_time_seconds == 6 * 3600

    @pytest.mark.parametrize("final, reason", [
        (1.3, ExitReason.WIN),
        (0.9, ExitReason.LOSS),
        (1.0, ExitReason.BREAKEVEN),
    ])
    def test_market_exit_reason_by_sign(self, make_record, final, reason):
        trades = ExitResolver.resolve(_position(), make_record(peak=1.4, final=final), _exit())
        assert trades[0].exit_reason == reason
        assert trades[0].exit_time == BASE_TIME + 86400

    def test_market_exit_uses_outcome_time(self, make_record):
        record = make_record(final=1.3, outcome_recorded_at=BASE_TIME + 5000)
        trades = ExitResolver.resolve(_position(), record, _exit())
        assert trades[0].exit_time == BASE_TIME + 5000

    def test_profit_loss_percent(self, make_record):
        trades = ExitResolver.resolve(_position(notional=400), make_record(final=1.25), _exit())
        assert trades[0].profit_loss_percent == pytest.approx(25)
        assert trades[0].profit_loss == pytest.approx(100)
        assert trades[0].position_size == pytest.approx(400)

    def test_closed_position_yields_nothing(self, make_record):
        position = _position()
        position.remaining_percent = 0
        assert ExitResolver.resolve(position, make_record(), _exit()) == []
