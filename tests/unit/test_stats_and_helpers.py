"""
Unit tests for pure helpers: win rates, pagination, date ranges and OTP records.
"""

import time
from datetime import datetime, timezone

import pytest

from tipline.responses import pagination_meta
from tipline.services.dashboard_service import last_month_range, this_month_range, trend
from tipline.services.otp_store import expiration_ms, generate_otp, is_expired
from tipline.services.prediction_service import win_rate


class TestWinRate:
    @pytest.mark.parametrize(
        "wins, losses, expected",
        [
            (0, 0, 0),
            (3, 0, 100),
            (0, 4, 0),
            (2, 1, 67),
            (1, 2, 33),
            (1, 1, 50),
            # 12.5 rounds half up
            (1, 7, 13),
        ],
    )
    def test_win_rate(self, wins, losses, expected):
        assert win_rate(wins, losses) == expected


class TestPaginationMeta:
    def test_middle_page(self):
        assert pagination_meta(25, 2, 10) == {
            "totalItems": 25,
            "totalPages": 3,
            "currentPage": 2,
            "itemsPerPage": 10,
            "hasNextPage": True,
            "hasPrevPage": True,
        }

    def test_empty(self):
        meta = pagination_meta(0, 1, 10)
        assert meta["totalPages"] == 0
        assert meta["hasNextPage"] is False
        assert meta["hasPrevPage"] is False


class TestMonthRanges:
    def test_this_month(self):
        now = datetime(2026, 3, 15, 12, 30, tzinfo=timezone.utc)
        period = this_month_range(now)
        assert period.start == datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert period.end == now

    def test_last_month_crosses_year(self):
        now = datetime(2026, 1, 10, tzinfo=timezone.utc)
        period = last_month_range(now)
        assert period.start == datetime(2025, 12, 1, tzinfo=timezone.utc)
        assert period.end == datetime(2025, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)

    def test_last_month_february(self):
        period = last_month_range(datetime(2028, 3, 2, tzinfo=timezone.utc))
        assert period.end.day == 29

    def test_trend_ties_are_up(self):
        assert trend(5, 5) == "up"
        assert trend(6, 5) == "up"
        assert trend(4, 5) == "down"


class TestOtpHelpers:
    def test_generate_otp_is_four_digits(self):
        for _ in range(50):
            otp = generate_otp()
            assert len(otp) == 4
            assert otp.isdigit()

    def test_expiration_in_future(self):
        record = {"expiration": expiration_ms(60)}
        assert not is_expired(record)
        assert int(record["expiration"]) > int(time.time() * 1000)

    def test_past_or_missing_expiration_is_expired(self):
        assert is_expired({"expiration": "0"})
        assert is_expired({})
        assert is_expired({"expiration": "soon"})
