"""Tests for broker CSV parsers and date normalization."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal

import pytest

from tradebook_journal.core.enums import Direction
from tradebook_journal.core.errors import WrongFileError
from tradebook_journal.ingest import detect, parse_tradebook
from tradebook_journal.ingest.dates import normalize_date, normalize_time
from tradebook_journal.ingest.parsers import (
    ContractNoteParser,
    RetailBrokerParser,
    ScripNameParser,
    find_header,
)
from tradebook_journal.journal.matcher import match_round_trips

from tests.conftest import CONTRACT_HEADER, RETAIL_HEADER, contract_csv, retail_csv

D = Decimal


# ---------------------------------------------------------------------------
# Dates and times
# ---------------------------------------------------------------------------

class TestNormalizeDate:
    @pytest.mark.parametrize("raw, expected", [
        ("2024-03-05", date(2024, 3, 5)),
        ("2024-03-05T09:30:00", date(2024, 3, 5)),
        ("05-03-2024", date(2024, 3, 5)),
        ("05-Mar-2024", date(2024, 3, 5)),
        ("5 March 2024", date(2024, 3, 5)),
        ("25/03/2024", date(2024, 3, 25)),
        ("03/25/2024", date(2024, 3, 25)),
    ])
    def test_shapes(self, raw, expected):
        assert normalize_date(raw) == expected

    def test_ambiguous_month_first_by_default(self):
        assert normalize_date("03/05/2024") == date(2024, 3, 5)

    def test_ambiguous_day_first(self):
        assert normalize_date("03/05/2024", day_first=True) == date(2024, 5, 3)

    @pytest.mark.parametrize("raw", ["", None, "yesterday", "2024-02-30", "05-Foo-2024"])
    def test_invalid(self, raw):
        assert normalize_date(raw) is None


class TestNormalizeTime:
    def test_seconds_kept(self):
        assert normalize_time("09:30:45") == time(9, 30, 45)
        assert normalize_time("09:30") == time(9, 30)

    def test_out_of_range_seconds(self):
        assert normalize_time("09:30:75") is None

    def test_single_digit_hour(self):
        assert normalize_time("9:30") == time(9, 30)
        assert normalize_time("9:30", strict=True) is None

    def test_embedded(self):
        assert normalize_time("2024-03-05 14:05:00") == time(14, 5)

    @pytest.mark.parametrize("raw", ["", None, "noon", "25:00"])
    def test_invalid(self, raw):
        assert normalize_time(raw) is None


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

class TestDetect:
    def test_retail(self):
        assert isinstance(detect(RETAIL_HEADER), RetailBrokerParser)

    def test_contract_note(self):
        assert isinstance(detect(CONTRACT_HEADER), ContractNoteParser)

    def test_scrip_name(self):
        assert isinstance(detect("Scrip Name, Trade Type, Trade Date, Quantity"), ScripNameParser)

    def test_whitespace_and_case_insensitive(self):
        assert isinstance(detect("  SYMBOL, ISIN ,Trade_Date,x"), RetailBrokerParser)

    def test_unknown(self):
        assert detect("date,description,amount") is None

    def test_header_below_preamble(self):
        lines = ["Client ID,AB1234", "Statement for March", RETAIL_HEADER, "row"]
        idx, parser = find_header(lines)
        assert idx == 2
        assert parser.name == "retail"


# ---------------------------------------------------------------------------
# Retail broker
# ---------------------------------------------------------------------------

class TestRetailParser:
    def test_rows(self, retail_day_csv):
        result = parse_tradebook(retail_day_csv)
        assert result.parser == "retail"
        assert len(result.legs) == 4
        first = result.legs[0]
        assert first.symbol == "INFY"
        assert first.direction is Direction.BUY
        assert first.quantity == 10
        assert first.price == D("1500.00")
        assert first.date == date(2024, 3, 5)
        assert first.time == time(9, 30)
        assert first.charges == 0

    def test_space_separated_execution_time(self):
        text = retail_csv("INFY,X,2024-03-05,NSE,EQ,EQ,sell,false,1,10,1,1,2024-03-06 15:10:00")
        leg = parse_tradebook(text).legs[0]
        assert leg.date == date(2024, 3, 6)
        assert leg.time == time(15, 10)

    def test_incomplete_rows_dropped(self):
        text = retail_csv(
            "INFY,X,2024-03-05,NSE,EQ,EQ,buy,false,10,1500,1,1,2024-03-05T09:30:00",
            ",X,2024-03-05,NSE,EQ,EQ,buy,false,10,1500,2,2,2024-03-05T09:31:00",
            "INFY,X,2024-03-05,NSE,EQ,EQ,hold,false,10,1500,3,3,2024-03-05T09:32:00",
            "INFY,X,2024-03-05,NSE,EQ,EQ,buy,false,0,1500,4,4,2024-03-05T09:33:00",
            "INFY,X,notadate,NSE,EQ,EQ,buy,false,10,1500,5,5,",
        )
        result = parse_tradebook(text)
        assert len(result.legs) == 1
        assert result.dropped == 4

    def test_same_minute_legs_matched_by_seconds(self):
        text = retail_csv(
            "INFY,X,2024-03-05,NSE,EQ,EQ,sell,false,10,1510,2,2,2024-03-05T09:30:45",
            "INFY,X,2024-03-05,NSE,EQ,EQ,buy,false,10,1500,1,1,2024-03-05T09:30:05",
        )
        legs = parse_tradebook(text).legs
        assert [leg.time for leg in legs] == [time(9, 30, 45), time(9, 30, 5)]

        rt = match_round_trips(legs).round_trips[0]
        assert rt.entry.direction is Direction.BUY
        assert rt.is_long
        assert rt.pnl == D("100")
        assert rt.to_dict()["entry_time"] == "09:30"

    def test_byte_order_mark_and_thousands_separator(self):
        text = "\ufeff" + retail_csv('INFY,X,2024-03-05,NSE,EQ,EQ,buy,false,"1,000","1,500.25",1,1,')
        leg = parse_tradebook(text).legs[0]
        assert leg.quantity == 1000
        assert leg.price == D("1500.25")
        assert leg.time is None


# ---------------------------------------------------------------------------
# Contract note
# ---------------------------------------------------------------------------

class TestContractNoteParser:
    def test_charges_summed_and_raw_prices_kept(self):
        text = contract_csv(
            "NIFTY24MARFUT,B,22000.50,0,50,05/03/2024,09:31:10,20,3.6,0,0.1,1.5,0.8",
            "NIFTY24MARFUT,S,0,22010.00,50,05/03/2024,09:45:00,20,3.6,5.5,0.1,0,0.8",
        )
        result = parse_tradebook(text)
        assert result.parser == "contract_note"
        buy, sell = result.legs
        assert buy.direction is Direction.BUY
        assert buy.price == D("22000.50")
        assert buy.buy_price_raw == D("22000.50")
        assert buy.sell_price_raw is None
        assert buy.charges == D("26.0")
        assert sell.price == D("22010.00")
        assert sell.charges == D("30.0")
        assert sell.time == time(9, 45)

    def test_missing_price_for_direction_dropped(self):
        text = contract_csv(
            "NIFTY24MARFUT,B,,22010,50,05/03/2024,09:31:10,0,0,0,0,0,0",
            "NIFTY24MARFUT,S,0,22010,50,05/03/2024,09:45:00,0,0,0,0,0,0",
        )
        result = parse_tradebook(text)
        assert len(result.legs) == 1
        assert result.dropped == 1

    def test_zero_price_kept(self):
        text = contract_csv("BONUSCO,B,0,0,100,05/03/2024,09:31:10,0,0,0,0,0,0")
        leg = parse_tradebook(text).legs[0]
        assert leg.price == 0
        assert leg.is_usable
        assert leg.buy_price_raw is None
        assert not leg.has_raw_prices

    def test_combined_date_time_column(self):
        text = (
            "Scrip/Contract,Buy/Sell,Buy Price,Sell Price,Quantity,TradeDateTime\n"
            "ABC,Buy,10,0,5,2024-03-05 10:15:00\n"
        )
        leg = parse_tradebook(text).legs[0]
        assert leg.date == date(2024, 3, 5)
        assert leg.time == time(10, 15)

    def test_stop_loss_column_sets_stop_distance(self):
        text = (
            "Scrip/Contract,Buy/Sell,Buy Price,Sell Price,Quantity,Date,Time,Stop Loss\n"
            "ABC,Buy,100,0,5,2024-03-05,10:15:00,95\n"
        )
        assert parse_tradebook(text).legs[0].stop_distance == D("5")


# ---------------------------------------------------------------------------
# Scrip-name tradebook
# ---------------------------------------------------------------------------

class TestScripNameParser:
    def test_rows(self):
        text = (
            "Scrip Name,Trade Type,Trade Date,Trade Time,Quantity,Price,Brokerage\n"
            "HDFCBANK,BUY,05-Mar-2024,10:02:11,20,1450.10,12.5\n"
        )
        result = parse_tradebook(text)
        assert result.parser == "scrip_name"
        leg = result.legs[0]
        assert leg.symbol == "HDFCBANK"
        assert leg.direction is Direction.BUY
        assert leg.charges == D("12.5")
        assert leg.date == date(2024, 3, 5)


# ---------------------------------------------------------------------------
# Whole-file failures
# ---------------------------------------------------------------------------

class TestWrongFile:
    def test_unknown_header(self):
        with pytest.raises(WrongFileError):
            parse_tradebook("date,description,amount\n2024-03-05,coffee,3\n")

    def test_header_only(self):
        with pytest.raises(WrongFileError):
            parse_tradebook(RETAIL_HEADER + "\n")

    def test_no_usable_rows(self):
        with pytest.raises(WrongFileError):
            parse_tradebook(retail_csv(",,,,,,,,,,,,"))

    def test_error_code(self):
        with pytest.raises(WrongFileError) as exc_info:
            parse_tradebook("")
        assert exc_info.value.code == "WRONG_CSV"
