"""
Unit Tests for CSV Ingestion

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from lib.parsers.csv_parser import CSVParser
from lib.parsers.transaction import TransactionType


@pytest.fixture
def parser():
    return CSVParser()


class TestHeaderMapping:

    def test_normalize_header(self):
        assert CSVParser.normalize_header("Quantity Transacted") == "quantity_transacted"
        assert CSVParser.normalize_header("Quantity (BTC)") == "quantity"
        assert CSVParser.normalize_header(" Spot-Price ") == "spot_price"

    def test_map_columns(self, parser):
        mapping = parser.map_columns(['timestamp', 'side', 'coin', 'qty', 'unit_price'])

        assert mapping == {
            'timestamp': 'date',
            'side': 'type',
            'coin': 'symbol',
            'qty': 'amount',
            'unit_price': 'price',
        }

    def test_column_used_once(self, parser):
        mapping = parser.map_columns(['date', 'datetime', 'type', 'amount', 'price'])

        assert list(mapping.values()).count('date') == 1
        assert mapping['date'] == 'date'
        assert 'datetime' not in mapping

    def test_score_exact_beats_partial(self, parser):
        templates = CSVParser.COLUMN_MAPPINGS['price']
        assert parser.score_column('price', templates) == 1.0
        assert parser.score_column('usd_price', templates) == 0.9
        assert parser.score_column('notes', templates) < CSVParser.MATCH_CUTOFF


class TestDecimalSeparator:

    @pytest.mark.parametrize("cell,expected", [
        ("30000.00", "."),
        ("0.5", "."),
        ("1,5", ","),
        ("1.000,50", ","),
        ("$1,000.00", "."),
        ("1.000.000", ","),
        ("1,000,000", "."),
        ("0,500", ","),
        ("1,000", None),
        ("1.500", None),
        ("42", None),
        ("", None),
    ])
    def test_cell_vote(self, cell, expected):
        assert CSVParser._separator_vote(cell) == expected

    def test_clean_number_keeps_exponent(self, parser):
        parser.decimal_separator = '.'
        assert parser.clean_number("1E-8") == "1E-8"
        assert parser.clean_number("-1e-8") == "1e-8"


class TestParseCSV:

    def test_exchange_style_export(self, parser):
        content = (
            "Timestamp,Transaction Type,Asset,Quantity Transacted,Spot Price,Total\n"
            "2023-01-01 00:00:00,Buy,BTC,1.0,1000.00,1000.00\n"
            "2023-06-01 00:00:00,Buy,BTC,1.0,1500.00,1500.00\n"
            "2023-07-15 09:30:00,Transfer,BTC,0.2,,\n"
            "2024-02-01 00:00:00,Sell,BTC,1.5,2000.00,3000.00\n"
        )

        result = parser.parse_csv(content)

        assert len(result.records) == 3
        assert result.skipped == 1
        assert result.error_categories == {'unknown_type': 1}

        sell = result.records[-1]
        assert sell.type == TransactionType.SELL
        assert sell.date == datetime(2024, 2, 1)
        assert sell.amount == Decimal("1.5")
        assert sell.price == Decimal("2000.00")
        assert sell.source_row == 3

    def test_price_derived_from_total(self, parser):
        content = (
            "date,type,symbol,amount,total\n"
            "2023-01-01,buy,eth,2,3000\n"
        )

        result = parser.parse_csv(content)

        assert result.records[0].symbol == "ETH"
        assert result.records[0].price == Decimal("1500")

    def test_currency_formatting(self, parser):
        content = (
            'date,type,symbol,amount,price\n'
            '2023-01-01,Buy,BTC,0.5,"$21,500.25"\n'
        )

        result = parser.parse_csv(content)

        assert result.records[0].price == Decimal("21500.25")

    def test_negative_amount_sign_dropped(self, parser):
        content = (
            "date,type,symbol,amount,price\n"
            "2023-01-01,Sell,BTC,-0.25,20000\n"
        )

        result = parser.parse_csv(content)

        assert result.records[0].amount == Decimal("0.25")

    def test_semicolon_decimal_comma(self, parser):
        content = (
            "date;type;symbol;amount;price\n"
            "2023-01-01;Buy;BTC;1,5;1.000,50\n"
        )

        result = parser.parse_csv(content)

        assert parser.delimiter == ';'
        assert result.records[0].amount == Decimal("1.5")
        assert result.records[0].price == Decimal("1000.50")

    def test_semicolon_dot_decimal(self, parser):
        """A semicolon file can still use decimal points."""
        content = (
            "date;type;symbol;amount;price\n"
            "2024-01-01;Buy;BTC;0.5;30000.00\n"
        )

        result = parser.parse_csv(content)

        assert parser.delimiter == ';'
        assert parser.decimal_separator == '.'
        assert result.records[0].amount == Decimal("0.5")
        assert result.records[0].price == Decimal("30000.00")

    def test_semicolon_grouped_only_defaults_to_comma(self, parser):
        content = (
            "date;type;symbol;amount;price\n"
            "2024-01-01;Buy;BTC;2;1.500\n"
        )

        result = parser.parse_csv(content)

        assert parser.decimal_separator == ','
        assert result.records[0].price == Decimal("1500")

    def test_comma_file_with_quoted_decimal_comma(self, parser):
        content = (
            'date,type,symbol,amount,price\n'
            '2024-01-01,Buy,BTC,"0,25","21.500,75"\n'
        )

        result = parser.parse_csv(content)

        assert parser.decimal_separator == ','
        assert result.records[0].amount == Decimal("0.25")
        assert result.records[0].price == Decimal("21500.75")

    @pytest.mark.parametrize("amount,expected", [
        ("1E-8", Decimal("0.00000001")),
        ("2.5e-7", Decimal("0.00000025")),
        ("-3E-6", Decimal("0.000003")),
    ])
    def test_scientific_notation_amount(self, parser, amount, expected):
        content = (
            "date,type,symbol,amount,price\n"
            f"2024-01-01,Buy,SHIB,{amount},0.00001\n"
        )

        result = parser.parse_csv(content)

        assert result.skipped == 0
        assert result.records[0].amount == expected

    def test_rows_sorted_by_date(self, parser):
        content = (
            "date,type,symbol,amount,price\n"
            "2023-03-01,Sell,BTC,1,300\n"
            "2023-01-01,Buy,BTC,1,100\n"
        )

        result = parser.parse_csv(content)

        assert [r.type for r in result.records] == [TransactionType.BUY, TransactionType.SELL]

    def test_default_symbol(self):
        content = (
            "date,type,amount,price\n"
            "2023-01-01,Buy,1,100\n"
        )

        result = CSVParser(default_symbol="sol").parse_csv(content)

        assert result.records[0].symbol == "SOL"


class TestMissingColumns:

    def test_missing_type(self, parser):
        content = "date,symbol,amount,price\n2023-01-01,BTC,1,100\n"
        with pytest.raises(ValueError, match="type"):
            parser.parse_csv(content)

    def test_missing_price_and_value(self, parser):
        content = "date,type,symbol,amount\n2023-01-01,Buy,BTC,1\n"
        with pytest.raises(ValueError, match="price or value"):
            parser.parse_csv(content)

    def test_missing_symbol_without_default(self, parser):
        content = "date,type,amount,price\n2023-01-01,Buy,1,100\n"
        with pytest.raises(ValueError, match="symbol"):
            parser.parse_csv(content)


class TestParseFile:

    def test_utf8_bom(self, parser, tmp_path):
        path = tmp_path / "export.csv"
        path.write_text(
            "date,type,symbol,amount,price\n2023-01-01,Buy,BTC,1,100\n",
            encoding="utf-8-sig"
        )

        result = parser.parse_file(path)

        assert len(result.records) == 1
        assert result.records[0].date == datetime(2023, 1, 1)
