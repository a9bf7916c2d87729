# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
import itertools

import pytest

from kbuildlib.values import BoolValue
from kbuildlib.values import HexValue
from kbuildlib.values import IntValue
from kbuildlib.values import StringValue
from kbuildlib.values import SymbolType
from kbuildlib.values import Tristate
from kbuildlib.values import TristateValue
from kbuildlib.values import logical_value
from kbuildlib.values import number_value
from kbuildlib.values import parse_value
from kbuildlib.values import zero_value

ALL_TRISTATES = list(Tristate)


class TestTristateAlgebra:
    @pytest.mark.parametrize("a,b", list(itertools.product(ALL_TRISTATES, repeat=2)))
    def test_and_is_min(self, a, b):
        assert a & b == min(a, b)
        assert isinstance(a & b, Tristate)

    @pytest.mark.parametrize("a,b", list(itertools.product(ALL_TRISTATES, repeat=2)))
    def test_or_is_max(self, a, b):
        assert a | b == max(a, b)
        assert isinstance(a | b, Tristate)

    def test_not(self):
        assert ~Tristate.NO == Tristate.YES
        assert ~Tristate.YES == Tristate.NO
        assert ~Tristate.MODULE == Tristate.MODULE

    def test_order(self):
        assert Tristate.NO < Tristate.MODULE < Tristate.YES

    def test_str(self):
        assert [str(t) for t in ALL_TRISTATES] == ["n", "m", "y"]
        assert Tristate.from_str("m") == Tristate.MODULE
        with pytest.raises(ValueError):
            Tristate.from_str("yes")


class TestConfigValue:
    def test_variants_match_types(self):
        assert BoolValue(True).type == SymbolType.BOOL
        assert TristateValue(Tristate.MODULE).type == SymbolType.TRISTATE
        assert StringValue("x").type == SymbolType.STRING
        assert IntValue(3).type == SymbolType.INT
        assert HexValue("0x10").type == SymbolType.HEX

    def test_invalid_payloads(self):
        with pytest.raises(TypeError):
            BoolValue("y")
        with pytest.raises(TypeError):
            IntValue(True)
        with pytest.raises(TypeError):
            HexValue("0xZZ")
        with pytest.raises(TypeError):
            TristateValue(1)

    def test_hex_keeps_case(self):
        value = HexValue("0xDeAd")
        assert str(value) == "0xDeAd"
        assert value.number == 0xDEAD

    def test_zero_values(self):
        assert zero_value(SymbolType.BOOL) == BoolValue(False)
        assert zero_value(SymbolType.TRISTATE) == TristateValue(Tristate.NO)
        assert zero_value(SymbolType.STRING) == StringValue("")
        assert zero_value(SymbolType.INT) == IntValue(0)
        assert zero_value(SymbolType.HEX) == HexValue("0x0")

    def test_bool_has_no_module_state(self):
        assert logical_value(SymbolType.BOOL, Tristate.MODULE) == BoolValue(True)
        assert logical_value(SymbolType.TRISTATE, Tristate.MODULE) == TristateValue(Tristate.MODULE)

    def test_number_value(self):
        assert number_value(SymbolType.INT, -5) == IntValue(-5)
        assert number_value(SymbolType.HEX, 255) == HexValue("0xff")


class TestParseValue:
    @pytest.mark.parametrize(
        "symbol_type,text,expected",
        [
            (SymbolType.BOOL, "y", BoolValue(True)),
            (SymbolType.BOOL, "n", BoolValue(False)),
            (SymbolType.TRISTATE, "m", TristateValue(Tristate.MODULE)),
            (SymbolType.STRING, 'with "quotes"', StringValue('with "quotes"')),
            (SymbolType.INT, "-42", IntValue(-42)),
            (SymbolType.HEX, "0x1F", HexValue("0x1F")),
            (SymbolType.HEX, "33", HexValue("0x33")),
        ],
    )
    def test_valid(self, symbol_type, text, expected):
        assert parse_value(symbol_type, text) == expected

    @pytest.mark.parametrize(
        "symbol_type,text",
        [
            (SymbolType.BOOL, "m"),
            (SymbolType.BOOL, "yes"),
            (SymbolType.TRISTATE, "2"),
            (SymbolType.INT, "0x10"),
            (SymbolType.INT, "ten"),
            (SymbolType.HEX, "-0x1"),
            (SymbolType.HEX, "0xg"),
        ],
    )
    def test_invalid(self, symbol_type, text):
        with pytest.raises(ValueError):
            parse_value(symbol_type, text)
