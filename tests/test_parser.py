"""
==============================================================================
Payload Parser Tests
==============================================================================

Tests for the strategy cascade and count coercion.

==============================================================================
"""

import pytest

from stock_intake.scanner.parser import (
    PayloadParser,
    coerce_count,
    parse,
    parse_comma,
    parse_key_value,
    parse_pipe,
    parse_structured,
)
from stock_intake.schemas.scan import Parsed, Unparseable


def payload_of(text):
    outcome = parse(text)
    assert isinstance(outcome, Parsed), f"{text!r} did not parse: {outcome}"
    return outcome.payload


class TestCascade:
    """Tests for strategy order and totality."""

    @pytest.mark.parametrize("text", ["", "   ", "\r\n\t", None])
    def test_blank_is_unparseable(self, text):
        """Only blank input fails."""
        outcome = parse(text)
        assert isinstance(outcome, Unparseable)
        assert outcome.reason == "empty"

    @pytest.mark.parametrize("text", [
        "x",
        "{not json",
        "[1, 2, 3]",
        "|||",
        ":::",
        "name:",
        "12345",
        "😀 emoji only",
    ])
    def test_any_non_blank_text_parses(self, text):
        """Non-blank text always yields a non-empty name and a count of at least 1."""
        outcome = parse(text)
        assert isinstance(outcome, Parsed)
        assert outcome.payload.name
        assert outcome.payload.count >= 1

    def test_parse_is_pure(self):
        """Parsing twice gives equal outcomes."""
        text = '{"medicine": "Paracetamol", "quantity": 3}'
        first = PayloadParser().parse(text)
        second = PayloadParser().parse(text)
        assert first.payload == second.payload
        assert first.strategy == second.strategy

    def test_strategy_is_reported(self):
        assert parse('{"name": "Gauze"}').strategy == "structured"
        assert parse("Gauze|2").strategy == "pipe"
        assert parse("Gauze,2").strategy == "comma"
        assert parse("name: Gauze; qty: 2").strategy == "key_value"
        assert parse("Gauze 2").strategy == "whitespace"

    def test_surrounding_whitespace_is_ignored(self):
        payload = payload_of("   Paracetamol|5|analgesic \r\n")
        assert payload.name == "Paracetamol"
        assert payload.category == "analgesic"


class TestStructured:
    """Tests for JSON payloads."""

    def test_canonical_medicine_quantity(self):
        payload = payload_of('{"medicine": "Paracetamol", "quantity": 3}')
        assert payload.name == "Paracetamol"
        assert payload.count == 3
        assert payload.category == ""

    def test_canonical_keys_are_case_insensitive(self):
        payload = payload_of('{"Medicine": "Aspirin", "QUANTITY": "7", "Category": "nsaid"}')
        assert (payload.name, payload.count, payload.category) == ("Aspirin", 7, "nsaid")

    @pytest.mark.parametrize("text,expected", [
        ('{"name": "Gauze", "count": 4, "type": "dressing"}', ("Gauze", 4, "dressing")),
        ('{"product": "Syringe", "qty": 10}', ("Syringe", 10, "")),
        ('{"item": "Mask", "amount": "25"}', ("Mask", 25, "")),
        ('{"medicine_name": "Ibuprofen", "quantity": 2, "category": "nsaid"}', ("Ibuprofen", 2, "nsaid")),
    ])
    def test_synonym_keys(self, text, expected):
        payload = payload_of(text)
        assert (payload.name, payload.count, payload.category) == expected

    def test_name_synonym_order(self):
        """The "name" key wins over later synonyms."""
        payload = payload_of('{"item": "Second", "name": "First"}')
        assert payload.name == "First"

    def test_missing_quantity_defaults_to_one(self):
        assert payload_of('{"name": "Zinc"}').count == 1

    def test_object_without_name_falls_through(self):
        """No usable name in JSON: the next strategies run on the raw text."""
        assert parse_structured('{"quantity": 3}') is None
        outcome = parse('{"quantity": 3}')
        assert isinstance(outcome, Parsed)
        assert outcome.strategy != "structured"

    def test_deeply_nested_json_falls_through(self):
        outcome = parse("[" * 100000)
        assert isinstance(outcome, Parsed)
        assert outcome.strategy == "whitespace"

    def test_non_object_json_is_declined(self):
        assert parse_structured("[1, 2]") is None
        assert parse_structured('"Paracetamol"') is None
        assert parse_structured("42") is None


class TestDelimited:
    """Tests for pipe and comma strategies."""

    def test_pipe_full(self):
        payload = payload_of("Paracetamol|5|analgesic")
        assert (payload.name, payload.count, payload.category) == ("Paracetamol", 5, "analgesic")

    def test_pipe_name_only(self):
        payload = payload_of("Bandage|")
        assert payload.name == "Bandage"
        assert payload.count == 1

    def test_pipe_trims_fields(self):
        payload = payload_of(" Cotton Roll | 12 | consumable ")
        assert (payload.name, payload.count, payload.category) == ("Cotton Roll", 12, "consumable")

    def test_comma_full(self):
        payload = payload_of("Ibuprofen,3,nsaid")
        assert (payload.name, payload.count, payload.category) == ("Ibuprofen", 3, "nsaid")

    def test_pipe_wins_over_comma(self):
        payload = payload_of("Vitamin C, chewable|2|supplement")
        assert payload.name == "Vitamin C, chewable"
        assert payload.count == 2

    def test_delimited_declines_key_value_text(self):
        assert parse_comma("name: Gauze, qty: 3") is None
        assert parse_pipe("name: Gauze|qty: 3") is None

    def test_empty_first_field_is_declined(self):
        assert parse_pipe("|5|x") is None


class TestKeyValue:
    """Tests for "key: value" payloads."""

    def test_basic_pairs(self):
        payload = payload_of("name: Amoxicillin, qty: 20, category: antibiotic")
        assert (payload.name, payload.count, payload.category) == ("Amoxicillin", 20, "antibiotic")

    def test_semicolon_and_newline_separators(self):
        payload = payload_of("medicine: Cetirizine;quantity: 4\ntype: antihistamine")
        assert (payload.name, payload.count, payload.category) == ("Cetirizine", 4, "antihistamine")

    def test_value_keeps_later_colons(self):
        payload = payload_of("name: Ratio 1:2 solution, qty: 1")
        assert payload.name == "Ratio 1:2 solution"

    def test_last_pair_wins(self):
        payload = payload_of("name: First, name: Second")
        assert payload.name == "Second"

    def test_keys_match_by_substring(self):
        payload = payload_of("product_name: Gloves, item_count: 100, product_type: ppe")
        assert (payload.name, payload.count, payload.category) == ("Gloves", 100, "ppe")

    def test_substring_match_is_permissive(self):
        """A key merely containing "type" counts as the category."""
        payload = payload_of("name: Sample; phenotype: A")
        assert payload.category == "A"

    def test_key_groups_are_checked_quantity_then_category_then_name(self):
        """A key such as "product_type" matches both name and category hints; category wins."""
        payload = payload_of("name: Ibuprofen, product_type: tablet")
        assert (payload.name, payload.category) == ("Ibuprofen", "tablet")
        assert parse_key_value("product_type: tablet") is None
        assert payload_of("medicine_type: syrup; item: Cough Mix").category == "syrup"

    def test_no_name_key_is_declined(self):
        assert parse_key_value("qty: 3, category: x") is None


class TestWhitespace:
    """Tests for the last-resort strategy."""

    def test_trailing_integer_is_count(self):
        payload = payload_of("Amoxicillin 20")
        assert (payload.name, payload.count) == ("Amoxicillin", 20)

    def test_multi_word_name(self):
        payload = payload_of("Vitamin D3 drops 2")
        assert (payload.name, payload.count) == ("Vitamin D3 drops", 2)

    def test_non_integer_tail_keeps_whole_text(self):
        payload = payload_of("Paracetamol 500mg")
        assert (payload.name, payload.count) == ("Paracetamol 500mg", 1)

    def test_single_token(self):
        payload = payload_of("8901234567890")
        assert (payload.name, payload.count) == ("8901234567890", 1)

    def test_zero_tail_becomes_one(self):
        assert payload_of("Syrup 0").count == 1


class TestCoerceCount:
    """Tests for quantity coercion."""

    @pytest.mark.parametrize("value,expected", [
        (5, 5),
        ("12", 12),
        (" 7 ", 7),
        ("5 boxes", 5),
        ("+3", 3),
        (2.9, 2),
        ("abc", 1),
        ("", 1),
        (None, 1),
        (0, 1),
        (-4, 1),
        ("-4", 1),
        (True, 1),
        (float("nan"), 1),
        (float("inf"), 1),
        ([3], 1),
    ])
    def test_coercion(self, value, expected):
        assert coerce_count(value) == expected

    def test_invalid_count_in_payload_defaults_to_one(self):
        assert payload_of("Gauze|many|dressing").count == 1
        assert payload_of('{"medicine": "Zinc", "quantity": "lots"}').count == 1

    def test_oversized_digit_run_defaults_to_one(self):
        """Digit runs past the int conversion limit are a coercion failure."""
        huge = "9" * 5000
        assert coerce_count(huge) == 1
        payload = payload_of("Amoxicillin " + huge)
        assert (payload.name, payload.count) == ("Amoxicillin", 1)
        assert payload_of("Amoxicillin|" + huge).count == 1
        assert payload_of("name: Amoxicillin, qty: " + huge).count == 1
