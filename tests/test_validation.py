import unittest
from decimal import Decimal

from raffledesk.errors import InvalidInput
from raffledesk.validation import (
    canonical_contact,
    parse_amount,
    validate_contact,
    validate_name,
    validate_number,
)


class ContactTests(unittest.TestCase):
    def test_digits_are_formatted(self):
        self.assertEqual(canonical_contact("11987654321"), "(11) 98765-4321")
        self.assertEqual(canonical_contact(" 11 98765 4321 "), "(11) 98765-4321")

    def test_canonical_value_is_stable(self):
        self.assertEqual(canonical_contact("(11) 98765-4321"), "(11) 98765-4321")

    def test_wrong_length_is_left_for_validation(self):
        self.assertEqual(canonical_contact(" 12345 "), "12345")
        with self.assertRaises(InvalidInput) as ctx:
            validate_contact(canonical_contact("12345"))
        self.assertEqual(ctx.exception.field, "contact")

    def test_non_string_contact(self):
        with self.assertRaises(InvalidInput):
            canonical_contact(11987654321)


class NameTests(unittest.TestCase):
    def test_two_words_required(self):
        self.assertEqual(validate_name("  Maria   Silva "), "Maria Silva")
        with self.assertRaises(InvalidInput):
            validate_name("Maria")
        with self.assertRaises(InvalidInput):
            validate_name("   ")


class NumberTests(unittest.TestCase):
    def test_range(self):
        self.assertEqual(validate_number(1, 1000), 1)
        self.assertEqual(validate_number(1000, 1000), 1000)
        for bad in (0, 1001, -5):
            with self.assertRaises(InvalidInput):
                validate_number(bad, 1000)

    def test_non_integers_rejected(self):
        for bad in (True, 1.0, "7", None):
            with self.assertRaises(InvalidInput):
                validate_number(bad, 1000)


class AmountTests(unittest.TestCase):
    def test_parses_numbers_and_strings(self):
        self.assertEqual(parse_amount("21.50"), Decimal("21.50"))
        self.assertEqual(parse_amount(7), Decimal("7"))

    def test_amount_is_stored_in_cents(self):
        amount = parse_amount("14.000")
        self.assertEqual(amount, Decimal("14.00"))
        self.assertEqual(amount.as_tuple().exponent, -2)
        self.assertEqual(parse_amount("9999999999.99"), Decimal("9999999999.99"))

    def test_rejects_sub_cent_and_oversized_amounts(self):
        for bad in ("13.999", "7.001", "10000000000", "1e12"):
            with self.assertRaises(InvalidInput) as ctx:
                parse_amount(bad)
            self.assertEqual(ctx.exception.field, "purchase_amount")

    def test_rejects_garbage(self):
        for bad in ("abc", "", "NaN", "Infinity", 0, -3, True):
            with self.assertRaises(InvalidInput):
                parse_amount(bad)


if __name__ == "__main__":
    unittest.main()
