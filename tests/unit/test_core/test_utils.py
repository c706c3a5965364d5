# SPDX-License-Identifier: LGPL-3.0-or-later
import unittest

from vmimport.core.exceptions import ValidationError
from vmimport.core.utils import U


class TestNormalizeName(unittest.TestCase):
    """Test source VM name normalization."""

    def test_valid_name_unchanged(self):
        self.assertEqual(U.normalize_name("web-01.example"), "web-01.example")

    def test_spaces_and_case(self):
        self.assertEqual(U.normalize_name("My VM"), "myvm")

    def test_dots_become_dashes(self):
        self.assertEqual(U.normalize_name("Web.Server_01"), "web-server01")

    def test_leading_and_trailing_garbage_stripped(self):
        self.assertEqual(U.normalize_name("--_Db!!"), "db")

    def test_long_name_truncated(self):
        self.assertEqual(len(U.normalize_name("A" * 300)), 253)

    def test_empty_name(self):
        with self.assertRaises(ValidationError):
            U.normalize_name("")

    def test_no_legal_characters(self):
        with self.assertRaises(ValidationError):
            U.normalize_name("___")


class TestMessages(unittest.TestCase):
    def test_join_messages(self):
        self.assertEqual(U.join_messages([]), "")
        self.assertEqual(U.join_messages(["a"]), "a")
        self.assertEqual(U.join_messages(["a", "b", "c"]), "a, b, c")

    def test_loggable_id(self):
        self.assertEqual(U.to_loggable_id("123", "web"), "web(123)")
        self.assertEqual(U.to_loggable_id("123", None), "123")
        self.assertEqual(U.to_loggable_id(None, "web"), "web")

    def test_loggable_resource_name(self):
        self.assertEqual(U.to_loggable_resource_name("net", "default"), "default/net")
        self.assertEqual(U.to_loggable_resource_name("net", None), "net")


class TestSizes(unittest.TestCase):
    def test_format_bytes(self):
        self.assertEqual(U.format_bytes(1024**3), "1Gi")
        self.assertEqual(U.format_bytes(3 * 1024**2), "3Mi")
        self.assertEqual(U.format_bytes(1536), "1536")
        self.assertEqual(U.format_bytes(0), "0")

    def test_format_bytes_negative(self):
        with self.assertRaises(ValueError):
            U.format_bytes(-1)

    def test_round_up(self):
        self.assertEqual(U.round_up(1, 512), 512)
        self.assertEqual(U.round_up(1024, 512), 1024)

    def test_label_value_length(self):
        self.assertEqual(U.ensure_label_value_length("short"), "short")
        shortened = U.ensure_label_value_length("x" * 70)
        self.assertEqual(len(shortened), 63)
        self.assertTrue(shortened.endswith("-70"))

    def test_data_volume_name_is_stable(self):
        a = U.build_data_volume_name("myvm", "disk-1")
        self.assertEqual(a, U.build_data_volume_name("myvm", "disk-1"))
        self.assertNotEqual(a, U.build_data_volume_name("myvm", "disk-2"))
        self.assertEqual(len(a), 40)
