"""
Encoded filename tests.
"""

import pytest

from filemanager.core import codec
from filemanager.core.filetypes import Category, classify


class TestEncode:

    def test_concrete_upload_name(self):
        encoded = codec.encode(1700000000000, "abc123", "My Report (final).pdf")
        assert encoded == "1700000000000-abc123-My_Report__final_.pdf"
        assert classify(encoded) == Category.PDF

    def test_empty_name_uses_placeholder(self):
        assert codec.encode(5, "abc", "") == "5-abc-file"

    def test_id_with_separator_is_rejected(self):
        with pytest.raises(ValueError):
            codec.encode(5, "ab-c", "x.txt")

    def test_new_file_id_is_hex_without_separator(self):
        file_id = codec.new_file_id()
        assert len(file_id) == 32
        assert codec.SEPARATOR not in file_id
        int(file_id, 16)


class TestSanitize:

    def test_replaces_unsafe_characters(self):
        assert codec.sanitize("a b/c(d).txt") == "a_b_c_d_.txt"

    def test_is_idempotent(self):
        once = codec.sanitize("Rapport d'été #2.docx")
        assert codec.sanitize(once) == once


class TestDecode:

    def test_round_trip_yields_sanitized_name(self):
        for name in ["notes.txt", "My Report (final).pdf", "ünïcode name.md", "x"]:
            decoded = codec.decode(codec.encode(42, "deadbeef", name))
            assert decoded == codec.DecodedName(42, "deadbeef", codec.sanitize(name))

    def test_too_few_segments(self):
        assert codec.decode("readme.txt") is None
        assert codec.decode("123-readme.txt") is None

    def test_non_numeric_timestamp(self):
        assert codec.decode("notanumber-abc123-file.txt") is None

    def test_non_ascii_digits_are_rejected(self):
        assert codec.decode("١٢٣-abc123-file.txt") is None

    def test_empty_id_or_name(self):
        assert codec.decode("123--file.txt") is None
        assert codec.decode("123-abc-") is None

    def test_hyphens_in_name_are_rejoined(self):
        decoded = codec.decode("1700000000000-abc123-my-report-v2.pdf")
        assert decoded.file_id == "abc123"
        assert decoded.original_name == "my-report-v2.pdf"

    def test_timestamp_beyond_datetime_range(self):
        assert codec.decode("9999999999999999999999999-abc-evil.txt") is None
        assert codec.decode(f"{codec.MAX_TIMESTAMP_MS + 1}-abc-late.txt") is None

    def test_last_representable_timestamp(self):
        decoded = codec.decode(f"{codec.MAX_TIMESTAMP_MS}-abc-late.txt")
        assert decoded.uploaded_ms == codec.MAX_TIMESTAMP_MS
