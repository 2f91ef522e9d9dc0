"""Tests for the Upload-Metadata codec."""

import pytest

from resumable_tus.metadata import decode_metadata, encode_metadata


class TestEncodeMetadata:
    """Tests for encode_metadata."""

    def test_encode(self):
        encoded = encode_metadata({"filename": "world_domination_plan.pdf", "is_confidential": ""})
        assert encoded == "filename d29ybGRfZG9taW5hdGlvbl9wbGFuLnBkZg==,is_confidential"

    def test_empty_metadata_has_no_header(self):
        assert encode_metadata({}) is None
        assert encode_metadata(None) is None

    def test_bytes_value(self):
        assert encode_metadata({"blob": b"\x00\xff"}) == "blob AP8="

    @pytest.mark.parametrize(
        "key", ["", "has space", "has,comma", "tab\tkey", "ключ", "rocket\U0001f680", "bell\x07", "del\x7f"]
    )
    def test_invalid_key(self, key):
        with pytest.raises(ValueError):
            encode_metadata({key: "value"})


class TestDecodeMetadata:
    """Tests for decode_metadata."""

    def test_decode(self):
        header = "filename d29ybGRfZG9taW5hdGlvbl9wbGFuLnBkZg==, is_confidential"
        assert decode_metadata(header) == {
            "filename": "world_domination_plan.pdf",
            "is_confidential": "",
        }

    def test_decode_empty(self):
        assert decode_metadata(None) == {}
        assert decode_metadata("") == {}
        assert decode_metadata(" , ") == {}

    def test_decode_raw_bytes(self):
        assert decode_metadata("blob AP8=", encoding=None) == {"blob": b"\x00\xff"}

    def test_invalid_base64(self):
        with pytest.raises(ValueError):
            decode_metadata("filename not*base64")

    def test_invalid_utf8(self):
        with pytest.raises(ValueError):
            decode_metadata("blob AP8=")

    def test_round_trip(self):
        """Test keys and values survive encoding exactly."""
        metadata = {
            "filename": "résumé – final.pdf",
            "content-type": "application/pdf",
            "note": "line one\nline two, with comma",
            "emoji": "\U0001f680",
            "empty": "",
            "spaces": "  padded  ",
        }
        assert decode_metadata(encode_metadata(metadata)) == metadata

    def test_round_trip_other_encoding(self):
        metadata = {"name": "Grüße"}
        encoded = encode_metadata(metadata, encoding="latin-1")
        assert decode_metadata(encoded, encoding="latin-1") == metadata
