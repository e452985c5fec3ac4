"""
Base64 decoder tests
"""

import base64

import pytest

from slidefy.domain import codec
from slidefy.domain.errors import Base64DecodeError

from tests.conftest import make_png


class TestDecode:
    """decode() on the standard alphabet"""

    def test_full_group(self):
        assert codec.decode("TWFu") == b"Man"

    def test_single_and_double_padding(self):
        assert codec.decode("TWE=") == b"Ma"
        assert codec.decode("TQ==") == b"M"

    def test_empty_payload(self):
        assert codec.decode("") == b""
        assert codec.decoded_length("") == 0

    def test_decoded_length_accounts_for_padding(self):
        assert codec.decoded_length("TWFu") == 3
        assert codec.decoded_length("TWE=") == 2
        assert codec.decoded_length("TQ==") == 1

    def test_line_wrapped_payload_matches_single_line(self):
        # Given - a PNG encoded and wrapped at 76 columns
        data = make_png()
        encoded = base64.b64encode(data).decode("ascii")
        wrapped = "\n".join(encoded[i:i + 76] for i in range(0, len(encoded), 76))

        # Then
        assert codec.decode(wrapped) == data
        assert codec.decode(encoded) == data

    def test_length_not_multiple_of_four(self):
        with pytest.raises(Base64DecodeError) as exc:
            codec.decode("TWF")
        assert exc.value.error_code == "BASE64_DECODE_ERROR"

    def test_invalid_character(self):
        with pytest.raises(Base64DecodeError) as exc:
            codec.decode("TW*u")
        assert exc.value.details["position"] == 2

    def test_padding_before_final_group(self):
        with pytest.raises(Base64DecodeError):
            codec.decode("TQ==TWFu")

    @pytest.mark.parametrize("payload, position", [("AB=C", 2), ("A===", 1), ("=AAA", 0), ("TWFuA=BC", 5)])
    def test_padding_must_be_trailing(self, payload, position):
        with pytest.raises(Base64DecodeError) as exc:
            codec.decode(payload)
        assert exc.value.details["position"] == position


class TestDataUrl:
    def test_strip_data_url_prefix(self):
        assert codec.strip_data_url("data:image/png;base64,TWFu") == "TWFu"

    def test_plain_payload_is_untouched(self):
        assert codec.strip_data_url("TWFu") == "TWFu"


@pytest.mark.parametrize("length", [0, 1, 2, 3, 4, 5])
def test_every_padding_boundary(length):
    data = bytes(range(250, 250 - length, -1))
    assert codec.decode(base64.b64encode(data).decode("ascii")) == data
