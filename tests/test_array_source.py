"""Test suite for NPY array fetching and parsing."""

import struct
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import requests

from scripts.errors import ParseError, TransferError
from scripts.preprocessing.array_source import fetch_array, is_remote, parse_npy, read_bytes


def mock_response(content: bytes, status_error: Exception = None) -> MagicMock:
    """Build a streaming requests response returning ``content``."""
    response = MagicMock()
    response.__enter__.return_value = response
    response.headers = {'content-length': str(len(content))}
    response.iter_content.return_value = [content[i:i + 7] for i in range(0, len(content), 7)]
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    return response


class TestParseNpy:
    """Test NPY payload parsing."""

    def test_parse_float_matrix(self, npy_bytes):
        array = np.arange(12, dtype=np.float32).reshape(3, 4)
        parsed = parse_npy(npy_bytes(array), expected_rank=2)

        assert parsed.shape == (3, 4)
        assert parsed.dtype == np.float32
        np.testing.assert_array_equal(parsed, array)

    def test_parse_int_vector(self, npy_bytes):
        labels = np.array([3, 1, 4, 1, 5], dtype=np.int32)
        parsed = parse_npy(npy_bytes(labels), expected_rank=1)

        np.testing.assert_array_equal(parsed, labels)
        assert parsed.dtype == np.int32

    def test_parsed_array_is_writable(self, npy_bytes):
        parsed = parse_npy(npy_bytes(np.zeros((2, 2), dtype=np.float64)))
        parsed[0, 0] = 1.0
        assert parsed[0, 0] == 1.0

    def test_big_endian_payload(self, npy_bytes):
        array = np.arange(6, dtype='>f8').reshape(2, 3)
        parsed = parse_npy(npy_bytes(array), expected_rank=2)

        assert parsed.dtype.isnative
        np.testing.assert_array_equal(parsed, np.arange(6, dtype=np.float64).reshape(2, 3))

    def test_fortran_order_payload(self, npy_bytes):
        array = np.asfortranarray(np.arange(6, dtype=np.float32).reshape(2, 3))
        parsed = parse_npy(npy_bytes(array), expected_rank=2)

        np.testing.assert_array_equal(parsed, array)

    def test_rank_mismatch(self, npy_bytes):
        with pytest.raises(ParseError, match="rank-2"):
            parse_npy(npy_bytes(np.zeros(5, dtype=np.float32)), expected_rank=2)

    def test_any_rank_accepted_without_expectation(self, npy_bytes):
        parsed = parse_npy(npy_bytes(np.zeros((2, 3, 4), dtype=np.float32)), expected_rank=None)
        assert parsed.shape == (2, 3, 4)

    def test_truncated_payload(self, npy_bytes):
        payload = npy_bytes(np.zeros((4, 4), dtype=np.float32))
        with pytest.raises(ParseError, match="payload holds"):
            parse_npy(payload[:-4])

    def test_trailing_bytes(self, npy_bytes):
        payload = npy_bytes(np.zeros((4, 4), dtype=np.float32))
        with pytest.raises(ParseError, match="payload holds"):
            parse_npy(payload + b"\x00" * 4)

    def test_bad_magic(self):
        with pytest.raises(ParseError, match="Malformed NPY header"):
            parse_npy(b"NOTANPYFILE" + b"\x00" * 32)

    def test_empty_payload(self):
        with pytest.raises(ParseError):
            parse_npy(b"")

    def test_unsupported_element_type(self, npy_bytes):
        strings = np.array(["a", "bc"], dtype="U2")
        with pytest.raises(ParseError, match="Unsupported element type"):
            parse_npy(npy_bytes(strings))

    def test_negative_dimensions_rejected(self):
        header = b"{'descr': '<f4', 'fortran_order': False, 'shape': (-1, -4), }"
        header += b" " * (-(10 + len(header) + 1) % 64) + b"\n"
        payload = b"\x93NUMPY\x01\x00" + struct.pack("<H", len(header)) + header + b"\x00" * 16

        with pytest.raises(ParseError, match="negative dimension"):
            parse_npy(payload)

    def test_error_names_resource(self):
        with pytest.raises(ParseError) as excinfo:
            parse_npy(b"garbage", resource="https://example.org/data.npy")
        assert excinfo.value.resource == "https://example.org/data.npy"
        assert "https://example.org/data.npy" in str(excinfo.value)


class TestReadBytes:
    """Test resource retrieval."""

    def test_is_remote(self):
        assert is_remote("https://example.org/a.npy")
        assert is_remote("HTTP://example.org/a.npy")
        assert not is_remote("data/a.npy")

    def test_read_local_file(self, temp_dir):
        path = temp_dir / "blob.bin"
        path.write_bytes(b"\x01\x02\x03")
        assert read_bytes(path) == b"\x01\x02\x03"
        assert read_bytes(str(path)) == b"\x01\x02\x03"

    def test_missing_local_file(self, temp_dir):
        with pytest.raises(TransferError) as excinfo:
            read_bytes(temp_dir / "missing.npy")
        assert excinfo.value.stage == "fetch"

    @patch('scripts.preprocessing.array_source.requests.get')
    def test_download(self, mock_get):
        content = bytes(range(50))
        mock_get.return_value = mock_response(content)

        assert read_bytes("https://example.org/blob.bin") == content
        mock_get.assert_called_once()
        assert mock_get.call_args.args[0] == "https://example.org/blob.bin"
        assert mock_get.call_args.kwargs['stream'] is True

    @patch('scripts.preprocessing.array_source.requests.get')
    def test_http_error_status(self, mock_get):
        mock_get.return_value = mock_response(b"", status_error=requests.HTTPError("404 Not Found"))

        with pytest.raises(TransferError, match="404"):
            read_bytes("https://example.org/missing.npy")

    @patch('scripts.preprocessing.array_source.requests.get')
    def test_connection_error_is_not_retried(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("unreachable")

        with pytest.raises(TransferError) as excinfo:
            read_bytes("https://example.org/data.npy")
        assert mock_get.call_count == 1
        assert isinstance(excinfo.value.__cause__, requests.ConnectionError)


class TestFetchArray:
    """Test the fetch-then-parse entry point."""

    def test_fetch_local_pair(self, usps_like_files):
        data_path, labels_path, features, labels = usps_like_files

        fetched_features = fetch_array(data_path, expected_rank=2)
        fetched_labels = fetch_array(labels_path, expected_rank=1)

        np.testing.assert_array_equal(fetched_features, features)
        np.testing.assert_array_equal(fetched_labels, labels)

    @patch('scripts.preprocessing.array_source.requests.get')
    def test_fetch_remote(self, mock_get, npy_bytes):
        array = np.arange(8, dtype=np.float32).reshape(2, 4)
        mock_get.return_value = mock_response(npy_bytes(array))

        fetched = fetch_array("https://example.org/USPS.npy", expected_rank=2)
        np.testing.assert_array_equal(fetched, array)

    def test_float_labels_rejected(self, temp_dir):
        path = temp_dir / "labels.npy"
        np.save(path, np.array([0.5, 1.5]))

        with pytest.raises(ParseError, match="integer"):
            fetch_array(path, expected_rank=1)

    def test_feature_rank_mismatch(self, temp_dir):
        path = temp_dir / "cube.npy"
        np.save(path, np.zeros((3, 2, 2), dtype=np.float32))

        with pytest.raises(ParseError):
            fetch_array(path, expected_rank=2)
