"""
Fetch NPY arrays from a URL or a local path.

A resource is retrieved in a single attempt (no retries, no cache) and parsed
as an NPY v1.0/v2.0 payload. Parsing is strict: the declared shape must account
for every byte of the payload.
"""
from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
import requests
from numpy.lib import format as npy_format
from tqdm import tqdm

from scripts.errors import ParseError, TransferError

logger = logging.getLogger('embedding.data')

Locator = Union[str, Path]

DOWNLOAD_TIMEOUT = 60
CHUNK_SIZE = 1 << 16


def is_remote(resource_locator: Locator) -> bool:
    """Return True if the locator is an HTTP(S) URL."""
    return str(resource_locator).lower().startswith(("http://", "https://"))


def _download(url: str) -> bytes:
    try:
        with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
            response.raise_for_status()
            total = int(response.headers.get('content-length', 0)) or None
            buffer = bytearray()
            with tqdm(total=total, unit='B', unit_scale=True, desc=url.rsplit('/', 1)[-1],
                      leave=False, disable=None) as progress:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    buffer.extend(chunk)
                    progress.update(len(chunk))
    except requests.RequestException as e:
        raise TransferError(f"Failed to download: {e}", resource=url, stage="fetch") from e
    return bytes(buffer)


def read_bytes(resource_locator: Locator) -> bytes:
    """
    Retrieve the raw bytes behind a resource locator.

    Args:
        resource_locator: HTTP(S) URL or local file path

    Returns:
        The complete payload

    Raises:
        TransferError: if the download or file read fails
    """
    if is_remote(resource_locator):
        logger.debug(f"Downloading {resource_locator}")
        return _download(str(resource_locator))

    path = Path(resource_locator)
    try:
        return path.read_bytes()
    except OSError as e:
        raise TransferError(f"Failed to read file: {e}", resource=str(path), stage="fetch") from e


def _is_supported_dtype(dtype: np.dtype) -> bool:
    if dtype.hasobject or dtype.fields is not None:
        return False
    return dtype.kind == 'b' or np.issubdtype(dtype, np.number)


def parse_npy(payload: bytes, expected_rank: Optional[int] = None, resource: str = "<bytes>") -> np.ndarray:
    """
    Parse an NPY payload into a native-byte-order array.

    Args:
        payload: Complete NPY file contents
        expected_rank: Required number of dimensions, or None to accept any
        resource: Name used in error messages

    Returns:
        Parsed array owning its own (writable) buffer

    Raises:
        ParseError: on a malformed header, unsupported element type, payload
            size that disagrees with the declared shape, or rank mismatch
    """
    stream = io.BytesIO(payload)
    try:
        version = npy_format.read_magic(stream)
        if version == (1, 0):
            shape, fortran_order, dtype = npy_format.read_array_header_1_0(stream)
        elif version == (2, 0):
            shape, fortran_order, dtype = npy_format.read_array_header_2_0(stream)
        else:
            raise ParseError(f"Unsupported NPY version {version[0]}.{version[1]}",
                             resource=resource, stage="parse")
    except ValueError as e:
        raise ParseError(f"Malformed NPY header: {e}", resource=resource, stage="parse") from e

    if any(dim < 0 for dim in shape):
        raise ParseError(f"Malformed NPY header: negative dimension in shape {shape}",
                         resource=resource, stage="parse")

    if not _is_supported_dtype(dtype):
        raise ParseError(f"Unsupported element type: {dtype}", resource=resource, stage="parse")

    data = payload[stream.tell():]
    n_elements = int(np.prod(shape, dtype=np.int64))
    expected_bytes = n_elements * dtype.itemsize
    if len(data) != expected_bytes:
        raise ParseError(
            f"Shape {shape} with {dtype} needs {expected_bytes} bytes, payload holds {len(data)}",
            resource=resource, stage="parse"
        )

    if expected_rank is not None and len(shape) != expected_rank:
        raise ParseError(
            f"Expected a rank-{expected_rank} array, got shape {shape}",
            resource=resource, stage="parse"
        )

    array = np.frombuffer(data, dtype=dtype, count=n_elements)
    array = array.reshape(shape, order='F' if fortran_order else 'C')
    # Copy into native byte order so downstream stages own a writable buffer
    return array.astype(dtype.newbyteorder('='), copy=True)


def fetch_array(resource_locator: Locator, expected_rank: Optional[int]) -> np.ndarray:
    """
    Fetch and parse an NPY array.

    Rank-1 arrays are label vectors and must hold integers.

    Raises:
        TransferError: if the resource cannot be retrieved
        ParseError: if the payload is not a valid array of the expected rank
    """
    resource = str(resource_locator)
    payload = read_bytes(resource_locator)
    array = parse_npy(payload, expected_rank=expected_rank, resource=resource)

    if array.ndim == 1 and array.dtype.kind not in 'biu':
        raise ParseError(f"Label vectors must be integer typed, got {array.dtype}",
                         resource=resource, stage="parse")

    logger.info(f"Loaded {resource}: shape={array.shape}, dtype={array.dtype}")
    return array
