"""
Tests for human-readable sizes shown by the service and the CLI.
"""

import pytest

from common.formatting import format_file_size


@pytest.mark.parametrize("size,expected", [
    (0, "0 B"),
    (512, "512 B"),
    (1023, "1023 B"),
    (1536, "1.50 KB"),
    (1024 * 1024, "1.00 MB"),
    (5 * 1024 ** 3, "5.00 GB"),
    (2048 * 1024 ** 4, "2048.00 TB"),
])
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected
