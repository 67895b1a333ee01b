import pytest

from reporting.units import (
    format_memory,
    format_number,
    instance_cpu_cores,
    parse_cpu,
    parse_memory,
    parse_storage_size,
    round_half_up,
)


class TestCpu:
    def test_numbers_and_strings(self):
        assert parse_cpu(2) == 2.0
        assert parse_cpu("1.5") == 1.5

    def test_millicores(self):
        assert parse_cpu("500m") == 0.5

    def test_empty(self):
        assert parse_cpu(None) == 0.0
        assert parse_cpu("") == 0.0


class TestMemory:
    def test_units(self):
        assert parse_memory("2Gi") == 2048
        assert parse_memory("512Mi") == 512
        assert parse_memory("300") == 300
        assert parse_memory(64) == 64

    def test_format(self):
        assert format_memory(2048) == "2.00Gi"
        assert format_memory(1536) == "1.50Gi"
        assert format_memory(512) == "512Mi"


class TestStorageSize:
    @pytest.mark.parametrize("size, expected", [
        ("100Gi", 100),
        ("1Ti", 1024),
        ("512Mi", 0.5),
        ("2TB", 2048),
        ("250GB", 250),
        ("40", 40),
        ("1.5Gi", 1.5),
        ("0", 0),
        ("", 0),
        (None, 0),
    ])
    def test_parse(self, size, expected):
        assert parse_storage_size(size) == expected

    @pytest.mark.parametrize("size", ["10Pi", "ten", "10 Gi", "-5Gi"])
    def test_invalid(self, size):
        with pytest.raises(ValueError, match="Invalid storage size format"):
            parse_storage_size(size)


def test_instance_cpu_cores():
    assert instance_cpu_cores("db.r5.2xlarge") == 8
    assert instance_cpu_cores("c5.9xlarge") == 36
    assert instance_cpu_cores("r6gd.2xlarge.search") == 8
    assert instance_cpu_cores("x2iedn.32xlarge") == 0


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2


def test_format_number():
    assert format_number(2.0) == "2"
    assert format_number(0.5) == "0.5"
    assert format_number(3) == "3"
