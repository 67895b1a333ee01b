import math
import re
from typing import Union

STORAGE_SIZE = re.compile(r"^(\d+(?:\.\d+)?)(Mi|Gi|Ti|GB|TB)?$")

# Gi is treated as GB; the reports only need a ballpark.
STORAGE_GB_PER_UNIT = {
    "Mi": 1 / 1024,
    "Gi": 1,
    "Ti": 1024,
    "GB": 1,
    "TB": 1024,
}

INSTANCE_CPU_CORES = {
    # RDS
    "db.t3.micro": 2,
    "db.t3.small": 2,
    "db.t3.medium": 2,
    "db.t3.large": 2,
    "db.t3.xlarge": 4,
    "db.t3.2xlarge": 8,
    "db.r5.large": 2,
    "db.r5.xlarge": 4,
    "db.r5.2xlarge": 8,
    "db.r5.4xlarge": 16,
    "db.r5.8xlarge": 32,
    "db.r5.12xlarge": 48,
    "db.r5.16xlarge": 64,
    "db.r5.24xlarge": 96,
    "db.r6g.large": 2,
    "db.r6g.xlarge": 4,
    "db.r6g.2xlarge": 8,
    "db.r6g.4xlarge": 16,
    "db.r6g.8xlarge": 32,
    "db.r6g.12xlarge": 48,
    "db.r6g.16xlarge": 64,
    # EC2
    "t3.micro": 2,
    "t3.small": 2,
    "t3.medium": 2,
    "t3.large": 2,
    "t3.xlarge": 4,
    "t3.2xlarge": 8,
    "m5.large": 2,
    "m5.xlarge": 4,
    "m5.2xlarge": 8,
    "m5.4xlarge": 16,
    "m5.8xlarge": 32,
    "m5.12xlarge": 48,
    "m5.16xlarge": 64,
    "m5.24xlarge": 96,
    "c5.large": 2,
    "c5.xlarge": 4,
    "c5.2xlarge": 8,
    "c5.4xlarge": 16,
    "c5.9xlarge": 36,
    "c5.12xlarge": 48,
    "c5.18xlarge": 72,
    "c5.24xlarge": 96,
    "r5.large": 2,
    "r5.xlarge": 4,
    "r5.2xlarge": 8,
    "r5.4xlarge": 16,
    "r5.8xlarge": 32,
    "r5.12xlarge": 48,
    "r5.16xlarge": 64,
    "r5.24xlarge": 96,
    # OpenSearch
    "m5.large.search": 2,
    "m5.xlarge.search": 4,
    "m5.2xlarge.search": 8,
    "r6gd.large.search": 2,
    "r6gd.xlarge.search": 4,
    "r6gd.2xlarge.search": 8,
    "r6gd.4xlarge.search": 16,
    "r6gd.8xlarge.search": 32,
    "r6gd.12xlarge.search": 48,
    "r6gd.16xlarge.search": 64,
}


def parse_cpu(value: Union[str, float, int, None]) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, str) and value.endswith("m"):
        return float(value[:-1]) / 1000
    return float(value)


def parse_memory(value: Union[str, float, int, None]) -> float:
    """Memory quantity in Mi. Bare numbers are taken as Mi already."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if value.endswith("Gi"):
        return float(value[:-2]) * 1024
    if value.endswith("Mi"):
        return float(value[:-2])
    return float(value)


def format_memory(mi: float) -> str:
    if mi >= 1024:
        return f"{mi / 1024:.2f}Gi"
    return f"{format_number(mi)}Mi"


def format_number(value: float) -> str:
    # 2.0 -> "2", 0.5 -> "0.5"
    return f"{value:g}" if isinstance(value, float) else str(value)


def parse_storage_size(size: Union[str, None]) -> float:
    """Convert a storage quantity ("100Gi", "1Ti", "500", ...) to GB."""
    if not size or size == "0":
        return 0.0
    match = STORAGE_SIZE.match(size)
    if match is None:
        raise ValueError(f"Invalid storage size format: {size}")
    value, unit = match.groups()
    return float(value) * STORAGE_GB_PER_UNIT[unit or "GB"]


def instance_cpu_cores(instance_type: str) -> int:
    return INSTANCE_CPU_CORES.get(instance_type, 0)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
