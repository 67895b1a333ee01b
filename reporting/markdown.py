from typing import Any, List

from reporting.resources import ResourceInfo
from reporting.units import format_number, round_half_up


def table(headers: List[str], separators: List[str], rows: List[List[Any]]) -> List[str]:
    lines = [
        "| " + " | ".join(headers) + " |",
        "|" + "|".join(separators) + "|",
    ]
    lines += ["| " + " | ".join(str(cell) for cell in row) + " |" for row in rows]
    return lines


def header(stack: str) -> List[str]:
    return [f"# Cluster Stack: {stack}", ""]


def benchmark_target(info: ResourceInfo, *, unit: str) -> List[str]:
    if info.benchmark is None:
        return []
    return [
        "### 🎯 Benchmark Target",
        f"- **Target Throughput:** {info.benchmark.target} state transitions/second{unit}",
        f"- **Namespaces:** {info.benchmark.namespaces}",
        "",
    ]


def region(info: ResourceInfo) -> List[str]:
    lines = ["## AWS Region", f"- **Region:** {info.region or 'unknown'}"]
    if info.availability_zones:
        lines.append(f"- **Availability Zones:** {', '.join(info.availability_zones)}")
    lines.append("")
    return lines


def cassandra_storage_details(info: ResourceInfo) -> List[str]:
    groups = [ng for ng in info.cassandra_node_groups if ng.commit_log_storage_gb or ng.data_storage_gb]
    if not groups:
        return []
    lines = ["**Storage Details:**"]
    for ng in groups:
        lines.append(
            f"- **Per Node:** {format_number(ng.commit_log_storage_gb)} GB commit log"
            f" + {format_number(ng.data_storage_gb)} GB data storage (gp3)"
        )
        lines.append(
            f"- **Total Cluster:** {format_number(ng.storage_per_node_gb * ng.node_count)} GB"
            f" across {ng.node_count} nodes"
        )
    lines.append("")
    return lines


def cassandra_storage_display(storage_gb: float) -> str:
    return f"{storage_gb:.1f} GB" if storage_gb > 0 else "-"


def history_shards(info: ResourceInfo) -> List[str]:
    history = info.temporal_services.get("history")
    if history and history.shards:
        return [f"- **History Shards:** {history.shards}", ""]
    return []


TEMPORAL_HEADERS = ["Service", "Pods", "CPU/Pod (Request)", "Memory/Pod (Request)", "Total CPU", "Total Memory"]


def temporal_services(info: ResourceInfo, *, sts_per_core: bool = False) -> List[str]:
    lines = ["## Temporal Services", ""]
    if not info.temporal_services:
        return lines + ["- No Temporal services configuration found", ""]

    target = info.benchmark.target if info.benchmark else 0
    headers = TEMPORAL_HEADERS + (["STS/Core"] if sts_per_core else [])
    rows = []
    for name, service in info.temporal_services.items():
        row = [
            name.capitalize(),
            service.pods,
            format_number(service.cpu_per_pod),
            service.memory_per_pod,
            format_number(service.total_cpu),
            service.total_memory,
        ]
        if sts_per_core:
            total = service.total_cpu
            row.append(round_half_up(target / total) if total > 0 and target > 0 else "-")
        rows.append(row)

    lines += table(headers, ["-" * (len(h) + 2) for h in headers], rows)
    lines.append("")
    return lines + history_shards(info)


def benchmark_workers(info: ResourceInfo) -> List[str]:
    lines = ["## Benchmark Workers", ""]
    workers = info.benchmark.workers if info.benchmark else None
    if workers is None:
        return lines + ["- No benchmark workers configuration found", ""]

    lines += table(
        ["Pods", "CPU (Request)", "Memory (Request)", "Workflow Pollers", "Activity Pollers"],
        ["------", "---------------", "------------------", "------------------", "------------------"],
        [[workers.pods, workers.cpu_request, workers.memory_request, workers.workflow_pollers, workers.activity_pollers]],
    )
    soak = info.benchmark.soak_test
    if soak is not None:
        lines += [
            "",
            f"- **Soak Test:** {soak.pods} pods, {soak.concurrent_workflows} concurrent workflows"
            f" ({soak.cpu_request} CPU / {soak.memory_request} memory per pod)",
        ]
    lines.append("")
    return lines


def render(lines: List[str]) -> str:
    return "\n".join(lines) + "\n"
