"""Resource summary report: what a stack provisions and how hard each core works."""
from typing import List

from reporting import markdown
from reporting.resources import ResourceInfo
from reporting.units import format_number, instance_cpu_cores, round_half_up


def sts_per_core(target: float, cores: float) -> int:
    return round_half_up(target / cores)


def _provisioning_ratios(info: ResourceInfo) -> List[str]:
    lines = ["### 📊 Provisioning Ratios"]
    if not info.temporal_services or info.benchmark is None:
        return lines

    target = info.benchmark.target
    cores = {
        name: info.temporal_services[name].total_cpu
        for name in ("frontend", "history", "matching")
        if name in info.temporal_services
    }
    total = sum(cores.values())
    if total > 0:
        lines.append(f"- **CPU Cores (Frontend + History + Matching):** {format_number(total)} cores")
        lines.append(f"- **State Transitions per Core:** {sts_per_core(target, total)} sts/core")
        for name, service_cores in cores.items():
            if service_cores > 0:
                lines.append(
                    f"- **{name.capitalize()}:** {format_number(service_cores)} cores"
                    f" ({sts_per_core(target, service_cores)} sts/core)"
                )

    if info.cassandra_node_groups:
        node = info.cassandra_node_groups[0]
        cassandra_cores = node.cpu * node.node_count
        if cassandra_cores > 0:
            lines.append(
                f"- **Cassandra Database:** {format_number(cassandra_cores)} cores"
                f" ({sts_per_core(target, cassandra_cores)} sts/core)"
            )

    if info.rds_instances:
        rds_cores = instance_cpu_cores(info.rds_instances[0].instance_class)
        if rds_cores > 0:
            lines.append(f"- **RDS Database:** {rds_cores} cores ({sts_per_core(target, rds_cores)} sts/core)")

    return lines


def _node_groups(info: ResourceInfo) -> List[str]:
    lines = ["## EKS Node Groups"]
    if not info.node_groups:
        return lines + ["- No EKS node groups found", ""]

    lines += markdown.table(
        ["Name", "Instance Type", "Node Count", "Purpose"],
        ["------", "--------------", "------------", "---------"],
        [
            [ng.name, ng.instance_type, ng.node_count, ng.purpose or "general"]
            for ng in sorted(info.node_groups, key=lambda ng: ng.name)
        ],
    )
    lines.append("")
    if info.eks_cluster:
        lines.append(f"- **EKS Control Plane:** {info.eks_cluster.name}")
    lines.append("")
    return lines


def _persistence(info: ResourceInfo) -> List[str]:
    lines = ["## Persistence"]

    if info.cassandra_node_groups:
        lines.append("### Cassandra")
        lines += markdown.table(
            ["Instance Type", "Node Count", "CPU Request", "Memory Request", "Storage/Node"],
            ["--------------", "------------", "-------------", "----------------", "--------------"],
            [
                [
                    ng.instance_type,
                    ng.node_count,
                    format_number(ng.cpu) if ng.cpu else "-",
                    ng.memory or "-",
                    markdown.cassandra_storage_display(
                        ng.storage_per_node_gb if ng.commit_log_storage_gb and ng.data_storage_gb else 0
                    ),
                ]
                for ng in info.cassandra_node_groups
            ],
        )
        lines.append("")
        lines += markdown.cassandra_storage_details(info)

    if info.rds_instances:
        rds = info.rds_instances[0]
        cores = instance_cpu_cores(rds.instance_class)
        lines += [
            "### RDS",
            f"- **Engine:** {rds.engine or '-'} {rds.engine_version or ''}",
            f"- **Instance Type:** {rds.instance_class}" + (f" ({cores} CPU cores)" if cores else ""),
            f"- **Multi-AZ:** {'Yes' if rds.multi_az else 'No'}",
            f"- **Storage:** {rds.storage_gb} GB" + (f" ({rds.storage_type})" if rds.storage_type else ""),
            "",
        ]

    if info.open_search_instances:
        lines.append("### OpenSearch")
        for domain in info.open_search_instances:
            if domain.split:
                lines += markdown.table(
                    ["Node Type", "Instance Type", "Instance Count"],
                    ["-----------", "---------------", "----------------"],
                    [
                        ["Master", domain.master_instance_type, domain.master_instance_count],
                        ["Data", domain.data_instance_type, domain.data_instance_count],
                        ["**Total**", "-", f"**{domain.total_instance_count}**"],
                    ],
                )
            else:
                lines += markdown.table(
                    ["Instance Type", "Instance Count"],
                    ["---------------", "----------------"],
                    [[domain.instance_type, domain.instance_count]],
                )
            if domain.engine_version:
                lines += ["", f"- **Engine Version:** {domain.engine_version}"]
            lines.append("- **Storage:** NVMe (included with instance)")
        lines.append("")

    return lines


def render_report(stack: str, info: ResourceInfo) -> str:
    lines = markdown.header(stack)
    lines += ["## Summary", ""]
    lines += markdown.benchmark_target(info, unit=" (sts)")
    lines += _provisioning_ratios(info)
    lines += ["", "---", ""]
    lines += markdown.region(info)
    lines += _node_groups(info)
    lines += _persistence(info)
    lines += markdown.temporal_services(info, sts_per_core=True)
    lines += markdown.benchmark_workers(info)
    return markdown.render(lines)
