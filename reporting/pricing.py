"""Monthly cost report for a cluster stack."""
from typing import List

from reporting import markdown
from reporting.pricing_data import PricingDataError, PricingService
from reporting.resources import CassandraNodeGroupInfo, OpenSearchInfo, RDSInstanceInfo, ResourceInfo
from reporting.units import format_number

HOURS_PER_MONTH = 24 * 30
CASSANDRA_VOLUME_TYPE = "gp3"


def attach_prices(info: ResourceInfo, pricing: PricingService) -> ResourceInfo:
    if info.eks_cluster:
        info.eks_cluster.price_per_hour = pricing.eks()

    for ng in info.node_groups:
        ng.price_per_hour = pricing.ec2(ng.instance_type)

    for ng in info.cassandra_node_groups:
        ng.price_per_hour = pricing.ec2(ng.instance_type)
        ng.storage_price_per_gb_month = pricing.ebs_storage(CASSANDRA_VOLUME_TYPE)

    for rds in info.rds_instances:
        rds.price_per_hour = pricing.rds(rds.instance_class, rds.engine or "postgres")
        rds.storage_price_per_gb_month = pricing.rds_storage(rds.storage_type or "standard")

    for domain in info.open_search_instances:
        domain.storage_price_per_gb_month = pricing.opensearch_storage()
        if domain.split:
            domain.master_price_per_hour = pricing.opensearch(domain.master_instance_type)
            domain.data_price_per_hour = pricing.opensearch(domain.data_instance_type)
        else:
            domain.price_per_hour = pricing.opensearch(domain.instance_type)

    return info


def validate_prices(info: ResourceInfo):
    """Raise PricingDataError for the first resource left without a price."""
    if info.eks_cluster and not info.eks_cluster.price_per_hour:
        raise PricingDataError(f"Missing pricing data for EKS cluster {info.eks_cluster.name}")

    for ng in info.node_groups:
        if not ng.price_per_hour:
            raise PricingDataError(f"Missing pricing data for node group {ng.name} with instance type {ng.instance_type}")

    for ng in info.cassandra_node_groups:
        if not ng.price_per_hour:
            raise PricingDataError(f"Missing pricing data for Cassandra node group {ng.name} with instance type {ng.instance_type}")
        if not ng.storage_price_per_gb_month:
            raise PricingDataError(f"Missing storage pricing data for Cassandra node group {ng.name}")

    for rds in info.rds_instances:
        if not rds.price_per_hour:
            raise PricingDataError(f"Missing instance pricing data for RDS instance {rds.name} with instance class {rds.instance_class}")
        if not rds.storage_price_per_gb_month:
            raise PricingDataError(f"Missing storage pricing data for RDS instance {rds.name} with storage type {rds.storage_type or 'standard'}")

    for domain in info.open_search_instances:
        if domain.split:
            if not domain.master_price_per_hour:
                raise PricingDataError(f"Missing master instance pricing data for OpenSearch domain {domain.name} with master instance type {domain.master_instance_type}")
            if not domain.data_price_per_hour:
                raise PricingDataError(f"Missing data instance pricing data for OpenSearch domain {domain.name} with data instance type {domain.data_instance_type}")
        elif not domain.price_per_hour:
            raise PricingDataError(f"Missing instance pricing data for OpenSearch domain {domain.name} with instance type {domain.instance_type}")
        if not domain.storage_price_per_gb_month:
            raise PricingDataError(f"Missing storage pricing data for OpenSearch domain {domain.name}")


# ---- Costs ------------------------------------------------------------------

def monthly(hourly: float) -> float:
    return hourly * HOURS_PER_MONTH


def cassandra_storage_cost_per_node(ng: CassandraNodeGroupInfo) -> float:
    # only priced when both volumes are sized
    if ng.commit_log_storage_gb and ng.data_storage_gb and ng.storage_price_per_gb_month:
        return ng.storage_per_node_gb * ng.storage_price_per_gb_month
    return 0.0


def cassandra_cost(ng: CassandraNodeGroupInfo) -> float:
    return (monthly(ng.price_per_hour) + cassandra_storage_cost_per_node(ng)) * ng.node_count


def rds_instance_cost(rds: RDSInstanceInfo) -> float:
    return monthly(rds.price_per_hour)


def rds_storage_cost(rds: RDSInstanceInfo) -> float:
    return rds.storage_gb * rds.storage_price_per_gb_month


def opensearch_master_cost(domain: OpenSearchInfo) -> float:
    return monthly(domain.master_price_per_hour * domain.master_instance_count)


def opensearch_data_cost(domain: OpenSearchInfo) -> float:
    return monthly(domain.data_price_per_hour * domain.data_instance_count)


def opensearch_instance_cost(domain: OpenSearchInfo) -> float:
    if domain.split:
        return opensearch_master_cost(domain) + opensearch_data_cost(domain)
    return monthly(domain.price_per_hour * domain.instance_count)


def opensearch_storage_cost(domain: OpenSearchInfo) -> float:
    return domain.storage_gb * domain.storage_price_per_gb_month


def eks_cost(info: ResourceInfo) -> float:
    nodes = sum(monthly(ng.price_per_hour) * ng.node_count for ng in info.node_groups)
    control_plane = monthly(info.eks_cluster.price_per_hour) if info.eks_cluster else 0.0
    return nodes + control_plane


def persistence_cost(info: ResourceInfo) -> float:
    total = sum(cassandra_cost(ng) for ng in info.cassandra_node_groups)
    if info.rds_instances:
        rds = info.rds_instances[0]
        total += rds_instance_cost(rds) + rds_storage_cost(rds)
    total += sum(opensearch_instance_cost(domain) + opensearch_storage_cost(domain) for domain in info.open_search_instances)
    return total


def total_cost(info: ResourceInfo) -> float:
    return eks_cost(info) + persistence_cost(info)


# ---- Report -----------------------------------------------------------------

def _node_groups(info: ResourceInfo) -> List[str]:
    lines = ["## EKS Node Groups"]
    if not info.node_groups:
        return lines + ["- No EKS node groups found", ""]

    lines += markdown.table(
        ["Name", "Instance Type", "Node Count", "Cost/Node/Hour", "Monthly Cost"],
        ["------", "--------------", "------------", "----------------", "-------------"],
        [
            [ng.name, ng.instance_type, ng.node_count, f"${ng.price_per_hour:.4f}", f"${monthly(ng.price_per_hour) * ng.node_count:.2f}"]
            for ng in info.node_groups
        ],
    )
    lines.append("")
    if info.eks_cluster:
        lines.append(f"- **EKS Control Plane:** ${monthly(info.eks_cluster.price_per_hour):.2f}/month")
    lines += [f"- **Total EKS Monthly Cost:** ${eks_cost(info):.2f}", ""]
    return lines


def _cassandra(info: ResourceInfo) -> List[str]:
    if not info.cassandra_node_groups:
        return []
    rows = []
    for ng in info.cassandra_node_groups:
        storage = cassandra_storage_cost_per_node(ng)
        rows.append([
            ng.instance_type,
            ng.node_count,
            format_number(ng.cpu) if ng.cpu else "-",
            ng.memory or "-",
            f"${ng.price_per_hour:.4f}",
            markdown.cassandra_storage_display(ng.storage_per_node_gb if storage else 0),
            f"${storage:.2f}",
            f"${cassandra_cost(ng):.2f}",
        ])
    lines = ["### Cassandra"]
    lines += markdown.table(
        ["Instance Type", "Node Count", "CPU Request", "Memory Request", "Cost/Node/Hour", "Storage/Node", "Storage Cost/Node/Month", "Total Monthly Cost"],
        ["--------------", "------------", "-------------", "----------------", "----------------", "--------------", "-------------------------", "--------------------"],
        rows,
    )
    lines.append("")
    return lines + markdown.cassandra_storage_details(info)


def _rds(info: ResourceInfo) -> List[str]:
    if not info.rds_instances:
        return []
    rds = info.rds_instances[0]
    instance, storage = rds_instance_cost(rds), rds_storage_cost(rds)
    return [
        "### RDS",
        f"- **Engine:** {rds.engine or '-'} {rds.engine_version or ''}",
        f"- **Instance Type:** {rds.instance_class}",
        f"- **Multi-AZ:** {'Yes' if rds.multi_az else 'No'}",
        f"- **Storage:** {rds.storage_gb} GB *(configured for benchmark setup - real deployments would likely need much higher storage)*",
        f"- **Instance Cost:** ${instance:.2f}/month",
        f"- **Storage Cost:** ${storage:.2f}/month",
        f"- **Total Monthly Cost:** ${instance + storage:.2f}",
        "",
    ]


def _opensearch(info: ResourceInfo) -> List[str]:
    if not info.open_search_instances:
        return []
    lines = ["### OpenSearch"]
    for domain in info.open_search_instances:
        storage = opensearch_storage_cost(domain)
        if domain.split:
            master, data = opensearch_master_cost(domain), opensearch_data_cost(domain)
            count = domain.total_instance_count
            lines += markdown.table(
                ["Node Type", "Instance Type", "Instance Count", "Storage/Instance", "Total Storage", "Instance Cost/Month", "Storage Cost/Month", "Total Cost/Month"],
                ["-----------", "---------------", "----------------", "------------------", "---------------", "---------------------", "--------------------", "--------------------"],
                [
                    ["Master", domain.master_instance_type, domain.master_instance_count, f"{domain.storage_gb} GB", f"{domain.storage_gb * count} GB", f"${master:.2f}", "-", f"${master:.2f}"],
                    ["Data", domain.data_instance_type, domain.data_instance_count, f"{domain.storage_gb} GB", "-", f"${data:.2f}", f"${storage:.2f}", f"${data + storage:.2f}"],
                    ["**Total**", "-", f"**{count}**", f"**{domain.storage_gb} GB**", f"**{domain.storage_gb * count} GB**", f"**${master + data:.2f}**", f"**${storage:.2f}**", f"**${master + data + storage:.2f}**"],
                ],
            )
        else:
            instance = opensearch_instance_cost(domain)
            lines += markdown.table(
                ["Instance Type", "Instance Count", "Storage/Instance", "Total Storage", "Instance Cost/Month", "Storage Cost/Month", "Total Cost/Month"],
                ["---------------", "----------------", "------------------", "---------------", "---------------------", "--------------------", "--------------------"],
                [[domain.instance_type, domain.instance_count, f"{domain.storage_gb} GB", f"{domain.storage_gb * domain.instance_count} GB", f"${instance:.2f}", f"${storage:.2f}", f"${instance + storage:.2f}"]],
            )
    lines.append("")
    return lines


def render_report(stack: str, info: ResourceInfo) -> str:
    lines = markdown.header(stack)
    lines += [
        "## Summary",
        "",
        "### 💰 Total Estimated Monthly Cost",
        f"**${total_cost(info):.2f}**",
        "",
    ]
    lines += markdown.benchmark_target(info, unit="")
    lines += ["---", ""]
    lines += markdown.region(info)
    lines += _node_groups(info)

    lines.append("## Persistence")
    lines += _cassandra(info)
    lines += _rds(info)
    lines += _opensearch(info)
    persistence = persistence_cost(info)
    if persistence > 0:
        lines += [f"- **Total Persistence Monthly Cost:** ${persistence:.2f}", ""]

    lines += markdown.temporal_services(info)
    lines += markdown.benchmark_workers(info)
    return markdown.render(lines)
