"""Collects the report model from the resources a policy pack sees.

Resource properties arrive with camelCase keys exactly as the engine
serializes them, so lookups here use those names. Config comes from the
same stack config the cluster program reads.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from util.config import StackConfig
from reporting.units import format_memory, parse_cpu, parse_memory, parse_storage_size

EKS_CLUSTER = "eks:index/cluster:Cluster"
LAUNCH_TEMPLATE = "aws:ec2/launchTemplate:LaunchTemplate"
AUTOSCALING_GROUP = "aws:autoscaling/group:Group"
RDS_INSTANCE = "aws:rds/instance:Instance"
OPENSEARCH_DOMAIN = "aws:opensearch/domain:Domain"

DEFAULT_NODE_TYPE = "t3.medium"
DEFAULT_RDS_CLASS = "db.t3.medium"
DEFAULT_RDS_STORAGE_GB = 1024
DEFAULT_OPENSEARCH_TYPE = "m5.large.search"
DEFAULT_OPENSEARCH_DATA_TYPE = "r6gd.2xlarge.search"
DEFAULT_OPENSEARCH_STORAGE_GB = 100
DEFAULT_ZONE_COUNT = 3

POOLS = ("cassandra", "temporal", "worker", "core")
TEMPORAL_SERVICES = ("frontend", "history", "matching", "worker")


@dataclass
class EKSClusterInfo:
    name: str
    price_per_hour: Optional[float] = None


@dataclass
class NodeGroupInfo:
    name: str
    instance_type: str
    node_count: int
    purpose: Optional[str] = None
    price_per_hour: Optional[float] = None


@dataclass
class CassandraNodeGroupInfo(NodeGroupInfo):
    cpu: float = 0.0
    memory: Optional[str] = None
    commit_log_storage_gb: float = 0.0
    data_storage_gb: float = 0.0
    storage_price_per_gb_month: Optional[float] = None

    @property
    def storage_per_node_gb(self) -> float:
        return self.commit_log_storage_gb + self.data_storage_gb


@dataclass
class RDSInstanceInfo:
    name: str
    instance_class: str
    storage_gb: int
    storage_type: Optional[str] = None
    engine: Optional[str] = None
    engine_version: Optional[str] = None
    multi_az: bool = False
    price_per_hour: Optional[float] = None
    storage_price_per_gb_month: Optional[float] = None


@dataclass
class OpenSearchInfo:
    name: str
    storage_gb: int
    engine_version: Optional[str] = None
    # dedicated master layout
    master_instance_type: Optional[str] = None
    master_instance_count: int = 0
    data_instance_type: Optional[str] = None
    data_instance_count: int = 0
    master_price_per_hour: Optional[float] = None
    data_price_per_hour: Optional[float] = None
    # single instance type layout
    instance_type: Optional[str] = None
    instance_count: int = 0
    price_per_hour: Optional[float] = None
    storage_price_per_gb_month: Optional[float] = None

    @property
    def split(self) -> bool:
        return bool(self.master_instance_type and self.data_instance_type)

    @property
    def total_instance_count(self) -> int:
        if self.split:
            return self.master_instance_count + self.data_instance_count
        return self.instance_count


@dataclass
class TemporalServiceInfo:
    pods: int
    cpu_per_pod: float
    memory_per_pod: str
    shards: Optional[int] = None

    @property
    def total_cpu(self) -> float:
        return self.pods * self.cpu_per_pod

    @property
    def total_memory(self) -> str:
        return format_memory(self.pods * parse_memory(self.memory_per_pod))


@dataclass
class WorkersInfo:
    pods: int
    cpu_request: Any
    memory_request: Any
    workflow_pollers: int
    activity_pollers: int


@dataclass
class SoakTestInfo:
    pods: int
    cpu_request: Any
    memory_request: Any
    concurrent_workflows: int = 0


@dataclass
class BenchmarkInfo:
    namespaces: int
    target: int
    workers: Optional[WorkersInfo] = None
    soak_test: Optional[SoakTestInfo] = None


@dataclass
class ResourceInfo:
    region: Optional[str] = None
    availability_zones: List[str] = field(default_factory=list)
    eks_cluster: Optional[EKSClusterInfo] = None
    node_groups: List[NodeGroupInfo] = field(default_factory=list)
    cassandra_node_groups: List[CassandraNodeGroupInfo] = field(default_factory=list)
    rds_instances: List[RDSInstanceInfo] = field(default_factory=list)
    open_search_instances: List[OpenSearchInfo] = field(default_factory=list)
    temporal_services: Dict[str, TemporalServiceInfo] = field(default_factory=dict)
    benchmark: Optional[BenchmarkInfo] = None


def node_group_purpose(name: str) -> Optional[str]:
    for pool in POOLS:
        if name.endswith(f"-{pool}"):
            return pool
    return None


def collect(resources: Iterable[Any], config: StackConfig) -> ResourceInfo:
    """Build a ResourceInfo from policy-pack resources (anything with
    ``resource_type``, ``name`` and ``props``) plus the stack config."""
    resources = list(resources)
    info = ResourceInfo()

    if config.aws:
        info.region = config.aws.region
        info.availability_zones = list(config.aws.availability_zones)
    zone_count = len(info.availability_zones) or DEFAULT_ZONE_COUNT

    launch_templates = {}
    for resource in resources:
        if resource.resource_type == LAUNCH_TEMPLATE:
            props = resource.props
            if props.get("name") and props.get("instanceType"):
                launch_templates[props["name"]] = props["instanceType"]

    for resource in resources:
        props = resource.props or {}
        kind = resource.resource_type

        if kind == EKS_CLUSTER:
            info.eks_cluster = EKSClusterInfo(name=resource.name)

        elif kind == AUTOSCALING_GROUP:
            _collect_node_group(info, resource.name, props, launch_templates, config)

        elif kind == RDS_INSTANCE:
            info.rds_instances.append(RDSInstanceInfo(
                name=resource.name,
                instance_class=props.get("instanceClass") or DEFAULT_RDS_CLASS,
                storage_gb=props.get("allocatedStorage") or DEFAULT_RDS_STORAGE_GB,
                storage_type=props.get("storageType"),
                engine=props.get("engine"),
                engine_version=props.get("engineVersion"),
                multi_az=bool(props.get("multiAz")),
            ))

        elif kind == OPENSEARCH_DOMAIN:
            info.open_search_instances.append(_open_search_info(resource.name, props, config, zone_count))

    if config.temporal:
        for service in TEMPORAL_SERVICES:
            svc = getattr(config.temporal, service)
            info.temporal_services[service] = TemporalServiceInfo(
                pods=svc.pods,
                cpu_per_pod=parse_cpu(svc.cpu.request),
                memory_per_pod=format_memory(parse_memory(svc.memory.request)),
                shards=getattr(svc, "shards", None),
            )

    if config.benchmark:
        bench = config.benchmark
        info.benchmark = BenchmarkInfo(
            namespaces=bench.namespaces,
            target=bench.target,
            workers=WorkersInfo(
                pods=bench.workers.pods,
                cpu_request=bench.workers.cpu.request,
                memory_request=bench.workers.memory.request,
                workflow_pollers=bench.workers.workflow_pollers,
                activity_pollers=bench.workers.activity_pollers,
            ),
            soak_test=SoakTestInfo(
                pods=bench.soak_test.pods,
                cpu_request=bench.soak_test.cpu.request,
                memory_request=bench.soak_test.memory.request,
                concurrent_workflows=bench.soak_test.concurrent_workflows,
            ),
        )

    rds = config.persistence.rds if config.persistence else None
    if rds and info.rds_instances:
        first = info.rds_instances[0]
        first.engine = rds.engine or first.engine
        first.engine_version = rds.engine_version or first.engine_version

    return info


def _collect_node_group(info: ResourceInfo, name: str, props: Dict[str, Any], launch_templates: Dict[str, str], config: StackConfig):
    count = props.get("desiredCapacity") or props.get("maxSize") or props.get("minSize") or 1
    template = props.get("launchTemplate") or {}
    instance_type = launch_templates.get(template.get("name"), DEFAULT_NODE_TYPE)
    purpose = node_group_purpose(name)

    if purpose != "cassandra":
        info.node_groups.append(NodeGroupInfo(name=name, instance_type=instance_type, node_count=count, purpose=purpose))
        return

    cassandra = config.persistence.cassandra if config.persistence else None
    info.cassandra_node_groups.append(CassandraNodeGroupInfo(
        name=name,
        instance_type=instance_type,
        node_count=count,
        purpose=purpose,
        cpu=parse_cpu(cassandra.cpu.limit) if cassandra and cassandra.cpu else 0.0,
        memory=str(cassandra.memory.limit) if cassandra and cassandra.memory else None,
        commit_log_storage_gb=parse_storage_size(cassandra.commit_log_storage if cassandra else None),
        data_storage_gb=parse_storage_size(cassandra.data_storage if cassandra else None),
    ))


def _open_search_info(name: str, props: Dict[str, Any], config: StackConfig, zone_count: int) -> OpenSearchInfo:
    cluster = props.get("clusterConfig") or {}
    ebs = props.get("ebsOptions") or {}
    cfg = config.persistence.open_search if config.persistence else None

    info = OpenSearchInfo(
        name=name,
        storage_gb=ebs.get("volumeSize") or DEFAULT_OPENSEARCH_STORAGE_GB,
        engine_version=props.get("engineVersion"),
    )
    if cluster.get("dedicatedMasterEnabled"):
        info.master_instance_type = (
            cluster.get("dedicatedMasterType")
            or (cfg and cfg.master_instance_type)
            or DEFAULT_OPENSEARCH_TYPE
        )
        info.master_instance_count = (
            cluster.get("dedicatedMasterCount")
            or (cfg and cfg.master_instance_count)
            or 3
        )
        info.data_instance_type = (
            cluster.get("instanceType")
            or (cfg and cfg.data_instance_type)
            or DEFAULT_OPENSEARCH_DATA_TYPE
        )
        info.data_instance_count = (
            cluster.get("instanceCount")
            or (cfg and cfg.data_instance_count)
            or zone_count
        )
    else:
        info.instance_type = cluster.get("instanceType") or DEFAULT_OPENSEARCH_TYPE
        info.instance_count = cluster.get("instanceCount") or zone_count
    return info
