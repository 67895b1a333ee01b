from __future__ import annotations
from typing import List, Optional, Type, TypeVar, Union

import pulumi
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_pascal

T = TypeVar("T", bound="StackModel")


def require(cfg: pulumi.Config, key: str) -> str:
    val = cfg.get(key)
    if val is None:
        raise RuntimeError(f"Missing required config: {cfg.name}:{key}")
    return val


def require_model(cfg: pulumi.Config, key: str, model: Type[T]) -> T:
    val = cfg.get_object(key)
    if val is None:
        raise RuntimeError(f"Missing required config: {cfg.name}:{key}")
    return model.model_validate(val)


def get_model(cfg: pulumi.Config, key: str, model: Type[T]) -> Optional[T]:
    val = cfg.get_object(key)
    return None if val is None else model.model_validate(val)


# ---- Stack config shapes ----------------------------------------------------
# Keys are PascalCase in the stack YAML (e.g. `VpcId`); acronyms are aliased by hand.

class StackModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)


class AWSConfig(StackModel):
    region: str
    vpc_id: str
    role: str
    rds_subnet_group_name: str
    private_subnet_ids: List[str]
    availability_zones: List[str]
    prometheus_id: Optional[str] = None


class EKSClusterConfig(StackModel):
    node_type: str
    node_count: int
    temporal_node_type: str
    temporal_node_count: int
    worker_node_type: str
    worker_node_count: int


class ClusterConfig(StackModel):
    eks: Optional[EKSClusterConfig] = Field(default=None, alias="EKS")


class RDSPersistenceConfig(StackModel):
    engine: str
    engine_version: str
    instance_type: str
    iops: Optional[int] = Field(default=None, alias="IOPS")


class Limit(StackModel):
    limit: Union[str, int, float]


class CassandraPersistenceConfig(StackModel):
    node_type: str
    node_count: int
    replica_count: int = 3
    cpu: Optional[Limit] = Field(default=None, alias="CPU")
    memory: Optional[Limit] = None
    commit_log_storage: Optional[str] = None
    data_storage: Optional[str] = None


class OpenSearchConfig(StackModel):
    engine_version: str
    instance_type: Optional[str] = None
    master_instance_type: Optional[str] = None
    master_instance_count: Optional[int] = None
    data_instance_type: Optional[str] = None
    data_instance_count: Optional[int] = None

    @property
    def dedicated_master(self) -> bool:
        return bool(self.master_instance_type and self.data_instance_type)


class VisibilityConfig(StackModel):
    open_search: Optional[OpenSearchConfig] = Field(default=None, alias="OpenSearch")


class PersistenceConfig(StackModel):
    rds: Optional[RDSPersistenceConfig] = Field(default=None, alias="RDS")
    cassandra: Optional[CassandraPersistenceConfig] = None
    visibility: Optional[VisibilityConfig] = None

    @property
    def open_search(self) -> Optional[OpenSearchConfig]:
        return self.visibility.open_search if self.visibility else None


class Request(StackModel):
    request: Union[str, int, float]


class ServiceConfig(StackModel):
    pods: int
    cpu: Request = Field(alias="CPU")
    memory: Request


class HistoryConfig(ServiceConfig):
    shards: int


class DynamicConfig(StackModel):
    frontend_rps: Optional[int] = Field(default=None, alias="FrontendRPS")
    frontend_namespace_rps: Optional[int] = Field(default=None, alias="FrontendNamespaceRPS")
    matching_rps: Optional[int] = Field(default=None, alias="MatchingRPS")


class TemporalConfig(StackModel):
    frontend: ServiceConfig
    history: HistoryConfig
    matching: ServiceConfig
    worker: ServiceConfig
    dynamic_config: Optional[DynamicConfig] = None


class WorkersConfig(StackModel):
    pods: int
    workflow_pollers: int
    activity_pollers: int
    cpu: Request = Field(alias="CPU")
    memory: Request


class SoakTestConfig(StackModel):
    pods: int
    concurrent_workflows: int
    cpu: Request = Field(alias="CPU")
    memory: Request


class BenchmarkConfig(StackModel):
    namespaces: int = 1
    target: int = 0
    workers: WorkersConfig
    soak_test: SoakTestConfig

    @property
    def temporal_namespaces(self) -> List[str]:
        return [f"benchmark_{i}" for i in range(self.namespaces)]


class StackConfig(StackModel):
    """Every top-level config object, each optional; used by the report packs."""
    aws: Optional[AWSConfig] = Field(default=None, alias="AWS")
    cluster: Optional[ClusterConfig] = None
    persistence: Optional[PersistenceConfig] = None
    temporal: Optional[TemporalConfig] = None
    benchmark: Optional[BenchmarkConfig] = None

    @classmethod
    def load(cls, cfg: pulumi.Config) -> "StackConfig":
        return cls(
            aws=get_model(cfg, "AWS", AWSConfig),
            cluster=get_model(cfg, "Cluster", ClusterConfig),
            persistence=get_model(cfg, "Persistence", PersistenceConfig),
            temporal=get_model(cfg, "Temporal", TemporalConfig),
            benchmark=get_model(cfg, "Benchmark", BenchmarkConfig),
        )
