import pulumi
from util.config import (
    AWSConfig,
    BenchmarkConfig,
    ClusterConfig,
    PersistenceConfig,
    TemporalConfig,
    require_model,
)


# project config namespace
cfg = pulumi.Config()

aws_config = require_model(cfg, "AWS", AWSConfig)
cluster_config = require_model(cfg, "Cluster", ClusterConfig)
persistence_config = require_model(cfg, "Persistence", PersistenceConfig)
temporal_config = require_model(cfg, "Temporal", TemporalConfig)
benchmark_config = require_model(cfg, "Benchmark", BenchmarkConfig)

from workloads.cluster import ensure_cluster
from workloads.persistence import Persistence
from workloads.visibility import Visibility

# Stand up the kube cluster and its backing stores
cluster = ensure_cluster(
    aws_config=aws_config,
    cluster_config=cluster_config,
    persistence_config=persistence_config,
)
persistence = Persistence(
    "temporal-persistence",
    aws_config=aws_config,
    config=persistence_config,
    cluster=cluster,
    shards=temporal_config.history.shards,
)
visibility = Visibility(
    "temporal-visibility",
    aws_config=aws_config,
    config=persistence_config,
    cluster=cluster,
    persistence=persistence,
)

# Prometheus first, the charts below ship ServiceMonitors
from workloads.monitoring import Monitoring
monitoring = Monitoring(
    "monitoring",
    aws_config=aws_config,
    cluster=cluster,
    config=benchmark_config,
)

from workloads.temporal import deploy_temporal
from workloads.benchmark import deploy_benchmark_workers

temporal = deploy_temporal(
    config=temporal_config,
    namespaces=benchmark_config.temporal_namespaces,
    cluster=cluster,
    persistence=persistence,
    visibility=visibility,
    monitoring=monitoring,
)
deploy_benchmark_workers(
    config=benchmark_config,
    cluster=cluster,
    monitoring=monitoring,
    temporal=temporal,
)

pulumi.export("clusterName", cluster.cluster_name)
pulumi.export("kubeconfig", cluster.kubeconfig)
