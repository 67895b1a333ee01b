from typing import Any, Dict, List, Optional

import pulumi
import pulumi_kubernetes as k8s

from util.config import DynamicConfig, ServiceConfig, TemporalConfig
from workloads.cluster import Cluster, placement
from workloads.monitoring import Monitoring
from workloads.persistence import Persistence
from workloads.visibility import Visibility

SERVICES = ("frontend", "history", "matching", "worker")

def service_values(cfg: ServiceConfig) -> Dict[str, Any]:
    return {
        "replicaCount": cfg.pods,
        "resources": {
            "requests": {
                "cpu": cfg.cpu.request,
                "memory": cfg.memory.request,
            },
        },
    }

def dynamic_config_values(cfg: Optional[DynamicConfig]) -> Dict[str, List[Dict[str, int]]]:
    if cfg is None:
        return {}
    keys = {
        "frontend.rps": cfg.frontend_rps,
        "frontend.namespaceRPS": cfg.frontend_namespace_rps,
        "matching.rps": cfg.matching_rps,
    }
    return {key: [{"value": value}] for key, value in keys.items() if value}

def temporal_values(
    cfg: TemporalConfig,
    namespaces: List[str],
    persistence: Any,
    visibility: Any,
    elasticsearch: Any,
) -> Dict[str, Any]:
    server = {
        "config": {
            "numHistoryShards": cfg.history.shards,
            "persistence": {
                "default": persistence,
                "visibility": visibility,
            },
            "namespaces": {
                "create": True,
                "namespace": [{"name": ns, "retention": "1d"} for ns in namespaces],
            },
        },
        "dynamicConfig": dynamic_config_values(cfg.dynamic_config),
        **placement("temporal"),
        "metrics": {"serviceMonitor": {"enabled": True}},
    }
    for service in SERVICES:
        server[service] = service_values(getattr(cfg, service))

    return {
        "server": server,
        "elasticsearch": elasticsearch,
        "admintools": {"enabled": False, **placement("temporal")},
        "prometheus": {"enabled": False},
        "grafana": {"enabled": False},
        "cassandra": {"enabled": False},
        "mysql": {"enabled": False},
        "postgresql": {"enabled": False},
    }


def deploy_temporal(
    *,
    config: TemporalConfig,
    namespaces: List[str],
    cluster: Cluster,
    persistence: Persistence,
    visibility: Visibility,
    monitoring: Monitoring,
) -> k8s.helm.v4.Chart:
    ns = k8s.core.v1.Namespace(
        "temporal",
        metadata={"name": "temporal"},
        opts=pulumi.ResourceOptions(provider=cluster.provider),
    )

    pulumi.log.info(f"Temporal: {config.history.shards} history shards, namespaces {', '.join(namespaces)}")

    values = pulumi.Output.all(
        persistence.values,
        visibility.visibility_values,
        visibility.elasticsearch_values,
    ).apply(lambda args: temporal_values(config, namespaces, *args))

    return k8s.helm.v4.Chart(
        "temporal",
        chart="temporal",
        version="0.62.0",
        namespace=ns.metadata.name,
        repository_opts=k8s.helm.v4.RepositoryOptsArgs(
            repo="https://go.temporal.io/helm-charts",
        ),
        values=values,
        opts=pulumi.ResourceOptions(
            provider=cluster.provider,
            depends_on=[ns, monitoring.prometheus_stack],
            # shards cannot change on a live cluster; start over on a fresh database
            replace_on_changes=[
                "values.server.config.numHistoryShards",
                "values.server.config.persistence.default.sql.host",
                "values.server.config.persistence.visibility.sql.host",
            ],
        ),
    )
