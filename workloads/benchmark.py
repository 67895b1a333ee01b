from typing import Any, Dict, List

import pulumi
import pulumi_kubernetes as k8s

from util.config import BenchmarkConfig, Request
from workloads.cluster import Cluster, placement
from workloads.monitoring import Monitoring

FRONTEND_ENDPOINT = "temporal-frontend.temporal:7233"
TASK_QUEUE = "benchmark"

# Echo three times, then run the same sequence as a child workflow.
SOAK_TEST_WORKFLOW_ARGS = (
    '[{"a": "Echo", "i": {"Message": "test"}, "r": 3},'
    '{"c": [{"a": "Echo", "i": {"Message": "test"}, "r": 3}]}]'
)

def _requests(cpu: Request, memory: Request) -> Dict[str, Any]:
    return {"requests": {"cpu": cpu.request, "memory": memory.request}}

def benchmark_worker_values(namespace: str, cfg: BenchmarkConfig) -> Dict[str, Any]:
    return {
        "temporal": {
            "grpcEndpoint": FRONTEND_ENDPOINT,
            "namespace": namespace,
            "taskQueue": TASK_QUEUE,
            "workflowTaskPollers": cfg.workers.workflow_pollers,
            "activityTaskPollers": cfg.workers.activity_pollers,
        },
        "metrics": {
            "enabled": True,
            "serviceMonitor": {"enabled": True},
        },
        "workers": {
            "replicaCount": cfg.workers.pods,
            "resources": _requests(cfg.workers.cpu, cfg.workers.memory),
            **placement("worker"),
        },
        "soakTest": {
            "enabled": True,
            "workflowType": "DSL",
            "workflowArgs": SOAK_TEST_WORKFLOW_ARGS,
            "replicaCount": cfg.soak_test.pods,
            "concurrentWorkflows": cfg.soak_test.concurrent_workflows,
            "resources": _requests(cfg.soak_test.cpu, cfg.soak_test.memory),
            **placement("worker"),
        },
    }


def deploy_benchmark_workers(
    *,
    config: BenchmarkConfig,
    cluster: Cluster,
    monitoring: Monitoring,
    temporal: k8s.helm.v4.Chart,
) -> List[k8s.helm.v4.Chart]:
    ns = k8s.core.v1.Namespace(
        "benchmark",
        metadata={"name": "benchmark"},
        opts=pulumi.ResourceOptions(provider=cluster.provider),
    )

    releases = []
    for i, namespace in enumerate(config.temporal_namespaces):
        releases.append(k8s.helm.v4.Chart(
            f"benchmark-workers-{i}",
            chart="oci://ghcr.io/temporalio/charts/benchmark-workers",
            version="0.3.0",
            namespace=ns.metadata.name,
            values=benchmark_worker_values(namespace, config),
            opts=pulumi.ResourceOptions(
                provider=cluster.provider,
                depends_on=[ns, monitoring.prometheus_stack, temporal],
            ),
        ))
    return releases
