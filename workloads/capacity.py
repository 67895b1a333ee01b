from typing import Any, Dict, List, Optional

import pulumi
import pulumi_kubernetes as k8s


class CapacityChecker(pulumi.ComponentResource):
    """Schedules one tiny pod per expected node so dependents wait for the node group to be ready.

    Required anti-affinity on the hostname means the deployment only reports
    every replica available once `replicas` distinct nodes have joined.
    """

    deployment: k8s.apps.v1.Deployment
    available_replicas: pulumi.Output[int]

    def __init__(
        self,
        name: str,
        *,
        replicas: int,
        tolerations: Optional[List[Dict[str, Any]]] = None,
        node_selector: Optional[Dict[str, str]] = None,
        namespace: str = "default",
        opts: Optional[pulumi.ResourceOptions] = None,
    ):
        super().__init__("benchmark:infrastructure:CapacityChecker", name, None, opts)

        app_name = f"{name}-capacity-checker"
        labels = {"app": app_name, "component": "capacity-checker"}

        self.deployment = k8s.apps.v1.Deployment(
            app_name,
            metadata={
                "name": app_name,
                "namespace": namespace,
                "labels": labels,
            },
            spec={
                "replicas": replicas,
                "selector": {"matchLabels": labels},
                "template": {
                    "metadata": {"labels": labels},
                    "spec": checker_pod_spec(labels, tolerations, node_selector),
                },
            },
            opts=pulumi.ResourceOptions(parent=self),
        )

        self.available_replicas = self.deployment.status.apply(
            lambda status: (status.available_replicas or 0) if status else 0
        )

        self.register_outputs({"available_replicas": self.available_replicas})


def checker_pod_spec(
    labels: Dict[str, str],
    tolerations: Optional[List[Dict[str, Any]]] = None,
    node_selector: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    return {
        "affinity": {
            "podAntiAffinity": {
                "requiredDuringSchedulingIgnoredDuringExecution": [{
                    "labelSelector": {"matchLabels": labels},
                    "topologyKey": "kubernetes.io/hostname",
                }],
            },
        },
        "tolerations": tolerations or [],
        "nodeSelector": node_selector or {},
        "containers": [{
            "name": "capacity-checker",
            "image": "busybox:1.36",
            "command": ["sleep", "3600"],
            "resources": {
                "requests": {"cpu": "1m", "memory": "1Mi"},
                "limits": {"cpu": "10m", "memory": "10Mi"},
            },
        }],
        "restartPolicy": "Always",
        "terminationGracePeriodSeconds": 5,
    }
