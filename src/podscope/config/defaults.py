"""
Built-in dashboard configuration.

DEFAULT_QUERIES is the shipped, read-only base query library. User-authored
queries are overlaid on top of it (see podscope.queries.library).
"""

from __future__ import annotations

import copy
from typing import Any

DEFAULT_QUERIES: dict[str, dict[str, str]] = {
    "clusterMetrics": {
        "cpu_usage_v1-0-0": (
            '100 * (1 - avg(rate(node_cpu_seconds_total{mode="idle"}[5m])))'
        ),
        "memory_usage_v1-0-0": (
            "100 * (1 - sum(node_memory_MemAvailable_bytes) / sum(node_memory_MemTotal_bytes))"
        ),
        "node_count_v1-0-0": 'count(kube_node_info)',
        "running_pods_v1-0-0": 'sum(kube_pod_status_phase{phase="Running"})',
        "total_pods_v1-0-0": "sum(kube_pod_status_phase)",
        "total_cpu_v1-0-0": 'sum(machine_cpu_cores)',
        "total_memory_v1-0-0": "sum(machine_memory_bytes)",
    },
    "nodeMetrics": {
        "cpu_usage_v1-0-0": (
            '100 * (1 - avg by (instance) (rate(node_cpu_seconds_total{mode="idle",instance="{{instance}}"}[5m])))'
        ),
        "memory_total_v1-0-0": 'node_memory_MemTotal_bytes{instance="{{instance}}"}',
        "memory_available_v1-0-0": 'node_memory_MemAvailable_bytes{instance="{{instance}}"}',
        "disk_usage_v1-0-0": (
            '100 * (1 - node_filesystem_avail_bytes{instance="{{instance}}",mountpoint="/"}'
            ' / node_filesystem_size_bytes{instance="{{instance}}",mountpoint="/"})'
        ),
    },
    "podMetrics": {
        "cpu_usage_v1-0-0": (
            'sum(rate(container_cpu_usage_seconds_total{namespace="{{namespace}}",pod="{{pod}}",container!=""}[5m]))'
        ),
        "memory_usage_v1-0-0": (
            'sum(container_memory_working_set_bytes{namespace="{{namespace}}",pod="{{pod}}",container!=""})'
        ),
        "restarts_v1-0-0": (
            'sum(kube_pod_container_status_restarts_total{namespace="{{namespace}}",pod="{{pod}}"})'
        ),
    },
    "podFilters": {
        "failed_pods_v1-0-0": 'sum(kube_pod_status_phase{namespace="{{namespace}}",phase="Failed"})',
        "pending_pods_v1-0-0": 'sum(kube_pod_status_phase{namespace="{{namespace}}",phase="Pending"})',
    },
}

DEFAULT_QUEUE_QUERIES: dict[str, dict[str, dict[str, Any]]] = {
    "jobFilters": {
        "failed_jobs_v1-0-0": {"provider": "redis-bullmq", "status": "failed", "limit": 20},
    },
    "queueStats": {
        "all_queues_v1-0-0": {"provider": "redis-bullmq"},
    },
}

DEFAULT_QUEUE_PROVIDERS: dict[str, dict[str, Any]] = {
    "redis-bullmq": {
        "type": "bullmq",
        "displayName": "Redis BullMQ",
        "connection": {"useEnv": True},
    },
}

DEFAULT_PAGES: list[dict[str, Any]] = [
    {
        "id": "overview",
        "name": "Overview",
        "icon": "layout-dashboard",
        "layout": [
            {
                "i": "cluster-metrics",
                "x": 0,
                "y": 0,
                "w": 12,
                "h": 4,
                "component": "prometheus-node-metrics",
                "config": {
                    "queries": {
                        "cpuUsage": "clusterMetrics.cpu_usage_v1-0-0",
                        "memoryUsage": "clusterMetrics.memory_usage_v1-0-0",
                        "nodeCount": "clusterMetrics.node_count_v1-0-0",
                    }
                },
            },
            {
                "i": "failed-jobs",
                "x": 0,
                "y": 4,
                "w": 6,
                "h": 6,
                "component": "queue-monitor",
                "config": {"queryRef": "queueQueries.jobFilters.failed_jobs_v1-0-0"},
            },
        ],
    },
]


def default_dashboard() -> dict[str, Any]:
    """Return a fresh copy of the built-in dashboard configuration."""
    return copy.deepcopy(
        {
            "version": "1.0.0",
            "queries": DEFAULT_QUERIES,
            "queueProviders": DEFAULT_QUEUE_PROVIDERS,
            "queueQueries": DEFAULT_QUEUE_QUERIES,
            "pages": DEFAULT_PAGES,
        }
    )
