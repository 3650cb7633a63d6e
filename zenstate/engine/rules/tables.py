"""Compatibility tables consulted by the validators.

Built once at import time as read-only mappings of frozensets, so they are
safe to share between concurrent reconciliation passes.  Supporting a new
flavor, connector type, auth method or resource type is an edit to the data
below and nothing else -- the validators only ever look values up here.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from zenstate.engine.models.enums import ComponentType, ConnectorType


def _freeze(table: Mapping[str, Iterable[str]]) -> Mapping[str, frozenset[str]]:
    return MappingProxyType({key: frozenset(values) for key, values in table.items()})


# -- Stack component flavors -------------------------------------------------
# component type -> flavor -> configuration keys accepted by that flavor

_KUBERNETES_KEYS = ("kubernetes_context", "kubernetes_namespace", "incluster")

COMPONENT_FLAVORS: Mapping[str, Mapping[str, frozenset[str]]] = MappingProxyType({
    ComponentType.ALERTER: _freeze({
        "slack": ("slack_token", "slack_channel_id", "default_slack_channel_id"),
        "discord": ("discord_token", "default_discord_channel_id"),
    }),
    ComponentType.ANNOTATOR: _freeze({
        "label_studio": ("instance_url", "port", "api_key", "project_name"),
        "argilla": ("instance_url", "port", "api_key", "workspace"),
        "prodigy": ("custom_config_path",),
    }),
    ComponentType.ARTIFACT_STORE: _freeze({
        "local": ("path",),
        "s3": ("path", "key", "secret", "token", "client_kwargs", "config_kwargs", "s3_additional_kwargs"),
        "gcp": ("path",),
        "azure": ("path",),
    }),
    ComponentType.CONTAINER_REGISTRY: _freeze({
        "default": ("uri",),
        "aws": ("uri", "default_repository"),
        "gcp": ("uri",),
        "azure": ("uri",),
        "dockerhub": ("uri",),
        "github": ("uri",),
    }),
    ComponentType.DATA_VALIDATOR: _freeze({
        "great_expectations": ("context_root_dir", "context_config", "configure_zenml_stores", "configure_local_docs"),
        "deepchecks": (),
        "evidently": (),
        "whylogs": ("enable_whylabs",),
    }),
    ComponentType.EXPERIMENT_TRACKER: _freeze({
        "mlflow": ("tracking_uri", "tracking_username", "tracking_password", "tracking_token", "tracking_insecure_tls"),
        "wandb": ("api_key", "entity", "project_name"),
        "comet": ("api_key", "workspace", "project_name"),
        "neptune": ("api_token", "project"),
        "vertex": ("project", "location", "staging_bucket", "experiment_tensorboard"),
    }),
    ComponentType.FEATURE_STORE: _freeze({
        "feast": ("online_host", "online_port", "feast_repo"),
    }),
    ComponentType.IMAGE_BUILDER: _freeze({
        "local": (),
        "kaniko": (*_KUBERNETES_KEYS, "executor_image", "store_context_in_artifact_store"),
        "gcp": ("cloud_builder_image", "network", "build_timeout"),
        "aws": ("code_build_project", "build_image", "compute_type"),
    }),
    ComponentType.MODEL_DEPLOYER: _freeze({
        "mlflow": ("service_path",),
        "seldon": ("kubernetes_context", "kubernetes_namespace", "base_url", "secret"),
        "bentoml": ("service_path",),
        "huggingface": ("token", "namespace"),
    }),
    ComponentType.ORCHESTRATOR: _freeze({
        "local": (),
        "local_docker": ("run_args",),
        "kubernetes": (*_KUBERNETES_KEYS, "synchronous", "timeout", "service_account_name", "pod_settings"),
        "kubeflow": (*_KUBERNETES_KEYS, "kubeflow_hostname", "kubeflow_namespace", "synchronous", "timeout"),
        "airflow": ("local", "dag_output_dir"),
        "vertex": ("project", "location", "workload_service_account", "pipeline_root", "synchronous"),
        "sagemaker": ("execution_role", "bucket", "synchronous", "scheduler_role"),
        "azureml": ("subscription_id", "resource_group", "workspace", "compute_target", "synchronous"),
    }),
    ComponentType.STEP_OPERATOR: _freeze({
        "sagemaker": ("role", "instance_type", "bucket"),
        "vertex": ("project", "region", "service_account", "machine_type", "accelerator_type", "accelerator_count"),
        "azureml": ("subscription_id", "resource_group", "workspace_name", "compute_target_name"),
        "kubernetes": (*_KUBERNETES_KEYS, "service_account_name", "pod_settings"),
    }),
    ComponentType.MODEL_REGISTRY: _freeze({
        "mlflow": (),
    }),
    ComponentType.DEPLOYER: _freeze({
        "docker": ("run_args",),
        "gcp": ("project", "location", "service_account"),
        "aws": ("region", "execution_role"),
    }),
})


# -- Service connectors ------------------------------------------------------

CONNECTOR_AUTH_METHODS: Mapping[str, frozenset[str]] = _freeze({
    ConnectorType.AWS: (
        "implicit",
        "secret-key",
        "iam-role",
        "sts-token",
        "session-token",
        "federation-token",
    ),
    ConnectorType.GCP: (
        "implicit",
        "user-account",
        "service-account",
        "external-account",
        "oauth2-token",
        "impersonation",
    ),
    ConnectorType.AZURE: ("implicit", "service-principal", "access-token"),
    ConnectorType.KUBERNETES: ("password", "token"),
    ConnectorType.DOCKER: ("password",),
    ConnectorType.HYPERAI: ("rsa-key", "dsa-key", "ecdsa-key", "ed25519-key"),
})

CONNECTOR_RESOURCE_TYPES: Mapping[str, frozenset[str]] = _freeze({
    ConnectorType.AWS: ("aws-generic", "s3-bucket", "kubernetes-cluster", "docker-registry"),
    ConnectorType.GCP: ("gcp-generic", "gcs-bucket", "kubernetes-cluster", "docker-registry"),
    ConnectorType.AZURE: ("azure-generic", "blob-container", "kubernetes-cluster", "docker-registry"),
    ConnectorType.KUBERNETES: ("kubernetes-cluster",),
    ConnectorType.DOCKER: ("docker-registry",),
    ConnectorType.HYPERAI: ("hyperai-instance",),
})
