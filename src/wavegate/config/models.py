"""Pydantic models for configuration schema."""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


DEFAULT_CONTROLLER_MANIFEST = (
    "https://raw.githubusercontent.com/argoproj/argo-cd/stable/manifests/install.yaml"
)
DEFAULT_REPO_URL = "https://github.com/kennonkwok/dka-argocd-example"


class ClusterConfig(BaseModel):
    """Local cluster configuration."""

    profile: str = Field("dka-demo", min_length=1, pattern="^[a-zA-Z0-9][a-zA-Z0-9._-]*$")
    cpus: int = Field(4, ge=1, le=64)
    memory: int = Field(8192, ge=1024, description="Memory in MB")
    driver: str = Field("docker", min_length=1)


class TimeoutConfig(BaseModel):
    """Timeouts and polling cadence, all in seconds."""

    cluster_ready: float = Field(300, gt=0)
    controller_ready: float = Field(600, gt=0)
    app_sync: float = Field(600, gt=0)
    app_health: float = Field(600, gt=0)
    secret_wait: float = Field(60, gt=0)
    app_exists: float = Field(60, gt=0)
    total: float = Field(1800, gt=0, description="Deadline for the whole rollout")
    poll_interval: float = Field(10, gt=0)
    progress_interval: float = Field(60, gt=0)
    max_read_errors: Optional[int] = Field(
        None, ge=1, description="Consecutive read errors tolerated while polling"
    )

    @model_validator(mode="after")
    def validate_interval(self):
        """Poll interval must fit inside every phase timeout."""
        for name in ("cluster_ready", "controller_ready", "app_sync", "app_health",
                     "secret_wait", "app_exists"):
            if self.poll_interval > getattr(self, name):
                raise ValueError(
                    f"poll_interval ({self.poll_interval}s) exceeds {name} ({getattr(self, name)}s)"
                )
        return self


class ControllerConfig(BaseModel):
    """GitOps controller installation settings."""

    namespace: str = "argocd"
    manifest_url: str = DEFAULT_CONTROLLER_MANIFEST
    server_deployment: str = "argocd-server"
    deployments: List[str] = Field(
        default_factory=lambda: [
            "argocd-server",
            "argocd-repo-server",
            "argocd-applicationset-controller",
        ]
    )
    statefulsets: List[str] = Field(
        default_factory=lambda: ["argocd-application-controller"]
    )
    admin_secret: str = "argocd-initial-admin-secret"
    install_attempts: int = Field(3, ge=1)
    install_retry_delay: float = Field(5, ge=0)


class CredentialsConfig(BaseModel):
    """Credentials provisioned into the cluster as a secret."""

    secret_name: str = "datadog-secret"
    namespace: str = "datadog"
    api_key_env: str = "DD_API_KEY"
    app_key_env: str = "DD_APP_KEY"
    api_key_field: str = "api-key"
    app_key_field: str = "app-key"


class RolloutConfig(BaseModel):
    """Root application, waves and failure policy."""

    root_manifest: str = "argocd/root-app.yaml"
    root_application: str = "root-app"
    applications: List[str] = Field(
        default_factory=lambda: ["datadog-operator", "datadog-agent", "nginx-dka-demo"]
    )
    repo_url: Optional[str] = None
    default_repo_url: str = DEFAULT_REPO_URL
    demo_namespace: str = "nginx-dka-demo"
    cleanup_namespaces: List[str] = Field(
        default_factory=lambda: ["datadog", "nginx-dka-demo", "argocd"]
    )
    cleanup_on_error: bool = False
    skip_verify: bool = False
    interactive: bool = True

    @field_validator("applications")
    @classmethod
    def validate_applications(cls, v: List[str]) -> List[str]:
        """One child application per wave, no duplicates."""
        if len(v) != 3:
            raise ValueError(f"Exactly 3 wave applications are required, got {len(v)}")
        if len(set(v)) != len(v):
            raise ValueError("Wave application names must be unique")
        return v


class DeployConfig(BaseModel):
    """Complete rollout configuration."""

    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    controller: ControllerConfig = Field(default_factory=ControllerConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
    rollout: RolloutConfig = Field(default_factory=RolloutConfig)
