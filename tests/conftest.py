"""
Pytest configuration and fixtures.

Provides in-memory stand-ins for the cluster, kubectl and the control plane,
plus a fake clock so that no test ever sleeps.
"""

import base64
from typing import Any, Dict, List, Optional, Tuple

import pytest

from wavegate.clients.base import ClusterProvider, ControlPlaneClient
from wavegate.clients.kubectl import Kubectl
from wavegate.clients.models import (
    ClusterStatus,
    HealthState,
    HealthStatus,
    ManagedResourceRef,
    ResourceCondition,
    SyncState,
    SyncStatus,
)
from wavegate.config.models import DeployConfig
from wavegate.state.context import RunContext
from wavegate.state.stage import StageTracker
from wavegate.utils.errors import CommandError
from wavegate.utils.polling import ConditionPoller


class FakeClock:
    """Monotonic clock that only moves when something sleeps."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


ObjectKey = Tuple[str, Optional[str], str]


class FakeKubectl(Kubectl):
    """Kubectl backed by an in-memory object store instead of a subprocess."""

    def __init__(self):
        super().__init__(runner=self._no_subprocess)
        self.objects: Dict[ObjectKey, Dict[str, Any]] = {}
        self.calls: List[Tuple] = []
        self.read_errors = 0
        self.reachable = True
        self.apply_failures = 0
        self.on_apply_url = None
        self.fail_deletes: List[str] = []

    @staticmethod
    def _no_subprocess(argv, **kwargs):
        raise AssertionError(f"unexpected subprocess call: {argv}")

    def add(self, kind: str, name: str, namespace: Optional[str] = None,
            labels: Optional[Dict[str, str]] = None, **body) -> Dict[str, Any]:
        obj = {"metadata": {"name": name, "namespace": namespace, "labels": labels or {}}}
        obj.update(body)
        self.objects[(kind, namespace, name)] = obj
        return obj

    def get(self, kind, name=None, namespace=None, selector=None):
        self.calls.append(("get", kind, name, namespace))
        if self.read_errors:
            self.read_errors -= 1
            raise CommandError(f"connection refused reading {kind}")

        if name:
            return self.objects.get((kind, namespace, name))

        wanted = dict(part.split("=", 1) for part in selector.split(",")) if selector else {}
        items = [
            obj for (k, ns, _), obj in self.objects.items()
            if k == kind and (namespace is None or ns == namespace)
            and all(obj["metadata"]["labels"].get(key) == value for key, value in wanted.items())
        ]
        return {"items": items}

    def cluster_info(self):
        return self.reachable

    def create_namespace(self, name):
        self.calls.append(("create_namespace", name))
        self.add("namespace", name)

    def delete_namespaces(self, names, timeout=120):
        self.calls.append(("delete_namespaces", tuple(names)))
        for name in names:
            if name in self.fail_deletes:
                raise CommandError(f"Failed to delete namespace {name}")
            self.objects = {
                key: obj for key, obj in self.objects.items()
                if key[1] != name and key != ("namespace", None, name)
            }

    def delete(self, kind, name, namespace=None, timeout=60):
        self.calls.append(("delete", kind, name, namespace))
        self.objects.pop((kind, namespace, name), None)

    def delete_all(self, kind, namespace, timeout=60):
        self.calls.append(("delete_all", kind, namespace))

    def apply_url(self, url, namespace, timeout=300):
        self.calls.append(("apply_url", url, namespace))
        if self.apply_failures:
            self.apply_failures -= 1
            raise CommandError(f"Failed to apply manifest {url}", returncode=1)
        if self.on_apply_url:
            self.on_apply_url(self)

    def apply_manifest(self, manifest, namespace=None, timeout=120):
        self.calls.append(("apply_manifest", manifest))

    def create_generic_secret(self, name, namespace, values):
        self.calls.append(("create_secret", name, namespace, tuple(sorted(values))))
        data = {k: base64.b64encode(v.encode()).decode() for k, v in values.items()}
        self.add("secret", name, namespace, data=data)


def install_controller(kubectl: FakeKubectl, namespace: str = "argocd"):
    """Populate the objects a successful controller install produces."""
    kubectl.add("namespace", namespace)
    available = {"status": {"conditions": [{"type": "Available", "status": "True"}]}}
    for name in ("argocd-server", "argocd-repo-server", "argocd-applicationset-controller"):
        kubectl.add("deployment", name, namespace, **available)
    kubectl.add("statefulset", "argocd-application-controller", namespace,
                spec={"replicas": 1}, status={"readyReplicas": 1})
    kubectl.add("secret", "argocd-initial-admin-secret", namespace,
                data={"password": base64.b64encode(b"s3cret-pass").decode()})


def populate_workloads(kubectl: FakeKubectl, agent_ns: str = "datadog", demo_ns: str = "nginx-dka-demo"):
    """Populate the workloads every default wave verifies."""
    available = {"status": {"conditions": [{"type": "Available", "status": "True"}]}}
    kubectl.add("deployment", "datadog-operator", agent_ns, **available)
    kubectl.add("crd", "datadogagents.datadoghq.com")
    kubectl.add("crd", "datadogpodautoscalers.datadoghq.com")
    kubectl.add("datadogagent", "datadog", agent_ns)
    kubectl.add("daemonset", "datadog-agent", agent_ns, labels={"app": "datadog"},
                status={"desiredNumberScheduled": 1, "numberReady": 1})
    kubectl.add("deployment", "datadog-cluster-agent", agent_ns,
                labels={"app": "datadog-cluster-agent"}, **available)
    kubectl.add("deployment", "nginx", demo_ns, **available)
    kubectl.add("datadogpodautoscaler", "nginx-dpa", demo_ns,
                status={"conditions": [{"type": "Active", "status": "True"}]})


class FakeCluster(ClusterProvider):
    """Cluster provider recording lifecycle calls."""

    def __init__(self, status: ClusterStatus = ClusterStatus.ABSENT):
        self.current = status
        self.calls: List[Tuple] = []
        self.fail: Dict[str, bool] = {}
        self.reachable = True

    def _maybe_fail(self, operation: str):
        if self.fail.get(operation):
            raise CommandError(f"minikube {operation} failed", returncode=1)

    def status(self, profile):
        self.calls.append(("status", profile))
        return self.current

    def create(self, profile, cpus, memory, driver):
        self.calls.append(("create", profile, cpus, memory, driver))
        self._maybe_fail("create")
        self.current = ClusterStatus.RUNNING

    def start(self, profile):
        self.calls.append(("start", profile))
        self._maybe_fail("start")
        self.current = ClusterStatus.RUNNING

    def update_context(self, profile):
        self.calls.append(("update_context", profile))
        self._maybe_fail("update_context")

    def delete(self, profile):
        self.calls.append(("delete", profile))
        self._maybe_fail("delete")
        self.current = ClusterStatus.ABSENT

    def is_reachable(self):
        return self.reachable


# (time from which the entry holds, state, conditions)
Schedule = List[Tuple[float, Any, List[ResourceCondition]]]


class FakeControlPlane(ControlPlaneClient):
    """Control plane whose reported states follow per-application time schedules."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.sync: Dict[str, Schedule] = {}
        self.health: Dict[str, Schedule] = {}
        self.present = set()
        self.calls: List[Tuple[str, str]] = []
        self.applied: List[str] = []
        self.fail_delete_all = False

    def converge(self, name: str, synced_at: float = 0.0, healthy_at: Optional[float] = None):
        """Report OutOfSync/Progressing until the given times, then Synced/Healthy."""
        healthy_at = synced_at if healthy_at is None else healthy_at
        self.sync[name] = [(0.0, SyncState.OUT_OF_SYNC, []), (synced_at, SyncState.SYNCED, [])]
        self.health[name] = [(0.0, HealthState.PROGRESSING, []), (healthy_at, HealthState.HEALTHY, [])]
        self.present.add(name)

    def _current(self, schedule: Schedule, default):
        state, conditions = default, []
        for since, entry_state, entry_conditions in schedule:
            if self.clock() >= since:
                state, conditions = entry_state, entry_conditions
        return state, conditions

    def get_sync(self, ref):
        self.calls.append(("get_sync", ref.name))
        state, conditions = self._current(self.sync.get(ref.name, []), SyncState.UNKNOWN)
        return SyncStatus(state=state, conditions=list(conditions))

    def get_health(self, ref):
        self.calls.append(("get_health", ref.name))
        state, conditions = self._current(self.health.get(ref.name, []), HealthState.MISSING)
        return HealthStatus(state=state, conditions=list(conditions))

    def exists(self, ref):
        self.calls.append(("exists", ref.name))
        return ref.name in self.present

    def apply(self, manifest):
        self.applied.append(manifest)

    def delete(self, ref, timeout):
        self.calls.append(("delete", ref.name))

    def delete_all(self, namespace, timeout):
        self.calls.append(("delete_all", namespace))
        if self.fail_delete_all:
            raise CommandError("Failed to delete applications")

    def names_touched(self) -> set:
        return {name for _, name in self.calls}


ROOT_MANIFEST = """\
apiVersion: argoproj.io/v1alpha1
kind: Application
metadata:
  name: root-app
  namespace: argocd
spec:
  project: default
  source:
    repoURL: https://github.com/example/original
    path: argocd/apps
    targetRevision: HEAD
  destination:
    server: https://kubernetes.default.svc
    namespace: argocd
"""

CREDENTIALS = {"DD_API_KEY": "a" * 32, "DD_APP_KEY": "b" * 40}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return DeployConfig(rollout={"interactive": False})


@pytest.fixture
def poller(clock):
    return ConditionPoller(interval=10, progress_interval=60, clock=clock, sleep=clock.sleep)


@pytest.fixture
def ctx(config, clock):
    return RunContext(config=config, tracker=StageTracker(), clock=clock)


@pytest.fixture
def kubectl():
    return FakeKubectl()


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def control_plane(clock):
    return FakeControlPlane(clock)


@pytest.fixture
def app_ref():
    return ManagedResourceRef(name="datadog-agent", namespace="argocd")


@pytest.fixture
def root_manifest(tmp_path):
    path = tmp_path / "root-app.yaml"
    path.write_text(ROOT_MANIFEST)
    return path


@pytest.fixture
def credentials():
    return dict(CREDENTIALS)


@pytest.fixture
def installed_kubectl(kubectl):
    """kubectl whose cluster already runs a ready controller."""
    install_controller(kubectl)
    kubectl.on_apply_url = install_controller
    return kubectl


@pytest.fixture
def provisioned_kubectl(kubectl):
    """kubectl where installing the controller works and every wave's workloads exist."""
    kubectl.on_apply_url = install_controller
    populate_workloads(kubectl)
    return kubectl
