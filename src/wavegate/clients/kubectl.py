"""kubectl-backed access to cluster objects."""

import base64
import binascii
import json
from typing import Any, Callable, Dict, List, Optional

import yaml

from wavegate.clients.base import SecretReader
from wavegate.utils.commands import CommandResult, run_command
from wavegate.utils.errors import CommandError, ErrorContext
from wavegate.utils.logging import get_logger

logger = get_logger(__name__)

Runner = Callable[..., CommandResult]


class Kubectl(SecretReader):
    """Thin wrapper over the kubectl binary returning parsed JSON objects.

    Reads distinguish "object does not exist" (None / empty list) from "could
    not read" (CommandError), so pollers can treat the latter as transient.
    """

    def __init__(
        self,
        binary: str = "kubectl",
        runner: Runner = run_command,
        request_timeout: float = 30.0
    ):
        """Initialize kubectl wrapper.

        Args:
            binary: kubectl executable name or path
            runner: Command runner, injectable for tests
            request_timeout: Seconds allowed for each read request
        """
        self.binary = binary
        self.runner = runner
        self.request_timeout = request_timeout

    def run(
        self,
        args: List[str],
        timeout: Optional[float] = None,
        input_text: Optional[str] = None
    ) -> CommandResult:
        """Run a kubectl subcommand."""
        return self.runner(
            [self.binary, *args],
            timeout=timeout or self.request_timeout,
            input_text=input_text,
        )

    def get(
        self,
        kind: str,
        name: Optional[str] = None,
        namespace: Optional[str] = None,
        selector: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Fetch one object (or a list when ``name`` is omitted) as JSON.

        Args:
            kind: Resource kind, e.g. "deployment"
            name: Object name; None lists objects of the kind
            namespace: Namespace, None for cluster-scoped kinds
            selector: Label selector for list requests

        Returns:
            Parsed object, or None if it does not exist

        Raises:
            CommandError: If the request failed for any other reason
        """
        args = ["get", kind]
        if name:
            args.append(name)
        if namespace:
            args.extend(["-n", namespace])
        if selector:
            args.extend(["-l", selector])
        args.extend(["-o", "json"])

        result = self.run(args)
        if not result.ok:
            if "NotFound" in result.stderr or "not found" in result.stderr:
                return None
            result.check(f"Failed to read {kind} {name or ''}".rstrip())

        try:
            return json.loads(result.stdout or "{}")
        except ValueError as e:
            raise CommandError(
                f"Unparseable output from: {result.command}",
                returncode=result.returncode,
                context=ErrorContext(command=result.command),
                cause=e,
            )

    def list_items(
        self,
        kind: str,
        namespace: Optional[str] = None,
        selector: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """List objects of a kind; empty when none exist."""
        payload = self.get(kind, namespace=namespace, selector=selector) or {}
        items = payload.get("items", [])
        return items if isinstance(items, list) else []

    def exists(self, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        """Check whether a named object exists."""
        return self.get(kind, name, namespace) is not None

    def cluster_info(self) -> bool:
        """Check whether the API server answers."""
        return self.run(["cluster-info"]).ok

    def namespace_exists(self, name: str) -> bool:
        return self.exists("namespace", name)

    def create_namespace(self, name: str) -> None:
        """Create a namespace.

        Raises:
            CommandError: If creation fails
        """
        self.run(["create", "namespace", name]).check(f"Failed to create namespace {name}")
        logger.info(f"Namespace {name} created")

    def delete_namespaces(self, names: List[str], timeout: float = 120) -> None:
        """Delete namespaces, ignoring ones that are already gone.

        Raises:
            CommandError: If deletion fails
        """
        if not names:
            return
        self.run(
            ["delete", "namespace", *names, "--ignore-not-found=true", f"--timeout={int(timeout)}s"],
            timeout=timeout + self.request_timeout,
        ).check(f"Failed to delete namespaces: {', '.join(names)}")

    def delete(self, kind: str, name: str, namespace: Optional[str] = None, timeout: float = 60) -> None:
        """Delete a named object, ignoring one that is already gone.

        Raises:
            CommandError: If deletion fails
        """
        args = ["delete", kind, name, "--ignore-not-found=true", f"--timeout={int(timeout)}s"]
        if namespace:
            args.extend(["-n", namespace])
        self.run(args, timeout=timeout + self.request_timeout).check(
            f"Failed to delete {kind} {name}"
        )

    def delete_all(self, kind: str, namespace: str, timeout: float = 60) -> None:
        """Delete every object of a kind in a namespace.

        Raises:
            CommandError: If deletion fails
        """
        self.run(
            ["delete", kind, "--all", "-n", namespace,
             "--ignore-not-found=true", f"--timeout={int(timeout)}s"],
            timeout=timeout + self.request_timeout,
        ).check(f"Failed to delete {kind} in {namespace}")

    def apply_url(self, url: str, namespace: str, timeout: float = 300) -> None:
        """Apply a remote manifest.

        Raises:
            CommandError: If the manifest could not be fetched or applied
        """
        self.run(["apply", "-n", namespace, "-f", url], timeout=timeout).check(
            f"Failed to apply manifest {url}"
        )

    def apply_manifest(self, manifest: str, namespace: Optional[str] = None, timeout: float = 120) -> None:
        """Apply manifest text passed on stdin.

        Raises:
            CommandError: If the manifest was rejected
        """
        args = ["apply", "-f", "-"]
        if namespace:
            args.extend(["-n", namespace])
        self.run(args, timeout=timeout, input_text=manifest).check("Failed to apply manifest")

    def create_generic_secret(self, name: str, namespace: str, values: Dict[str, str]) -> None:
        """Create an Opaque secret from string values.

        The values travel on stdin rather than the command line so they never
        show up in the process table.

        Raises:
            CommandError: If the secret could not be created
        """
        manifest = yaml.safe_dump({
            "apiVersion": "v1",
            "kind": "Secret",
            "type": "Opaque",
            "metadata": {"name": name, "namespace": namespace},
            "stringData": dict(values),
        })
        self.run(["create", "-f", "-"], input_text=manifest).check(
            f"Failed to create secret {name} in {namespace}"
        )

    def get_secret_field(self, name: str, namespace: str, field: str) -> Optional[bytes]:
        """Return the decoded value of one secret field, or None if absent.

        Raises:
            CommandError: If the secret could not be read
        """
        secret = self.get("secret", name, namespace)
        if secret is None:
            return None

        encoded = (secret.get("data") or {}).get(field)
        if not encoded:
            return None

        try:
            return base64.b64decode(encoded)
        except (binascii.Error, ValueError):
            logger.warning(f"Secret {namespace}/{name} field '{field}' is not valid base64")
            return None
