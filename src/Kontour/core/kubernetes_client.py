from __future__ import annotations
import asyncio
import logging
import os
import re
from pathlib import Path
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Tuple,
    Type,
    TypeVar,
)

import aiohttp
import orjson
import yaml
from kubernetes_asyncio import client, config
from kubernetes_asyncio.client.api_client import ApiClient
from kubernetes_asyncio.client.exceptions import ApiException
from kubernetes_asyncio.config.config_exception import ConfigException

from Kontour.config import AppConfig, DEFAULT_KUBECONFIG
from Kontour.core.exceptions import (
    ClientCreationError,
    InvalidKubeconfigError,
    K8sClientError,
    KubeconfigFileNotFoundError,
    KubeconfigIOError,
    KubeconfigNotFoundError,
)
from Kontour.core.kubeconfig_registry import KubeconfigRegistry
from Kontour.k8s.resource_usage import (
    ClusterResourceUsage,
    ResourceHotspot,
    find_resource_hotspots,
    summarize_cluster,
)
from Kontour.models.base import ALL_APIS, WorkloadRow

log = logging.getLogger(__name__)

R = TypeVar("R", bound=WorkloadRow)

METRICS_GROUP = "metrics.k8s.io"
METRICS_VERSION = "v1beta1"


class KubernetesClient(ApiClient):
    """
    An ApiClient bound to one kubeconfig selection.

    Typed API groups are reachable as attributes (``client.AppsV1Api``) and are
    built lazily on first access. Instances are never re-pointed; a context
    switch builds a new one.
    """

    def __init__(
        self,
        configuration: client.Configuration,
        selector: str = DEFAULT_KUBECONFIG,
        source_path: Optional[str] = None,
    ) -> None:
        super().__init__(configuration)
        self.selector = selector
        self.source_path = source_path
        self._api_cache: dict[str, Any] = {}

    def __getattr__(self, name: str) -> Any:
        # Private lookups must not recurse while ApiClient is still initialising.
        if name.startswith("_"):
            raise AttributeError(name)

        if name in self._api_cache:
            return self._api_cache[name]

        if name in ALL_APIS:
            api_info = ALL_APIS[name]
            api_class = getattr(client, api_info.client_name)
            api_instance = api_class(self)
            self._api_cache[name] = api_instance
            return api_instance

        raise AttributeError(
            f"'{self.__class__.__name__}' object has no attribute '{name}'"
        )

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} selector={self.selector!r} "
            f"host={self.configuration.host!r}>"
        )

    @staticmethod
    def _to_snake_case(name: str) -> str:
        """Converts PascalCase to snake_case."""
        s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
        return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()

    def _list_method_for(
        self, model_class: Type[WorkloadRow], namespace: Optional[str]
    ) -> Tuple[Callable[..., Any], Dict[str, Any]]:
        api = getattr(self, model_class.api_info.client_name)
        kind_snake = self._to_snake_case(model_class.kind)
        if not namespace or namespace == "all":
            return getattr(api, f"list_{kind_snake}_for_all_namespaces"), {}
        return getattr(api, f"list_namespaced_{kind_snake}"), {"namespace": namespace}

    async def list_workloads(
        self, model_class: Type[R], namespace: Optional[str] = None
    ) -> List[R]:
        """Lists one workload kind and reduces every object to its view model."""
        method, kwargs = self._list_method_for(model_class, namespace)
        try:
            response = await method(**kwargs)
        except ApiException as e:
            raise K8sClientError(
                f"Failed to list {model_class.plural} (HTTP {e.status}): {e.reason}"
            ) from e
        except aiohttp.ClientError as e:
            raise K8sClientError(f"Failed to list {model_class.plural}: {e}") from e

        rows = [model_class(item) for item in response.items or []]
        log.debug(
            "Listed %d %s from %s", len(rows), model_class.plural, self.selector
        )
        return rows

    async def _list_metrics(self, plural: str) -> List[Dict[str, Any]]:
        """Lists metrics.k8s.io objects. An absent metrics API yields []."""
        try:
            response = await self.CustomObjectsApi.list_cluster_custom_object(
                group=METRICS_GROUP, version=METRICS_VERSION, plural=plural
            )
        except ApiException as e:
            if e.status == 404:
                log.warning(
                    "Metrics API not available (404 Not Found). "
                    "Is metrics-server installed?"
                )
            else:
                log.error(
                    "Error fetching %s metrics from Metrics API (HTTP %s): %s",
                    plural,
                    e.status,
                    e.reason,
                )
            return []
        except aiohttp.ClientError as e:
            log.error("Error fetching %s metrics: %s", plural, e)
            return []
        return list(response.get("items", []))

    async def fetch_pod_metrics(self) -> List[Dict[str, Any]]:
        return await self._list_metrics("pods")

    async def fetch_node_metrics(self) -> List[Dict[str, Any]]:
        return await self._list_metrics("nodes")

    async def _list_core(self, method_name: str) -> List[Any]:
        try:
            response = await getattr(self.CoreV1Api, method_name)()
        except ApiException as e:
            raise K8sClientError(
                f"{method_name} failed (HTTP {e.status}): {e.reason}"
            ) from e
        except aiohttp.ClientError as e:
            raise K8sClientError(f"{method_name} failed: {e}") from e
        return list(response.items or [])

    async def fetch_cluster_usage(self) -> ClusterResourceUsage:
        """Aggregates node capacity, node metrics and pod counts into one summary."""
        nodes = await self._list_core("list_node")
        pods = await self._list_core("list_pod_for_all_namespaces")
        namespaces = await self._list_core("list_namespace")
        node_metrics = await self.fetch_node_metrics()
        return summarize_cluster(nodes, node_metrics, pods, namespaces)

    async def fetch_resource_hotspots(self) -> List[ResourceHotspot]:
        pods = await self._list_core("list_pod_for_all_namespaces")
        pod_metrics = await self.fetch_pod_metrics()
        return find_resource_hotspots(pods, pod_metrics)


class ClientFactory:
    """
    Turns a selector into a connected ``KubernetesClient``.

    A selector is either ``"default"`` (ambient kubeconfig resolution), a name
    registered in the injected ``KubeconfigRegistry``, or a literal path to a
    kubeconfig file. Each client gets its own ``Configuration``; nothing
    process-wide is touched. Constructions are serialised by ``self._lock``.
    """

    def __init__(
        self, registry: KubeconfigRegistry, app_config: Optional[AppConfig] = None
    ) -> None:
        self._registry = registry
        self._config = app_config or AppConfig.get_instance()
        self._lock = asyncio.Lock()

    def resolve_path(self, selector: str) -> Optional[str]:
        """
        Returns the kubeconfig path for ``selector``, or None for the ambient
        default.

        :raises KubeconfigNotFoundError: neither registered nor an existing file.
        :raises KubeconfigFileNotFoundError: the resolved file is gone.
        """
        if selector == DEFAULT_KUBECONFIG:
            return None

        path = self._registry.get(selector)
        if path is None:
            if not Path(selector).is_file():
                raise KubeconfigNotFoundError(selector)
            path = selector

        if not Path(path).exists():
            raise KubeconfigFileNotFoundError(path)
        return path

    def _new_configuration(self) -> client.Configuration:
        configuration = client.Configuration()
        configuration.client_side_timeout = self._config.client_side_timeout
        configuration.json_dumps = orjson.dumps
        configuration.json_loads = orjson.loads
        return configuration

    async def _load_ambient(self, configuration: client.Configuration) -> None:
        try:
            await config.load_kube_config(
                client_configuration=configuration, persist_config=False
            )
        except ConfigException:
            if not os.environ.get("KUBERNETES_SERVICE_HOST"):
                raise
            log.info("No kubeconfig found, falling back to in-cluster configuration")
            config.load_incluster_config(client_configuration=configuration)

    async def resolve_and_connect(self, selector: str) -> KubernetesClient:
        """
        Builds a client for ``selector``. Every failure is raised as a
        ``KubeconfigError`` subclass carrying a readable message.
        """
        path = self.resolve_path(selector)
        configuration = self._new_configuration()

        async with self._lock:
            try:
                if path is None:
                    await self._load_ambient(configuration)
                else:
                    await config.load_kube_config(
                        config_file=path,
                        client_configuration=configuration,
                        persist_config=False,
                    )
            except ConfigException as e:
                raise ClientCreationError(str(e)) from e
            except yaml.YAMLError as e:
                raise InvalidKubeconfigError(str(e)) from e
            except (TypeError, ValueError, AttributeError, KeyError) as e:
                # Raised by the loader for YAML that is not a mapping.
                raise InvalidKubeconfigError(
                    f"{path or 'ambient kubeconfig'} is not a kubeconfig document ({e})"
                ) from e
            except OSError as e:
                raise KubeconfigIOError(str(e)) from e

        log.info(
            "Created client for '%s' (%s) against %s",
            selector,
            path or "ambient configuration",
            configuration.host,
        )
        return KubernetesClient(configuration, selector=selector, source_path=path)
