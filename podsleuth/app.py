"""Application wiring for PodSleuth.

Startup order: config -> logging -> K8s client -> collaborators -> pipeline.
``PodSleuthApp.diagnose_group`` is one reconcile pass for a monitored group;
scheduling it and writing the reports back to the group's status is left to
the controller that embeds this package.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from podsleuth.analyst.methods import default_registry
from podsleuth.analyst.pipeline import DiagnosisPipeline
from podsleuth.analyst.refresh import ForceRefreshSignal
from podsleuth.analyst.survey import survey
from podsleuth.api.schemas import report_to_dict
from podsleuth.cache.analysis_cache import AnalysisCache
from podsleuth.collector.logs import KubernetesLogSource
from podsleuth.collector.pods import resolve_owner, unit_from_pod
from podsleuth.collector.secrets import KubernetesSecretSource
from podsleuth.config import load_config
from podsleuth.llm.analyzer import AIAnalyzer
from podsleuth.models.config import AnalysisConfig, PodSleuthConfig
from podsleuth.observability.logging import get_logger, setup_logging

_logger = get_logger("app")


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


def build_pipeline(
    config: PodSleuthConfig,
    core_api: Any,
    *,
    ai_analyzer: AIAnalyzer | None = None,
    cache: AnalysisCache | None = None,
) -> tuple[DiagnosisPipeline, AIAnalyzer]:
    """Wire the log source, secret source, AI analyzer and cache into a pipeline.

    Returns the pipeline and the AI analyzer, whose HTTP client the caller
    closes on shutdown.
    """
    analyzer = ai_analyzer if ai_analyzer is not None else AIAnalyzer(
        secrets=KubernetesSecretSource(core_api, timeout_seconds=config.log_fetch_timeout_seconds)
    )
    pipeline = DiagnosisPipeline(
        KubernetesLogSource(core_api, timeout_seconds=config.log_fetch_timeout_seconds),
        cache if cache is not None else AnalysisCache(),
        default_registry(analyzer),
        force_refresh_delay=config.force_refresh_delay_seconds,
    )
    return pipeline, analyzer


class PodSleuthApp:
    """Owns the Kubernetes client, the AI client and the diagnosis pipeline."""

    def __init__(self) -> None:
        self.config: PodSleuthConfig | None = None
        self._api_client: Any = None
        self._core_api: Any = None
        self._apps_api: Any = None
        self._pipeline: DiagnosisPipeline | None = None
        self._ai_analyzer: AIAnalyzer | None = None

    @property
    def pipeline(self) -> DiagnosisPipeline:
        if self._pipeline is None:
            raise RuntimeError("PodSleuthApp is not started")
        return self._pipeline

    async def start(self) -> None:
        self.config = load_config()
        setup_logging(self.config.log.level)
        _logger.info("podsleuth_starting", log_level=self.config.log.level)

        await self._start_k8s_client()
        self._pipeline, self._ai_analyzer = build_pipeline(self.config, self._core_api)
        _logger.info("podsleuth_started")

    async def _start_k8s_client(self) -> None:
        try:
            import kubernetes_asyncio.config as k8s_config
            from kubernetes_asyncio import client as k8s_client

            try:
                k8s_config.load_incluster_config()  # type: ignore[no-untyped-call]
                _logger.info("k8s_client_configured", source="incluster")
            except k8s_config.ConfigException:
                await k8s_config.load_kube_config()
                _logger.info("k8s_client_configured", source="kubeconfig")

            self._api_client = k8s_client.ApiClient()
            self._core_api = k8s_client.CoreV1Api(self._api_client)
            self._apps_api = k8s_client.AppsV1Api(self._api_client)
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def diagnose_group(
        self,
        namespace: str,
        label_selector: str,
        analysis_spec: Mapping[str, object] | None,
        annotations: Mapping[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """List the group's pods and return the ``nonReadyPods`` status entries."""
        if self.config is None or self._core_api is None:
            raise RuntimeError("PodSleuthApp is not started")

        analysis = AnalysisConfig.from_spec(
            analysis_spec,
            default_cache_ttl=self.config.default_cache_ttl,
            default_ai_timeout=self.config.ai_timeout_seconds,
        )
        pods = await self._core_api.list_namespaced_pod(namespace=namespace, label_selector=label_selector)

        units = []
        for pod in pods.items:
            owner = await resolve_owner(self._apps_api, pod)
            units.append(unit_from_pod(pod, owner))

        reports = await survey(units, analysis, self.pipeline, ForceRefreshSignal.from_annotations(annotations))
        _logger.info("group_surveyed", namespace=namespace, pods=len(units), non_ready=len(reports))
        return [report_to_dict(r) for r in reports]

    async def stop(self) -> None:
        if self._ai_analyzer is not None:
            try:
                await self._ai_analyzer.aclose()
            except Exception as exc:
                _logger.warning("ai_client_close_failed", error=str(exc))
            self._ai_analyzer = None
        if self._api_client is not None:
            try:
                await self._api_client.close()
            except Exception as exc:
                _logger.debug("k8s_client_close_failed", error=str(exc))
            self._api_client = None
        self._pipeline = None
        _logger.info("podsleuth_stopped")
