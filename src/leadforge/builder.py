"""Artifact builder for websites, content kits and marketing campaigns.

Websites are requested from remote generation sources in order (backend
first, then the LLM gateway). When every source fails the category
template is used instead, so a build always produces an artifact unless
it is cancelled or the template itself cannot render.

Content and marketing kits are always assembled locally.
"""

import re
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import requests

from .api_client import BackendClient
from .errors import (
    BuildCancelledError,
    LeadForgeError,
    RemoteGenerationError,
    StorageError,
    handle_error,
)
from .generation_client import (
    GenerationClient,
    GenerationOptions,
    optimize_prompt_for_model,
    select_model_for_task,
)
from .logging_utils import get_logger
from .models import AgentType, ArtifactType, BusinessRecord, GeneratedArtifact
from .storage import ArtifactHistoryStore, ProjectStore
from .templates import (
    assemble,
    build_content_package,
    build_marketing_package,
    classify_category,
    render_content_kit,
    render_marketing_dashboard,
)


logger = get_logger(__name__)

ProgressCallback = Callable[[int, str], None]

STEP_CONNECTING = "Connecting to AI service..."
STEP_GENERATING = "AI generating content..."
STEP_PROCESSING = "Processing response..."
STEP_COMPLETE = "Complete!"


class GenerationPath:
    """Values recorded in artifact metadata under ``generation_path``."""

    BACKEND = "backend"
    GATEWAY = "gateway"
    TEMPLATE = "template"


@dataclass(frozen=True)
class AgentConfig:
    """Static description of one build agent.

    Attributes:
        name: Display name, also used in artifact names.
        description: What the agent produces.
        capabilities: Feature list shown before a build.
        estimated_time: Human-readable duration estimate.
        artifact_type: Type of the artifact the agent produces.
    """

    name: str
    description: str
    estimated_time: str
    artifact_type: ArtifactType
    capabilities: Tuple[str, ...] = field(default_factory=tuple)


AGENT_CONFIGS: Dict[AgentType, AgentConfig] = {
    AgentType.WEBSITE: AgentConfig(
        name="Website Builder",
        description="Creates a complete, responsive website tailored to the business",
        estimated_time="2-3 minutes",
        artifact_type=ArtifactType.WEBSITE,
        capabilities=(
            "Responsive design",
            "SEO optimization",
            "Contact forms",
            "Google Maps integration",
            "Mobile-first approach",
            "Performance optimization",
        ),
    ),
    AgentType.CONTENT: AgentConfig(
        name="Content Creator",
        description="Generates high-quality content including copy, descriptions, and marketing materials",
        estimated_time="1-2 minutes",
        artifact_type=ArtifactType.CONTENT,
        capabilities=(
            "Business descriptions",
            "Service pages",
            "Blog content",
            "FAQ sections",
            "About us pages",
            "SEO-optimized copy",
        ),
    ),
    AgentType.MARKETING: AgentConfig(
        name="Marketing Campaign",
        description="Develops comprehensive marketing strategies and promotional materials",
        estimated_time="2-4 minutes",
        artifact_type=ArtifactType.MARKETING,
        capabilities=(
            "Email campaigns",
            "Social media content",
            "Google Ads copy",
            "Landing pages",
            "Promotional materials",
            "Brand messaging",
        ),
    ),
}


def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    """Raise BuildCancelledError if the build's cancellation handle is set."""
    if cancel_event is not None and cancel_event.is_set():
        raise BuildCancelledError()


class RemoteWebsiteSource(Protocol):
    """A remote service able to generate a website for a business."""

    name: str

    def generate(
        self,
        business: BusinessRecord,
        api_key: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Tuple[str, str]:
        """Return (html, model_used)."""
        ...


class BackendWebsiteSource:
    """Website generation through the backend's enhanced generation endpoint."""

    name = GenerationPath.BACKEND

    def __init__(self, client: BackendClient, timeout: Optional[int] = None):
        self.client = client
        self.timeout = timeout

    def generate(
        self,
        business: BusinessRecord,
        api_key: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Tuple[str, str]:
        data = self.client.generate_enhanced_website(business, timeout=self.timeout)
        check_cancelled(cancel_event)
        if not isinstance(data, dict):
            raise RemoteGenerationError(
                "Backend returned a malformed website response",
                context={"business_id": business.id, "type": type(data).__name__},
            )
        content = data.get("final_output") or data.get("output") or data.get("response")
        if not content or not isinstance(content, str):
            raise RemoteGenerationError(
                "Backend returned no website content",
                context={"business_id": business.id, "keys": sorted(data)},
            )
        return content, data.get("model_used") or "AI Service"


_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n(.*?)\n```\s*$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if present."""
    text = text.strip()
    match = _CODE_FENCE.match(text)
    return match.group(1).strip() if match else text


def build_website_prompt(business: BusinessRecord) -> str:
    """Prompt asking the gateway model for a complete single-file website."""
    lines = [
        "As an expert web developer, create a complete, modern, single-file HTML website for:",
        f"Business: {business.name}",
        f"Category: {business.classification}",
    ]
    if business.location:
        lines.append(f"Location: {business.location}")
    if business.phone:
        lines.append(f"Phone: {business.phone}")
    if business.rating:
        lines.append(f"Rating: {business.rating:.1f} stars from {business.total_reviews} reviews")
    if business.services:
        lines.append(f"Services: {', '.join(business.services)}")
    lines.extend([
        "",
        "Requirements:",
        "- Use Tailwind CSS from the CDN and inline any custom CSS and JavaScript",
        "- Include hero, services, about, contact and footer sections",
        "- Responsive, accessible and SEO-friendly markup",
        "- Return only the HTML document starting with <!DOCTYPE html>",
    ])
    return "\n".join(lines)


class GatewayWebsiteSource:
    """Website generation through the LLM gateway using the code model."""

    name = GenerationPath.GATEWAY

    def __init__(self, client: GenerationClient, options: Optional[GenerationOptions] = None):
        self.client = client
        self.options = options or GenerationOptions(max_tokens=8000)

    def generate(
        self,
        business: BusinessRecord,
        api_key: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Tuple[str, str]:
        model = select_model_for_task("code")
        prompt = optimize_prompt_for_model(build_website_prompt(business), model)
        text = self.client.generate_with_fallback(prompt, model, options=self.options, api_key=api_key)
        check_cancelled(cancel_event)
        html = strip_code_fences(text)
        if "<html" not in html.lower():
            raise RemoteGenerationError(
                "Gateway response did not contain an HTML document",
                context={"model": model, "business_id": business.id},
            )
        return html, model


class ArtifactBuilder:
    """Builds artifacts for a business and records them in history and projects."""

    def __init__(
        self,
        sources: Optional[Sequence[RemoteWebsiteSource]] = None,
        artifact_store: Optional[ArtifactHistoryStore] = None,
        project_store: Optional[ProjectStore] = None,
    ):
        self.sources: List[RemoteWebsiteSource] = list(sources or [])
        self.artifact_store = artifact_store
        self.project_store = project_store

    def build(
        self,
        business: BusinessRecord,
        agent_type: AgentType,
        api_key: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        artifact_id: Optional[str] = None,
    ) -> GeneratedArtifact:
        """Build one artifact.

        Args:
            business: The business to build for.
            agent_type: Which agent to run.
            api_key: Gateway credential for this build.
            on_progress: Called with (progress, step) at each checkpoint.
            cancel_event: Set by the caller to stop the build between checkpoints.
            artifact_id: Id for the artifact, random when omitted.

        Returns:
            The generated artifact.

        Raises:
            BuildCancelledError: If ``cancel_event`` is set during the build.
            TemplateAssemblyError: If the template fallback fails to render.
        """
        agent_type = AgentType(agent_type)
        agent = AGENT_CONFIGS[agent_type]

        def report(progress: int, step: str) -> None:
            check_cancelled(cancel_event)
            if on_progress is not None:
                on_progress(progress, step)

        logger.info(
            f"Building {agent_type.value} for {business.name}",
            extra={"business_id": business.id, "agent_type": agent_type.value},
        )

        if agent_type == AgentType.WEBSITE:
            content, metadata = self._build_website(business, api_key, report, cancel_event)
        elif agent_type == AgentType.CONTENT:
            content, metadata = self._build_content(business, report)
        else:
            content, metadata = self._build_marketing(business, report)

        metadata.update({
            "businessName": business.name,
            "businessCategory": business.category,
            "agentName": agent.name,
        })
        artifact = GeneratedArtifact(
            id=artifact_id or str(uuid.uuid4()),
            name=f"{business.name} - {agent.name}",
            type=agent.artifact_type,
            content=content,
            metadata=metadata,
        )

        check_cancelled(cancel_event)
        self._persist(business, artifact)
        report(100, STEP_COMPLETE)
        return artifact

    def _build_website(
        self,
        business: BusinessRecord,
        api_key: Optional[str],
        report: ProgressCallback,
        cancel_event: Optional[threading.Event],
    ) -> Tuple[str, Dict[str, Any]]:
        metadata: Dict[str, Any] = {
            "framework": "HTML/CSS/JS",
            "responsive": True,
            "seoOptimized": True,
        }
        failures: List[str] = []

        report(20, STEP_CONNECTING)
        for source in self.sources:
            report(60, STEP_GENERATING)
            try:
                content, model_used = source.generate(business, api_key=api_key, cancel_event=cancel_event)
            except BuildCancelledError:
                raise
            except (LeadForgeError, requests.RequestException, KeyError, ValueError) as e:
                failures.append(f"{source.name}: {e}")
                logger.warning(
                    f"Remote website generation via {source.name} failed, trying next option: {e}",
                    extra={"business_id": business.id},
                )
                continue

            report(80, STEP_PROCESSING)
            metadata.update({
                "generatedByAI": True,
                "aiModel": model_used,
                "generation_path": source.name,
            })
            return content, metadata

        report(60, STEP_GENERATING)
        content = assemble(business)
        report(80, STEP_PROCESSING)
        metadata.update({
            "generatedByAI": False,
            "aiModel": "Template",
            "generation_path": GenerationPath.TEMPLATE,
            "template": classify_category(business.classification).value,
        })
        if failures:
            metadata["fallback_reason"] = "; ".join(failures)
        return content, metadata

    def _build_content(
        self, business: BusinessRecord, report: ProgressCallback
    ) -> Tuple[str, Dict[str, Any]]:
        report(20, "Analyzing business profile...")
        package = build_content_package(business)
        report(60, "Writing content...")
        content = render_content_kit(business, package)
        report(80, STEP_PROCESSING)
        return content, {
            "generatedByAI": False,
            "aiModel": "Template",
            "generation_path": GenerationPath.TEMPLATE,
            "package": package,
        }

    def _build_marketing(
        self, business: BusinessRecord, report: ProgressCallback
    ) -> Tuple[str, Dict[str, Any]]:
        report(20, "Analyzing market position...")
        package = build_marketing_package(business)
        report(60, "Creating campaign materials...")
        content = render_marketing_dashboard(business, package)
        report(80, STEP_PROCESSING)
        return content, {
            "generatedByAI": False,
            "aiModel": "Template",
            "generation_path": GenerationPath.TEMPLATE,
            "package": package,
        }

    def _persist(self, business: BusinessRecord, artifact: GeneratedArtifact) -> None:
        try:
            if self.artifact_store is not None:
                self.artifact_store.save(artifact, business)
                self.artifact_store.set_current(artifact)
            if self.project_store is not None:
                self.project_store.add_artifact(business, artifact)
        except StorageError as e:
            handle_error(e, context={"artifact_id": artifact.id, "business_id": business.id})


def determine_build_plan(business: BusinessRecord) -> List[AgentType]:
    """Agents worth running for a business, in build order.

    Businesses without a website get one; weak reputations (rating under 4
    or fewer than 50 reviews) get a marketing campaign; everyone gets content.
    """
    plan: List[AgentType] = []
    if business.lacks_website:
        plan.append(AgentType.WEBSITE)
    if business.rating < 4 or business.total_reviews < 50:
        plan.append(AgentType.MARKETING)
    plan.append(AgentType.CONTENT)
    return plan


def create_default_builder(
    artifact_store: Optional[ArtifactHistoryStore] = None,
    project_store: Optional[ProjectStore] = None,
    use_remote: bool = True,
    backend: Optional[BackendClient] = None,
    gateway: Optional[GenerationClient] = None,
) -> ArtifactBuilder:
    """Wire a builder with the backend and gateway sources."""
    sources: List[RemoteWebsiteSource] = []
    if use_remote:
        sources.append(BackendWebsiteSource(backend or BackendClient()))
        sources.append(GatewayWebsiteSource(gateway or GenerationClient()))
    return ArtifactBuilder(sources, artifact_store, project_store)
