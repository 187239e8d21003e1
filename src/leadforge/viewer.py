"""Artifact viewer: preview, code editing, copy, download and deploy.

The viewer holds presentation state for one artifact. HTML-type artifacts
render as a sandboxed document sized by a device preset; everything else
renders as preformatted text or JSON.
"""

import asyncio
import html
import json
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Union

from .config import config
from .errors import DeploymentError, handle_error
from .logging_utils import get_logger
from .models import ArtifactType, GeneratedArtifact
from .templates.content_kit import CONTENT_KIT_SECTIONS, render_content_sections
from .templates.marketing_kit import MARKETING_KIT_SECTIONS, render_marketing_sections

logger = get_logger(__name__)

SANDBOX = "allow-scripts allow-same-origin"

ZOOM_MIN = 50
ZOOM_MAX = 150
ZOOM_STEP = 10
DEFAULT_ZOOM = 85

COPY_FEEDBACK_SECONDS = 2.0

# Whitespace runs and apostrophes are not kept in download names
_FILENAME_UNSAFE = re.compile(r"[\s']+")


class DevicePreset(str, Enum):
    """Preview frame sizes."""

    DESKTOP = "desktop"
    TABLET = "tablet"
    MOBILE = "mobile"


DEVICE_SIZES: Dict[DevicePreset, Dict[str, str]] = {
    DevicePreset.DESKTOP: {"width": "100%", "height": "100%"},
    DevicePreset.TABLET: {"width": "768px", "height": "1024px"},
    DevicePreset.MOBILE: {"width": "375px", "height": "667px"},
}


class ViewMode(str, Enum):
    """Which panes the viewer shows."""

    PREVIEW = "preview"
    CODE = "code"
    SPLIT = "split"


def _json(content: Any) -> str:
    return json.dumps(content, indent=2, ensure_ascii=False, default=str)


def html_from_object(content: Union[str, Dict[str, Any]], title: str = "") -> str:
    """Render structured content as an HTML document.

    Content and marketing kit packages render their sections, a ``sections``
    list renders one card per section, and anything else is shown as
    escaped JSON.
    """
    if isinstance(content, str):
        if "<html" in content.lower():
            return content
        body = f'<div class="prose max-w-none">{content}</div>'
        heading, description = title, "AI Generated Content"
    else:
        heading = content.get("title") or title
        description = content.get("description") or "AI Generated Content"
        if any(key in content for key in CONTENT_KIT_SECTIONS):
            body = render_content_sections(content)
        elif any(key in content for key in MARKETING_KIT_SECTIONS):
            body = f'<div class="grid md:grid-cols-2 gap-6">{render_marketing_sections(content)}</div>'
        elif isinstance(content.get("sections"), list):
            body = "".join(
                f"""
        <section class="mb-8 p-6 bg-white rounded-lg shadow-md">
            <h2 class="text-2xl font-bold mb-4">{html.escape(str(section.get("title", "")))}</h2>
            <div class="prose">{section.get("content", "")}</div>
        </section>"""
                for section in content["sections"]
                if isinstance(section, dict)
            )
        else:
            body = f"""
        <div class="p-6 bg-white rounded-lg shadow-md">
            <pre class="whitespace-pre-wrap">{html.escape(_json(content))}</pre>
        </div>"""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(str(heading))}</title>
    <script src="https://cdn.tailwindcss.com"></script>
    <style>
        * {{ margin: 0; padding: 0; box-sizing: border-box; }}
        body {{ font-family: system-ui, -apple-system, sans-serif; }}
    </style>
</head>
<body class="bg-gradient-to-br from-blue-50 to-indigo-100 min-h-screen">
    <div class="container mx-auto px-4 py-12">
        <header class="text-center mb-12">
            <h1 class="text-5xl font-bold text-indigo-700 mb-4">{html.escape(str(heading))}</h1>
            <p class="text-xl text-gray-600">{html.escape(str(description))}</p>
        </header>
        <main class="max-w-4xl mx-auto">{body}
        </main>
    </div>
</body>
</html>"""


def email_html(content: Union[str, Dict[str, Any]]) -> str:
    """Render an email artifact (subject, body, cta) as an HTML email.

    A string that is already an HTML document, such as a saved edit, is
    returned unchanged.
    """
    if isinstance(content, str) and "<html" in content.lower():
        return content
    data = {"body": content} if isinstance(content, str) else content
    subject = data.get("subject") or "Professional Email Template"
    body = data.get("body") or data.get("content")
    if not body:
        body = f"<pre>{html.escape(_json(data))}</pre>"
    cta = f'<a href="#" class="button">{html.escape(str(data["cta"]))}</a>' if data.get("cta") else ""
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(str(subject))}</title>
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 30px; text-align: center; border-radius: 10px 10px 0 0; }}
        .content {{ background: white; padding: 30px; border: 1px solid #e5e7eb; border-radius: 0 0 10px 10px; }}
        .button {{ display: inline-block; padding: 12px 30px; background: #667eea; color: white; text-decoration: none; border-radius: 5px; margin: 20px 0; }}
    </style>
</head>
<body>
    <div class="header"><h1>{html.escape(str(subject))}</h1></div>
    <div class="content">
        {body}
        {cta}
    </div>
</body>
</html>"""


def source_for(artifact: GeneratedArtifact) -> str:
    """The displayable source of an artifact."""
    content = artifact.content
    if artifact.type == ArtifactType.EMAIL:
        return email_html(content)
    if artifact.is_html_type():
        if isinstance(content, str):
            return content
        return html_from_object(content, artifact.name)
    if isinstance(content, str):
        return content
    return _json(content)


@dataclass
class RenderedView:
    """Everything needed to draw the viewer for one artifact.

    ``preview_html`` is None for artifacts that are not previewed as HTML;
    their ``code`` is shown as preformatted text instead.
    """

    view_mode: ViewMode
    device: DevicePreset
    width: str
    height: str
    zoom: int
    code: str
    preview_html: Optional[str]
    sandbox: Optional[str]
    is_editing: bool

    def to_iframe(self) -> str:
        """Preview frame markup, or a <pre> block for non-HTML artifacts."""
        if self.preview_html is None:
            return f'<pre class="whitespace-pre-wrap">{html.escape(self.code)}</pre>'
        return (
            f'<iframe sandbox="{self.sandbox}" srcdoc="{html.escape(self.preview_html, quote=True)}" '
            f'style="width: {self.width}; height: {self.height}; border: 0; '
            f'transform: scale({self.zoom / 100}); transform-origin: top center;"></iframe>'
        )


class ArtifactViewer:
    """Viewer state for a single artifact."""

    def __init__(
        self,
        artifact: GeneratedArtifact,
        on_save: Optional[Callable[[GeneratedArtifact], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.artifact = artifact
        self.on_save = on_save
        self.clock = clock

        self.view_mode = ViewMode.PREVIEW
        self.device = DevicePreset.DESKTOP
        self.zoom = DEFAULT_ZOOM
        self.code = source_for(artifact)
        self.buffer: Optional[str] = None
        self.is_deploying = False
        self._copied_at: Optional[float] = None

    # View state

    @property
    def is_editing(self) -> bool:
        """True while an edit buffer exists."""
        return self.buffer is not None

    @property
    def displayed_code(self) -> str:
        """The edit buffer while editing, otherwise the saved code."""
        return self.buffer if self.buffer is not None else self.code

    def set_view_mode(self, mode: Union[ViewMode, str]) -> None:
        """Switch between preview, code and split. An open edit buffer is kept.

        Raises:
            ValueError: If the mode is unknown.
        """
        self.view_mode = ViewMode(mode)

    def set_device(self, device: Union[DevicePreset, str]) -> None:
        """Select the preview frame size.

        Raises:
            ValueError: If the preset is unknown.
        """
        self.device = DevicePreset(device)

    def set_zoom(self, value: int) -> None:
        """Set the zoom percentage.

        Raises:
            ValueError: If the value is outside 50-150 or not a multiple of 10.
        """
        if not ZOOM_MIN <= value <= ZOOM_MAX:
            raise ValueError(f"Zoom must be between {ZOOM_MIN} and {ZOOM_MAX}, got {value}")
        if value % ZOOM_STEP:
            raise ValueError(f"Zoom must be a multiple of {ZOOM_STEP}, got {value}")
        self.zoom = value

    def zoom_in(self) -> int:
        """Step up to the next multiple of 10, stopping at ZOOM_MAX. Returns the new zoom."""
        self.zoom = min(ZOOM_MAX, (self.zoom // ZOOM_STEP + 1) * ZOOM_STEP)
        return self.zoom

    def zoom_out(self) -> int:
        """Step down to the previous multiple of 10, stopping at ZOOM_MIN. Returns the new zoom."""
        self.zoom = max(ZOOM_MIN, (-(-self.zoom // ZOOM_STEP) - 1) * ZOOM_STEP)
        return self.zoom

    def render(self) -> RenderedView:
        size = DEVICE_SIZES[self.device]
        code = self.displayed_code
        previewable = self.artifact.is_html_type()
        return RenderedView(
            view_mode=self.view_mode,
            device=self.device,
            width=size["width"],
            height=size["height"],
            zoom=self.zoom,
            code=code,
            preview_html=code if previewable else None,
            sandbox=SANDBOX if previewable else None,
            is_editing=self.is_editing,
        )

    # Editing

    def start_edit(self) -> None:
        """Open an edit buffer holding the current code."""
        self.buffer = self.code

    def update_buffer(self, text: str) -> None:
        """Replace the edit buffer text.

        Raises:
            RuntimeError: If no edit is in progress.
        """
        if self.buffer is None:
            raise RuntimeError("Not editing; call start_edit() first")
        self.buffer = text

    def save_edit(self) -> GeneratedArtifact:
        """Commit the edit buffer as the artifact's new content.

        Raises:
            RuntimeError: If no edit is in progress.
        """
        if self.buffer is None:
            raise RuntimeError("Not editing; call start_edit() first")
        self.artifact.replace_content(self.buffer)
        self.code = self.buffer
        self.buffer = None
        if self.on_save is not None:
            self.on_save(self.artifact)
        logger.info(f"Saved edits to {self.artifact.name}")
        return self.artifact

    def cancel_edit(self) -> None:
        self.buffer = None

    # Copy / download

    def copy(self, clipboard: Callable[[str], None]) -> None:
        clipboard(self.displayed_code)
        self._copied_at = self.clock()

    @property
    def is_copied(self) -> bool:
        if self._copied_at is None:
            return False
        return self.clock() - self._copied_at < COPY_FEEDBACK_SECONDS

    def download_filename(self) -> str:
        """File name for downloads.

        Example:
            "Joe's Pizza - Modern Website" -> "Joe_s_Pizza_-_Modern_Website.html"
        """
        return _FILENAME_UNSAFE.sub("_", self.artifact.name) + ".html"

    def download(self, directory: Union[str, Path]) -> Path:
        """Write the current code to ``directory`` and return the file path."""
        path = Path(directory) / self.download_filename()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.code, encoding="utf-8")
        logger.info(f"Downloaded {self.artifact.name} to {path}")
        return path

    # Deploy

    async def deploy(self, provider: "DeploymentProvider") -> "DeploymentResult":
        """Deploy the current code, reporting failures in the result."""
        self.is_deploying = True
        try:
            return await provider.deploy(self.artifact, self.code)
        except (DeploymentError, OSError) as e:
            notice = handle_error(e, context={"artifact_id": self.artifact.id})
            return DeploymentResult(status=DeploymentStatus.ERROR, error=notice.message)
        finally:
            self.is_deploying = False


# ---------------------------------------------------------------------------
# Deployment
# ---------------------------------------------------------------------------


class DeploymentStatus(str, Enum):
    """Deployment status values."""

    PENDING = "pending"
    BUILDING = "building"
    READY = "ready"
    ERROR = "error"


@dataclass
class DeploymentResult:
    """Result of deploying an artifact.

    Attributes:
        deployment_id: Provider-specific deployment id.
        url: Where the deployment can be opened, if anywhere.
        project_name: Slug the artifact was deployed under.
        status: Final deployment status.
        created_at: When the deployment started.
        ready_at: When the deployment became ready.
        success: Whether the deployment succeeded.
        error: Error message if the deployment failed.
    """

    deployment_id: Optional[str] = None
    url: Optional[str] = None
    project_name: Optional[str] = None
    status: DeploymentStatus = DeploymentStatus.PENDING
    created_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    success: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "deployment_id": self.deployment_id,
            "url": self.url,
            "project_name": self.project_name,
            "status": self.status.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "ready_at": self.ready_at.isoformat() if self.ready_at else None,
            "success": self.success,
            "error": self.error,
        }


def project_slug(artifact: GeneratedArtifact) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", artifact.name.lower()).strip("-")
    return slug or artifact.id


class DeploymentProvider(Protocol):
    """Something that can publish an artifact's code."""

    async def deploy(self, artifact: GeneratedArtifact, code: str) -> DeploymentResult:
        ...


class SimulatedDeploymentProvider:
    """Pretends to deploy after a delay. No URL is produced."""

    def __init__(self, delay: Optional[float] = None):
        self.delay = config.DEPLOY_DELAY_SECONDS if delay is None else delay

    async def deploy(self, artifact: GeneratedArtifact, code: str) -> DeploymentResult:
        created = datetime.now(timezone.utc)
        await asyncio.sleep(self.delay)
        logger.info(f"Simulated deployment of {artifact.name}")
        return DeploymentResult(
            deployment_id=f"sim-{artifact.id}",
            project_name=project_slug(artifact),
            status=DeploymentStatus.READY,
            created_at=created,
            ready_at=datetime.now(timezone.utc),
            success=True,
        )


class LocalDirectoryDeploymentProvider:
    """Publishes an artifact as ``<output_dir>/<slug>/index.html``."""

    def __init__(self, output_dir: Optional[Union[str, Path]] = None):
        self.output_dir = Path(output_dir or config.DEPLOY_OUTPUT_DIR)

    async def deploy(self, artifact: GeneratedArtifact, code: str) -> DeploymentResult:
        created = datetime.now(timezone.utc)
        slug = project_slug(artifact)
        target = self.output_dir / slug / "index.html"

        def write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(code, encoding="utf-8")

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, write)

        logger.info(f"Deployed {artifact.name} to {target}")
        return DeploymentResult(
            deployment_id=f"local-{artifact.id}",
            url=target.resolve().as_uri(),
            project_name=slug,
            status=DeploymentStatus.READY,
            created_at=created,
            ready_at=datetime.now(timezone.utc),
            success=True,
        )
