"""Version release: bundle rendering, upload, activation."""

from .dockerrun import bundle_key, default_dockerrun, render_dockerrun
from .service import DeploymentOutcome, DeploymentService

__all__ = [
    "DeploymentOutcome",
    "DeploymentService",
    "bundle_key",
    "default_dockerrun",
    "render_dockerrun",
]
