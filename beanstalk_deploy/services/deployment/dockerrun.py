"""Dockerrun.aws.json bundle rendering."""

from __future__ import annotations

import json
import re
from typing import Optional

DOCKERRUN_FILENAME = "Dockerrun.aws.json"
DEFAULT_CONTAINER_PORT = 8000
DEFAULT_LOG_PATH = "/var/log/nginx"


def _placeholder(name: str) -> re.Pattern:
    return re.compile(r"\{\{\s*" + name + r"\s*\}\}")


def default_dockerrun(ecr_registry: str, application: str, version_label: str) -> str:
    """Single container definition pulling ``<registry>/<application>:<version>``."""
    document = {
        "AWSEBDockerrunVersion": "1",
        "Image": {
            "Name": f"{ecr_registry}/{application}:{version_label}",
            "Update": "true",
        },
        "Ports": [
            {"ContainerPort": DEFAULT_CONTAINER_PORT, "HostPort": DEFAULT_CONTAINER_PORT}
        ],
        "Logging": DEFAULT_LOG_PATH,
    }
    return json.dumps(document, indent=4)


def render_dockerrun(
    template: Optional[str],
    *,
    ecr_registry: str,
    application: str,
    environment: str,
    version_label: str,
) -> str:
    """Render the bundle uploaded for a new version.

    Without a template the default single container definition is used.
    Otherwise the ``{{ ECR_REGISTRY }}``, ``{{ APPLICATION_NAME }}``,
    ``{{ ENVIRONMENT_NAME }}`` and ``{{ VERSION_LABEL }}`` placeholders are
    substituted.

    Args:
        template: User supplied Dockerrun.aws.json content, or None
        ecr_registry: Container registry host
        application: Application name
        environment: Environment name
        version_label: Version label being deployed

    Returns:
        Dockerrun.aws.json content
    """
    if not template:
        return default_dockerrun(ecr_registry, application, version_label)

    replacements = {
        "ECR_REGISTRY": ecr_registry,
        "APPLICATION_NAME": application,
        "ENVIRONMENT_NAME": environment,
        "VERSION_LABEL": version_label,
    }
    rendered = template
    for name, value in replacements.items():
        rendered = _placeholder(name).sub(lambda _match: value, rendered)
    return rendered


def bundle_key(application: str, version_label: str) -> str:
    """Storage key of the bundle, with a leading slash."""
    return f"/{application}/{version_label}/{DOCKERRUN_FILENAME}"
