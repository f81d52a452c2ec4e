"""Public SDK surface for Jmake.

This module provides a stable import path for scripted builds.
It re-exports the build entry points and typed models.
"""

from __future__ import annotations

from builder.image_build import ImageBuildRunner, build_image, validate_manifest
from builder.transaction import FunctionAction, TransactionalInvoker
from core.config import JmakeConfig
from core.manifest import Manifest, load_manifest
from core.types import BuildOptions, BuildResult

__all__ = [
    "BuildOptions",
    "BuildResult",
    "FunctionAction",
    "ImageBuildRunner",
    "JmakeConfig",
    "Manifest",
    "TransactionalInvoker",
    "build_image",
    "load_manifest",
    "validate_manifest",
]
