"""Closed registry of build instructions.

This module maps instruction names onto step classes and validates a
manifest before any host resource is touched.
"""

from __future__ import annotations

from typing import Mapping

from builder.build_context import BuildContext
from builder.build_step import BuildStep
from builder.copy_step import CopyStep
from builder.volume_step import VolumeStep
from builder.workdir_step import WorkdirStep
from core.errors import JmakeConfigurationError
from core.manifest import BuildInstruction, Manifest

STEP_REGISTRY: Mapping[str, type[BuildStep]] = {
    CopyStep.instruction: CopyStep,
    VolumeStep.instruction: VolumeStep,
    WorkdirStep.instruction: WorkdirStep,
}


def supported_instructions() -> tuple[str, ...]:
    """Return registered instruction names in sorted order."""
    return tuple(sorted(STEP_REGISTRY))


def step_class(instruction: str) -> type[BuildStep]:
    """Look up the step class of an instruction.

    Raises:
        JmakeConfigurationError: If the instruction is not registered.
    """
    try:
        return STEP_REGISTRY[instruction]
    except KeyError as error:
        raise JmakeConfigurationError(
            f"Unsupported instruction '{instruction}'. "
            f"Use one of: {', '.join(supported_instructions())}."
        ) from error


def validate_instructions(manifest: Manifest) -> None:
    """Check every manifest instruction name and argument shape.

    Args:
        manifest: Loaded build manifest.

    Raises:
        JmakeConfigurationError: On the first invalid instruction.
    """
    WorkdirStep.parse_args(manifest.workdir)
    for index, instruction in enumerate(manifest.building):
        try:
            step_class(instruction.name).parse_args(instruction.args)
        except JmakeConfigurationError as error:
            raise JmakeConfigurationError(
                f"Invalid build step #{index + 1} ({instruction.name}): {error}"
            ) from error


def create_step(instruction: BuildInstruction, context: BuildContext) -> BuildStep:
    """Instantiate the step for one manifest instruction."""
    return step_class(instruction.name)(context)
