"""Jail sandbox runtime.

This module materializes per-image ``jail.conf`` files from manifest
rules and starts or stops jails with the ``jail`` command.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Protocol

from core.config import JmakeConfig
from core.constants import JAIL_CONF_SUFFIX
from core.logging_config import get_logger
from store.command_runner import CommandRunner, run_command

_LOGGER = get_logger(__name__)


class SandboxRuntime(Protocol):
    """Sandbox lifecycle operations consumed by the builder."""

    def config_file(self, name: str) -> Path: ...

    def write_config(self, name: str, rules: Mapping[str, Any]) -> Path: ...

    def remove_config(self, name: str) -> None: ...

    def start(self, name: str) -> None: ...

    def stop(self, name: str) -> None: ...


class JailRuntime:
    """Sandbox runtime implemented with FreeBSD jails."""

    def __init__(self, config: JmakeConfig, runner: CommandRunner = run_command) -> None:
        self._conf_dir = config.jail_conf_dir
        self._run = runner

    def config_file(self, name: str) -> Path:
        """Return the configuration file path for a jail name."""
        return self._conf_dir / f"{name}{JAIL_CONF_SUFFIX}"

    def write_config(self, name: str, rules: Mapping[str, Any]) -> Path:
        """Render rules into the jail configuration file.

        Args:
            name: Jail name.
            rules: Jail parameters.

        Returns:
            Written configuration path.
        """
        conf_file = self.config_file(name)
        conf_file.parent.mkdir(parents=True, exist_ok=True)
        conf_file.write_text(render_jail_config(name, rules), encoding="utf-8")
        _LOGGER.info("jail_config_written", jail=name, path=str(conf_file))
        return conf_file

    def remove_config(self, name: str) -> None:
        """Delete the configuration file if present."""
        self.config_file(name).unlink(missing_ok=True)

    def start(self, name: str) -> None:
        """Create and start the jail."""
        self._run(["jail", "-f", str(self.config_file(name)), "-c", name])
        _LOGGER.info("jail_started", jail=name)

    def stop(self, name: str) -> None:
        """Stop and remove the running jail."""
        self._run(["jail", "-f", str(self.config_file(name)), "-r", name])
        _LOGGER.info("jail_stopped", jail=name)


def render_jail_config(name: str, rules: Mapping[str, Any]) -> str:
    """Render one ``jail.conf`` block.

    ``True`` becomes a bare parameter, ``False`` the ``no``-prefixed form,
    empty lists are omitted.

    Args:
        name: Jail name.
        rules: Jail parameters.

    Returns:
        Configuration text.
    """
    lines = [f"{name} {{"]
    for key in sorted(rules):
        line = _render_rule(key, rules[key])
        if line is not None:
            lines.append(f"    {line}")
    lines.append("}")
    return "\n".join(lines) + "\n"


def _render_rule(key: str, value: Any) -> str | None:
    if isinstance(value, bool):
        return f"{key};" if value else f"{_negate_parameter(key)};"
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        return f"{key} = {', '.join(_render_value(item) for item in value)};"
    if value is None:
        return None
    return f"{key} = {_render_value(value)};"


def _render_value(value: Any) -> str:
    if isinstance(value, int):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _negate_parameter(key: str) -> str:
    prefix, _, leaf = key.rpartition(".")
    return f"{prefix}.no{leaf}" if prefix else f"no{leaf}"
