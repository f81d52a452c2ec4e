"""Core constants used across Jmake modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

DEFAULT_MANIFEST_PATH = "./jmakefile.yml"
DEFAULT_CONTEXT_PATH = "./"
DEFAULT_CONTAINERS_LOCATION = "zroot/jmake/containers"
DEFAULT_VOLUMES_LOCATION = "zroot/jmake/volumes"
DEFAULT_SNAPSHOT_NAME = "jmake"
DEFAULT_JAIL_CONF_DIR = "/etc/jail.conf.d"
DEFAULT_CONTEXT_MOUNT_PATH = "media/context"
DEFAULT_WORKDIR = "/"
MANIFEST_FILE_NAME = "manifest.json"
ROOTFS_DIR_NAME = "rootfs"
MOUNTPOINT_PROPERTY = "mountpoint"
JAIL_CONF_SUFFIX = ".conf"
BASE_IMAGE_PATTERN = r"^(\w+)(-([\w.]+))?$"
BASE_RELEASE_RULES = ("osreldate", "osrelease")
INHERITED_NETWORK_MODE = "inherit"
CONTEXT_MOUNT_OPTIONS = ("ro",)
INITIAL_WORKDIR_STEP_INDEX = 0
