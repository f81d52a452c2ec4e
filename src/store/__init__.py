"""Host storage and isolation layer.

This module wraps copy-on-write datasets, bind mounts and jails
behind small protocols consumed by the image builder.
"""
