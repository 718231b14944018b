"""Filesystem and executable adapters used by the lifecycle controller."""
