"""Clawcker: local container manager for isolated OpenClaw instances."""
