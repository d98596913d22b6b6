"""Spec-Kit Manager: find Spec-Kit projects, detect their stage, rank them by priority and report on them."""

__version__ = "1.0.0"