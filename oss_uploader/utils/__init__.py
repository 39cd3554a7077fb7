"""Utilities for oss_uploader."""
