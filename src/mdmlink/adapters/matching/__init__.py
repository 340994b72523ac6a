"""Matching providers that run inside the process."""

from __future__ import annotations

from .attribute import AttributeMatcher, attribute_matcher_factory

__all__ = ["AttributeMatcher", "attribute_matcher_factory"]
