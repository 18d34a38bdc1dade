"""Data models for gitmaze."""

from .commit import Commit
from .layout import LayoutNode
from .reference import HeadRef, RefType

__all__ = ["Commit", "HeadRef", "LayoutNode", "RefType"]
