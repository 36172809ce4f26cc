"""Inbound JSON form payloads for nested project saves."""

from __future__ import annotations

from .schema import MembershipAttributes, ProjectAttributes, ProjectPayload, TaskAttributes
from .translator import ProjectForm, load_payload, parse_payload, translate_payload

__all__ = [
    "MembershipAttributes",
    "ProjectAttributes",
    "ProjectForm",
    "ProjectPayload",
    "TaskAttributes",
    "load_payload",
    "parse_payload",
    "translate_payload",
]
