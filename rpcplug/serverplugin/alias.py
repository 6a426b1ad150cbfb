"""Rename incoming service paths and methods, and restore them on reply."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Metadata key set on a request whose path and method were rewritten.
ALIAS_APPLIED_KEY = "__aliasAppliedKey"


@dataclass(frozen=True)
class _AliasPair:
    service_path: str
    service_method: str


class AliasPlugin:
    """Maps alias ``path.method`` names onto real services and back.

    Requests and responses are any objects with ``service_path``,
    ``service_method`` and ``metadata`` (a dict or None) attributes.
    """

    def __init__(self) -> None:
        self.aliases: dict[str, _AliasPair] = {}
        self.reverse_aliases: dict[str, _AliasPair] = {}

    def alias(
        self,
        alias_service_path: str,
        alias_service_method: str,
        service_path: str,
        service_method: str,
    ) -> None:
        """Make ``alias_service_path.alias_service_method`` call the given service."""
        self.aliases[f"{alias_service_path}.{alias_service_method}"] = _AliasPair(
            service_path, service_method
        )
        self.reverse_aliases[f"{service_path}.{service_method}"] = _AliasPair(
            alias_service_path, alias_service_method
        )

    def post_read_request(self, ctx: Any, request: Any, error: Any) -> None:
        """Replace an aliased path and method with the real ones."""
        pair = self.aliases.get(f"{request.service_path}.{request.service_method}")
        if pair is None:
            return
        request.service_path = pair.service_path
        request.service_method = pair.service_method
        if request.metadata is None:
            request.metadata = {}
        request.metadata[ALIAS_APPLIED_KEY] = "true"

    def pre_write_response(self, ctx: Any, request: Any, response: Any) -> None:
        """Put the alias names back on the request and its response."""
        metadata = request.metadata or {}
        if metadata.get(ALIAS_APPLIED_KEY) != "true":
            return
        pair = self.reverse_aliases.get(
            f"{request.service_path}.{request.service_method}"
        )
        if pair is None:
            return
        request.service_path = pair.service_path
        request.service_method = pair.service_method
        metadata.pop(ALIAS_APPLIED_KEY, None)
        if response is not None:
            response.service_path = pair.service_path
            response.service_method = pair.service_method