from __future__ import annotations

"""SPARQL query templates keyed on the ``${iri}`` marker."""

from dataclasses import dataclass
from typing import Iterator

PLACEHOLDER = "${iri}"


@dataclass(frozen=True, slots=True)
class QueryTemplate:
    name: str
    text: str

    def render(self, iri: str) -> str:
        """Replace every ``${iri}`` marker with ``iri``.

        The substitution is literal: no escaping is applied and no other
        placeholders are recognised.
        """

        return self.text.replace(PLACEHOLDER, iri)


@dataclass(frozen=True, slots=True)
class TemplateSet:
    """Existence and graph templates for resources and containers."""

    resource_exists: QueryTemplate
    resource_graph: QueryTemplate
    container_exists: QueryTemplate
    container_graph: QueryTemplate

    @classmethod
    def from_strings(
        cls,
        *,
        resource_exists: str,
        resource_graph: str,
        container_exists: str,
        container_graph: str,
    ) -> "TemplateSet":
        return cls(
            resource_exists=QueryTemplate("resource_exists", resource_exists),
            resource_graph=QueryTemplate("resource_graph", resource_graph),
            container_exists=QueryTemplate("container_exists", container_exists),
            container_graph=QueryTemplate("container_graph", container_graph),
        )

    def exists_for(self, container: bool) -> QueryTemplate:
        return self.container_exists if container else self.resource_exists

    def graph_for(self, container: bool) -> QueryTemplate:
        return self.container_graph if container else self.resource_graph

    def __iter__(self) -> Iterator[QueryTemplate]:
        yield self.resource_exists
        yield self.resource_graph
        yield self.container_exists
        yield self.container_graph

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(t.name for t in self)


__all__ = ["PLACEHOLDER", "QueryTemplate", "TemplateSet"]
