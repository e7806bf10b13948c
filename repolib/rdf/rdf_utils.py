"""
RDF Utilities for the repository client

Parsing and serialization of repository metadata and resource subgraph copies.
"""

import logging
from typing import Iterable, Optional, Union

from rdflib import BNode, Graph, URIRef
from rdflib.term import Node
from rdflib.resource import Resource

from ..utils.client_utils import ParseFailure

logger = logging.getLogger(__name__)

NTRIPLES = 'application/n-triples'

_CONTENT_TYPE_TO_FORMAT = {
    'application/n-triples': 'nt',
    'text/plain': 'nt',
    'text/turtle': 'turtle',
    'application/x-turtle': 'turtle',
    'text/n3': 'n3',
    'application/rdf+xml': 'xml',
    'application/ld+json': 'json-ld',
    'application/trig': 'trig',
    'application/n-quads': 'nquads',
}


def get_content_format(content_type: Optional[str]) -> str:
    """Map a Content-Type header value to an rdflib format name (N-Triples by default)."""
    if not content_type:
        return 'nt'
    mime = content_type.split(';')[0].strip().lower()
    return _CONTENT_TYPE_TO_FORMAT.get(mime, 'nt')


def parse_graph(body: Union[bytes, str, None], content_type: Optional[str]) -> Graph:
    """
    Parse a response body into an RDF graph.

    Args:
        body: Response body
        content_type: Declared content type of the body

    Returns:
        Parsed graph

    Raises:
        ParseFailure: If the body can't be decoded in the declared format
    """
    graph = Graph()
    if not body:
        return graph
    rdf_format = get_content_format(content_type)
    try:
        graph.parse(data=body, format=rdf_format)
    except Exception as e:
        logger.error(f"Failed to parse {rdf_format} metadata: {e}")
        raise ParseFailure(f"Response can't be parsed as {content_type or rdf_format}: {e}") from e
    return graph


def serialize_graph(graph: Graph) -> bytes:
    """Serialize a graph to UTF-8 N-Triples."""
    return graph.serialize(format='nt', encoding='utf-8')


def copy_subjects(graph: Graph, subjects: Iterable[Node]) -> Graph:
    """Copy the triples of the given subjects into a new graph, following blank node objects."""
    result = Graph()
    pending = list(subjects)
    seen = set()
    while pending:
        node = pending.pop()
        if node in seen:
            continue
        seen.add(node)
        for predicate, obj in graph.predicate_objects(node):
            result.add((node, predicate, obj))
            if isinstance(obj, BNode):
                pending.append(obj)
    return result


def copy_resource(resource: Resource, uri: Optional[str] = None) -> Resource:
    """
    Deep-copy a resource's own triples into a new graph.

    Blank node objects are copied recursively.

    Args:
        resource: Source resource
        uri: Optional new subject for the copy

    Returns:
        Resource in a fresh graph
    """
    source = resource.graph
    subject = resource.identifier
    target = URIRef(uri) if uri is not None else subject

    graph = Graph()
    pending = [(subject, target)]
    seen = set()
    while pending:
        src, dst = pending.pop()
        if src in seen:
            continue
        seen.add(src)
        for predicate, obj in source.predicate_objects(src):
            if obj == subject:
                obj = target
            graph.add((dst, predicate, obj))
            if isinstance(obj, BNode):
                pending.append((obj, obj))
    return graph.resource(target)
