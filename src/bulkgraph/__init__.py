"""bulkgraph - Bulk-load CSV nodes and relationships into Neo4j with streamed progress."""

from bulkgraph.api import BulkGraphAPI, BulkGraphConfig
from bulkgraph.ingestion.pipeline import UploadPipeline
from bulkgraph.models import ConnectionDescriptor, EntityKind, RawFile

__all__ = [
    "BulkGraphAPI",
    "BulkGraphConfig",
    "UploadPipeline",
    "ConnectionDescriptor",
    "EntityKind",
    "RawFile",
]
