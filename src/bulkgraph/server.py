"""FastAPI application exposing uploads and connection checks over HTTP."""

import logging
from typing import Iterator, List, Optional

from fastapi import FastAPI, File, Header, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse

from bulkgraph.api import BulkGraphAPI
from bulkgraph.exceptions import BulkGraphError, InternalFailure
from bulkgraph.models import ConnectionDescriptor, ProgressEvent, RawFile

logger = logging.getLogger(__name__)

STREAM_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


def stream_lines(events: Iterator[ProgressEvent]) -> Iterator[str]:
    """Serialize events as newline-delimited JSON, closing the run when done."""
    try:
        for event in events:
            yield event.to_json_line()
    finally:
        close = getattr(events, "close", None)
        if close is not None:
            close()


async def read_files(files: Optional[List[UploadFile]]) -> List[RawFile]:
    raw_files = []
    for upload in files or []:
        raw_files.append(RawFile(name=upload.filename or "upload.csv", content=await upload.read()))
    return raw_files


def error_response(error: BulkGraphError) -> JSONResponse:
    return JSONResponse({"error": error.to_payload()}, status_code=error.status_code)


def create_app(api: Optional[BulkGraphAPI] = None) -> FastAPI:
    """Build the HTTP application.

    Args:
        api: Facade to serve (configured from the environment if None)

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="bulkgraph",
        description="Bulk-load CSV nodes and relationships into Neo4j",
        version="0.1.0",
    )
    app.state.api = api or BulkGraphAPI()

    @app.get("/health")
    def health():
        return {"status": "ok", "service": "bulkgraph"}

    @app.post("/api/upload-node")
    async def upload_node(
        files: Optional[List[UploadFile]] = File(None),
        x_neo4j_url: Optional[str] = Header(None),
        x_neo4j_username: Optional[str] = Header(None),
        x_neo4j_password: Optional[str] = Header(None),
    ):
        connection = ConnectionDescriptor(
            uri=x_neo4j_url or "", username=x_neo4j_username or "", password=x_neo4j_password or ""
        )
        events = app.state.api.upload_nodes(await read_files(files), connection)
        return StreamingResponse(
            stream_lines(events), media_type="text/event-stream", headers=STREAM_HEADERS
        )

    @app.post("/api/upload-relationship")
    async def upload_relationship(
        files: Optional[List[UploadFile]] = File(None),
        x_neo4j_url: Optional[str] = Header(None),
        x_neo4j_username: Optional[str] = Header(None),
        x_neo4j_password: Optional[str] = Header(None),
    ):
        connection = ConnectionDescriptor(
            uri=x_neo4j_url or "", username=x_neo4j_username or "", password=x_neo4j_password or ""
        )
        events = app.state.api.upload_relationships(await read_files(files), connection)
        return StreamingResponse(
            stream_lines(events), media_type="text/event-stream", headers=STREAM_HEADERS
        )

    @app.post("/api/check-connection")
    async def check_connection(request: Request):
        try:
            body = await request.json()
            if not isinstance(body, dict):
                body = {}
            result = app.state.api.check_connection(
                body.get("connectionUrl"), body.get("username"), body.get("password")
            )
        except BulkGraphError as e:
            return error_response(e)
        except Exception as e:
            logger.error(f"Unexpected error during connection check: {e}")
            return error_response(InternalFailure(str(e)))
        return JSONResponse(result, status_code=200)

    return app
