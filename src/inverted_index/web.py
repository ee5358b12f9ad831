"""Starlette front end exposing search over HTTP.

Routes:
    GET /            minimal HTML search form
    GET /search?q=   JSON ranked results
    GET /health      engine and liveness info
    GET /metrics     Prometheus exposition
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import html
import logging

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, Response
from starlette.routing import Route

from inverted_index.observability.metrics import get_metrics, get_metrics_content_type
from inverted_index.observability.tracing import TraceContextMiddleware
from inverted_index.search.index import InvertedIndex


logger = logging.getLogger(__name__)

_PAGE = """<!doctype html>
<html>
  <head><meta charset="utf-8"><title>Search</title></head>
  <body>
    <form action="/" method="get">
      <input type="text" name="q" value="{query}" autofocus>
      <button type="submit">Search</button>
    </form>
    {body}
  </body>
</html>
"""


def create_app(index: InvertedIndex, *, close_on_shutdown: bool = True) -> Starlette:
    """Build the ASGI application around an already constructed index."""

    def index_page(request: Request) -> HTMLResponse:
        query = request.query_params.get("q", "").strip()
        body = ""
        if query:
            try:
                results = index.search(query)
            except Exception:
                logger.exception("Search failed for %r", query)
                body = f"<p>Error searching for {html.escape(query)}.</p>"
            else:
                if results:
                    items = "".join(
                        f"<li>{html.escape(result.document.name)} ({result.score})</li>" for result in results
                    )
                    body = f"<ol>{items}</ol>"
                else:
                    body = "<p>No documents found.</p>"
        return HTMLResponse(_PAGE.format(query=html.escape(query, quote=True), body=body))

    def search_endpoint(request: Request) -> JSONResponse:
        query = request.query_params.get("q", "").strip()
        if not query:
            return JSONResponse({"error": "Missing query parameter 'q'"}, status_code=400)
        try:
            results = index.search(query)
        except Exception as exc:
            logger.exception("Search failed for %r", query)
            return JSONResponse({"query": query, "error": str(exc)}, status_code=500)
        return JSONResponse({"query": query, "results": [result.to_dict() for result in results]})

    def health_check(request: Request) -> JSONResponse:
        return JSONResponse({"status": "healthy", "engine": index.engine.name})

    def metrics_endpoint(request: Request) -> Response:
        return Response(get_metrics(), media_type=get_metrics_content_type())

    @asynccontextmanager
    async def lifespan(app: Starlette):
        yield
        if close_on_shutdown:
            logger.info("Shutting down; draining ingestion and closing engine")
            index.close()

    routes = [
        Route("/", endpoint=index_page, methods=["GET"]),
        Route("/search", endpoint=search_endpoint, methods=["GET"]),
        Route("/health", endpoint=health_check, methods=["GET"]),
        Route("/metrics", endpoint=metrics_endpoint, methods=["GET"]),
    ]
    return Starlette(routes=routes, middleware=[Middleware(TraceContextMiddleware)], lifespan=lifespan)
