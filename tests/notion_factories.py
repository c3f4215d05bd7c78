"""
Builders for Notion-shaped pages and in-memory fakes of the remote services.
"""
import json
from collections import Counter
from typing import Any, Dict, List, Optional, Set

import httpx

from estate_sync.core.api_errors import RemoteQueryError
from estate_sync.sources.notion.client import ContentStore
from estate_sync.sources.notion.extractors import RemoteRow, extract_plain_text, extract_relation_ids


def text_runs(text: str) -> List[Dict[str, Any]]:
    return [{"type": "text", "text": {"content": text}, "plain_text": text}]


def title(text: str) -> Dict[str, Any]:
    return {"type": "title", "title": text_runs(text)}


def rich_text(text: str) -> Dict[str, Any]:
    return {"type": "rich_text", "rich_text": text_runs(text)}


def number(value: float) -> Dict[str, Any]:
    return {"type": "number", "number": value}


def checkbox(value: bool) -> Dict[str, Any]:
    return {"type": "checkbox", "checkbox": value}


def select(name: str) -> Dict[str, Any]:
    return {"type": "select", "select": {"name": name}}


def url(value: str) -> Dict[str, Any]:
    return {"type": "url", "url": value}


def files(*urls: str) -> Dict[str, Any]:
    entries = []
    for i, u in enumerate(urls):
        if i % 2:
            entries.append({"name": u, "type": "file", "file": {"url": u, "expiry_time": "2030-01-01"}})
        else:
            entries.append({"name": u, "type": "external", "external": {"url": u}})
    return {"type": "files", "files": entries}


def relation(*ids: str) -> Dict[str, Any]:
    return {"type": "relation", "relation": [{"id": i} for i in ids]}


def page(page_id: str, **properties: Dict[str, Any]) -> Dict[str, Any]:
    return {"object": "page", "id": page_id, "properties": properties}


def listing_page(page_id: str, slug: Optional[str] = None, **extra: Dict[str, Any]) -> Dict[str, Any]:
    props: Dict[str, Any] = {"Name": title(f"Listing {page_id}")}
    if slug is not None:
        props["Slug"] = rich_text(slug)
    props.update(extra)
    return page(page_id, **props)


def child_page(child_id: str, parent_id: str, **properties: Dict[str, Any]) -> Dict[str, Any]:
    return page(child_id, Property=relation(parent_id), **properties)


def hotspots_json(*spots: Dict[str, Any]) -> str:
    return json.dumps(list(spots))


class FakeStore(ContentStore):
    """
    In-memory content store.

    Understands the two filters the pipeline sends (Slug equals, Property
    relation contains) and counts queries per collection.
    """

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            "properties": [],
            "amenities": [],
            "nearby_locations": [],
            "virtual_tour_scenes": [],
        }
        self.queries: Counter = Counter()
        self.calls: List[Dict[str, Any]] = []
        self.failing: Set[str] = set()
        self.closed = False

    def add(self, collection: str, *pages: Dict[str, Any]) -> None:
        self.tables[collection].extend(pages)

    async def query_collection(self, collection, filter=None, sorts=None):
        self.queries[collection] += 1
        self.calls.append({"collection": collection, "filter": filter, "sorts": sorts})
        if collection in self.failing:
            raise RemoteQueryError(f"Query on '{collection}' failed", collection=collection)

        rows = [RemoteRow.from_page(p) for p in self.tables[collection]]
        if filter and "rich_text" in filter:
            wanted = filter["rich_text"]["equals"]
            rows = [r for r in rows if extract_plain_text(r.get(filter["property"])) == wanted]
        elif filter and "relation" in filter:
            parent = filter["relation"]["contains"]
            rows = [r for r in rows if parent in extract_relation_ids(r.get(filter["property"]))]
        return rows

    async def close(self):
        self.closed = True


class ImageServer:
    """Serves fake image bytes over an httpx.MockTransport and records hits."""

    def __init__(self):
        self.hits: Counter = Counter()
        self.failing: Set[str] = set()
        self.broken: Set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        target = str(request.url)
        self.hits[target] += 1
        if target in self.broken:
            raise httpx.ConnectError("connection refused", request=request)
        if target in self.failing:
            return httpx.Response(404, content=b"not found")
        return httpx.Response(200, content=b"IMG:" + target.encode())

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def total_hits(self) -> int:
        return sum(self.hits.values())
