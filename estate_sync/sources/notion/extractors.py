"""
Typed value extraction from Notion property bags.

Every Notion page carries a mapping of property name -> property value,
where each value is a dict tagged by its "type" key ("title", "rich_text",
"number", "select", "files", ...). The functions here are the only place
that looks at those raw shapes. Each one returns a plain Python value and
falls back to a documented default when the property is absent or
malformed. None of them raise.
"""
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


class PropertyType(str, Enum):
    """Notion property type tags understood by the pipeline."""
    TITLE = "title"
    RICH_TEXT = "rich_text"
    NUMBER = "number"
    CHECKBOX = "checkbox"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    URL = "url"
    EMAIL = "email"
    PHONE_NUMBER = "phone_number"
    DATE = "date"
    FILES = "files"
    RELATION = "relation"


@dataclass(frozen=True)
class RemoteRow:
    """One page returned by a collection query."""
    id: str
    properties: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_page(cls, page: Mapping[str, Any]) -> "RemoteRow":
        props = page.get("properties")
        if not isinstance(props, Mapping):
            props = {}
        return cls(id=str(page.get("id", "")), properties=dict(props))

    def get(self, name: str) -> Optional[Mapping[str, Any]]:
        value = self.properties.get(name)
        return value if isinstance(value, Mapping) else None

    def find_by_type(self, prop_type: PropertyType) -> Optional[Mapping[str, Any]]:
        """Return the first property whose type tag matches, whatever its name."""
        for value in self.properties.values():
            if isinstance(value, Mapping) and value.get("type") == prop_type.value:
                return value
        return None


def _inner(prop: Any, key: str) -> Any:
    if not isinstance(prop, Mapping):
        return None
    return prop.get(key)


def extract_plain_text(prop: Any) -> str:
    """
    Concatenate the plain text of every text run, in order.

    Accepts a rich_text/title property value or a bare list of runs.
    """
    if isinstance(prop, Mapping):
        runs = prop.get("rich_text")
        if runs is None:
            runs = prop.get("title")
    else:
        runs = prop
    if not isinstance(runs, list):
        return ""

    parts = []
    for run in runs:
        if not isinstance(run, Mapping):
            continue
        text = run.get("plain_text")
        if text is None:
            text = _inner(run.get("text"), "content")
        if isinstance(text, str):
            parts.append(text)
    return "".join(parts)


def extract_number(prop: Any) -> float:
    value = _inner(prop, "number")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def extract_boolean(prop: Any) -> bool:
    value = _inner(prop, "checkbox")
    return value if isinstance(value, bool) else False


def extract_select(prop: Any) -> str:
    name = _inner(_inner(prop, "select"), "name")
    return name if isinstance(name, str) else ""


def extract_multi_select(prop: Any) -> List[str]:
    options = _inner(prop, "multi_select")
    if not isinstance(options, list):
        return []
    return [
        option["name"] for option in options
        if isinstance(option, Mapping) and isinstance(option.get("name"), str)
    ]


def _scalar(prop: Any, key: str) -> str:
    value = _inner(prop, key)
    return value if isinstance(value, str) else ""


def extract_url(prop: Any) -> str:
    return _scalar(prop, "url")


def extract_email(prop: Any) -> str:
    return _scalar(prop, "email")


def extract_phone(prop: Any) -> str:
    return _scalar(prop, "phone_number")


def extract_date(prop: Any) -> str:
    start = _inner(_inner(prop, "date"), "start")
    return start if isinstance(start, str) else ""


def extract_files(prop: Any) -> List[str]:
    """
    Resolve a files property to its URLs, in order.

    External entries carry the URL directly; uploaded files carry it in a
    hosted-file descriptor. Entries that resolve to nothing are dropped.
    """
    files = _inner(prop, "files")
    if not isinstance(files, list):
        return []

    urls = []
    for entry in files:
        if not isinstance(entry, Mapping):
            continue
        kind = entry.get("type")
        if kind == "external":
            url = _inner(entry.get("external"), "url")
        elif kind == "file":
            url = _inner(entry.get("file"), "url")
        else:
            url = None
        if isinstance(url, str) and url:
            urls.append(url)
    return urls


def extract_relation_ids(prop: Any) -> List[str]:
    relations = _inner(prop, "relation")
    if not isinstance(relations, list):
        return []
    return [
        rel["id"] for rel in relations
        if isinstance(rel, Mapping) and isinstance(rel.get("id"), str)
    ]


EXTRACTORS: Dict[PropertyType, Callable[[Any], Any]] = {
    PropertyType.TITLE: extract_plain_text,
    PropertyType.RICH_TEXT: extract_plain_text,
    PropertyType.NUMBER: extract_number,
    PropertyType.CHECKBOX: extract_boolean,
    PropertyType.SELECT: extract_select,
    PropertyType.MULTI_SELECT: extract_multi_select,
    PropertyType.URL: extract_url,
    PropertyType.EMAIL: extract_email,
    PropertyType.PHONE_NUMBER: extract_phone,
    PropertyType.DATE: extract_date,
    PropertyType.FILES: extract_files,
    PropertyType.RELATION: extract_relation_ids,
}


def extract_title(row: RemoteRow) -> str:
    """Text of the row's title-type property, located by type not name."""
    return extract_plain_text(row.find_by_type(PropertyType.TITLE))


def extract_text_value(prop: Any) -> str:
    """
    Text of a property whichever type it was given in the schema.

    Databases drift: a phone column may be phone_number in one workspace
    and rich_text in another. Dispatches on the property's own type tag.
    """
    tag = _inner(prop, "type")
    try:
        extractor = EXTRACTORS[PropertyType(tag)]
    except ValueError:
        return extract_plain_text(prop)
    value = extractor(prop)
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(int(value)) if float(value).is_integer() else str(value)
    return value


def first_present(row: RemoteRow, *names: str) -> Optional[Mapping[str, Any]]:
    """First of several historical names for a field that the row has."""
    for name in names:
        prop = row.get(name)
        if prop is not None:
            return prop
    return None


_NON_SLUG_RE = re.compile(r"[^a-z0-9-]")
_WHITESPACE_RE = re.compile(r"\s+")
_HYPHENS_RE = re.compile(r"-{2,}")


def slugify(text: str) -> str:
    """
    Lowercase, hyphenate whitespace, drop anything outside [a-z0-9-],
    collapse repeated hyphens and trim them from both ends.

    >>> slugify("Rooftop Pool!")
    'rooftop-pool'
    """
    slug = _WHITESPACE_RE.sub("-", (text or "").strip().lower())
    slug = _NON_SLUG_RE.sub("", slug)
    slug = _HYPHENS_RE.sub("-", slug)
    return slug.strip("-")
