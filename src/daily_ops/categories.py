"""Category hierarchy resolution and Food/Beverage division classification.

Product groups form a user-maintained tree referenced by parent name and/or
parent id. The tree may be incomplete, inconsistent or even cyclic, so the
resolver walks parents with a hard depth bound and always returns an answer.

The hierarchy is handed to each batch as an explicit CategorySnapshot. The
snapshot is immutable and carries a content hash (``version``) that is
recorded on every aggregate built from it.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Optional

from daily_ops.config import DEFAULT_MAX_CATEGORY_DEPTH
from daily_ops.normalize.cleaning import clean_text, normalize_name
from daily_ops.normalize.fields import CATEGORY_FIELDS, normalize_record

logger = logging.getLogger(__name__)

BEVERAGE = "Beverage"
FOOD = "Food"

DIVISION_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (BEVERAGE, ("bar", "drink", "beverage", "drank", "wijn", "wine", "bier", "beer")),
    (FOOD, ("keuken", "kitchen", "food", "eten")),
)
_WORD_RE = re.compile(r"[a-z0-9]+")
_INFLECTIONS = ("s", "es", "en", "n")
# shorter keywords only match as a whole word or at the end of a compound
_MIN_PREFIX_KEYWORD = 4


@dataclass(frozen=True)
class CategoryNode:
    """One product group from the reference table."""

    id: Optional[str]
    name: Optional[str]
    parent_id: Optional[str] = None
    parent_name: Optional[str] = None
    level: Optional[int] = None

    @property
    def has_parent(self) -> bool:
        return bool(self.parent_id or self.parent_name)


@dataclass(frozen=True)
class CategoryResolution:
    """Result of resolving a leaf category.

    Attributes:
        main_category: Root category name, or None when none can be determined.
        category: The leaf category name.
        source: Which rule produced the answer: "unmapped" (leaf not in the
            table), "root" (leaf is a root), "no_main" (parentless leaf below
            level 1), "chain" (a true root was reached), "missing_parent"
            (a parent reference could not be found) or "depth_limit".
    """

    main_category: Optional[str]
    category: str
    source: str


def resolve_main_category(
    leaf: str,
    nodes_by_name: Mapping[str, CategoryNode],
    nodes_by_id: Mapping[str, CategoryNode],
    max_depth: int = DEFAULT_MAX_CATEGORY_DEPTH,
) -> CategoryResolution:
    """Find the main (root) category of a leaf category.

    Rules:
    - A leaf absent from the table is its own category and main category.
    - A parentless leaf is its own root, unless it carries level metadata
      other than 1, in which case it has no main category.
    - Otherwise parents are followed (by name first, then by id), remembering
      the last resolved ancestor. The walk stops at a parentless node (the
      root), at a parent that cannot be found (last ancestor, else the
      immediate parent's name), or after max_depth hops (last ancestor).

    Args:
        leaf: Leaf category name.
        nodes_by_name: Nodes keyed by group name.
        nodes_by_id: Nodes keyed by group id.
        max_depth: Maximum number of parent hops.

    Returns:
        CategoryResolution.

    Examples:
        >>> bar = CategoryNode("1", "Bar", level=1)
        >>> beer = CategoryNode("2", "Bier", parent_name="Bar", level=2)
        >>> resolve_main_category("Bier", {"Bar": bar, "Bier": beer}, {})
        CategoryResolution(main_category='Bar', category='Bier', source='chain')

    """
    node = nodes_by_name.get(leaf)
    if node is None:
        return CategoryResolution(leaf, leaf, "unmapped")

    if not node.has_parent:
        if node.level is None or node.level == 1:
            return CategoryResolution(leaf, leaf, "root")
        return CategoryResolution(None, leaf, "no_main")

    current = node
    root: Optional[str] = None
    for _ in range(max_depth):
        parent = nodes_by_name.get(current.parent_name) if current.parent_name else None
        if parent is None and current.parent_id:
            parent = nodes_by_id.get(current.parent_id)

        if parent is None:
            return CategoryResolution(root or current.parent_name, leaf, "missing_parent")

        ancestor = parent.name or current.parent_name
        if not parent.has_parent:
            return CategoryResolution(ancestor, leaf, "chain")

        root = ancestor
        current = parent

    logger.debug("Category '%s' exceeded depth %d while resolving its root", leaf, max_depth)
    if root:
        return CategoryResolution(root, leaf, "depth_limit")
    if node.parent_name:
        return CategoryResolution(node.parent_name, leaf, "depth_limit")
    if node.level == 1:
        return CategoryResolution(leaf, leaf, "depth_limit")
    return CategoryResolution(None, leaf, "depth_limit")


def _word_matches(word: str, keyword: str) -> bool:
    """Whether one word of a category name stands for the keyword.

    Plurals ("dranken", "wijnen") and compounds ending in the keyword
    ("speciaalbier") match; words merely containing it ("barbecue",
    "zeebaars") do not. Keywords of four letters or more also match as the
    head of a compound ("wijnkaart").
    """
    if word == keyword or word.endswith(keyword):
        return True
    if any(word == keyword + suffix for suffix in _INFLECTIONS):
        return True
    return len(keyword) >= _MIN_PREFIX_KEYWORD and word.startswith(keyword)


def classify_division(*names: Optional[str]) -> Optional[str]:
    """Classify category names into "Beverage" or "Food" by keyword.

    Names are tried in order (main category first, then the leaf); the first
    name with a word matching a keyword decides. Returns None when nothing
    matches. See _word_matches for what counts as a match.

    Examples:
        >>> classify_division("Keuken", "Hoofdgerecht")
        'Food'
        >>> classify_division(None, "Bar Bier")
        'Beverage'
        >>> classify_division("Merchandise")

    """
    for name in names:
        if not name:
            continue
        words = _WORD_RE.findall(normalize_name(name))
        for division, keywords in DIVISION_KEYWORDS:
            if any(_word_matches(word, keyword) for word in words for keyword in keywords):
                return division
    return None


def _as_id(value: Any) -> Optional[str]:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return clean_text(value)


class CategorySnapshot:
    """Immutable lookup tables over a set of CategoryNodes.

    Attributes:
        by_name: Read-only mapping of group name to node (last row wins).
        by_id: Read-only mapping of group id to node (last row wins).
        version: Short content hash of the nodes; equal tables share a version.
        max_depth: Depth bound used by resolve().
    """

    def __init__(
        self,
        nodes: Iterable[CategoryNode] = (),
        max_depth: int = DEFAULT_MAX_CATEGORY_DEPTH,
    ) -> None:
        by_name: dict[str, CategoryNode] = {}
        by_id: dict[str, CategoryNode] = {}
        node_list = list(nodes)
        for node in node_list:
            if node.name:
                by_name[node.name] = node
            if node.id:
                by_id[node.id] = node
        self.by_name: Mapping[str, CategoryNode] = MappingProxyType(by_name)
        self.by_id: Mapping[str, CategoryNode] = MappingProxyType(by_id)
        self.max_depth = max_depth
        self.version = self._content_hash(node_list)
        self._cache: dict[str, CategoryResolution] = {}

    @staticmethod
    def _content_hash(nodes: list[CategoryNode]) -> str:
        rows = sorted(
            [n.id or "", n.name or "", n.parent_id or "", n.parent_name or "", n.level or 0]
            for n in nodes
        )
        body = json.dumps(rows, ensure_ascii=False)
        return hashlib.sha1(body.encode("utf-8")).hexdigest()[:12]

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[Any],
        location_id: Optional[str] = None,
        max_depth: int = DEFAULT_MAX_CATEGORY_DEPTH,
    ) -> CategorySnapshot:
        """Build a snapshot from raw reference rows.

        Rows tagged with a different location are ignored; untagged rows apply
        to every location. Rows without a name or id are dropped.

        Args:
            rows: ``{groupId, groupName, parentGroupId, parentGroupName,
                groupLevel}`` mappings (snake_case synonyms accepted).
            location_id: Location the snapshot is built for.
            max_depth: Depth bound used by resolve().

        Returns:
            CategorySnapshot.

        """
        nodes = []
        for row in rows:
            if not isinstance(row, Mapping):
                continue
            f = normalize_record(row, CATEGORY_FIELDS, include_extra=False)
            row_location = clean_text(f["location_id"])
            if location_id is not None and row_location is not None and row_location != location_id:
                continue
            node = CategoryNode(
                id=_as_id(f["id"]),
                name=clean_text(f["name"]),
                parent_id=_as_id(f["parent_id"]),
                parent_name=clean_text(f["parent_name"]),
                level=int(f["level"]) if f["level"] is not None else None,
            )
            if node.id is None and node.name is None:
                continue
            nodes.append(node)
        return cls(nodes, max_depth=max_depth)

    def resolve(self, leaf: str) -> CategoryResolution:
        """Resolve a leaf category, memoized for the lifetime of the snapshot."""
        cached = self._cache.get(leaf)
        if cached is None:
            cached = resolve_main_category(leaf, self.by_name, self.by_id, self.max_depth)
            self._cache[leaf] = cached
        return cached

    def __len__(self) -> int:
        return len(self.by_name)

    def __repr__(self) -> str:
        return f"CategorySnapshot(nodes={len(self)}, version={self.version!r})"
