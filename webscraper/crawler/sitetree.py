"""Page graph for exports: an arena of nodes keyed by URL.

Nodes live in a list and refer to each other by index. Traversals are
iterative and keep the set of ancestors on the current path, so a cyclic
parent chain can never recurse forever.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from .types import JSONDict, ScrapedPage
from .url import normalize_url


@dataclass(slots=True)
class SiteNode:
    node_id: int
    url: str
    title: str
    depth: int
    parent_id: int | None = None
    children: list[int] = field(default_factory=list)
    link_count: int = 0
    image_count: int = 0

    def to_json(self) -> JSONDict:
        return {
            "id": self.node_id,
            "url": self.url,
            "title": self.title,
            "depth": self.depth,
            "parent_id": self.parent_id,
            "children": list(self.children),
            "link_count": self.link_count,
            "image_count": self.image_count,
        }


class SiteTree:
    """Directed page graph where each page points at the page that found it."""

    def __init__(self) -> None:
        self.nodes: list[SiteNode] = []
        self._index: dict[str, int] = {}

    @classmethod
    def from_pages(cls, pages: Iterable[ScrapedPage]) -> "SiteTree":
        tree = cls()
        ordered = list(pages)
        for page in ordered:
            tree._add(page)

        for page in ordered:
            child_id = tree._index[tree._key(page.url)]
            if page.parent_url is None:
                continue
            parent_id = tree._index.get(tree._key(page.parent_url))
            if parent_id is None or parent_id == child_id:
                continue
            tree.nodes[child_id].parent_id = parent_id
            tree.nodes[parent_id].children.append(child_id)
        return tree

    @staticmethod
    def _key(url: str) -> str:
        return normalize_url(url) or url

    def _add(self, page: ScrapedPage) -> int:
        key = self._key(page.url)
        existing = self._index.get(key)
        if existing is not None:
            return existing
        node = SiteNode(
            node_id=len(self.nodes),
            url=page.url,
            title=page.title,
            depth=page.depth,
            link_count=len(page.links),
            image_count=len(page.images),
        )
        self.nodes.append(node)
        self._index[key] = node.node_id
        return node.node_id

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, url: str) -> SiteNode | None:
        node_id = self._index.get(self._key(url))
        return None if node_id is None else self.nodes[node_id]

    @property
    def roots(self) -> list[int]:
        return [node.node_id for node in self.nodes if node.parent_id is None]

    def walk(self) -> Iterator[tuple[int, SiteNode]]:
        """Yield `(level, node)` in depth-first pre-order.

        Nodes stuck on a parent cycle have no root; they are started from the
        first unvisited one so every node is yielded exactly once.
        """

        visited: set[int] = set()
        starts = self.roots + [node.node_id for node in self.nodes]

        for start in starts:
            if start in visited:
                continue
            stack: list[tuple[int, int, frozenset[int]]] = [(start, 0, frozenset())]
            while stack:
                node_id, level, ancestors = stack.pop()
                if node_id in visited or node_id in ancestors:
                    continue
                visited.add(node_id)
                node = self.nodes[node_id]
                yield level, node

                path = ancestors | {node_id}
                for child_id in reversed(node.children):
                    if child_id not in path:
                        stack.append((child_id, level + 1, path))

    def to_rows(self) -> list[JSONDict]:
        """Flatten the tree into report rows in walk order."""

        rows: list[JSONDict] = []
        for level, node in self.walk():
            parent = None if node.parent_id is None else self.nodes[node.parent_id].url
            rows.append(
                {
                    "level": level,
                    "url": node.url,
                    "title": node.title,
                    "depth": node.depth,
                    "parent_url": parent,
                    "link_count": node.link_count,
                    "image_count": node.image_count,
                }
            )
        return rows

    def to_json(self) -> JSONDict:
        return {
            "roots": self.roots,
            "nodes": [node.to_json() for node in self.nodes],
        }


__all__ = ["SiteNode", "SiteTree"]
