"""Menu forest assembly and per-user projection.

Menus are loaded flat and arranged in an arena keyed by id; parent links are
integer ids, never object references, so the loader can verify acyclicity
before any recursive walk.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from erp_backoffice.common.exceptions import DataIntegrityError

_WHITE, _GREY, _BLACK = 0, 1, 2


@dataclass
class MenuNode:
    id: int
    parent_id: Optional[int]
    label: str
    path: Optional[str] = None
    icon: str = ""
    sort: int = 0
    children: list["MenuNode"] = field(default_factory=list)

    @property
    def is_group(self) -> bool:
        return bool(self.children)

    def to_dict(self, annotate=None) -> dict[str, Any]:
        """Nested dict view; ``annotate(node)`` may contribute extra keys."""
        data = {
            "id": self.id,
            "parent_id": self.parent_id,
            "label": self.label,
            "path": self.path,
            "icon": self.icon,
            "sort": self.sort,
        }
        if annotate is not None:
            data.update(annotate(self))
        data["children"] = [child.to_dict(annotate) for child in self.children]
        return data


def check_acyclic(parents: dict[int, Optional[int]]) -> None:
    """Raise DataIntegrityError if following parent links ever loops.

    Depth-first colouring: grey marks the chain being walked, black marks
    nodes already proven to reach a root.
    """
    color = dict.fromkeys(parents, _WHITE)
    for start in parents:
        chain = []
        node = start
        while node is not None and color[node] == _WHITE:
            color[node] = _GREY
            chain.append(node)
            node = parents[node]
            if node is not None and node not in parents:
                raise DataIntegrityError(
                    f"Menu {chain[-1]} references missing parent {node}"
                )
        if node is not None and color[node] == _GREY:
            raise DataIntegrityError(f"Menu hierarchy contains a cycle through menu {node}")
        for visited in chain:
            color[visited] = _BLACK


def would_create_cycle(
    parents: dict[int, Optional[int]], menu_id: int, new_parent_id: Optional[int]
) -> bool:
    """True if re-parenting ``menu_id`` under ``new_parent_id`` closes a loop."""
    node = new_parent_id
    seen = set()
    while node is not None and node not in seen:
        if node == menu_id:
            return True
        seen.add(node)
        node = parents.get(node)
    return node is not None


def build_forest(menus: Iterable[Any]) -> list[MenuNode]:
    """Arrange flat menu rows into a forest of roots.

    Siblings are ordered by sort order, then id.
    """
    arena = {
        m.id: MenuNode(
            id=m.id,
            parent_id=m.parent_id,
            label=m.label,
            path=m.path,
            icon=m.icon or "",
            sort=m.sort or 0,
        )
        for m in menus
    }
    check_acyclic({node_id: node.parent_id for node_id, node in arena.items()})

    roots = []
    for node in arena.values():
        if node.parent_id is None:
            roots.append(node)
        else:
            arena[node.parent_id].children.append(node)

    for node in arena.values():
        node.children.sort(key=_sibling_key)
    roots.sort(key=_sibling_key)
    return roots


def project_forest(forest: list[MenuNode], permitted_ids: set[int]) -> list[MenuNode]:
    """Copy of ``forest`` holding only permitted leaves and their ancestors.

    A group survives only when at least one descendant survives; it is never
    kept for its own id alone.
    """
    projected = []
    for node in forest:
        kept = _project_node(node, permitted_ids)
        if kept is not None:
            projected.append(kept)
    return projected


def _project_node(node: MenuNode, permitted_ids: set[int]) -> Optional[MenuNode]:
    if not node.children:
        if node.id not in permitted_ids:
            return None
        return MenuNode(node.id, node.parent_id, node.label, node.path, node.icon, node.sort)

    children = project_forest(node.children, permitted_ids)
    if not children:
        return None
    return MenuNode(
        node.id, node.parent_id, node.label, node.path, node.icon, node.sort, children
    )


def iter_nodes(forest: list[MenuNode]):
    """Depth-first, pre-order walk over every node."""
    for node in forest:
        yield node
        yield from iter_nodes(node.children)


def _sibling_key(node: MenuNode) -> tuple[int, int]:
    return (node.sort, node.id)
