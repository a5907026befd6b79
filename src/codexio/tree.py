from __future__ import annotations

from typing import TYPE_CHECKING

from codexio.config import FileEntry, NodeKind, TreeNode

if TYPE_CHECKING:
    from collections.abc import Iterable


def build_tree(root_name: str, entries: Iterable[FileEntry | str]) -> TreeNode:
    """Fold accepted files into a directory tree.

    Directories are kept in an arena keyed by their relative path and created on
    demand, so only directories needed to reach a file ever exist. The arena is
    then frozen bottom-up into :class:`TreeNode` objects whose children are
    sorted by name.

    Args:
        root_name (str): label of the root node
        entries (Iterable[FileEntry | str]): accepted entries, or their relative paths

    Returns:
        TreeNode: the root directory node
    """
    dirs: dict[str, set[str]] = {"": set()}
    files: dict[str, set[str]] = {"": set()}
    for entry in entries:
        rel = entry.relative_path if isinstance(entry, FileEntry) else entry
        parts = rel.strip("/").split("/")
        parent = ""
        for part in parts[:-1]:
            current = f"{parent}/{part}" if parent else part
            if current not in dirs:
                dirs[current] = set()
                files[current] = set()
                dirs[parent].add(part)
            parent = current
        files[parent].add(parts[-1])

    frozen: dict[str, TreeNode] = {}
    # deepest directories first so every child is frozen before its parent
    for path in sorted(dirs, key=lambda p: p.count("/") + bool(p), reverse=True):
        children = [frozen[f"{path}/{d}" if path else d] for d in dirs[path]]
        children.extend(TreeNode(name=f, kind=NodeKind.FILE) for f in files[path])
        children.sort(key=lambda n: n.name)
        name = path.rsplit("/", 1)[-1] if path else root_name
        frozen[path] = TreeNode(name=name, kind=NodeKind.DIRECTORY, children=tuple(children))
    return frozen[""]


def build_tree_lines(node: TreeNode) -> list[str]:
    """Build a visual tree representation of a tree node.

    Args:
        node (TreeNode): the root of the tree to draw

    Returns:
        list[str]: a list of strings representing the tree structure, suitable for printing
    """
    lines: list[str] = [node.name]
    stack: list[tuple[TreeNode, str, bool]] = [
        (child, "", i == len(node.children) - 1) for i, child in reversed(list(enumerate(node.children)))
    ]
    while stack:
        current, prefix, last = stack.pop()
        branch = "└── " if last else "├── "
        suffix = "/" if current.kind is NodeKind.DIRECTORY else ""
        lines.append(prefix + branch + current.name + suffix)
        ext = "    " if last else "│   "
        count = len(current.children)
        stack.extend(
            (child, prefix + ext, i == count - 1) for i, child in reversed(list(enumerate(current.children)))
        )
    return lines


def render_tree(node: TreeNode) -> str:
    return "\n".join(build_tree_lines(node))


def leaf_paths(node: TreeNode) -> list[str]:
    """Reconstruct the relative file paths held by a tree, in display order."""
    out: list[str] = []
    stack: list[tuple[TreeNode, str]] = [(child, "") for child in reversed(node.children)]
    while stack:
        current, parent = stack.pop()
        path = f"{parent}/{current.name}" if parent else current.name
        if current.kind is NodeKind.FILE:
            out.append(path)
        else:
            stack.extend((child, path) for child in reversed(current.children))
    return out
