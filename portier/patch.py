"""
Building and applying JSON patches (RFC 6902 subset: add, replace, remove) on
schemaless object trees.

Paths are JSON pointers. A final `-` segment addresses the end of an array, so
independent appends never depend on a possibly stale index.
"""

import copy

from portier.exceptions import InvalidPatchError, PatchConflictError

ADD = "add"
REPLACE = "replace"
REMOVE = "remove"
END = "-"

_MISSING = object()


class PatchOperation:
    """
    A single patch instruction. `value` is ignored for `remove`.
    """

    __slots__ = ("op", "path", "value")

    def __init__(self, op: str, path: str, value=None):
        if op not in (ADD, REPLACE, REMOVE):
            raise InvalidPatchError(
                message="{op} is not a supported patch operation.", op=op
            )
        split_pointer(path)
        self.op = op
        self.path = path
        self.value = value

    @classmethod
    def from_dict(cls, data: dict):
        return cls(data.get("op"), data.get("path", ""), data.get("value"))

    def to_dict(self) -> dict:
        if self.op == REMOVE:
            return {"op": self.op, "path": self.path}
        return {"op": self.op, "path": self.path, "value": self.value}

    def __eq__(self, other):
        return isinstance(other, PatchOperation) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"PatchOperation({self.to_dict()})"


def escape(segment) -> str:
    return str(segment).replace("~", "~0").replace("/", "~1")


def unescape(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


def pointer(*segments) -> str:
    """
    Join raw path segments into an escaped JSON pointer.

    >>> pointer("metadata", "labels", "app.kubernetes.io/name")
    '/metadata/labels/app.kubernetes.io~1name'
    """
    return "".join(f"/{escape(segment)}" for segment in segments)


def split_pointer(path) -> list:
    if not isinstance(path, str) or (path and not path.startswith("/")):
        raise InvalidPatchError(message="{path} is not a valid JSON pointer.", path=path)
    if not path:
        return []
    return [unescape(segment) for segment in path[1:].split("/")]


def get_value(tree, path: str, default=None):
    """
    Return the value at `path` in `tree`, or `default` if it doesn't exist.
    """
    value = _lookup(tree, split_pointer(path))
    return default if value is _MISSING else value


def build_patch(tree, path: str, value=None, op: str = ADD) -> list:
    """
    Compute the operations needed so that `tree` ends up with `value` at
    `path`. Pure function, `tree` is never modified.

    `add` and `replace` both mean "make it so": nothing is emitted if the
    value is already in place, a `replace` if a different value is, and an
    `add` otherwise. Missing ancestors are created first, root to leaf, as
    empty objects (or empty arrays if the next segment is an index or `-`).
    `remove` emits an operation only if the path exists.
    """
    segments = split_pointer(path)
    if not segments:
        raise InvalidPatchError(message="Patching the object root is not supported.")

    if op == REMOVE:
        if _lookup(tree, segments) is _MISSING:
            return []
        return [PatchOperation(REMOVE, path)]
    if op not in (ADD, REPLACE):
        raise InvalidPatchError(
            message="{op} is not a supported patch operation.", op=op
        )

    operations = []
    work = tree
    resolved = []
    for position, segment in enumerate(segments[:-1]):
        parent = _lookup(work, resolved)
        resolved.append(_concrete(parent, segment, path))
        if _lookup(work, resolved) is _MISSING:
            empty = [] if _is_index(segments[position + 1]) else {}
            operation = PatchOperation(ADD, pointer(*resolved[:-1], segment), empty)
            if work is tree:
                work = copy.deepcopy(tree)
            _apply_one(work, operation)
            operations.append(operation)

    leaf = _concrete(_lookup(work, resolved), segments[-1], path)
    current = _lookup(work, resolved + [leaf])
    if current is _MISSING:
        operations.append(
            PatchOperation(ADD, pointer(*resolved, segments[-1]), copy.deepcopy(value))
        )
    elif not _equal(current, value):
        operations.append(
            PatchOperation(REPLACE, pointer(*resolved, leaf), copy.deepcopy(value))
        )
    return operations


def apply_patch(tree, operations) -> dict:
    """
    Apply `operations` in order to a copy of `tree` and return the copy.

    Raise `InvalidPatchError` if an operation addresses a path that can't be
    reached.
    """
    result = copy.deepcopy(tree)
    for operation in operations:
        _apply_one(result, operation)
    return result


class PatchDraft:
    """
    Collects the operations of one mutating rule. Every call is built against
    the draft's current tree, so later operations see the earlier ones.
    """

    def __init__(self, tree: dict):
        self.tree = copy.deepcopy(tree)
        self.operations = []

    def get(self, path: str, default=None):
        return get_value(self.tree, path, default)

    def set(self, path: str, value) -> list:
        return self.__build(path, value, ADD)

    def append(self, path: str, value) -> list:
        return self.__build(f"{path}/{END}", value, ADD)

    def remove(self, path: str) -> list:
        return self.__build(path, None, REMOVE)

    def __build(self, path, value, op):
        operations = build_patch(self.tree, path, value, op)
        self.tree = apply_patch(self.tree, operations)
        self.operations.extend(operations)
        return operations


class WorkingCopy:
    """
    The object as it looks after every mutating rule that ran so far.

    Each rule's operations are applied all or nothing. Two different rules
    conflict if one removes a path the other adds or replaces, including
    anything beneath or above that path.
    """

    def __init__(self, tree: dict):
        self.tree = copy.deepcopy(tree)
        self._touched = []

    def apply(self, origin: str, operations: list):
        for operation in operations:
            for path, op, other in self._touched:
                if (
                    other != origin
                    and (op == REMOVE) != (operation.op == REMOVE)
                    and _overlaps(path, operation.path)
                ):
                    raise PatchConflictError(
                        message=(
                            "rules {first_rule} and {second_rule} emit conflicting"
                            " operations on {path}"
                        ),
                        first_rule=other,
                        second_rule=origin,
                        path=operation.path,
                    )
        self.tree = apply_patch(self.tree, operations)
        self._touched.extend(
            (operation.path, operation.op, origin) for operation in operations
        )


def _overlaps(first: str, second: str) -> bool:
    first, second = split_pointer(first), split_pointer(second)
    shortest = min(len(first), len(second))
    return first[:shortest] == second[:shortest]


def _is_index(segment: str) -> bool:
    return segment == END or segment.isdigit()


def _index(segment: str, length: int):
    if segment == END:
        return length
    if segment.isdigit() and (segment == "0" or not segment.startswith("0")):
        return int(segment)
    return None


def _lookup(tree, segments):
    node = tree
    for segment in segments:
        if isinstance(node, dict):
            if segment not in node:
                return _MISSING
            node = node[segment]
        elif isinstance(node, list):
            index = _index(segment, len(node))
            if index is None or index >= len(node):
                return _MISSING
            node = node[index]
        else:
            return _MISSING
    return node


def _concrete(parent, segment: str, path: str) -> str:
    """
    Resolve `segment` below `parent` to the key or index it addresses.
    """
    if isinstance(parent, dict):
        return segment
    if isinstance(parent, list):
        index = _index(segment, len(parent))
        if index is None or index > len(parent):
            raise InvalidPatchError(
                message="{segment} is not a valid index into the array at {path}.",
                segment=segment,
                path=path,
            )
        return str(index)
    raise InvalidPatchError(
        message="{path} traverses a value that is neither object nor array.",
        path=path,
    )


def _apply_one(tree, operation: PatchOperation):
    segments = split_pointer(operation.path)
    if not segments:
        raise InvalidPatchError(message="Patching the object root is not supported.")

    parent = _lookup(tree, segments[:-1])
    leaf = segments[-1]
    if isinstance(parent, dict):
        if operation.op == ADD:
            parent[leaf] = copy.deepcopy(operation.value)
            return
        if leaf in parent:
            if operation.op == REPLACE:
                parent[leaf] = copy.deepcopy(operation.value)
            else:
                del parent[leaf]
            return
    elif isinstance(parent, list):
        index = _index(leaf, len(parent))
        if index is not None and operation.op == ADD and index <= len(parent):
            parent.insert(index, copy.deepcopy(operation.value))
            return
        if index is not None and index < len(parent):
            if operation.op == REPLACE:
                parent[index] = copy.deepcopy(operation.value)
            else:
                del parent[index]
            return

    raise InvalidPatchError(
        message="Unable to {op} {path}, the path does not exist.",
        op=operation.op,
        path=operation.path,
    )


def _equal(first, second) -> bool:
    if isinstance(first, dict) and isinstance(second, dict):
        return first.keys() == second.keys() and all(
            _equal(first[key], second[key]) for key in first
        )
    if isinstance(first, list) and isinstance(second, list):
        return len(first) == len(second) and all(
            _equal(a, b) for a, b in zip(first, second)
        )
    # keeps True from being equal to 1
    return type(first) is type(second) and first == second
