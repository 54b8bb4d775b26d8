import copy

import pytest

import portier.exceptions as exc
import portier.patch as pa

from . import conftest as fix


def ops(*operations):
    return [pa.PatchOperation(*operation) for operation in operations]


@pytest.mark.parametrize(
    "segments, path",
    [
        ((), ""),
        (("spec", "containers", 0, "image"), "/spec/containers/0/image"),
        (
            ("metadata", "labels", "app.kubernetes.io/name"),
            "/metadata/labels/app.kubernetes.io~1name",
        ),
        (("metadata", "annotations", "a~b"), "/metadata/annotations/a~0b"),
    ],
)
def test_pointer(segments, path):
    assert pa.pointer(*segments) == path
    assert pa.split_pointer(path) == [str(segment) for segment in segments]


@pytest.mark.parametrize(
    "path, exception",
    [
        ("", fix.no_exc()),
        ("/", fix.no_exc()),
        ("/a/b", fix.no_exc()),
        ("a/b", pytest.raises(exc.InvalidPatchError, match=r".*not a valid JSON.*")),
        (None, pytest.raises(exc.InvalidPatchError)),
        (3, pytest.raises(exc.InvalidPatchError)),
    ],
)
def test_split_pointer(path, exception):
    with exception:
        pa.split_pointer(path)


@pytest.mark.parametrize(
    "data, exception",
    [
        ({"op": "add", "path": "/a", "value": 1}, fix.no_exc()),
        ({"op": "remove", "path": "/a"}, fix.no_exc()),
        ({"op": "move", "path": "/a", "from": "/b"}, pytest.raises(exc.InvalidPatchError)),
        ({"op": "add", "path": "a"}, pytest.raises(exc.InvalidPatchError)),
        ({"path": "/a"}, pytest.raises(exc.InvalidPatchError)),
    ],
)
def test_patch_operation_from_dict(data, exception):
    with exception:
        assert pa.PatchOperation.from_dict(data).to_dict() == data


def test_patch_operation_remove_has_no_value():
    assert pa.PatchOperation("remove", "/a", "ignored").to_dict() == {
        "op": "remove",
        "path": "/a",
    }


@pytest.mark.parametrize(
    "tree, path, value, op, out",
    [
        ({"metadata": {}}, "/metadata/name", "web", "add", ops(("add", "/metadata/name", "web"))),
        (
            {"metadata": {}},
            "/metadata/labels/app",
            "web",
            "add",
            ops(("add", "/metadata/labels", {}), ("add", "/metadata/labels/app", "web")),
        ),
        (
            {},
            "/spec/containers/0/resources",
            {"limits": {}},
            "add",
            ops(
                ("add", "/spec", {}),
                ("add", "/spec/containers", []),
                ("add", "/spec/containers/0", {}),
                ("add", "/spec/containers/0/resources", {"limits": {}}),
            ),
        ),
        ({"spec": {"replicas": 3}}, "/spec/replicas", 3, "add", []),
        ({"spec": {"replicas": 3}}, "/spec/replicas", 3, "replace", []),
        (
            {"spec": {"replicas": 3}},
            "/spec/replicas",
            5,
            "add",
            ops(("replace", "/spec/replicas", 5)),
        ),
        ({"a": 1}, "/a", True, "add", ops(("replace", "/a", True))),
        ({"a": 1}, "/a", 1.0, "add", ops(("replace", "/a", 1.0))),
        ({"a": {"b": [1, 2]}}, "/a", {"b": [1, 2]}, "add", []),
        ({"a": {"b": [1, 2]}}, "/a", {"b": [2, 1]}, "add", ops(("replace", "/a", {"b": [2, 1]}))),
        ({"items": [1]}, "/items/-", 2, "add", ops(("add", "/items/-", 2))),
        ({}, "/items/-", 2, "add", ops(("add", "/items", []), ("add", "/items/-", 2))),
        ({"items": [1, 2]}, "/items/1", 2, "add", []),
        ({"items": [1, 2]}, "/items/0", 0, "add", ops(("replace", "/items/0", 0))),
        (
            {"metadata": {"labels": {"a.io/b": "x"}}},
            "/metadata/labels/a.io~1b",
            "y",
            "add",
            ops(("replace", "/metadata/labels/a.io~1b", "y")),
        ),
        ({"a": {"b": 1}}, "/a/b", None, "remove", ops(("remove", "/a/b"))),
        ({"a": {"b": 1}}, "/a/c", None, "remove", []),
        ({"a": [1, 2]}, "/a/1", None, "remove", ops(("remove", "/a/1"))),
        ({"a": [1, 2]}, "/a/2", None, "remove", []),
    ],
)
def test_build_patch(tree, path, value, op, out):
    original = copy.deepcopy(tree)
    assert pa.build_patch(tree, path, value, op) == out
    assert tree == original


@pytest.mark.parametrize(
    "tree, path, op, exception",
    [
        ({}, "", "add", pytest.raises(exc.InvalidPatchError, match=r".*root.*")),
        ({}, "a", "add", pytest.raises(exc.InvalidPatchError)),
        ({}, "/a", "move", pytest.raises(exc.InvalidPatchError, match=r".*move.*")),
        ({"a": 1}, "/a/b", "add", pytest.raises(exc.InvalidPatchError, match=r".*neither.*")),
        ({"a": []}, "/a/3", "add", pytest.raises(exc.InvalidPatchError, match=r".*index.*")),
        ({"a": []}, "/a/x", "add", pytest.raises(exc.InvalidPatchError, match=r".*index.*")),
    ],
)
def test_build_patch_errors(tree, path, op, exception):
    with exception:
        pa.build_patch(tree, path, "value", op)


@pytest.mark.parametrize(
    "tree, path, value",
    [
        ({}, "/spec/containers/0/resources", {"limits": {"cpu": "1"}}),
        ({"metadata": {"labels": {"app": "x"}}}, "/metadata/labels/app", "y"),
        ({"spec": {"replicas": 1}}, "/spec/replicas", 1),
    ],
)
def test_build_patch_is_idempotent(tree, path, value):
    patched = pa.apply_patch(tree, pa.build_patch(tree, path, value))
    assert pa.get_value(patched, path) == value
    assert pa.build_patch(patched, path, value) == []


@pytest.mark.parametrize(
    "tree, operations, out, exception",
    [
        ({"a": 1}, ops(("add", "/b", 2)), {"a": 1, "b": 2}, fix.no_exc()),
        ({"a": 1}, ops(("add", "/a", 2)), {"a": 2}, fix.no_exc()),
        ({"a": 1}, ops(("replace", "/a", 2)), {"a": 2}, fix.no_exc()),
        ({"a": 1}, ops(("remove", "/a")), {}, fix.no_exc()),
        ({"a": [1, 3]}, ops(("add", "/a/1", 2)), {"a": [1, 2, 3]}, fix.no_exc()),
        ({"a": [1]}, ops(("add", "/a/-", 2)), {"a": [1, 2]}, fix.no_exc()),
        ({"a": [1, 2]}, ops(("replace", "/a/0", 0)), {"a": [0, 2]}, fix.no_exc()),
        ({"a": [1, 2]}, ops(("remove", "/a/0")), {"a": [2]}, fix.no_exc()),
        (
            {},
            ops(("add", "/a", {}), ("add", "/a/b", [])),
            {"a": {"b": []}},
            fix.no_exc(),
        ),
        ({"a": 1}, ops(("replace", "/b", 2)), None, pytest.raises(exc.InvalidPatchError)),
        ({"a": 1}, ops(("remove", "/b")), None, pytest.raises(exc.InvalidPatchError)),
        ({}, ops(("add", "/a/b", 2)), None, pytest.raises(exc.InvalidPatchError)),
        ({"a": [1]}, ops(("add", "/a/3", 2)), None, pytest.raises(exc.InvalidPatchError)),
        ({"a": [1]}, ops(("remove", "/a/-")), None, pytest.raises(exc.InvalidPatchError)),
        ({"a": "s"}, ops(("add", "/a/b", 2)), None, pytest.raises(exc.InvalidPatchError)),
    ],
)
def test_apply_patch(tree, operations, out, exception):
    original = copy.deepcopy(tree)
    with exception:
        assert pa.apply_patch(tree, operations) == out
    assert tree == original


def test_apply_patch_copies_values():
    value = {"b": 1}
    patched = pa.apply_patch({}, ops(("add", "/a", value)))
    value["b"] = 2
    assert patched == {"a": {"b": 1}}


@pytest.mark.parametrize(
    "tree, path, default, out",
    [
        ({"a": {"b": [1, 2]}}, "/a/b/1", None, 2),
        ({"a": {"b": [1, 2]}}, "/a/b/2", None, None),
        ({"a": {"b": [1, 2]}}, "/a/c", "x", "x"),
        ({"a": None}, "/a", "x", None),
        ({"a": 1}, "", None, {"a": 1}),
    ],
)
def test_get_value(tree, path, default, out):
    assert pa.get_value(tree, path, default) == out


def test_patch_draft():
    tree = {"spec": {"containers": [{"name": "app"}]}}
    draft = pa.PatchDraft(tree)
    draft.set("/metadata/labels/app", "web")
    draft.append("/spec/containers", {"name": "proxy"})
    draft.set("/spec/containers/1/image", "envoy")
    draft.remove("/spec/containers/0")
    draft.remove("/spec/volumes")

    assert draft.get("/metadata/labels/app") == "web"
    assert draft.tree == {
        "metadata": {"labels": {"app": "web"}},
        "spec": {"containers": [{"name": "proxy", "image": "envoy"}]},
    }
    assert draft.operations == ops(
        ("add", "/metadata", {}),
        ("add", "/metadata/labels", {}),
        ("add", "/metadata/labels/app", "web"),
        ("add", "/spec/containers/-", {"name": "proxy"}),
        ("add", "/spec/containers/1/image", "envoy"),
        ("remove", "/spec/containers/0"),
    )
    assert pa.apply_patch(tree, draft.operations) == draft.tree
    assert tree == {"spec": {"containers": [{"name": "app"}]}}


@pytest.mark.parametrize(
    "first, second, exception",
    [
        (
            ops(("add", "/metadata/labels/app", "web")),
            ops(("add", "/metadata/labels/app", "shop")),
            fix.no_exc(),
        ),
        (
            ops(("add", "/metadata/labels", {}), ("add", "/metadata/labels/app", "web")),
            ops(("remove", "/metadata/labels")),
            pytest.raises(
                exc.PatchConflictError,
                match=r"rules first and second emit conflicting operations on /metadata/labels",
            ),
        ),
        (
            ops(("remove", "/spec/replicas")),
            ops(("add", "/spec/replicas", 3)),
            pytest.raises(exc.PatchConflictError),
        ),
        (
            ops(("remove", "/metadata/annotations")),
            ops(("add", "/metadata/labels", {})),
            fix.no_exc(),
        ),
        (
            ops(("remove", "/metadata/annotations")),
            ops(("add", "/metadata", {})),
            pytest.raises(exc.PatchConflictError),
        ),
        (
            ops(("remove", "/metadata/labels/a")),
            ops(("remove", "/metadata/labels")),
            fix.no_exc(),
        ),
    ],
)
def test_working_copy_conflicts(first, second, exception):
    tree = {
        "metadata": {"annotations": {}, "labels": {"a": "1"}},
        "spec": {"replicas": 2},
    }
    working_copy = pa.WorkingCopy(tree)
    working_copy.apply("first", first)
    with exception:
        working_copy.apply("second", second)


def test_working_copy_same_rule_never_conflicts():
    working_copy = pa.WorkingCopy({"metadata": {}})
    working_copy.apply(
        "only", ops(("add", "/metadata/labels", {}), ("remove", "/metadata/labels"))
    )
    assert working_copy.tree == {"metadata": {}}


def test_working_copy_is_all_or_nothing():
    working_copy = pa.WorkingCopy({"a": 1})
    with pytest.raises(exc.InvalidPatchError):
        working_copy.apply("bad", ops(("add", "/b", 2), ("remove", "/c")))
    assert working_copy.tree == {"a": 1}
    working_copy.apply("good", ops(("remove", "/a")))
    assert working_copy.tree == {}
