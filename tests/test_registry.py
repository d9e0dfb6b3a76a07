"""Tests for the node registry."""
import json

import pytest

from grove.errors import (
    DuplicateNameError,
    HasDependentsError,
    NotFoundError,
    PathConflictError,
    StateCorruptedError,
)
from grove.naming import parse
from grove.registry import NodeKind, Registry, RepositoryNode, WorkspaceNode


def names(nodes):
    return [str(node.name) for node in nodes]


class TestRegister:

    def test_register_and_lookup(self, registry, trees):
        root = trees("project")
        node = registry.register("prototypes.awesome-project", "standalone", root)

        assert isinstance(node, RepositoryNode)
        assert node.kind is NodeKind.STANDALONE
        assert node.root_path == root.resolve()
        assert registry.lookup("prototypes.awesome-project") == node
        assert registry.contains("prototypes.awesome-project")
        assert not registry.contains("prototypes")
        assert len(registry) == 1

    def test_duplicate_name(self, registry, trees):
        registry.register("a", NodeKind.LIBRARY, trees("a"))
        with pytest.raises(DuplicateNameError):
            registry.register("a", NodeKind.LIBRARY, trees("other"))
        assert len(registry) == 1

    def test_path_conflict(self, registry, trees):
        root = trees("shared")
        registry.register("a", "standalone", root)
        with pytest.raises(PathConflictError) as exc:
            registry.register("b", "standalone", root)
        assert exc.value.owner == parse("a")
        assert not registry.contains("b")

    def test_root_inside_another_root(self, registry, trees):
        registry.register("a", "standalone", trees("outer"))
        with pytest.raises(PathConflictError) as exc:
            registry.register("b", "standalone", trees("outer/sub"))
        assert exc.value.relation == "inside"
        assert exc.value.owner == parse("a")
        assert not registry.contains("b")

    def test_root_containing_another_root(self, registry, trees):
        registry.register("a", "standalone", trees("outer/inner"))
        with pytest.raises(PathConflictError) as exc:
            registry.register("b", "standalone", trees("outer"))
        assert exc.value.relation == "contains"
        assert not registry.contains("b")

    def test_sibling_with_shared_prefix_is_allowed(self, registry, trees):
        registry.register("a", "standalone", trees("lib"))
        registry.register("b", "standalone", trees("lib2"))
        assert len(registry) == 2

    def test_nested_in(self, registry, trees):
        registry.register("a", "standalone", trees("outer/inner"))
        assert names(registry.nested_in(trees("outer"))) == ["a"]
        assert registry.nested_in(trees("outer/inner")) == []

    def test_namespace_and_leaf_can_both_be_nodes(self, registry, trees):
        registry.register("a", "standalone", trees("a"))
        registry.register("a.b", "library", trees("a_b"))
        assert registry.lookup("a").kind is NodeKind.STANDALONE
        assert registry.lookup("a.b").kind is NodeKind.LIBRARY

    def test_workspace_bound_to_repository(self, registry, trees):
        registry.register("lib", "library", trees("lib"))
        ws = registry.register("dev.lib", NodeKind.WORKSPACE, trees("ws"), repository="lib")
        assert isinstance(ws, WorkspaceNode)
        assert ws.repository == parse("lib")

    def test_workspace_bound_to_unknown_repository(self, registry, trees):
        with pytest.raises(NotFoundError):
            registry.register("dev.lib", NodeKind.WORKSPACE, trees("ws"), repository="missing")
        assert len(registry) == 0

    def test_lookup_unknown(self, registry):
        with pytest.raises(NotFoundError) as exc:
            registry.lookup("nothing.here")
        assert exc.value.kind == "NotFound"


class TestList:

    @pytest.fixture
    def populated(self, registry, trees):
        for raw in ("a", "a.c", "a.b", "a.b.d", "ab", "x.y"):
            registry.register(raw, "standalone", trees(raw))
        return registry

    def test_list_all_sorted(self, populated):
        assert names(populated.list()) == ["a", "a.b", "a.b.d", "a.c", "ab", "x.y"]

    def test_list_prefix_is_strict(self, populated):
        assert names(populated.list("a")) == ["a.b", "a.b.d", "a.c"]

    def test_list_pure_namespace(self, populated):
        assert names(populated.list("x")) == ["x.y"]

    def test_list_unknown_prefix(self, populated):
        assert names(populated.list("zzz")) == []

    def test_each_call_is_a_new_pass(self, populated):
        first = populated.list("a")
        next(first)
        assert names(populated.list("a")) == ["a.b", "a.b.d", "a.c"]


class TestRemove:

    def test_remove_prunes_branch(self, registry, trees):
        registry.register("a.b.c", "standalone", trees("abc"))
        registry.remove("a.b.c")
        assert not registry.contains("a.b.c")
        assert names(registry.list("a")) == []
        assert registry._find(parse("a")) is None

    def test_remove_frees_path(self, registry, trees):
        root = trees("reuse")
        registry.register("a", "standalone", root)
        registry.remove("a")
        registry.register("b", "standalone", root)
        assert registry.owner_of(root).name == parse("b")

    def test_reregister_same_name_after_remove(self, registry, trees):
        registry.register("a.b", "standalone", trees("first"))
        registry.remove("a.b")
        node = registry.register("a.b", "library", trees("second"))
        assert registry.lookup("a.b") == node
        assert node.kind is NodeKind.LIBRARY
        assert names(registry.list()) == ["a.b"]

    def test_remove_after_incoming_link_is_removed(self, registry, graph, trees):
        registry.register("app", "standalone", trees("app"))
        registry.register("lib", "library", trees("lib"))
        graph.create_link("app", "lib", "lib")
        with pytest.raises(HasDependentsError):
            registry.remove("lib")

        graph.remove_link("app", "lib")
        registry.remove("lib")
        assert not registry.contains("lib")
        assert registry.contains("app")

    def test_remove_unknown(self, registry):
        with pytest.raises(NotFoundError):
            registry.remove("ghost")

    def test_incoming_links_block_removal(self, registry, graph, trees):
        registry.register("app", "standalone", trees("app"))
        registry.register("lib", "library", trees("lib"))
        graph.create_link("app", "lib", "lib")

        with pytest.raises(HasDependentsError) as exc:
            registry.remove("lib", cascade_links=True)
        assert exc.value.direction == "incoming"
        assert registry.contains("lib")

    def test_outgoing_links_block_without_cascade(self, registry, graph, trees):
        registry.register("app", "standalone", trees("app"))
        registry.register("lib", "library", trees("lib"))
        graph.create_link("app", "lib", "lib")

        with pytest.raises(HasDependentsError) as exc:
            registry.remove("app")
        assert exc.value.direction == "outgoing"
        assert len(list(graph.edges())) == 1

    def test_cascade_removes_outgoing_links(self, registry, graph, trees):
        registry.register("app", "standalone", trees("app"))
        registry.register("lib", "library", trees("lib"))
        graph.create_link("app", "lib", "lib")

        registry.remove("app", cascade_links=True)
        assert not registry.contains("app")
        assert list(graph.edges()) == []


class TestPersistence:

    def test_reload_from_disk(self, store, registry, trees):
        registry.register("a.b", "library", trees("ab"))
        reopened = Registry(store)
        assert reopened.lookup("a.b").kind is NodeKind.LIBRARY

    def test_other_instance_sees_commits(self, store, registry, trees):
        other = Registry(store)
        registry.register("late", "standalone", trees("late"))
        assert other.contains("late")

    def test_document_is_versioned(self, store, registry, trees):
        registry.register("a", "standalone", trees("a"))
        data = json.loads(store.registry_file.read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["nodes"][0]["name"] == "a"

    def test_corrupt_file_is_quarantined(self, store):
        store.registry_file.write_text("{not json", encoding="utf-8")
        with pytest.raises(StateCorruptedError):
            Registry(store)
        assert not store.registry_file.exists()
        assert list(store.state_dir.glob("registry.corrupt.*.json"))

    def test_failed_mutation_keeps_snapshot(self, store, registry, trees):
        registry.register("a", "standalone", trees("a"))
        with pytest.raises(DuplicateNameError):
            registry.register("a", "standalone", trees("a2"))
        assert names(Registry(store).list()) == ["a"]
