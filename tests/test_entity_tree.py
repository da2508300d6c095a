from __future__ import annotations

import unittest

from tmuxportal.errors import NotFoundError
from tmuxportal.session_tree.tree import EntityTree
from tmuxportal.session_tree.types import (
    EDIT_ACTIVATE,
    EDIT_CREATE,
    EDIT_DELETE,
    EDIT_MOVE,
    EDIT_RENAME,
    Entity,
    EntityKey,
)

S1 = EntityKey("$1")
S2 = EntityKey("$2")
W1 = S1.child("@1")
W2 = S1.child("@2")
W3 = S1.child("@3")
W4 = S2.child("@4")


def _tree() -> EntityTree:
    tree = EntityTree(clock=lambda: 10.0)
    tree.insert(Entity(S1, "main", is_active=True))
    tree.insert(Entity(S2, "work"))
    tree.insert(Entity(W1, "editor", is_active=True))
    tree.insert(Entity(W2, "shell"))
    tree.insert(Entity(W3, "logs"))
    tree.insert(Entity(W4, "notes", is_active=True))
    tree.insert(Entity(W1.child("%1"), "%1", is_active=True))
    return tree


class EntityKeyTests(unittest.TestCase):
    def test_kind_parent_and_str(self) -> None:
        pane = W1.child("%1")

        self.assertEqual(pane.kind, "pane")
        self.assertEqual(pane.parent, W1)
        self.assertEqual(W1.parent, S1)
        self.assertIsNone(S1.parent)
        self.assertEqual(str(pane), "$1:@1:%1")
        self.assertTrue(pane.is_within(S1))
        self.assertFalse(W4.is_within(S1))


class EntityTreeStructureTests(unittest.TestCase):
    def test_flatten_lists_sessions_then_windows_without_panes(self) -> None:
        tree = _tree()

        rows = tree.flatten()

        self.assertEqual([row.key for row in rows], [S1, W1, W2, W3, S2, W4])
        self.assertEqual([row.depth for row in rows], [0, 1, 1, 1, 0, 1])

    def test_collapsed_session_hides_its_windows(self) -> None:
        tree = _tree()
        tree.collapsed.add(S1)

        self.assertEqual([row.key for row in tree.flatten()], [S1, S2, W4])

    def test_insert_at_position_renumbers_siblings(self) -> None:
        tree = _tree()
        new = S1.child("@9")

        tree.insert(Entity(new, "new"), position=1)

        self.assertEqual(tree.child_keys(S1), [W1, new, W2, W3])
        self.assertEqual([tree.require(key).ordinal for key in tree.child_keys(S1)], [0, 1, 2, 3])

    def test_duplicate_insert_raises(self) -> None:
        tree = _tree()
        with self.assertRaises(ValueError):
            tree.insert(Entity(W1, "again"))

    def test_require_missing_raises_not_found(self) -> None:
        tree = _tree()
        self.assertIsNone(tree.get(EntityKey("$404")))
        with self.assertRaises(NotFoundError):
            tree.require(EntityKey("$404"))

    def test_remove_drops_subtree(self) -> None:
        tree = _tree()

        removed = tree.remove(S1)

        self.assertEqual([node.key for node in removed], [S1, W1, W1.child("%1"), W2, W3])
        self.assertNotIn(W2, tree)
        self.assertEqual(tree.require(S2).ordinal, 0)

    def test_rekey_keeps_node_identity_and_children(self) -> None:
        tree = _tree()
        node = tree.require(W1)

        tree.rekey(W1, S1.child("@7"))

        moved = tree.require(S1.child("@7"))
        self.assertIs(moved, node)
        self.assertEqual(tree.child_keys(S1)[0], S1.child("@7"))
        self.assertIn(S1.child("@7").child("%1"), tree)
        self.assertNotIn(W1, tree)

    def test_normalize_active_enforces_single_active_session_and_window(self) -> None:
        tree = _tree()
        tree.require(S2).is_active = True
        tree.require(W2).is_active = True

        tree.normalize_active(preferred_session=S2)

        self.assertEqual(tree.active_session().key, S2)
        self.assertFalse(tree.require(S1).is_active)
        self.assertEqual(tree.active_window(S1).key, W1)
        self.assertFalse(tree.require(W2).is_active)


class EntityTreeEditTests(unittest.TestCase):
    def test_rename_apply_and_rollback(self) -> None:
        tree = _tree()
        before = tree.structure()
        edit = tree.make_edit(EDIT_RENAME, W2, "zsh")

        tree.apply(edit)
        self.assertEqual(tree.require(W2).name, "zsh")
        self.assertEqual(tree.pending_for(W2, EDIT_RENAME), [edit])

        self.assertTrue(tree.rollback(edit))
        self.assertEqual(tree.structure(), before)
        self.assertFalse(tree.rollback(edit))

    def test_delete_rollback_restores_subtree_position_and_activity(self) -> None:
        tree = _tree()
        before = tree.structure()
        edit = tree.make_edit(EDIT_DELETE, W1)

        tree.apply(edit)
        self.assertNotIn(W1, tree)
        self.assertEqual(tree.active_window(S1).key, W2)

        tree.rollback(edit)
        self.assertEqual(tree.structure(), before)

    def test_pending_delete_covers_descendants(self) -> None:
        tree = _tree()
        tree.apply(tree.make_edit(EDIT_DELETE, S1))

        self.assertTrue(tree.is_pending_delete(S1))
        self.assertTrue(tree.is_pending_delete(W2))
        self.assertFalse(tree.is_pending_delete(W4))

    def test_move_apply_and_rollback(self) -> None:
        tree = _tree()
        edit = tree.make_edit(EDIT_MOVE, W3, (W3, W1, W2))

        tree.apply(edit)
        self.assertEqual(tree.child_keys(S1), [W3, W1, W2])
        self.assertEqual(tree.require(W3).ordinal, 0)

        tree.rollback(edit)
        self.assertEqual(tree.child_keys(S1), [W1, W2, W3])
        self.assertEqual(tree.require(W3).ordinal, 2)

    def test_activate_rollback_restores_flags(self) -> None:
        tree = _tree()
        before = tree.structure()
        edit = tree.make_edit(EDIT_ACTIVATE, W3)

        tree.apply(edit)
        self.assertEqual(tree.active_session().key, S1)
        self.assertEqual(tree.active_window(S1).key, W3)

        tree.rollback(edit)
        self.assertEqual(tree.structure(), before)

    def test_activate_window_in_other_session_switches_session(self) -> None:
        tree = _tree()

        tree.apply(tree.make_edit(EDIT_ACTIVATE, W4))

        self.assertEqual(tree.active_session().key, S2)
        self.assertFalse(tree.require(S1).is_active)

    def test_create_apply_and_rollback(self) -> None:
        tree = _tree()
        before = tree.structure()
        target = S2.child("+1")
        edit = tree.make_edit(EDIT_CREATE, target, "scratch")

        tree.apply(edit)
        self.assertEqual(tree.require(target).name, "scratch")
        self.assertEqual(tree.child_keys(S2), [W4, target])

        tree.rollback(edit)
        self.assertEqual(tree.structure(), before)

    def test_create_requires_existing_parent(self) -> None:
        tree = _tree()
        with self.assertRaises(NotFoundError):
            tree.make_edit(EDIT_CREATE, EntityKey("$9").child("+1"), "x")

    def test_edits_are_listed_in_sequence_order(self) -> None:
        tree = _tree()
        first = tree.apply(tree.make_edit(EDIT_RENAME, W1, "a"))
        second = tree.apply(tree.make_edit(EDIT_RENAME, W2, "b"))

        self.assertEqual(tree.pending_edits(), [first, second])
        self.assertLess(first.seq, second.seq)
        self.assertEqual(first.created_at, 10.0)


if __name__ == "__main__":
    unittest.main()
