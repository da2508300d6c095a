from __future__ import annotations

import unittest

from tmuxportal.runtime.navigation import NavigationController
from tmuxportal.session_tree.reconcile import Reconciler
from tmuxportal.session_tree.snapshot import PaneSnapshot, SessionSnapshot, WindowSnapshot
from tmuxportal.session_tree.tree import EntityTree
from tmuxportal.session_tree.types import (
    EDIT_ACTIVATE,
    EDIT_CREATE,
    EDIT_DELETE,
    EDIT_MOVE,
    EDIT_RENAME,
    EntityKey,
)

S1 = EntityKey("$1")
S2 = EntityKey("$2")
W1 = S1.child("@1")
W2 = S1.child("@2")
W3 = S1.child("@3")
W4 = S2.child("@4")


def _window(window_id: str, name: str, index: int, active: bool = False) -> WindowSnapshot:
    return WindowSnapshot(
        id=window_id,
        name=name,
        index=index,
        is_active=active,
        panes=(PaneSnapshot(id=f"%{window_id[1:]}", is_active=True),),
    )


def _forest(
    names: dict[str, str] | None = None,
    order: tuple[str, ...] = ("@1", "@2", "@3"),
    active_session: str = "$1",
    active_window: str = "@1",
    extra_windows: tuple[WindowSnapshot, ...] = (),
):
    names = {"@1": "editor", "@2": "shell", "@3": "logs", **(names or {})}
    s1_windows = tuple(
        _window(window_id, names[window_id], idx, window_id == active_window)
        for idx, window_id in enumerate(order)
    ) + extra_windows
    return (
        SessionSnapshot(id="$1", name="main", index=0, is_active=active_session == "$1", windows=s1_windows),
        SessionSnapshot(
            id="$2",
            name="work",
            index=1,
            is_active=active_session == "$2",
            windows=(_window("@4", "notes", 0, True),),
        ),
    )


class ReconcilerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.now = 100.0
        self.tree = EntityTree(clock=lambda: self.now)
        self.reconciler = Reconciler(self.tree, grace_seconds=2.0, clock=lambda: self.now)
        self.reconciler.reconcile(_forest())

    def test_initial_snapshot_builds_tree(self) -> None:
        self.assertEqual([row.key for row in self.tree.flatten()], [S1, W1, W2, W3, S2, W4])
        self.assertEqual(self.tree.active_session().key, S1)
        self.assertEqual(self.tree.active_window(S1).key, W1)
        self.assertIn(W1.child("%1"), self.tree)

    def test_noop_snapshot_keeps_node_identity_and_cursor(self) -> None:
        nodes = {key: self.tree.get(key) for key in self.tree.keys()}
        nav = NavigationController(self.tree)
        nav.cursor = W2
        nav.user_navigated = True
        anchor = nav.capture_anchor()

        report = self.reconciler.reconcile(_forest())
        nav.reanchor(anchor)

        self.assertFalse(report.changed)
        for key, node in nodes.items():
            self.assertIs(self.tree.get(key), node)
        self.assertEqual(nav.cursor, W2)
        self.assertEqual(nav.cursor_index(), 2)

    def test_external_changes_update_in_place(self) -> None:
        node = self.tree.get(W2)

        report = self.reconciler.reconcile(
            _forest(
                names={"@2": "zsh"},
                order=("@2", "@1"),
                active_window="@2",
                extra_windows=(_window("@9", "new", 5),),
            )
        )

        self.assertIs(self.tree.get(W2), node)
        self.assertEqual(node.name, "zsh")
        self.assertEqual(self.tree.child_keys(S1), [W2, W1, S1.child("@9")])
        self.assertNotIn(W3, self.tree)
        self.assertEqual(self.tree.active_window(S1).key, W2)
        self.assertIn(W3, report.removed)
        self.assertIn(S1.child("@9"), report.inserted)
        self.assertIn(W2, report.updated)
        self.assertIn(S1, report.reordered)

    def test_external_session_switch_moves_active_flag(self) -> None:
        report = self.reconciler.reconcile(_forest(active_session="$2"))

        self.assertEqual(self.tree.active_session().key, S2)
        self.assertIn(S2, report.activated)
        self.assertTrue(report.changed)

    def test_confirmed_rename_clears_edit(self) -> None:
        edit = self.tree.apply(self.tree.make_edit(EDIT_RENAME, W2, "zsh"))

        report = self.reconciler.reconcile(_forest(names={"@2": "zsh"}))

        self.assertEqual(report.confirmed, [edit])
        self.assertEqual(self.tree.pending_edits(), [])
        self.assertEqual(self.tree.require(W2).name, "zsh")

    def test_young_rename_survives_lagging_snapshot(self) -> None:
        self.tree.apply(self.tree.make_edit(EDIT_RENAME, W2, "zsh"))
        self.now += 1.0

        self.reconciler.reconcile(_forest())

        self.assertEqual(self.tree.require(W2).name, "zsh")
        self.assertEqual(len(self.tree.pending_edits()), 1)

    def test_expired_rename_reverts_to_external_name(self) -> None:
        edit = self.tree.apply(self.tree.make_edit(EDIT_RENAME, W2, "zsh"))
        self.now += 5.0

        report = self.reconciler.reconcile(_forest())

        self.assertEqual(report.discarded, [edit])
        self.assertEqual(self.tree.require(W2).name, "shell")
        self.assertEqual(self.tree.pending_edits(), [])

    def test_conflicting_external_rename_wins_immediately(self) -> None:
        self.tree.apply(self.tree.make_edit(EDIT_RENAME, W2, "zsh"))

        report = self.reconciler.reconcile(_forest(names={"@2": "bash"}))

        self.assertEqual(len(report.discarded), 1)
        self.assertEqual(self.tree.require(W2).name, "bash")

    def test_young_delete_is_not_resurrected(self) -> None:
        self.tree.apply(self.tree.make_edit(EDIT_DELETE, W3))

        self.reconciler.reconcile(_forest())
        self.assertNotIn(W3, self.tree)
        self.assertTrue(self.tree.is_pending_delete(W3))

        report = self.reconciler.reconcile(_forest(order=("@1", "@2")))
        self.assertEqual(len(report.confirmed), 1)
        self.assertEqual(self.tree.pending_edits(), [])

    def test_expired_delete_lets_entity_return(self) -> None:
        self.tree.apply(self.tree.make_edit(EDIT_DELETE, W3))
        self.now += 5.0

        self.reconciler.reconcile(_forest())

        self.assertIn(W3, self.tree)
        self.assertEqual(self.tree.child_keys(S1), [W1, W2, W3])

    def test_unconfirmed_create_defers_removal_until_grace_expires(self) -> None:
        provisional = S2.child("+1")
        self.tree.apply(self.tree.make_edit(EDIT_CREATE, provisional, "scratch"))

        report = self.reconciler.reconcile(_forest())
        self.assertIn(provisional, self.tree)
        self.assertEqual(report.deferred, [provisional])

        self.now += 5.0
        report = self.reconciler.reconcile(_forest())
        self.assertNotIn(provisional, self.tree)
        self.assertIn(provisional, report.removed)

    def test_young_rename_defers_removal_of_missing_window(self) -> None:
        edit = self.tree.apply(self.tree.make_edit(EDIT_RENAME, W2, "zsh"))
        self.now += 0.5

        report = self.reconciler.reconcile(_forest(order=("@1", "@3")))
        self.assertIn(W2, self.tree)
        self.assertEqual(self.tree.require(W2).name, "zsh")
        self.assertEqual(report.deferred, [W2])
        self.assertEqual(report.discarded, [])
        self.assertEqual(self.tree.pending_edits(), [edit])

        self.now += 5.0
        report = self.reconciler.reconcile(_forest(order=("@1", "@3")))
        self.assertNotIn(W2, self.tree)
        self.assertEqual(report.discarded, [edit])
        self.assertIn(W2, report.removed)

    def test_young_move_defers_removal_once_per_target(self) -> None:
        self.tree.apply(self.tree.make_edit(EDIT_RENAME, W3, "tail"))
        self.tree.apply(self.tree.make_edit(EDIT_MOVE, W3, (W3, W1, W2)))

        report = self.reconciler.reconcile(_forest(order=("@1", "@2")))

        self.assertEqual(report.deferred, [W3])
        self.assertEqual(self.tree.child_keys(S1), [W3, W1, W2])

    def test_duplicate_indices_keep_snapshot_order(self) -> None:
        forest = (
            SessionSnapshot(
                id="$1",
                name="main",
                index=0,
                is_active=True,
                windows=(
                    _window("@3", "logs", 1),
                    _window("@1", "editor", 0, True),
                    _window("@2", "shell", 1),
                ),
            ),
        )

        self.reconciler.reconcile(forest)

        self.assertEqual(self.tree.child_keys(S1), [W1, W3, W2])

    def test_young_move_keeps_local_order(self) -> None:
        self.tree.apply(self.tree.make_edit(EDIT_MOVE, W3, (W3, W1, W2)))

        self.reconciler.reconcile(_forest())
        self.assertEqual(self.tree.child_keys(S1), [W3, W1, W2])

        report = self.reconciler.reconcile(_forest(order=("@3", "@1", "@2")))
        self.assertEqual(len(report.confirmed), 1)
        self.assertEqual(self.tree.child_keys(S1), [W3, W1, W2])

    def test_young_activate_keeps_local_active_flags(self) -> None:
        self.tree.apply(self.tree.make_edit(EDIT_ACTIVATE, W4))

        self.reconciler.reconcile(_forest())
        self.assertEqual(self.tree.active_session().key, S2)

        report = self.reconciler.reconcile(_forest(active_session="$2"))
        self.assertEqual(len(report.confirmed), 1)
        self.assertEqual(self.tree.active_session().key, S2)

    def test_every_edit_ends_confirmed_or_discarded(self) -> None:
        self.tree.apply(self.tree.make_edit(EDIT_RENAME, W1, "vim"))
        self.tree.apply(self.tree.make_edit(EDIT_MOVE, W1, (W2, W1, W3)))
        self.tree.apply(self.tree.make_edit(EDIT_DELETE, W4))
        outcomes = []

        for _ in range(3):
            self.now += 1.5
            report = self.reconciler.reconcile(_forest(names={"@1": "vim"}))
            outcomes.extend(report.confirmed)
            outcomes.extend(report.discarded)

        self.assertEqual(self.tree.pending_edits(), [])
        self.assertEqual(len(outcomes), 3)
        self.assertEqual(self.tree.require(W1).name, "vim")
        self.assertIn(W4, self.tree)

    def test_empty_snapshot_removes_everything(self) -> None:
        report = self.reconciler.reconcile(())

        self.assertEqual(len(self.tree), 0)
        self.assertIn(S1, report.removed)


if __name__ == "__main__":
    unittest.main()
