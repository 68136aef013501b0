"""Optimistic update and reconciliation rules for toggle interactions.

Federated servers often answer a toggle with a count that does not yet
include the change just made. The rules below keep the locally computed
count in that case and defer to the server once it has caught up or when the
server reports a different state than the one requested.

The exact thresholds are a heuristic. Rapid repeated toggles of one post are
not guarded against.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from readlater.interactions.models import InteractionKind, InteractionState

if TYPE_CHECKING:
    from readlater.interactions.models import PostSnapshot


def optimistic(current_count: int, was_active: bool) -> int:
    """Count to show before the server answers. Never negative."""
    return max(0, current_count + (-1 if was_active else 1))


def reconciled(
    original_count: int,
    was_active: bool,
    server_count: int,
    server_is_active: bool | None,
) -> int:
    """Count to show once the server has answered a toggle.

    ``server_is_active`` of None means the server did not report the state.
    """
    server_count = max(0, server_count)
    if server_is_active is None or server_is_active != (not was_active):
        return server_count

    expected = optimistic(original_count, was_active)
    if was_active:
        return expected if server_count >= original_count else server_count
    return expected if server_count <= original_count else server_count


def toggle_state(state: InteractionState) -> InteractionState:
    """Flip the active flag and apply the optimistic count."""
    return InteractionState(
        post_id=state.post_id,
        is_active=not state.is_active,
        count=optimistic(state.count, state.is_active),
    )


def reconcile_state(
    original: InteractionState,
    server: PostSnapshot,
    kind: InteractionKind,
) -> InteractionState:
    """Merge the server's answer to a toggle of ``original``.

    Bookmarks carry no count, so only the server's active flag is taken.
    """
    shown = server.display
    if not kind.has_count:
        return InteractionState(post_id=original.post_id, is_active=shown.is_active(kind))
    return InteractionState(
        post_id=original.post_id,
        is_active=shown.is_active(kind),
        count=reconciled(
            original.count, original.is_active, shown.count(kind), shown.is_active(kind)
        ),
    )
