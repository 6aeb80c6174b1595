from __future__ import annotations

from collections.abc import Sequence


def clamp_index(to_order: int, length: int) -> int:
  return min(max(int(to_order), 0), length)


def reposition(ids: Sequence[str], moving_id: str, to_order: int) -> list[str]:
  """Return ``ids`` with ``moving_id`` placed at ``to_order``.

  The moving id is removed first (wherever it sits, if at all), then the
  target index is clamped into ``[0, len(remaining)]``. The caller writes
  the result back as ``status_order = index`` for every entry, which keeps
  a column contiguous even if stored orders had drifted.
  """
  remaining = [i for i in ids if i != moving_id]
  remaining.insert(clamp_index(to_order, len(remaining)), moving_id)
  return remaining


def without(ids: Sequence[str], removed_id: str) -> list[str]:
  return [i for i in ids if i != removed_id]
