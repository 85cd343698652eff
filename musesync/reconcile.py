from __future__ import annotations

import typing as t

from .models import PlanEntry, Reconciliation


def reconcile(planned: t.Sequence[PlanEntry], present: t.Iterable[str]) -> Reconciliation:
    """
    Three-way diff between what the plan puts on one drive and what is there.

      keep   - on the drive and in the plan
      add    - in the plan only (plan order, with planned sizes)
      remove - on the drive only

    Pure: no filesystem access.
    """
    on_drive = set(present)
    wanted = {e.name for e in planned}
    return Reconciliation(
        keep=sorted(wanted & on_drive),
        add=[e for e in planned if e.name not in on_drive],
        remove=sorted(on_drive - wanted),
    )
