from __future__ import annotations

from sequencing_engine.core.errors import ScheduleConfigError
from sequencing_engine.core.model import Activity


def detect_cycles(id_to_deps: dict[str, list[str]]) -> list[list[str]]:
    """Return every distinct dependency cycle as a closed id path (v ... u -> v)."""
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {nid: WHITE for nid in id_to_deps.keys()}
    stack: list[str] = []
    emitted: set[str] = set()
    out: list[list[str]] = []

    # Iterative DFS; long dependency chains would overflow the recursion limit.
    for root in list(state.keys()):
        if state[root] != WHITE:
            continue
        state[root] = GRAY
        stack.append(root)
        pending = [iter(id_to_deps.get(root, []))]
        while pending:
            u = stack[-1]
            v = next(pending[-1], None)
            if v is None:
                pending.pop()
                stack.pop()
                state[u] = BLACK
                continue
            if v not in state:
                continue
            if state[v] == GRAY:
                idx = stack.index(v)
                cycle = stack[idx:] + [v]
                key = "->".join(cycle)
                if key not in emitted:
                    emitted.add(key)
                    out.append(cycle)
            elif state[v] == WHITE:
                state[v] = GRAY
                stack.append(v)
                pending.append(iter(id_to_deps.get(v, [])))

    return out


def ensure_acyclic(activities: list[Activity]) -> None:
    """Raise E_DEPENDENCY_CYCLE naming the activities of the first cycle found."""
    id_to_deps = {a.id: [p.activity_id for p in a.predecessors] for a in activities}
    cycles = detect_cycles(id_to_deps)
    if not cycles:
        return
    # Report in predecessor -> successor order.
    cycle = list(reversed(cycles[0]))
    names = {a.id: a.name for a in activities}
    raise ScheduleConfigError(
        code="E_DEPENDENCY_CYCLE",
        message="dependency cycle detected: " + " -> ".join(f"{i} ({names.get(i, '?')})" for i in cycle),
        path="dependencies",
        entities=tuple(dict.fromkeys(cycle)),
    )
