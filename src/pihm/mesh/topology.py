"""Mesh topology validation and derived connectivity.

Provides the checks run when a Mesh is constructed, the upstream-to-outlet
ordering of the drainage graph, and the sparsity pattern of the RHS Jacobian
handed to the stiff solver.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

import numpy as np
from scipy.sparse import csr_matrix, lil_matrix

from ..errors import ConfigurationError
from .constants import NO_NEIGHBOR

if TYPE_CHECKING:
    from ..state.layout import StateLayout
    from .types import Elements, Mesh, Segments


def validate_topology(elements: Elements, segments: Segments) -> None:
    """Check neighbor reciprocity, id ranges and drainage acyclicity.

    Raises:
        ConfigurationError: On the first inconsistency found.
    """
    n_ele = len(elements)
    nbrs = elements.neighbors

    if ((nbrs < NO_NEIGHBOR) | (nbrs >= n_ele)).any():
        msg = f"neighbor ids must be in [-1, {n_ele})"
        raise ConfigurationError(msg)

    for i in range(n_ele):
        for k in range(3):
            j = int(nbrs[i, k])
            if j == NO_NEIGHBOR:
                continue
            if j == i:
                msg = f"element {i} lists itself as a neighbor"
                raise ConfigurationError(msg)
            back = np.flatnonzero(nbrs[j] == i)
            if back.size != 1:
                msg = f"neighbor link {i}->{j} is not reciprocated exactly once"
                raise ConfigurationError(msg)
            if not np.isclose(elements.edge_length[i, k], elements.edge_length[j, back[0]]):
                msg = f"edge length of link {i}<->{j} differs between the two elements"
                raise ConfigurationError(msg)

    n_seg = len(segments)
    for name in ("left", "right"):
        ids = getattr(segments, name)
        if ((ids < NO_NEIGHBOR) | (ids >= n_ele)).any():
            msg = f"segment {name} element ids must be in [-1, {n_ele})"
            raise ConfigurationError(msg)

    down = segments.downstream
    if ((down < NO_NEIGHBOR) | (down >= n_seg)).any():
        msg = f"downstream segment ids must be in [-1, {n_seg})"
        raise ConfigurationError(msg)
    if (down == np.arange(n_seg)).any():
        msg = "a segment cannot drain into itself"
        raise ConfigurationError(msg)

    downstream_order(segments)


def downstream_order(segments: Segments) -> np.ndarray:
    """Order segments so that every segment precedes its downstream segment.

    Uses Kahn's algorithm over the drainage graph.

    Returns:
        Segment ids, headwaters first and outlets last.

    Raises:
        ConfigurationError: If the drainage graph contains a cycle.
    """
    n_seg = len(segments)
    down = segments.downstream
    indegree = np.zeros(n_seg, dtype=np.int64)
    for d in down:
        if d != NO_NEIGHBOR:
            indegree[d] += 1

    queue = deque(int(s) for s in np.flatnonzero(indegree == 0))
    order: list[int] = []
    while queue:
        s = queue.popleft()
        order.append(s)
        d = int(down[s])
        if d != NO_NEIGHBOR:
            indegree[d] -= 1
            if indegree[d] == 0:
                queue.append(d)

    if len(order) != n_seg:
        msg = "drainage graph contains a cycle"
        raise ConfigurationError(msg)
    return np.array(order, dtype=np.int64)


def jacobian_sparsity(mesh: Mesh, layout: StateLayout) -> csr_matrix:
    """Sparsity pattern of d(derivative)/d(state) implied by the mesh topology.

    Every state of an element couples to every other state of that element,
    surface and groundwater couple to the neighbors' surface and
    groundwater, and channel states couple to their bank elements and to the
    downstream segment.
    """
    from ..state.layout import Quantity

    pattern = lil_matrix((layout.size, layout.size), dtype=np.int8)
    elem_q = (Quantity.SURFACE, Quantity.UNSATURATED, Quantity.GROUNDWATER)
    seg_q = (Quantity.STAGE, Quantity.BED)

    def couple(a: int, b: int) -> None:
        pattern[a, b] = 1
        pattern[b, a] = 1

    for i in range(mesh.n_elements):
        idx = [layout.index_of(q, i) for q in elem_q]
        for a in idx:
            for b in idx:
                pattern[a, b] = 1
        for j in mesh.elements.neighbors[i]:
            if j == NO_NEIGHBOR:
                continue
            # Overland and Darcy exchange across the shared edge
            for q in (Quantity.SURFACE, Quantity.GROUNDWATER):
                couple(layout.index_of(q, i), layout.index_of(q, int(j)))

    segments = mesh.segments
    for s in range(mesh.n_segments):
        stage, bed = (layout.index_of(q, s) for q in seg_q)
        for a in (stage, bed):
            for b in (stage, bed):
                pattern[a, b] = 1
        for e in (segments.left[s], segments.right[s]):
            if e == NO_NEIGHBOR:
                continue
            couple(stage, layout.index_of(Quantity.SURFACE, int(e)))
            couple(bed, layout.index_of(Quantity.GROUNDWATER, int(e)))
        d = segments.downstream[s]
        if d != NO_NEIGHBOR:
            couple(stage, layout.index_of(Quantity.STAGE, int(d)))
            couple(bed, layout.index_of(Quantity.BED, int(d)))

    return pattern.tocsr()
