from typing import NamedTuple

import numpy as np
from scipy.optimize import linear_sum_assignment

from .diagnostics import ensure
from .geometry import distance, haversine_matrix

NUM_ORIENTATIONS = 4
LARGE_VAL = 1e12


class Transition(NamedTuple):
    """Cheapest hop from the end of one mission to the start of another."""
    exit_orientation: int
    entry_orientation: int
    exit_point: object
    entry_point: object
    distance: float


def transition_matrix(endpoints):
    """
    endpoints[i][o] = (start, end) of mission i flown in orientation o.

    Returns (dist, transitions): dist[i][j] is the shortest distance from
    any end of mission i to any start of mission j over all 4x4 orientation
    pairs, transitions[i][j] the Transition achieving it.
    """
    m = len(endpoints)
    exits = [endpoints[i][o][1] for i in range(m) for o in range(NUM_ORIENTATIONS)]
    entries = [endpoints[i][o][0] for i in range(m) for o in range(NUM_ORIENTATIONS)]
    full = haversine_matrix([p.lat for p in exits], [p.lng for p in exits],
                            [p.lat for p in entries], [p.lng for p in entries])
    full = full.reshape(m, NUM_ORIENTATIONS, m, NUM_ORIENTATIONS)

    dist = np.zeros((m, m))
    transitions = [[None] * m for _ in range(m)]
    for i in range(m):
        for j in range(m):
            if i == j:
                continue
            block = full[i, :, j, :]
            flat = int(np.argmin(block))
            oi, oj = divmod(flat, NUM_ORIENTATIONS)
            dist[i][j] = block[oi, oj]
            transitions[i][j] = Transition(oi, oj, endpoints[i][oi][1], endpoints[j][oj][0],
                                           float(block[oi, oj]))
    return dist, transitions


def calculate_path_length(path, dist_matrix):
    """Summed hop distances of an open path (no return to the first node)."""
    return float(sum(dist_matrix[a][b] for a, b in zip(path, path[1:])))


def nearest_neighbor_path(current_path, unvisited, dist_matrix):
    """
    Greedy completion of a path. Ties go to the lowest index.
    """
    path = list(current_path)
    remaining = set(unvisited)

    curr = path[-1]
    while remaining:
        nxt = min(remaining, key=lambda x: (dist_matrix[curr][x], x))
        path.append(nxt)
        remaining.remove(nxt)
        curr = nxt
    return path


def nearest_neighbor_order(dist_matrix):
    """
    Multi-start nearest neighbour: every mission is tried as the first one and
    the open path with the lowest total transition distance is kept.
    """
    n = len(dist_matrix)
    best_order = list(range(n))
    best_cost = float('inf')
    for start in range(n):
        order = nearest_neighbor_path([start], [x for x in range(n) if x != start], dist_matrix)
        cost = calculate_path_length(order, dist_matrix)
        if cost < best_cost:
            best_cost = cost
            best_order = order
    return best_order


def two_opt(order, dist_matrix):
    """
    Segment reversal improvement of an open path. Any run order[i..j] may be
    flipped, including runs that hold the first or last mission. The matrix
    need not be symmetric, so each candidate is scored over the whole path
    against the cached length of the current one.
    """
    order = list(order)
    n = len(order)
    if n < 3:
        return order
    current = calculate_path_length(order, dist_matrix)
    improved = True
    while improved:
        improved = False
        for i in range(n - 1):
            for j in range(i + 1, n):
                candidate = order[:i] + order[i:j+1][::-1] + order[j+1:]
                length = calculate_path_length(candidate, dist_matrix)
                if length + 1e-6 < current:
                    order, current = candidate, length
                    improved = True
    return order


def orientation_dp(order, endpoints):
    """
    Pick the orientation of every mission along a fixed order so the summed
    end-to-start distances are minimal. Ties keep the lower orientation.
    Returns ([(mission, orientation), ...], total distance).
    """
    n = len(order)
    dp = np.zeros((n, NUM_ORIENTATIONS))
    prev = np.full((n, NUM_ORIENTATIONS), -1, dtype=int)
    for i in range(1, n):
        a = order[i-1]
        b = order[i]
        for dcur in range(NUM_ORIENTATIONS):
            best = float('inf')
            for dprev in range(NUM_ORIENTATIONS):
                c = dp[i-1][dprev] + distance(endpoints[a][dprev][1], endpoints[b][dcur][0])
                if c < best:
                    best = c
                    prev[i][dcur] = dprev
            dp[i][dcur] = best
    end_dir = int(np.argmin(dp[n-1]))
    dirs = [0] * n
    dirs[n-1] = end_dir
    for i in range(n-1, 0, -1):
        dirs[i-1] = int(prev[i][dirs[i]])
    return [(order[i], dirs[i]) for i in range(n)], float(dp[n-1][end_dir])


def assignment_lower_bound(dist_matrix):
    """
    Assignment (LP) relaxation lower bound of the shortest open path through
    all missions. A dummy node with zero cost to every mission closes the path
    into a tour.
    """
    n = len(dist_matrix)
    if n < 2:
        return 0.0
    cost_matrix = np.zeros((n + 1, n + 1))
    cost_matrix[:n, :n] = dist_matrix
    np.fill_diagonal(cost_matrix, LARGE_VAL)
    row_ind, col_ind = linear_sum_assignment(cost_matrix)
    return float(cost_matrix[row_ind, col_ind].sum())


def chain_missions(missions, sequencer, diagnostics=None):
    """
    Reorder and re-orient missions to minimize the repositioning flights
    between them.

    Returns (missions in execution order, total transit distance in meters).
    """
    diagnostics = ensure(diagnostics)
    missions = [m for m in missions if m.flight_lines]
    if not missions:
        return [], 0.0

    orientations = [sequencer.orientations(m.flight_lines) for m in missions]
    endpoints = [[sequencer.endpoints(m.flight_lines, seq) for seq in seqs]
                 for m, seqs in zip(missions, orientations)]

    if len(missions) == 1:
        only = sequencer.sequence(missions[0], orientations[0][0]).renumbered(0)
        return [only], 0.0

    dist, _ = transition_matrix(endpoints)
    order = two_opt(nearest_neighbor_order(dist), dist)
    chosen, transit = orientation_dp(order, endpoints)

    lower_bound = assignment_lower_bound(dist)
    diagnostics.info("Mission chaining complete", missions=len(missions),
                     transit_m=round(transit, 1), lower_bound_m=round(lower_bound, 1))

    chained = []
    for position, (i, o) in enumerate(chosen):
        rebuilt = sequencer.sequence(missions[i], orientations[i][o])
        chained.append(rebuilt.renumbered(position))
    return chained, transit
