from typing import Iterator, Optional, Sequence

import numpy as np

from bubblepack.data import PositionTable, clamp_into
from bubblepack.spiral import GOLDEN_ANGLE


class ForceSimulation:
    """Continuous position smoothing toward layout targets.

    Each tick:

    - the energy ``alpha`` moves toward ``alpha_target`` by ``alpha_decay``,
    - every circle is attracted to its anchor (strength * alpha), unless paused,
    - pairs closer than r_i + r_j + clearance are pushed apart (several passes, not scaled by
      alpha, weighted so that smaller circles move more),
    - velocities decay and positions advance, then get clamped into per-circle bounds.

    The live positions live in a `PositionTable` shared with the owner; `targets` is the
    owner's target table. Anchors default to the targets. `reheat` gives a bounded energy
    pulse after which alpha decays to zero and the simulation settles.
    """

    def __init__(
        self,
        radii: Sequence[float],
        live: PositionTable,
        targets: PositionTable,
        clearance: float = 0.25,
        x_strength: float = 0.1,
        collide_strength: float = 1.0,
        collide_iterations: int = 6,
        alpha_min: float = 0.001,
        alpha_decay: Optional[float] = None,
        velocity_decay: float = 0.4,
    ):
        self.radii = np.asarray(radii, float)
        self.live = live
        self.targets = targets
        self.clearance = clearance
        self.x_strength = x_strength
        self.collide_strength = collide_strength
        self.collide_iterations = collide_iterations
        self.alpha_min = alpha_min
        self.alpha_decay = 1 - alpha_min ** (1 / 300) if alpha_decay is None else alpha_decay
        self.velocity_decay = velocity_decay

        n = len(self.radii)
        self.velocities = np.zeros((n, 2), float)
        self.bounds: Optional[np.ndarray] = None
        self.anchors: Optional[np.ndarray] = None
        self.alpha = 0.0
        self.alpha_target = 0.0
        self.hold_ticks = 0
        self.paused = True
        self.ticks_run = 0

        iu, ju = np.triu_indices(n, k=1)
        self._iu, self._ju = iu, ju
        theta = np.arange(len(iu)) * GOLDEN_ANGLE
        self._jiggle = 1e-6 * np.stack([np.cos(theta), np.sin(theta)], axis=1)

    # ---- control ----

    def set_radii(self, radii: Sequence[float]):
        self.radii = np.asarray(radii, float)

    def set_bounds(self, bounds: Optional[np.ndarray]):
        self.bounds = None if bounds is None else np.asarray(bounds, float)

    def set_targets(self, positions: np.ndarray, anchors: Optional[np.ndarray] = None):
        """Overwrite the targets; in-flight motion continues toward the new ones.

        `anchors` are the attraction centers (e.g. the cell center of each circle's group).
        Without anchors every circle is attracted to its own target position.
        """
        self.targets.assign(positions)
        self.anchors = None if anchors is None else np.asarray(anchors, float).reshape(-1, 2)

    def reheat(self, alpha: float = 1.0, alpha_target: float = 0.35, hold_ticks: int = 48):
        self.paused = False
        self.alpha = alpha
        self.alpha_target = alpha_target
        self.hold_ticks = max(0, int(hold_ticks))

    def pause(self):
        self.paused = True
        self.alpha = 0.0
        self.alpha_target = 0.0
        self.hold_ticks = 0
        self.velocities[...] = 0.0

    def sync(self, positions: np.ndarray):
        self.live.assign(positions)
        self.velocities[...] = 0.0

    @property
    def settled(self) -> bool:
        return self.paused or (self.hold_ticks == 0 and self.alpha < self.alpha_min)

    # ---- stepping ----

    def _collide(self):
        P = self.live.array
        V = self.velocities
        r = self.radii + self.clearance
        iu, ju = self._iu, self._ju
        if len(iu) == 0:
            return
        ri2 = r[iu] ** 2
        rj2 = r[ju] ** 2
        rsum = r[iu] + r[ju]
        for _ in range(self.collide_iterations):
            Q = P + V
            d = Q[iu] - Q[ju]
            l2 = np.einsum("ij,ij->i", d, d)
            mask = l2 < rsum ** 2
            if not np.any(mask):
                break
            dm = d[mask]
            zero = l2[mask] < 1e-24
            dm[zero] = self._jiggle[mask][zero]
            l = np.hypot(dm[:, 0], dm[:, 1])
            k = (rsum[mask] - l) / l * self.collide_strength
            push = dm * k[:, None]
            share_i = (rj2[mask] / (ri2[mask] + rj2[mask]))[:, None]
            dv = np.zeros_like(V)
            np.add.at(dv, iu[mask], push * share_i)
            np.add.at(dv, ju[mask], -push * (1 - share_i))
            V += dv

    def tick(self) -> np.ndarray:
        if self.paused:
            return self.live.snapshot()

        if self.hold_ticks > 0:
            self.hold_ticks -= 1
            if self.hold_ticks == 0:
                self.alpha_target = 0.0
        self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay

        P = self.live.array
        anchors = self.targets.array if self.anchors is None else self.anchors
        self.velocities += (anchors - P) * self.x_strength * self.alpha
        self._collide()

        self.velocities *= 1 - self.velocity_decay
        P += self.velocities
        if self.bounds is not None:
            P[...] = clamp_into(P, self.radii, self.bounds)
        self.ticks_run += 1
        return self.live.snapshot()

    def run(self, max_ticks: Optional[int] = 1000) -> Iterator[np.ndarray]:
        """Scheduled repeating task: yields a read-only snapshot per tick until settled."""
        count = 0
        while not self.settled:
            if max_ticks is not None and count >= max_ticks:
                return
            yield self.tick()
            count += 1
