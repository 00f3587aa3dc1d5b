"""Linearised wrench cone for rectangular contact surfaces."""

from typing import Optional
import numpy as np
from loguru import logger
from numpy.typing import NDArray

from multishoot.core.errors import check_size
from multishoot.core.state import StateAbstract
from multishoot.models.residuals import ResidualModelAbstract


class WrenchCone:
    """
    Inner/outer linear approximation of the contact wrench cone.

    A wrench w = (f, tau) expressed in the contact frame is admissible when
    lb <= A @ w <= ub. The nf + 13 rows of A encode, in order:

      - nf friction-pyramid facets (|f_t| <= mu f_n),
      - the unilateral normal force bound min_nforce <= f_n <= max_nforce,
      - four centre-of-pressure rows for a box of size (L, W),
      - eight yaw-torque rows.

    Args:
        R: Rotation of the contact surface (3, 3)
        mu: Friction coefficient
        box: Surface size (L, W)
        nf: Number of friction facets (even)
        min_nforce: Minimum normal force
        max_nforce: Maximum normal force
        inner_appr: Use the inner approximation of the friction cone
    """

    def __init__(
        self,
        R: Optional[NDArray] = None,
        mu: float = 0.7,
        box: tuple[float, float] = (0.1, 0.05),
        nf: int = 4,
        min_nforce: float = 0.0,
        max_nforce: float = np.inf,
        inner_appr: bool = True,
    ):
        if nf % 2 != 0:
            logger.warning("nf has to be an even number, set to 4")
            nf = 4
        self.nf = nf
        self.inner_appr = inner_appr
        self.update(np.eye(3) if R is None else R, mu, box, min_nforce, max_nforce)

    @property
    def nrows(self) -> int:
        return self.nf + 13

    def update(
        self,
        R: NDArray,
        mu: float,
        box: tuple[float, float],
        min_nforce: float = 0.0,
        max_nforce: float = np.inf,
    ) -> None:
        """Rebuild A, lb and ub for a new surface orientation, friction or size."""
        if min_nforce < 0.0:
            logger.warning("min_nforce has to be a positive value, set to 0")
            min_nforce = 0.0
        if max_nforce < 0.0:
            logger.warning("max_nforce has to be a positive value, set to inf")
            max_nforce = np.inf

        self.R = np.asarray(R, dtype=float)
        self.mu = mu
        self.box = (float(box[0]), float(box[1]))
        self.min_nforce = min_nforce
        self.max_nforce = max_nforce

        nf = self.nf
        A = np.zeros((nf + 13, 6))
        lb = np.full(nf + 13, -np.inf)
        ub = np.zeros(nf + 13)
        R = self.R

        theta = 2.0 * np.pi / nf
        mu_eff = mu * np.cos(theta / 2.0) if self.inner_appr else mu

        # friction pyramid
        mu_nsurf = np.array([0.0, 0.0, -mu_eff])
        for i in range(nf // 2):
            theta_i = theta * i
            tsurf = np.array([np.cos(theta_i), np.sin(theta_i), 0.0])
            A[2 * i, :3] = (mu_nsurf + tsurf) @ R
            A[2 * i + 1, :3] = (mu_nsurf - tsurf) @ R
        A[nf, :3] = R[2, :]
        lb[nf] = min_nforce
        ub[nf] = max_nforce

        # centre of pressure
        L = self.box[0] / 2.0
        W = self.box[1] / 2.0
        A[nf + 1] = np.concatenate([-W * R[:, 2], R[:, 0]])
        A[nf + 2] = np.concatenate([-W * R[:, 2], -R[:, 0]])
        A[nf + 3] = np.concatenate([-L * R[:, 2], R[:, 1]])
        A[nf + 4] = np.concatenate([-L * R[:, 2], -R[:, 1]])

        # yaw torque, lower then upper
        mu_LW = -mu_eff * (L + W)
        corners = [(W, L), (W, -L), (-W, L), (-W, -L)]
        signs = [(-1.0, -1.0), (-1.0, 1.0), (1.0, -1.0), (1.0, 1.0)]
        for j, ((cw, cl), (sx, sy)) in enumerate(zip(corners, signs)):
            force_row = np.array([cw, cl, mu_LW]) @ R
            A[nf + 5 + j] = np.concatenate([
                force_row, np.array([sx * mu_eff, sy * mu_eff, -1.0]) @ R
            ])
            A[nf + 9 + j] = np.concatenate([
                force_row, np.array([-sx * mu_eff, -sy * mu_eff, 1.0]) @ R
            ])

        self.A = A
        self.lb = lb
        self.ub = ub

    def contains(self, wrench: NDArray, tol: float = 0.0) -> bool:
        """True when the wrench satisfies every row of the cone."""
        check_size("wrench", wrench, 6)
        Aw = self.A @ wrench
        return bool(np.all(Aw >= self.lb - tol) and np.all(Aw <= self.ub + tol))


class ResidualModelWrenchCone(ResidualModelAbstract):
    """
    r = A @ u[offset:offset + 6] for a wrench carried in the control vector.

    Pair with ActivationModelQuadraticBarrier(cone.lb, cone.ub) to penalise
    wrenches outside the cone, or with ConstraintModelResidual to report it.
    """

    def __init__(self, state: StateAbstract, nu: int, cone: WrenchCone, offset: int = 0):
        if offset < 0 or offset + 6 > nu:
            raise ValueError(f"wrench slice [{offset}, {offset + 6}) outside control of size {nu}")
        super().__init__(state, cone.nrows, nu)
        self.cone = cone
        self.offset = offset

    def _calc(self, data, x, u):
        if u is None:
            data.r[:] = 0.0
        else:
            data.r[:] = self.cone.A @ u[self.offset:self.offset + 6]

    def _calc_diff(self, data, x, u):
        data.Ru[:] = 0.0
        if u is not None:
            data.Ru[:, self.offset:self.offset + 6] = self.cone.A
