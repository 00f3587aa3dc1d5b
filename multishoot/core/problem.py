"""Multiple-shooting problem: an ordered sequence of stage models."""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from multishoot.core.errors import check_length, check_size
from multishoot.core.stage import StageData, StageModelAbstract
from multishoot.core.state import StateAbstract


class ShootingProblem:
    """
    T running stages followed by one terminal stage, starting at x0.

    The problem owns one StageData per stage (a pool of length T+1) that is
    reused across solver iterations. Stage evaluations at different nodes are
    independent; with ``nthreads > 1`` they run on a thread pool and the
    evaluation returns only once every stage has finished. The pool is
    created on first use and kept until ``close`` is called, or the problem
    is used as a context manager.
    """

    def __init__(
        self,
        x0: NDArray,
        running_models: Sequence[StageModelAbstract],
        terminal_model: StageModelAbstract,
        nthreads: int = 1,
    ):
        """
        Initialize shooting problem.

        Args:
            x0: Initial state (nx,)
            running_models: Stage models for t = 0, ..., T-1
            terminal_model: Stage model evaluated at t = T without control
            nthreads: Worker threads used for stage evaluation
        """
        if nthreads < 1:
            raise ValueError(f"nthreads must be >= 1, got {nthreads}")

        state = terminal_model.state
        for t, model in enumerate(running_models):
            self._check_state(model.state, state, f"running model {t}")

        self.running_models = list(running_models)
        self.running_datas = [m.create_data() for m in self.running_models]
        self.terminal_model = terminal_model
        self.terminal_data = terminal_model.create_data()
        self.nthreads = nthreads
        self.cost = 0.0

        check_size("x0", x0, state.nx)
        self._x0 = np.array(x0, dtype=state.dtype)
        self._fingerprint: Optional[int] = None
        self._pool: Optional[ThreadPoolExecutor] = None
        self._pool_size = 0

    def __enter__(self) -> "ShootingProblem":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Shut down the worker pool, if one was started."""
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None
            self._pool_size = 0

    @staticmethod
    def _check_state(state: StateAbstract, reference: StateAbstract, where: str):
        if not state.same_space(reference):
            raise ValueError(
                f"{where} uses {type(state).__name__}(nx={state.nx}, "
                f"ndx={state.ndx}) but the terminal model uses "
                f"{type(reference).__name__}(nx={reference.nx}, ndx={reference.ndx})"
            )

    @property
    def T(self) -> int:
        """Number of running stages."""
        return len(self.running_models)

    @property
    def state(self) -> StateAbstract:
        """State manifold shared by all stages."""
        return self.terminal_model.state

    @property
    def x0(self) -> NDArray:
        """Initial state."""
        return self._x0

    @x0.setter
    def x0(self, value: NDArray) -> None:
        check_size("x0", value, self.state.nx)
        self._x0 = np.array(value, dtype=self.state.dtype)

    def calc(self, xs: Sequence[NDArray], us: Sequence[NDArray]) -> float:
        """
        Evaluate every stage and return the total cost.

        Args:
            xs: States x_0, ..., x_T
            us: Controls u_0, ..., u_{T-1}

        Returns:
            Sum of running costs plus terminal cost
        """
        self._check_trajectory(xs, us)
        self._for_each_stage(lambda m, d, x, u: m.calc(d, x, u), xs, us)
        self.terminal_model.calc(self.terminal_data, xs[-1])

        self.cost = sum(d.cost for d in self.running_datas) + self.terminal_data.cost
        self._fingerprint = _fingerprint(xs, us)
        return self.cost

    def calc_diff(self, xs: Sequence[NDArray], us: Sequence[NDArray]) -> float:
        """
        Evaluate derivatives of every stage.

        Stage derivatives stay in the per-stage data. If the stage data does
        not hold calc results for this exact trajectory, calc runs first.

        Returns:
            Total cost of the trajectory
        """
        self._check_trajectory(xs, us)
        if self._fingerprint != _fingerprint(xs, us):
            self.calc(xs, us)

        self._for_each_stage(lambda m, d, x, u: m.calc_diff(d, x, u), xs, us)
        self.terminal_model.calc_diff(self.terminal_data, xs[-1])
        return self.cost

    def mark_calc(self, xs: Sequence[NDArray], us: Sequence[NDArray], cost: float) -> None:
        """
        Declare that the stage data holds calc results for (xs, us).

        Used by solvers that evaluate stages one by one during a rollout so
        that the following calc_diff does not evaluate them again.
        """
        self._check_trajectory(xs, us)
        self.cost = cost
        self._fingerprint = _fingerprint(xs, us)

    def rollout(self, us: Sequence[NDArray]) -> list[NDArray]:
        """
        Dynamically consistent states obtained by applying us from x0.

        Args:
            us: Controls u_0, ..., u_{T-1}

        Returns:
            States x_0, ..., x_T
        """
        check_length("us", us, self.T)
        xs = [self._x0.copy()]
        for model, data, u in zip(self.running_models, self.running_datas, us):
            model.calc(data, xs[-1], u)
            xs.append(data.xnext.copy())
        self._fingerprint = None
        return xs

    def quasi_static(self, xs: Sequence[NDArray], maxiter: int = 100, tol: float = 1e-9) -> list[NDArray]:
        """Quasi-static controls for the states x_0, ..., x_{T-1}."""
        check_length("xs", xs, self.T + 1)
        us = [
            model.quasi_static(data, x, maxiter=maxiter, tol=tol)
            for model, data, x in zip(self.running_models, self.running_datas, xs)
        ]
        self._fingerprint = None
        return us

    def circular_append(
        self, model: StageModelAbstract, data: Optional[StageData] = None
    ) -> None:
        """Drop the first running stage and append a new one at the end."""
        self._check_state(model.state, self.state, "appended model")
        if self.T == 0:
            raise ValueError("circular_append needs at least one running stage")
        del self.running_models[0]
        del self.running_datas[0]
        self.running_models.append(model)
        self.running_datas.append(model.create_data() if data is None else data)
        self._fingerprint = None

    def update_model(self, t: int, model: StageModelAbstract) -> None:
        """Replace the running model at node t."""
        if not 0 <= t < self.T:
            raise IndexError(f"node {t} outside [0, {self.T})")
        self._check_state(model.state, self.state, "updated model")
        self.running_models[t] = model
        self.running_datas[t] = model.create_data()
        self._fingerprint = None

    def _check_trajectory(self, xs, us) -> None:
        check_length("xs", xs, self.T + 1)
        check_length("us", us, self.T)

    def _for_each_stage(self, fn: Callable, xs, us) -> None:
        jobs = list(zip(self.running_models, self.running_datas, xs[:-1], us))
        if self.nthreads > 1 and len(jobs) > 1:
            # list() waits for every stage and re-raises worker exceptions
            list(self._executor().map(lambda job: fn(*job), jobs))
        else:
            for job in jobs:
                fn(*job)

    def _executor(self) -> ThreadPoolExecutor:
        if self._pool_size != self.nthreads:
            self.close()
        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=self.nthreads, thread_name_prefix="multishoot-stage"
            )
            self._pool_size = self.nthreads
        return self._pool


def _fingerprint(xs, us) -> int:
    return hash(tuple(np.asarray(v).tobytes() for v in (*xs, *us)))
