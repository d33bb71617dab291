"""Exception hierarchy of the Navier-Stokes solver."""


class NavierStokesError(Exception):
    """Base class for all solver errors."""


class AssemblyError(NavierStokesError):
    """Inconsistent mesh, flow or body metadata detected while building operators."""


class ResourceError(NavierStokesError):
    """A linear-algebra resource could not be allocated or was already released."""


class LifecycleError(NavierStokesError):
    """Operation called in the wrong solver state (e.g. stepping after finalize)."""


class SolverDivergence(NavierStokesError):
    """A linear solve returned a negative convergence reason.

    Parameters
    ----------
    system : str
        Which system failed ("velocity" or "poisson").
    step : int
        Time step that was being computed.
    reason : int
        Backend convergence reason (negative).
    iterations : int
        Iterations performed before the failure.
    """

    def __init__(self, system: str, step: int, reason: int, iterations: int = 0):
        self.system = system
        self.step = step
        self.reason = reason
        self.iterations = iterations
        super().__init__(
            f"{system.capitalize()} solve diverged at time step {step} due to reason: {reason}"
        )
