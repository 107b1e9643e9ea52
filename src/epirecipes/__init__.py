"""SIR model recipes.

Provides a small namespace that re-exports the main entry points so scripts
and notebooks can import from src.epirecipes without deep module paths.
The summer-backed compartmental model is not re-exported; import it from
src.epirecipes.compartmental.
"""


# Re-export core helpers for convenience (avoid heavy imports here).
from .config import DEFAULTS, set_global_seed  # noqa: F401
from .model import SIRParams, initial_state, rate_to_proportion  # noqa: F401
from .ode import solve_sir_ode, cases_from_solution, SIRODEModel  # noqa: F401
from .discrete import solve_discrete_deterministic, solve_discrete_stochastic  # noqa: F401
from .jump import (  # noqa: F401
    sir_vas,
    gillespie_direct,
    PresetTimeCallback,
    DiscreteCallback,
    TerminateWhen,
)
from .delay import delay_ssa  # noqa: F401
from .reaction import Reaction, ReactionNetwork, sir_network  # noqa: F401
from .abm import AgentBasedSIR  # noqa: F401
from .noise import observe_poisson, observe_negbin, simulate_case_data  # noqa: F401
from .likelihood import poisson_loglik, fit_mle, profile_likelihood  # noqa: F401
from .inference import (  # noqa: F401
    SIRGenerativeModel,
    importance_resampling,
    metropolis_hastings,
    particle_filter,
)
from .metrics import epidemic_summary, posterior_summary, timing_summary  # noqa: F401
from .benchmark import benchmark  # noqa: F401
