"""Top-level package for sir-recipes.

This repository follows the cookiecutter-data-science template where project
code lives under `src/`. The SIR formulations (ODE, discrete maps, jump
processes, agent-based and reaction-network models) and their inference
tools live under `src.epirecipes`; plotting lives under `src.visualization`.
"""

# Package marker; keep this module lightweight.
