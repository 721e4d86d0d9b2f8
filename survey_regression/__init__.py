"""
Satisfaction Survey Regression
==============================

Simulates a halo-effect product-satisfaction survey and walks through
inspection, OLS model building, model comparison and a Bayesian refit.

Modules:
    simulation   - seeded survey generator
    analysis     - data inspection and transforms
    estimation   - design matrices, OLS, comparison, diagnostics, MCMC
    utils        - logging and plotting
    pipeline     - end-to-end run and command line entry point
"""

__version__ = "0.1.0"
