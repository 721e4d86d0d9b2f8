"""
Centralized Constants for the Satisfaction Survey Pipeline
===========================================================

This module defines the magic numbers and defaults used across the project.
Import from here to keep thresholds consistent between stages.

Usage:
    from survey_regression.constants import COLLINEARITY_THRESHOLD, SEED_DEFAULT
    # or
    import survey_regression.constants as C
    flagged = corr.abs() > C.COLLINEARITY_THRESHOLD

Author: Survey Analytics Team
"""

# =============================================================================
# SIMULATION DEFAULTS
# =============================================================================

# Random seed and respondent count for the reference run
SEED_DEFAULT = 555
N_RESPONDENTS_DEFAULT = 500

# Satisfaction sub-scores, in the order their noise is drawn
ITEM_COLUMNS = ['clean', 'aroma', 'value', 'color']

OUTCOME_COLUMN = 'overall'
PROMO_LEVELS = ['yes', 'no']
NUM_CHILD_VALUES = [0, 1, 2, 3, 4, 5]
NUM_CHILD_PROBS = [0.30, 0.15, 0.25, 0.15, 0.10, 0.05]

# Children above this count carry the threshold bump in 'overall'
CHILD_THRESHOLD = 2


# =============================================================================
# INSPECTION THRESHOLDS
# =============================================================================

# Pairwise |r| above this is reported as potential collinearity
COLLINEARITY_THRESHOLD = 0.8

# |sample skewness| above this flags a column for a log transform
SKEW_THRESHOLD = 1.0

# Suffix of the standardized copies added during inspection
STD_SUFFIX = '_std'

# VIF above this is reported; 10 and above is labelled severe
VIF_THRESHOLD = 5.0


# =============================================================================
# ESTIMATION
# =============================================================================

# Conventional significance level for nested F-tests and CIs
ALPHA_DEFAULT = 0.05

# Design matrix condition number above which the solve is refused
CONDITION_THRESHOLD = 1e12

# Name of the constant column added by the design-matrix builder
INTERCEPT = 'Intercept'


# =============================================================================
# BAYESIAN ESTIMATION DEFAULTS
# =============================================================================

N_POSTERIOR_DRAWS = 10000      # Total retained draws (split across chains)
N_POSTERIOR_DRAWS_QUICK = 1000 # For quick tests
N_TUNE_DEFAULT = 1000
N_CHAINS_DEFAULT = 2

# Prior scale on the standardized parameterisation
PRIOR_SCALE = 10.0

# Sampler health thresholds
RHAT_THRESHOLD = 1.01
ESS_THRESHOLD = 400


# =============================================================================
# VALIDATION
# =============================================================================

def validate_probabilities(probs: list, tol: float = 1e-8) -> bool:
    """Check that a probability vector is non-negative and sums to one."""
    return all(p >= 0 for p in probs) and abs(sum(probs) - 1.0) <= tol


def interpret_vif(vif: float) -> str:
    """
    Interpret a variance inflation factor.

    Args:
        vif: Variance inflation factor of one predictor

    Returns:
        Human-readable severity label
    """
    if vif < VIF_THRESHOLD:
        return "OK"
    elif vif < 10.0:
        return "Moderate collinearity"
    else:
        return "Severe collinearity"
