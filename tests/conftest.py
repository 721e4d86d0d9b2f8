"""
Pytest Configuration and Shared Fixtures
=========================================

Provides common test fixtures for the survey regression tests.
"""

import pytest
import pandas as pd
import numpy as np
from pathlib import Path
import sys

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from survey_regression.analysis.inspection import inspect_survey
from survey_regression.estimation.model_comparison import ModelComparisonFramework
from survey_regression.estimation.ols import fit_sequence
from survey_regression.estimation.specifications import standard_model_sequence
from survey_regression.simulation.survey_simulator import generate_survey_data

REFERENCE_SEED = 555
REFERENCE_N = 500


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def project_root():
    """Return project root path."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def config_path():
    """Return path to the survey configuration file."""
    return PROJECT_ROOT / 'config' / 'survey_config.json'


# =============================================================================
# Data Fixtures - Reference Simulation
# =============================================================================

@pytest.fixture(scope="session")
def survey_data():
    """Respondent table for seed 555, N=500. Do not modify in tests."""
    return generate_survey_data(seed=REFERENCE_SEED, n=REFERENCE_N)


@pytest.fixture(scope="session")
def inspected(survey_data):
    """Tuple of (augmented table, InspectionReport)."""
    return inspect_survey(survey_data)


@pytest.fixture(scope="session")
def model_data(inspected):
    """Augmented table with logdist and child recodings."""
    return inspected[0]


@pytest.fixture(scope="session")
def standard_fits(model_data):
    """OLS fits of m1..m6 keyed by name."""
    return fit_sequence(model_data, list(standard_model_sequence().values()))


@pytest.fixture(scope="session")
def selected_model(standard_fits):
    """Name of the model picked by sequential selection."""
    framework = ModelComparisonFramework()
    framework.add_models(standard_fits)
    return framework.select_model()


@pytest.fixture
def small_frame():
    """Small hand-built table covering numeric, boolean and categorical columns."""
    rng = np.random.default_rng(7)
    n = 60
    num_child = np.tile(np.arange(6), n // 6)
    df = pd.DataFrame({
        'y': rng.normal(10, 2, n),
        'x': rng.normal(0, 1, n),
        'promo': np.where(np.arange(n) % 2 == 0, 'yes', 'no'),
        'num_child': num_child,
        'big': num_child > 2,
    })
    df['num_child_factor'] = pd.Categorical(df['num_child'], categories=[0, 1, 2, 3, 4, 5])
    return df
