"""
Halo-Effect Satisfaction Survey Simulator
=========================================

This module implements synthetic data generation for a product-satisfaction
survey. Each simulated respondent has:

1. Covariates: promotion exposure, number of children, distance to store
2. Halo: one latent normal draw shared by every satisfaction item
3. Item Scores: clean, aroma, value, color = floor(halo + noise + offset)
4. Overall Satisfaction: weighted sum of items and covariates plus noise

The simulation follows a known Data Generating Process (DGP), so fitted
coefficients can be read against the weights that produced the data.

Draw order is fixed: promo, num_child, distance, halo, each item in
config order, overall noise. Every draw is a vector of length N from a
single numpy Generator, so the same seed and config give the same table.

Author: Survey Analytics Team
"""

from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from survey_regression.config_schema import check_config, make_config, DEFAULT_CONFIG
from survey_regression.constants import OUTCOME_COLUMN
from survey_regression.utils.logging_config import get_logger

logger = get_logger(__name__)


# =============================================================================
# SIMULATOR CLASS
# =============================================================================

class SurveySimulator:
    """
    Main orchestrator for the satisfaction survey simulation.

    Coordinates:
    - Covariate draws
    - Halo and item score generation
    - Overall satisfaction
    - Data export
    """

    DRAW_ORDER = ['promo', 'num_child', 'distance', 'halo', '<items>', 'overall_noise']

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize simulator with a configuration dictionary.

        Args:
            config: Configuration (see config_schema); defaults to DEFAULT_CONFIG
        """
        self.config = check_config(config if config is not None else DEFAULT_CONFIG)

        self.seed = int(self.config['population']['seed'])
        self.n_respondents = int(self.config['population']['N'])
        self.rng = np.random.default_rng(self.seed)

        self.item_names: List[str] = list(self.config['items'].keys())

    def run(self, keep_latent: bool = False) -> pd.DataFrame:
        """
        Run the full simulation.

        The generator is reseeded from self.seed on every call, so repeated
        runs and export() reproduce the same table.

        Args:
            keep_latent: If True, include the true halo values as 'halo_true'

        Returns:
            DataFrame with one row per respondent
        """
        n = self.n_respondents
        logger.info(f"Simulating {n} respondents (seed={self.seed})")
        self.rng = np.random.default_rng(self.seed)

        covariates = self._draw_covariates(n)
        halo = self._draw_halo(n)
        items = self._draw_items(halo, n)
        overall = self._compute_overall(covariates, halo, items, n)

        data = {
            'promo': covariates['promo'],
            'num_child': covariates['num_child'],
            'distance': covariates['distance'],
        }
        data.update(items)
        data[OUTCOME_COLUMN] = overall
        if keep_latent:
            data['halo_true'] = halo

        df = pd.DataFrame(data)
        self._log_summary(df)
        return df

    def _draw_covariates(self, n: int) -> Dict[str, np.ndarray]:
        """Draw promo, num_child and distance, in that order."""
        cov = self.config['covariates']

        promo = self.rng.choice(np.array(cov['promo']['values'], dtype=object), size=n)

        values = np.array(cov['num_child']['values'])
        probs = np.array(cov['num_child']['probs'], dtype=float)
        num_child = self.rng.choice(values, size=n, p=probs).astype(np.int64)

        dist = cov['distance']
        distance = np.exp(self.rng.normal(float(dist['log_mean']), float(dist['log_sd']), size=n))

        return {
            'promo': promo.astype(str),
            'num_child': num_child,
            'distance': distance,
        }

    def _draw_halo(self, n: int) -> np.ndarray:
        """Draw the per-respondent latent halo."""
        spec = self.config['halo']
        return self.rng.normal(float(spec.get('mean', 0.0)), float(spec['sd']), size=n)

    def _draw_items(self, halo: np.ndarray, n: int) -> Dict[str, np.ndarray]:
        """
        Generate satisfaction sub-scores.

        item = floor(halo + N(mean, sd) + offset)
        """
        items = {}
        for name in self.item_names:
            spec = self.config['items'][name]
            noise = self.rng.normal(float(spec['mean']), float(spec['sd']), size=n)
            items[name] = np.floor(halo + noise + float(spec.get('offset', 0.0))).astype(np.int64)
        return items

    def _compute_overall(self, covariates: Dict[str, np.ndarray], halo: np.ndarray,
                         items: Dict[str, np.ndarray], n: int) -> np.ndarray:
        """
        Compute overall satisfaction.

        overall = floor(sum(w_j * x_j) + promo_effect * [promo == yes]
                        + child_effect * [num_child > threshold] + e + offset)
        """
        spec = self.config['overall']
        sources = {'halo': halo, 'distance': covariates['distance']}
        sources.update(items)

        mu = np.zeros(n)
        for col, weight in spec['weights'].items():
            mu += float(weight) * sources[col]

        mu += float(spec.get('promo_effect', 0.0)) * (covariates['promo'] == 'yes')
        threshold = int(spec.get('child_threshold', 2))
        mu += float(spec.get('child_effect', 0.0)) * (covariates['num_child'] > threshold)

        noise = self.rng.normal(0.0, float(spec['noise_sd']), size=n)
        return np.floor(mu + noise + float(spec.get('offset', 0.0))).astype(np.int64)

    def _log_summary(self, df: pd.DataFrame) -> None:
        """Log simulation summary statistics."""
        logger.info(f"Simulation complete: {len(df):,} respondents")
        means = ", ".join(f"{c}={df[c].mean():.1f}" for c in self.item_names + [OUTCOME_COLUMN])
        logger.info(f"Item means: {means}")
        logger.info(f"Promo share (yes): {(df['promo'] == 'yes').mean():.1%}")

    def export(self, output_path: str, keep_latent: bool = False) -> pd.DataFrame:
        """
        Run simulation and export to CSV.

        Args:
            output_path: Path for output CSV file
            keep_latent: If True, include true halo values

        Returns:
            The simulated DataFrame
        """
        df = self.run(keep_latent=keep_latent)
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(output_path, index=False)
        logger.info(f"Exported to: {output_path}")
        return df


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def generate_survey_data(seed: Optional[int] = None, n: Optional[int] = None,
                         config: Optional[Dict] = None,
                         keep_latent: bool = False) -> pd.DataFrame:
    """
    Generate a respondent table from a seed and respondent count.

    Args:
        seed: Random seed (overrides config)
        n: Number of respondents (overrides config)
        config: Base configuration (default: DEFAULT_CONFIG)
        keep_latent: Include the true halo column

    Returns:
        DataFrame with promo, num_child, distance, items and overall
    """
    return SurveySimulator(make_config(seed=seed, n=n, base=config)).run(keep_latent=keep_latent)
