"""
Data Inspection for Satisfaction Survey Data
============================================

Descriptive checks run before any model is fitted:
1. Data quality (required columns, domains, missing values, constants)
2. Summary statistics and skewness per numeric column
3. Pearson correlation matrix and collinearity report
4. Skew correction by log transform, factor recodings, standardization

Every function returns a new DataFrame or a report; the input table is never
modified. Collinearity and skew are reported, never raised: whether to carry
on is left to the analyst.

Author: Survey Analytics Team
"""

from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from survey_regression.constants import (
    COLLINEARITY_THRESHOLD,
    SKEW_THRESHOLD,
    STD_SUFFIX,
    CHILD_THRESHOLD,
    ITEM_COLUMNS,
    OUTCOME_COLUMN,
    PROMO_LEVELS,
    NUM_CHILD_VALUES,
    interpret_vif,
)
from survey_regression.utils.logging_config import get_logger

logger = get_logger(__name__)

REQUIRED_COLUMNS = ['promo', 'num_child', 'distance'] + ITEM_COLUMNS + [OUTCOME_COLUMN]


# =============================================================================
# DATA QUALITY
# =============================================================================

def validate_survey_data(df: pd.DataFrame,
                         required_columns: List[str] = None,
                         fail_on_error: bool = False) -> Dict[str, Any]:
    """
    Validate survey data and return issues found.

    Args:
        df: Respondent table
        required_columns: Columns that must be present (default: generator output)
        fail_on_error: If True, raise ValueError on ERROR-level issues

    Returns:
        Dict with 'valid' (bool), 'errors', 'warnings' and 'n_respondents'
    """
    if required_columns is None:
        required_columns = REQUIRED_COLUMNS

    errors = []
    issues = []

    missing_cols = [c for c in required_columns if c not in df.columns]
    if missing_cols:
        errors.append(f"ERROR: missing required columns {missing_cols}")

    present = [c for c in required_columns if c in df.columns]

    if 'promo' in df.columns:
        bad = sorted(set(df['promo'].dropna().astype(str)) - set(PROMO_LEVELS))
        if bad:
            errors.append(f"ERROR: promo has values outside {PROMO_LEVELS}: {bad}")

    if 'num_child' in df.columns:
        bad = sorted(set(df['num_child'].dropna().tolist()) - set(NUM_CHILD_VALUES))
        if bad:
            errors.append(f"ERROR: num_child has values outside {NUM_CHILD_VALUES}: {bad}")

    if 'distance' in df.columns and (df['distance'] <= 0).any():
        errors.append("ERROR: distance must be strictly positive")

    missing = df[present].isnull().sum()
    for col, count in missing[missing > 0].items():
        errors.append(f"ERROR: {col} has {count} missing values")

    for col in present:
        if df[col].nunique() == 1:
            issues.append(f"WARNING: {col} is constant (value={df[col].iloc[0]}) - not identifiable")

    valid = len(errors) == 0

    for err in errors:
        logger.error(err)
    for warn in issues:
        logger.warning(warn)
    logger.info(f"Data quality check: {len(df):,} respondents, "
                f"{len(errors)} error(s), {len(issues)} warning(s)")

    if fail_on_error and not valid:
        raise ValueError(f"Data validation failed with {len(errors)} error(s): {errors}")

    return {
        'valid': valid,
        'issues': errors + issues,
        'errors': errors,
        'warnings': issues,
        'n_respondents': len(df),
    }


# =============================================================================
# DESCRIPTIVE STATISTICS
# =============================================================================

def _numeric_columns(df: pd.DataFrame) -> List[str]:
    return df.select_dtypes(include=[np.number]).columns.tolist()


def describe_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Summary statistics per numeric column.

    Returns:
        DataFrame indexed by column with count, mean, std, min, 25%, 50%,
        75%, max and skew
    """
    numeric = df[_numeric_columns(df)]
    summary = numeric.describe().T
    summary['skew'] = [float(stats.skew(numeric[c].astype(float), bias=False)) for c in numeric.columns]
    return summary


def correlation_matrix(df: pd.DataFrame, columns: List[str] = None) -> pd.DataFrame:
    """Pearson correlation matrix over numeric columns."""
    if columns is None:
        columns = _numeric_columns(df)
    return df[columns].astype(float).corr(method='pearson')


def find_high_correlations(corr: pd.DataFrame,
                           threshold: float = COLLINEARITY_THRESHOLD) -> List[Tuple[str, str, float]]:
    """
    List variable pairs whose |r| exceeds the collinearity threshold.

    Each pair found is logged as a warning; execution continues.

    Returns:
        List of (column_a, column_b, r) sorted by |r| descending
    """
    cols = list(corr.columns)
    pairs = []
    for i, a in enumerate(cols):
        for b in cols[i + 1:]:
            r = float(corr.loc[a, b])
            if abs(r) > threshold:
                pairs.append((a, b, r))

    pairs.sort(key=lambda p: abs(p[2]), reverse=True)
    for a, b, r in pairs:
        logger.warning(f"High correlation: {a} <-> {b} r={r:.3f} (>{threshold})")
    return pairs


def flag_skewed_columns(df: pd.DataFrame, threshold: float = SKEW_THRESHOLD,
                        columns: List[str] = None) -> Dict[str, float]:
    """
    Flag columns whose sample skewness exceeds the threshold in magnitude.

    Returns:
        Dict mapping column name to skewness, for flagged columns only
    """
    if columns is None:
        columns = _numeric_columns(df)

    flagged = {}
    for col in columns:
        skew = float(stats.skew(df[col].astype(float), bias=False))
        if abs(skew) > threshold:
            flagged[col] = skew
            logger.info(f"Skewed column: {col} (skew={skew:.2f})")
    return flagged


def variance_inflation_factors(df: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
    """
    Variance inflation factor for each predictor column.

    VIF_j = 1 / (1 - R2_j) where R2_j comes from regressing column j on
    the remaining columns plus an intercept.

    Returns:
        DataFrame with 'VIF' and 'assessment' per column
    """
    X = df[columns].astype(float).to_numpy()
    n = X.shape[0]
    rows = []
    for j, col in enumerate(columns):
        y = X[:, j]
        others = np.column_stack([np.ones(n), np.delete(X, j, axis=1)])
        beta, *_ = np.linalg.lstsq(others, y, rcond=None)
        resid = y - others @ beta
        tss = float(np.sum((y - y.mean()) ** 2))
        r2 = 1.0 - float(resid @ resid) / tss if tss > 0 else 1.0
        vif = 1.0 / (1.0 - r2) if r2 < 1.0 else np.inf
        rows.append({'variable': col, 'VIF': vif, 'assessment': interpret_vif(vif)})
    return pd.DataFrame(rows).set_index('variable')


# =============================================================================
# TRANSFORMS
# =============================================================================

def add_log_transform(df: pd.DataFrame, column: str,
                      new_column: Optional[str] = None) -> pd.DataFrame:
    """
    Add the natural log of a positive column as a new column.

    'distance' becomes 'logdist'; other columns become 'log_<column>'.

    Raises:
        ValueError: If the column has non-positive values
    """
    if new_column is None:
        new_column = 'logdist' if column == 'distance' else f'log_{column}'
    if (df[column] <= 0).any():
        raise ValueError(f"Cannot log-transform '{column}': non-positive values present")

    out = df.copy()
    out[new_column] = np.log(df[column].astype(float))
    return out


def add_child_factors(df: pd.DataFrame, threshold: int = CHILD_THRESHOLD) -> pd.DataFrame:
    """
    Add categorical recodings of num_child.

    - num_child_factor: Categorical with categories 0..5
    - more_than_2child: True when num_child exceeds the threshold
    """
    out = df.copy()
    out['num_child_factor'] = pd.Categorical(df['num_child'], categories=NUM_CHILD_VALUES)
    out['more_than_2child'] = df['num_child'] > threshold
    return out


def standardize(df: pd.DataFrame, columns: List[str] = None,
                suffix: Optional[str] = None) -> pd.DataFrame:
    """
    Standardize numeric columns to zero mean and unit (sample) variance.

    Args:
        df: Input table
        columns: Columns to standardize (default: all numeric, excluding booleans)
        suffix: If given, add '<col><suffix>' columns; otherwise return a
                standardized copy with the same column names

    Raises:
        ValueError: If a column has zero variance
    """
    if columns is None:
        columns = [c for c in _numeric_columns(df) if df[c].dtype != bool]

    out = df.copy()
    for col in columns:
        values = df[col].astype(float)
        sd = values.std(ddof=1)
        if not np.isfinite(sd) or sd == 0:
            raise ValueError(f"Cannot standardize '{col}': zero variance")
        target = f"{col}{suffix}" if suffix else col
        out[target] = (values - values.mean()) / sd
    return out


# =============================================================================
# INSPECTION REPORT
# =============================================================================

@dataclass
class InspectionReport:
    """Container for inspection results."""
    quality: Dict[str, Any]
    summary: pd.DataFrame
    correlations: pd.DataFrame
    high_correlations: List[Tuple[str, str, float]] = field(default_factory=list)
    skewed: Dict[str, float] = field(default_factory=dict)
    log_transformed: Dict[str, str] = field(default_factory=dict)
    standardized: List[str] = field(default_factory=list)

    def print_report(self) -> None:
        """Print formatted inspection report."""
        print("\n" + "=" * 70)
        print("DATA INSPECTION")
        print("=" * 70)
        print(f"\nRespondents: {self.quality['n_respondents']:,} | "
              f"Valid: {self.quality['valid']}")

        print("\n" + "-" * 70)
        print("SUMMARY STATISTICS")
        print("-" * 70)
        print(self.summary.to_string(float_format=lambda x: f'{x:.2f}'))

        print("\n" + "-" * 70)
        print("CORRELATIONS")
        print("-" * 70)
        print(self.correlations.to_string(float_format=lambda x: f'{x:.2f}'))

        if self.high_correlations:
            print(f"\n  Pairs above |r| > {COLLINEARITY_THRESHOLD}:")
            for a, b, r in self.high_correlations:
                print(f"    {a} <-> {b}: {r:.3f}")
        else:
            print(f"\n  No pairs above |r| > {COLLINEARITY_THRESHOLD}")

        if self.skewed:
            print("\n  Skewed columns (log transformed):")
            for col, skew in self.skewed.items():
                new = self.log_transformed.get(col, '-')
                print(f"    {col}: skew={skew:.2f} -> {new}")
        if self.standardized:
            print(f"\n  Standardized ({STD_SUFFIX}): {', '.join(self.standardized)}")
        print("=" * 70)


def inspect_survey(df: pd.DataFrame,
                   skew_columns: List[str] = None,
                   collinearity_threshold: float = COLLINEARITY_THRESHOLD,
                   skew_threshold: float = SKEW_THRESHOLD) -> Tuple[pd.DataFrame, InspectionReport]:
    """
    Run the inspection stage.

    The columns in skew_columns (default: 'distance') are always log
    transformed so later model specs can rely on them; other flagged
    columns are reported but left as they are.

    Returns:
        Tuple of (augmented table, InspectionReport). The augmented table
        adds logdist, num_child_factor, more_than_2child and a
        '<col>_std' copy of every non-constant numeric column.
    """
    if skew_columns is None:
        skew_columns = ['distance']

    quality = validate_survey_data(df)
    summary = describe_columns(df)
    corr = correlation_matrix(df)
    high = find_high_correlations(corr, threshold=collinearity_threshold)
    skewed = flag_skewed_columns(df, threshold=skew_threshold)

    out = df
    transformed = {}
    for col in skew_columns:
        if col not in skewed:
            logger.info(f"{col} is not flagged as skewed; log transforming anyway")
        new_column = 'logdist' if col == 'distance' else f'log_{col}'
        out = add_log_transform(out, col, new_column)
        transformed[col] = new_column

    out = add_child_factors(out)

    numeric = [c for c in _numeric_columns(out) if out[c].astype(float).std(ddof=1) > 0]
    constant = sorted(set(_numeric_columns(out)) - set(numeric))
    if constant:
        logger.warning(f"Constant columns not standardized: {constant}")
    out = standardize(out, numeric, suffix=STD_SUFFIX)

    report = InspectionReport(
        quality=quality,
        summary=summary,
        correlations=corr,
        high_correlations=high,
        skewed=skewed,
        log_transformed=transformed,
        standardized=numeric,
    )
    return out, report
