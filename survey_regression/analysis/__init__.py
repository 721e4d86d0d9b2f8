"""Analysis module: data inspection before model fitting."""
from .inspection import (
    InspectionReport,
    inspect_survey,
    validate_survey_data,
    describe_columns,
    correlation_matrix,
    find_high_correlations,
    flag_skewed_columns,
    variance_inflation_factors,
    add_log_transform,
    add_child_factors,
    standardize,
)
