"""Utils module for the survey regression pipeline."""
from .logging_config import (
    setup_logging,
    get_logger,
    EstimationLogger,
    ComparisonLogger,
    configure_warnings
)
