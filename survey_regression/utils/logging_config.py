"""
Structured Logging for the Survey Regression Pipeline
======================================================

Provides consistent logging across simulation, inspection and estimation.

Usage:
    from survey_regression.utils.logging_config import get_logger, EstimationLogger

    # Simple logging
    logger = get_logger(__name__)
    logger.info("Starting inspection")

    # Structured estimation logging
    est_log = EstimationLogger("m2")
    est_log.start()
    est_log.fitted(r2=0.55, adj_r2=0.55, k=5, n=500)

Author: Survey Analytics Team
"""

import json
import logging
import sys
import warnings
from datetime import datetime, timezone
from typing import Optional, Dict


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    format_style: str = "standard"
) -> None:
    """
    Configure logging for the survey_regression package.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path for log output
        format_style: "standard", "detailed", or "json"
    """
    formats = {
        "standard": "%(asctime)s | %(levelname)-8s | %(message)s",
        "detailed": "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
        "json": None  # Handled by JsonFormatter
    }

    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if format_style == "json":
        console_handler.setFormatter(JsonFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter(formats.get(format_style, formats["standard"]),
                              datefmt="%Y-%m-%d %H:%M:%S")
        )
    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter(formats["detailed"], datefmt="%Y-%m-%d %H:%M:%S")
        )
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module."""
    return logging.getLogger(name)


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


# =============================================================================
# ESTIMATION LOGGER
# =============================================================================

class EstimationLogger:
    """
    Structured logger for model fitting progress.

    Used by both the OLS engine and the MCMC estimator.

    Example:
        logger = EstimationLogger("m3")
        logger.start()
        logger.fitted(r2=0.58, adj_r2=0.57, k=8, n=500)
    """

    def __init__(self, model_name: str, verbose: bool = False):
        self.model_name = model_name
        self.verbose = verbose
        self.start_time: Optional[datetime] = None
        self._logger = get_logger(f"survey_regression.estimation.{model_name}")

    def _print(self, message: str) -> None:
        """Print if verbose mode is on."""
        if self.verbose:
            print(message)

    def _elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        return (datetime.now() - self.start_time).total_seconds()

    def start(self, method: str = "OLS") -> None:
        """Log fitting start."""
        self.start_time = datetime.now()
        self._print(f"\n{'='*60}")
        self._print(f"Fitting ({method}): {self.model_name}")
        self._print(f"{'='*60}")
        self._logger.info(f"Started {method} fit: {self.model_name}")

    def fitted(self, r2: float, adj_r2: float, k: int, n: int,
               aic: Optional[float] = None) -> None:
        """Log a completed OLS fit."""
        elapsed = self._elapsed()
        self._print(f"  R2: {r2:.4f} | adj. R2: {adj_r2:.4f} | K: {k} | N: {n}")
        if aic is not None:
            self._print(f"  AIC: {aic:.2f}")
        self._logger.info(
            f"Fitted: {self.model_name} | R2={r2:.4f} | adjR2={adj_r2:.4f} | "
            f"K={k} | N={n} | time={elapsed:.2f}s"
        )

    def sampled(self, draws: int, chains: int, max_rhat: float,
                min_ess: float, divergences: int) -> None:
        """Log a completed MCMC run; draws is the total pooled across chains."""
        elapsed = self._elapsed()
        self._print(f"\n  SAMPLED {draws} total draws across {chains} chains in {elapsed:.1f}s")
        self._print(f"  max R-hat: {max_rhat:.4f} | min ESS: {min_ess:.0f} | divergences: {divergences}")
        self._logger.info(
            f"Sampled: {self.model_name} | total_draws={draws} | chains={chains} | "
            f"max_rhat={max_rhat:.4f} | min_ess={min_ess:.0f} | "
            f"divergences={divergences} | time={elapsed:.1f}s"
        )

    def failed(self, reason: str) -> None:
        """Log fitting failure."""
        elapsed = self._elapsed()
        self._print(f"\n  FAILED after {elapsed:.1f}s: {reason}")
        self._logger.error(f"Failed: {self.model_name} | {reason}")

    def parameters(self, betas: Dict[str, float], std_errs: Optional[Dict[str, float]] = None) -> None:
        """Log estimated parameters."""
        self._print("\n  Parameters:")
        for name, value in betas.items():
            se = std_errs.get(name, float('nan')) if std_errs else float('nan')
            t_stat = value / se if se and se != 0 else float('nan')
            sig = "***" if abs(t_stat) > 2.576 else "**" if abs(t_stat) > 1.96 else "*" if abs(t_stat) > 1.645 else ""
            self._print(f"    {name:28s}: {value:10.4f} (SE: {se:8.4f}) {sig}")

        self._logger.debug(f"Parameters estimated: {list(betas.keys())}")


# =============================================================================
# MODEL COMPARISON LOGGER
# =============================================================================

class ComparisonLogger:
    """Logger for model comparison output."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._logger = get_logger("survey_regression.comparison")

    def _print(self, message: str) -> None:
        if self.verbose:
            print(message)

    def header(self, title: str = "MODEL COMPARISON") -> None:
        """Print comparison header."""
        self._print(f"\n{'#'*60}")
        self._print(f"# {title}")
        self._print(f"{'#'*60}")

    def model_result(self, name: str, r2: float, adj_r2: float, k: int,
                     aic: Optional[float] = None) -> None:
        """Log single model result."""
        self._print(f"\n{name}:")
        self._print(f"  R2: {r2:.4f} | adj. R2: {adj_r2:.4f} | K: {k}")
        if aic is not None:
            self._print(f"  AIC: {aic:.2f}")

    def f_test(self, restricted: str, full: str, f_stat: float,
               df_num: int, df_denom: int, p_value: float) -> None:
        """Log nested F-test result."""
        sig = "***" if p_value < 0.001 else "**" if p_value < 0.01 else "*" if p_value < 0.05 else ""
        self._print(f"\nF Test: {restricted} vs {full}")
        self._print(f"  F({df_num}, {df_denom}) = {f_stat:.3f}, p = {p_value:.4g} {sig}")
        self._logger.info(
            f"F test: {restricted} vs {full}, F({df_num},{df_denom})={f_stat:.3f}, p={p_value:.4g}"
        )

    def best_model(self, name: str, criterion: str = "nested F-test") -> None:
        """Log best model selection."""
        self._print(f"\n{'='*60}")
        self._print(f"Selected model by {criterion}: {name}")
        self._print(f"{'='*60}")
        self._logger.info(f"Selected model ({criterion}): {name}")


# =============================================================================
# WARNING CONFIGURATION
# =============================================================================

def configure_warnings(debug_mode: bool = False) -> None:
    """
    Configure warning filters for MCMC estimation.

    By default, suppresses expected warnings from PyMC/PyTensor.
    Set debug_mode=True to see all warnings for troubleshooting.

    Args:
        debug_mode: If True, show all warnings. If False, suppress expected ones.

    Suppressed warnings (when debug_mode=False):
        - FutureWarning: library API deprecation warnings
        - PyTensor BLAS/compiler notices
    """
    if debug_mode:
        warnings.filterwarnings('default')
        logging.info("Debug mode: All warnings enabled")
    else:
        warnings.filterwarnings('ignore', category=FutureWarning)
        warnings.filterwarnings('ignore', message='.*BLAS.*')
        warnings.filterwarnings('ignore', message='.*g\\+\\+ not available.*')
        logging.getLogger('pymc').setLevel(logging.WARNING)
        logging.getLogger('pytensor').setLevel(logging.ERROR)
