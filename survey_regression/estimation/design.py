"""
Model Specifications and Design-Matrix Builder
===============================================

Turns a model specification (outcome + ordered predictor terms) into a
numeric design matrix, expanding categorical columns and interactions
explicitly:

- An 'Intercept' column of ones always comes first.
- Numeric and boolean columns enter as floats.
- A categorical column with k observed levels becomes k-1 indicator
  columns named 'col[T.level]'; the first level is the reference.
- An interaction 'a:b' contributes the elementwise product of every
  expanded column of a with every expanded column of b.

A small formula front end ('overall ~ clean + C(num_child) + value:promo')
is provided for convenience; the builder itself works from ModelSpec.

Author: Survey Analytics Team
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, FrozenSet, Iterable, Union

import numpy as np
import pandas as pd
from pandas.api.types import is_bool_dtype, is_numeric_dtype, CategoricalDtype

from survey_regression.constants import INTERCEPT


# =============================================================================
# TERMS AND SPECIFICATIONS
# =============================================================================

@dataclass(frozen=True)
class Term:
    """A main effect (one column) or a pairwise interaction (two columns)."""
    factors: Tuple[str, ...]

    def __post_init__(self):
        factors = tuple(self.factors)
        if len(factors) not in (1, 2):
            raise ValueError(f"A term needs one or two factors, got {factors}")
        if any(not f for f in factors):
            raise ValueError(f"Empty factor name in term {factors}")
        object.__setattr__(self, 'factors', factors)

    @property
    def name(self) -> str:
        return ':'.join(self.factors)

    @property
    def is_interaction(self) -> bool:
        return len(self.factors) == 2

    def __str__(self) -> str:
        return self.name


TermLike = Union[str, Term]


def as_term(term: TermLike) -> Term:
    """Coerce 'a' or 'a:b' to a Term."""
    if isinstance(term, Term):
        return term
    return Term(tuple(part.strip() for part in str(term).split(':')))


@dataclass(frozen=True)
class ModelSpec:
    """
    Immutable linear model specification.

    Attributes:
        outcome: Outcome column
        terms: Ordered predictor terms
        categorical: Columns to treat as categorical regardless of dtype
        name: Optional label used in reports
    """
    outcome: str
    terms: Tuple[Term, ...] = ()
    categorical: FrozenSet[str] = frozenset()
    name: Optional[str] = None

    def __post_init__(self):
        terms = tuple(as_term(t) for t in self.terms)
        names = [t.name for t in terms]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate terms in specification: {duplicates}")
        object.__setattr__(self, 'terms', terms)
        object.__setattr__(self, 'categorical', frozenset(self.categorical))

    @property
    def label(self) -> str:
        return self.name or self.formula

    @property
    def term_names(self) -> List[str]:
        return [t.name for t in self.terms]

    @property
    def columns(self) -> List[str]:
        """Data columns referenced by the spec (outcome first)."""
        cols = [self.outcome]
        for term in self.terms:
            for f in term.factors:
                if f not in cols:
                    cols.append(f)
        return cols

    @property
    def formula(self) -> str:
        def render(f: str) -> str:
            return f"C({f})" if f in self.categorical else f

        rhs = ' + '.join(':'.join(render(f) for f in t.factors) for t in self.terms)
        return f"{self.outcome} ~ {rhs or '1'}"

    def _derive(self, terms: Iterable[Term], name: Optional[str],
                categorical: Iterable[str] = ()) -> 'ModelSpec':
        return ModelSpec(
            outcome=self.outcome,
            terms=tuple(terms),
            categorical=self.categorical | frozenset(categorical),
            name=name,
        )

    def add(self, *terms: TermLike, name: Optional[str] = None,
            categorical: Iterable[str] = ()) -> 'ModelSpec':
        """Return a new spec with terms appended."""
        return self._derive(self.terms + tuple(as_term(t) for t in terms), name, categorical)

    def drop(self, *terms: TermLike, name: Optional[str] = None) -> 'ModelSpec':
        """Return a new spec without the given terms."""
        to_drop = {as_term(t).name for t in terms}
        missing = to_drop - set(self.term_names)
        if missing:
            raise ValueError(f"Terms not in specification: {sorted(missing)}")
        return self._derive([t for t in self.terms if t.name not in to_drop], name)

    def replace(self, old: TermLike, new: TermLike, name: Optional[str] = None,
                categorical: Iterable[str] = ()) -> 'ModelSpec':
        """Return a new spec with one term swapped in place."""
        old_name = as_term(old).name
        if old_name not in self.term_names:
            raise ValueError(f"Term '{old_name}' not in specification")
        new_term = as_term(new)
        terms = [new_term if t.name == old_name else t for t in self.terms]
        return self._derive(terms, name, categorical)

    def renamed(self, name: str) -> 'ModelSpec':
        return self._derive(self.terms, name)


_CATEGORICAL_RE = re.compile(r'^C\(\s*([A-Za-z_][A-Za-z0-9_]*)\s*\)$')
_NAME_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def parse_formula(formula: str, name: Optional[str] = None) -> ModelSpec:
    """
    Parse 'outcome ~ a + C(b) + a:b' into a ModelSpec.

    Supported: '+' between terms, ':' for pairwise interactions, C(col)
    to force a categorical, and '1' (the intercept is always included).

    Raises:
        ValueError: On malformed formulas
    """
    if formula.count('~') != 1:
        raise ValueError(f"Formula must contain exactly one '~': {formula!r}")

    lhs, rhs = (part.strip() for part in formula.split('~'))
    if not _NAME_RE.match(lhs):
        raise ValueError(f"Invalid outcome in formula: {lhs!r}")

    terms = []
    categorical = set()
    for raw in rhs.split('+'):
        raw = raw.strip()
        if raw in ('', '1'):
            if raw == '' and rhs.strip() not in ('', '1'):
                raise ValueError(f"Empty term in formula: {formula!r}")
            continue
        factors = []
        for part in raw.split(':'):
            part = part.strip()
            match = _CATEGORICAL_RE.match(part)
            if match:
                factors.append(match.group(1))
                categorical.add(match.group(1))
            elif _NAME_RE.match(part):
                factors.append(part)
            else:
                raise ValueError(f"Invalid term {raw!r} in formula: {formula!r}")
        terms.append(Term(tuple(factors)))

    return ModelSpec(outcome=lhs, terms=tuple(terms),
                     categorical=frozenset(categorical), name=name)


# =============================================================================
# DESIGN MATRIX
# =============================================================================

@dataclass
class DesignMatrix:
    """Numeric design matrix with column bookkeeping."""
    X: np.ndarray
    y: np.ndarray
    columns: List[str]
    term_slices: Dict[str, slice]
    spec: ModelSpec
    levels: Dict[str, List] = field(default_factory=dict)

    @property
    def n_obs(self) -> int:
        return self.X.shape[0]

    @property
    def n_params(self) -> int:
        return self.X.shape[1]

    @property
    def predictor_columns(self) -> List[str]:
        """Design columns other than the intercept."""
        return [c for c in self.columns if c != INTERCEPT]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.X, columns=self.columns)


def _is_categorical(series: pd.Series, forced: bool) -> bool:
    if forced or isinstance(series.dtype, CategoricalDtype):
        return True
    if is_bool_dtype(series.dtype):
        return False
    return not is_numeric_dtype(series.dtype)


def _factor_levels(series: pd.Series) -> List:
    """Observed levels, reference first."""
    observed = set(series.unique().tolist())
    if isinstance(series.dtype, CategoricalDtype):
        return [c for c in series.cat.categories if c in observed]
    return sorted(observed)


def expand_factor(df: pd.DataFrame, column: str,
                  categorical: bool = False) -> Tuple[List[str], np.ndarray, Optional[List]]:
    """
    Expand one data column into design columns.

    Returns:
        Tuple of (column names, n x m float matrix, levels or None)
    """
    series = df[column]
    if series.isnull().any():
        raise ValueError(f"Column '{column}' has {int(series.isnull().sum())} missing values")

    if not _is_categorical(series, categorical):
        return [column], series.astype(float).to_numpy().reshape(-1, 1), None

    levels = _factor_levels(series)
    names = [f"{column}[T.{lvl}]" for lvl in levels[1:]]
    values = series.to_numpy()
    if names:
        matrix = np.column_stack([(values == lvl).astype(float) for lvl in levels[1:]])
    else:
        matrix = np.empty((len(series), 0))
    return names, matrix, levels


def build_design_matrix(df: pd.DataFrame, spec: ModelSpec) -> DesignMatrix:
    """
    Build the design matrix for a specification.

    Args:
        df: Data table
        spec: Model specification

    Returns:
        DesignMatrix

    Raises:
        ValueError: If columns are missing, contain NaN, or the outcome is
                    not numeric
    """
    missing = [c for c in spec.columns if c not in df.columns]
    if missing:
        raise ValueError(
            f"{spec.label}: Missing required columns: {missing}\n"
            f"Available columns: {sorted(df.columns.tolist())}"
        )

    outcome = df[spec.outcome]
    if not is_numeric_dtype(outcome.dtype) or is_bool_dtype(outcome.dtype):
        raise ValueError(f"Outcome '{spec.outcome}' must be numeric")
    if outcome.isnull().any():
        raise ValueError(f"Outcome '{spec.outcome}' has missing values")

    n = len(df)
    columns = [INTERCEPT]
    blocks = [np.ones((n, 1))]
    term_slices: Dict[str, slice] = {}
    levels: Dict[str, List] = {}
    expanded: Dict[str, Tuple[List[str], np.ndarray]] = {}

    def factor(col: str) -> Tuple[List[str], np.ndarray]:
        if col not in expanded:
            names, matrix, lv = expand_factor(df, col, col in spec.categorical)
            expanded[col] = (names, matrix)
            if lv is not None:
                levels[col] = lv
        return expanded[col]

    for term in spec.terms:
        start = len(columns)
        if term.is_interaction:
            names_a, mat_a = factor(term.factors[0])
            names_b, mat_b = factor(term.factors[1])
            for i, na in enumerate(names_a):
                for j, nb in enumerate(names_b):
                    columns.append(f"{na}:{nb}")
                    blocks.append((mat_a[:, i] * mat_b[:, j]).reshape(-1, 1))
        else:
            names, matrix = factor(term.factors[0])
            columns.extend(names)
            blocks.append(matrix)
        term_slices[term.name] = slice(start, len(columns))

    X = np.hstack(blocks)
    return DesignMatrix(
        X=X,
        y=outcome.astype(float).to_numpy(),
        columns=columns,
        term_slices=term_slices,
        spec=spec,
        levels=levels,
    )
