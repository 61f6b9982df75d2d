import pandas as pd
import numpy as np
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Tuple

from fraud_report.config import FEATURES, SCHEMA, TARGET_ENCODING
from fraud_report.exceptions import DataInputError
from fraud_report.utils import load_data

logger = logging.getLogger(__name__)

CANONICAL_COLUMNS = FEATURES['numeric_features'] + [FEATURES['label']]


@dataclass(frozen=True)
class Transaction:
    """One loaded transaction record with named, typed fields"""
    time: float
    amount: float
    features: Tuple[float, ...]
    label: str

    @classmethod
    def from_row(cls, row: pd.Series) -> 'Transaction':
        return cls(
            time=float(row['time']),
            amount=float(row['amount']),
            features=tuple(float(row[f'v{i}']) for i in range(1, 29)),
            label=str(row[FEATURES['label']])
        )


@dataclass(frozen=True)
class Split:
    """Two disjoint, exhaustive row subsets of a parent dataset"""
    names: Tuple[str, str]
    first: pd.DataFrame
    second: pd.DataFrame

    def __getitem__(self, name: str) -> pd.DataFrame:
        if name == self.names[0]:
            return self.first
        if name == self.names[1]:
            return self.second
        raise KeyError(f"Unknown partition '{name}', expected one of {self.names}")

    @property
    def sizes(self) -> Dict[str, int]:
        return {self.names[0]: len(self.first), self.names[1]: len(self.second)}


def _relabel_source_classes(labels: pd.Series, path) -> pd.Series:
    """Map the source's binary Class values onto the two label strings"""
    source_map = FEATURES['source_label_map']
    relabeled = labels.map(lambda value: source_map.get(value, value))

    allowed = set(TARGET_ENCODING)
    unexpected = sorted({str(v) for v in relabeled.unique() if v not in allowed})
    if unexpected:
        raise DataInputError(
            f"Unexpected Class values {unexpected}; expected one of {sorted(allowed)} "
            f"or the binary source encoding 0/1",
            path=path
        )
    return relabeled


def load_transactions(file_path) -> pd.DataFrame:
    """
    Read a delimited transaction table into a typed DataFrame.

    The header must contain Time, Amount, V1..V28 and Class. Columns are
    renamed to their canonical lower-case names and Class becomes the
    `label` column holding 'fraud' or 'genuine'.

    Raises:
        DataInputError: the file is missing, cannot be parsed, lacks
            required columns, or holds an unexpected Class value.
    """
    path = Path(file_path)
    if not path.exists():
        raise DataInputError("Dataset file not found", path=path)

    logger.info(f"Loading transactions from {path}")
    try:
        df = load_data(path, dtype=SCHEMA)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        raise DataInputError(f"Malformed dataset file: {str(e)}", path=path) from e

    # rows wider than the header push their leading field into the index
    if not isinstance(df.index, pd.RangeIndex):
        raise DataInputError(
            "Malformed dataset file: data rows have more fields than the header", path=path
        )

    missing = [col for col in SCHEMA if col not in df.columns]
    if missing:
        raise DataInputError(f"Missing required columns: {missing}", path=path)

    missing_values = int(df[list(SCHEMA)].isnull().sum().sum())
    if missing_values > 0:
        logger.warning(f"{path} contains {missing_values} missing values")

    df = df[list(SCHEMA)].rename(columns=FEATURES['rename'])
    df[FEATURES['label']] = _relabel_source_classes(df[FEATURES['label']], path)
    df = df[CANONICAL_COLUMNS]

    logger.info(f"Loaded {len(df)} transactions with {df.shape[1]} columns")
    return df


def sample_transactions(df: pd.DataFrame, size: int, random_state) -> pd.DataFrame:
    """Uniform sample of exactly `size` rows without replacement"""
    if size < 0 or size > len(df):
        raise DataInputError(
            f"Cannot sample {size} records from a dataset of {len(df)} records"
        )
    sample = df.sample(n=size, replace=False, random_state=random_state)

    fraud_rate = (sample[FEATURES['label']] == FEATURES['fraud_label']).mean() if size else 0.0
    logger.info(f"Sampled {size} of {len(df)} transactions (fraud rate {fraud_rate:.4%})")
    return sample


def split_dataset(df: pd.DataFrame, fraction: float, random_state,
                  names: Tuple[str, str] = ('train', 'test')) -> Split:
    """
    Partition rows into two disjoint subsets by uniform random permutation.

    The first part holds round(fraction * N) rows (half rounds up), the second
    the remaining rows. Row labels of the parent frame are preserved.
    """
    if not 0 < fraction < 1:
        raise ValueError(f"Split fraction must lie in (0, 1), got {fraction}")

    n_rows = len(df)
    n_first = int(np.floor(fraction * n_rows + 0.5))
    order = np.random.default_rng(random_state).permutation(n_rows)

    split = Split(
        names=tuple(names),
        first=df.iloc[order[:n_first]],
        second=df.iloc[order[n_first:]]
    )

    for name, part in ((names[0], split.first), (names[1], split.second)):
        n_fraud = int((part[FEATURES['label']] == FEATURES['fraud_label']).sum())
        logger.info(f"{name}: {len(part)} records, {n_fraud} fraud")
        if n_fraud == 0:
            logger.warning(f"Partition '{name}' contains no fraud records")
    return split


def normalize_labels(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy with the binary `target` column (fraud -> 0, genuine -> 1)"""
    label, target = FEATURES['label'], FEATURES['target']
    mapped = df[label].map(TARGET_ENCODING)

    if mapped.isnull().any():
        unexpected = sorted({str(v) for v in df.loc[mapped.isnull(), label].unique()})
        raise DataInputError(
            f"Unexpected label values {unexpected}; expected one of {sorted(TARGET_ENCODING)}"
        )

    normalized = df.copy()
    normalized[target] = mapped.astype('int64')
    return normalized


def normalize_split(split: Split) -> Split:
    return Split(
        names=split.names,
        first=normalize_labels(split.first),
        second=normalize_labels(split.second)
    )


def build_partitions(df: pd.DataFrame, config: dict) -> Dict[str, pd.DataFrame]:
    """
    Two-level split of a dataset into estimation, validation and test
    partitions, each carrying the binary target column.
    """
    seed = config.get('random_state')
    if not isinstance(seed, (int, np.integer)) or isinstance(seed, bool):
        raise ValueError(f"random_state must be an explicit integer seed, got {seed!r}")
    train_test = split_dataset(df, 1 - config['test_size'], seed, names=('train', 'test'))
    estimation_validation = normalize_split(
        split_dataset(train_test['train'], 1 - config['validation_size'], seed + 1,
                      names=('estimation', 'validation'))
    )
    return {
        'estimation': estimation_validation['estimation'],
        'validation': estimation_validation['validation'],
        'test': normalize_labels(train_test['test'])
    }
