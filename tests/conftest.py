# tests/conftest.py

import os

# Render plots without a display
os.environ.setdefault('MPLBACKEND', 'Agg')

import numpy as np
import pandas as pd
import pytest

FEATURE_COLS = ['time', 'amount'] + [f'v{i}' for i in range(1, 29)]
SOURCE_COLS = ['Time'] + [f'V{i}' for i in range(1, 29)] + ['Amount', 'Class']


def make_transactions(n_fraud, n_genuine, seed=0, shift=10.0):
    """Canonical transaction frame with fraud rows shifted away from genuine ones."""
    rng = np.random.default_rng(seed)
    n = n_fraud + n_genuine
    # fraud rows spread through the frame so time alone never separates the classes
    is_fraud = np.zeros(n, dtype=bool)
    is_fraud[np.round(np.linspace(1, n - 2, n_fraud)).astype(int)] = True

    features = rng.normal(0, 1, size=(n, 28))
    features[is_fraud] += shift

    df = pd.DataFrame(features, columns=[f'v{i}' for i in range(1, 29)])
    df.insert(0, 'time', np.arange(n, dtype=float))
    df.insert(1, 'amount', np.where(is_fraud, 900.0, 25.0) + rng.uniform(0, 10, size=n))
    df['label'] = np.where(is_fraud, 'fraud', 'genuine')
    return df[FEATURE_COLS + ['label']]


def to_source_layout(df, binary=True):
    """Rename canonical columns back to the CSV header and encode Class."""
    out = df.rename(columns={'time': 'Time', 'amount': 'Amount', 'label': 'Class',
                             **{f'v{i}': f'V{i}' for i in range(1, 29)}})
    if binary:
        out['Class'] = (out['Class'] == 'fraud').astype(int)
    return out[SOURCE_COLS]


@pytest.fixture
def transactions():
    """40 fraud and 160 genuine well-separated transactions."""
    return make_transactions(40, 160, seed=1)


@pytest.fixture
def normalized_transactions(transactions):
    from fraud_report.data.preprocessing import normalize_labels
    return normalize_labels(transactions)


@pytest.fixture
def transactions_csv(tmp_path):
    """Source-format CSV with binary Class values, 30% fraud."""
    path = tmp_path / 'creditcard.csv'
    to_source_layout(make_transactions(120, 280, seed=2)).to_csv(path, index=False)
    return path
