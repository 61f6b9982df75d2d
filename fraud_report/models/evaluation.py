import numpy as np
import pandas as pd
import logging
from dataclasses import dataclass
from sklearn.metrics import auc, confusion_matrix, roc_curve

from fraud_report.config import POSITIVE_CLASS, TARGET_ENCODING
from fraud_report.exceptions import DegenerateInputError

logger = logging.getLogger(__name__)

NEGATIVE_CLASS = 1 - POSITIVE_CLASS
CLASS_NAMES = {code: name for name, code in TARGET_ENCODING.items()}


@dataclass(frozen=True)
class ConfusionCounts:
    """Confusion counts with fraud (class 0) as the positive class"""
    tp: int
    fp: int
    fn: int
    tn: int

    @property
    def total(self) -> int:
        return self.tp + self.fp + self.fn + self.tn

    def as_frame(self) -> pd.DataFrame:
        fraud, genuine = CLASS_NAMES[POSITIVE_CLASS], CLASS_NAMES[NEGATIVE_CLASS]
        return pd.DataFrame(
            [[self.tp, self.fn], [self.fp, self.tn]],
            index=[f'actual {fraud}', f'actual {genuine}'],
            columns=[f'predicted {fraud}', f'predicted {genuine}']
        )


@dataclass(frozen=True)
class RocCurve:
    fpr: np.ndarray
    tpr: np.ndarray
    thresholds: np.ndarray

    def points(self):
        return list(zip(self.fpr.tolist(), self.tpr.tolist()))


@dataclass(frozen=True)
class Evaluation:
    confusion: ConfusionCounts
    roc: RocCurve
    auc: float


def _as_array(values, name):
    arr = np.asarray(values)
    if arr.ndim != 1:
        raise ValueError(f"{name} must be one-dimensional, got shape {arr.shape}")
    return arr


def _check_lengths(**sequences):
    lengths = {name: len(seq) for name, seq in sequences.items()}
    if len(set(lengths.values())) > 1:
        raise ValueError(f"Input sequences differ in length: {lengths}")


def _check_domain(**sequences):
    allowed = {POSITIVE_CLASS, NEGATIVE_CLASS}
    for name, seq in sequences.items():
        unknown = set(np.unique(seq).tolist()) - allowed
        if unknown:
            raise ValueError(f"Unexpected {name} values {sorted(unknown)}, expected {sorted(allowed)}")


def class_counts(y_true) -> dict:
    values, counts = np.unique(np.asarray(y_true), return_counts=True)
    return {int(v): int(c) for v, c in zip(values, counts)}


def confusion_counts(y_true, y_pred) -> ConfusionCounts:
    y_true = _as_array(y_true, 'y_true')
    y_pred = _as_array(y_pred, 'y_pred')
    _check_lengths(y_true=y_true, y_pred=y_pred)
    _check_domain(y_true=y_true, y_pred=y_pred)

    # rows are actual, columns predicted, both ordered fraud then genuine
    (tp, fn), (fp, tn) = confusion_matrix(
        y_true, y_pred, labels=[POSITIVE_CLASS, NEGATIVE_CLASS]
    )
    return ConfusionCounts(tp=int(tp), fp=int(fp), fn=int(fn), tn=int(tn))


def roc(y_true, p_fraud) -> RocCurve:
    """
    ROC curve for the fraud class over every distinct P(fraud) value.

    Raises:
        DegenerateInputError: y_true holds a single class, which leaves
            either the true-positive or the false-positive rate undefined.
    """
    y_true = _as_array(y_true, 'y_true')
    p_fraud = _as_array(p_fraud, 'p_fraud').astype(float)
    _check_lengths(y_true=y_true, p_fraud=p_fraud)

    counts = class_counts(y_true)
    unknown = set(counts) - {POSITIVE_CLASS, NEGATIVE_CLASS}
    if unknown:
        raise ValueError(f"Unexpected target values {sorted(unknown)}")
    if len(counts) < 2:
        raise DegenerateInputError("ROC curve is undefined", counts)

    fpr, tpr, thresholds = roc_curve(
        y_true, p_fraud, pos_label=POSITIVE_CLASS, drop_intermediate=False
    )
    return RocCurve(fpr=fpr, tpr=tpr, thresholds=thresholds)


def roc_auc(y_true, p_fraud) -> float:
    curve = roc(y_true, p_fraud)
    return float(auc(curve.fpr, curve.tpr))


def evaluate(y_true, y_pred, p_fraud) -> Evaluation:
    """Confusion counts, ROC curve and trapezoidal AUC for one held-out set"""
    _check_lengths(y_true=y_true, y_pred=y_pred, p_fraud=p_fraud)
    confusion = confusion_counts(y_true, y_pred)
    curve = roc(y_true, p_fraud)
    area = float(auc(curve.fpr, curve.tpr))

    logger.info(
        f"TP={confusion.tp} FP={confusion.fp} FN={confusion.fn} TN={confusion.tn} "
        f"| ROC AUC: {area:.4f}"
    )
    return Evaluation(confusion=confusion, roc=curve, auc=area)
