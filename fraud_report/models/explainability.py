import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import logging
from sklearn.inspection import permutation_importance

from fraud_report.config import FEATURES
from fraud_report.exceptions import DegenerateInputError
from fraud_report.models.evaluation import class_counts

logger = logging.getLogger(__name__)


class ModelExplainer:
    def __init__(self, predictor):
        self.predictor = predictor
        self.feature_names = predictor.feature_names

    def feature_importance(self) -> pd.Series:
        """Impurity-based importances of the fitted tree or forest"""
        importance = getattr(self.predictor.estimator, 'feature_importances_', None)
        if importance is None:
            raise ValueError(f"{self.predictor.name} exposes no feature importances")
        return pd.Series(importance, index=self.feature_names).sort_values(ascending=False)

    def permutation_importance(self, df: pd.DataFrame, n_repeats=10, random_state=None) -> pd.Series:
        """Mean drop in ROC AUC when each feature is shuffled"""
        try:
            X = df[self.feature_names].to_numpy(dtype=float)
            y = df[FEATURES['target']].to_numpy(dtype=np.int64)

            counts = class_counts(y)
            if len(counts) < 2:
                raise DegenerateInputError("Permutation importance is undefined", counts)

            result = permutation_importance(
                self.predictor.estimator, X, y,
                scoring='roc_auc',
                n_repeats=n_repeats,
                random_state=random_state)

            return pd.Series(
                result.importances_mean, index=self.feature_names
            ).sort_values(ascending=False)
        except Exception as e:
            logger.error(f"Error calculating permutation importance: {str(e)}")
            raise

    def plot_feature_importance(self, importance: pd.Series, title='Feature Importance', top_n=20):
        """Horizontal bar chart of the top `top_n` features"""
        if len(importance) != len(self.feature_names):
            logger.warning("Feature importance length doesn't match feature names")
            return None

        top = importance.sort_values(ascending=False).head(top_n).iloc[::-1]

        fig, ax = plt.subplots(figsize=(10, 6))
        ax.barh(top.index, top.values)
        ax.set_xlabel('Importance')
        ax.set_title(title)
        fig.tight_layout()
        return fig
