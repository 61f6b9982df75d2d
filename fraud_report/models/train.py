import pandas as pd
import numpy as np
from sklearn.model_selection import StratifiedKFold
from sklearn.ensemble import RandomForestClassifier
from sklearn.tree import DecisionTreeClassifier
from sklearn.base import clone
import logging
import time
from dataclasses import dataclass, field
from typing import List, Tuple
from tqdm import tqdm

from fraud_report.config import FEATURES, MODEL_CONFIG, TARGET_ENCODING
from fraud_report.exceptions import DataInputError, DegenerateInputError, ProbabilityLookupError
from fraud_report.models.evaluation import Evaluation, class_counts, evaluate, roc_auc

logger = logging.getLogger(__name__)

# column order of every probability pair: P(fraud), P(genuine)
CLASS_ORDER = np.array(sorted(TARGET_ENCODING.values()))


@dataclass
class TrainedPredictor:
    """A fitted estimator together with the feature columns it was fitted on"""
    name: str
    estimator: object
    feature_names: List[str]
    metadata: dict = field(default_factory=dict)

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        proba = self.estimator.predict_proba(X)
        # reorder columns to CLASS_ORDER regardless of the estimator's classes_
        columns = [list(self.estimator.classes_).index(c) for c in CLASS_ORDER]
        return proba[:, columns]


@dataclass(frozen=True)
class Scores:
    """Hard predictions and (P(fraud), P(genuine)) pairs, one per record"""
    predictions: np.ndarray
    probabilities: np.ndarray

    def __len__(self):
        return len(self.predictions)

    @property
    def p_fraud(self) -> np.ndarray:
        return self.probabilities[:, 0]

    @property
    def p_genuine(self) -> np.ndarray:
        return self.probabilities[:, 1]

    def probability_at(self, position: int) -> Tuple[float, float]:
        """Probability pair of the record at `position` in the scored dataset"""
        if not 0 <= position < len(self):
            raise ProbabilityLookupError(position, len(self))
        p_fraud, p_genuine = self.probabilities[position]
        return float(p_fraud), float(p_genuine)


class FraudDetectionModel:
    def __init__(self, config=None):
        """Initialize with configuration; unset keys fall back to MODEL_CONFIG"""
        self.config = {
            **MODEL_CONFIG,
            **(config or {})  # Allow override of defaults
        }
        self.feature_names = list(FEATURES['numeric_features'])
        self.target = FEATURES['target']

        # Library defaults throughout; only the seed and job count are fixed
        self.models = {
            'decision_tree': DecisionTreeClassifier(
                random_state=self.config['random_state']
            ),
            'random_forest': RandomForestClassifier(
                random_state=self.config['random_state'],
                n_jobs=self.config['n_jobs']
            )
        }
        self.training_metadata = {}

    def _log_data_stats(self, df: pd.DataFrame):
        """Log dataset shape and class distribution"""
        logger.info(f"\n{'='*50}\nDataset Characteristics\n{'='*50}")
        logger.info(f"Shape: {df.shape}")

        class_dist = df[self.target].value_counts(normalize=True)
        logger.info(f"\nClass Distribution:\n{class_dist.to_string()}")
        if len(class_dist) == 2:
            logger.info(f"Imbalance Ratio: {class_dist.iloc[0]/class_dist.iloc[1]:.1f}:1")

    def check_data_quality(self, df: pd.DataFrame):
        """Verify the feature schema; missing values are reported, not rejected"""
        missing_cols = [col for col in self.feature_names + [self.target] if col not in df.columns]
        if missing_cols:
            raise DataInputError(f"Missing columns: {missing_cols}")

        self._log_data_stats(df)

        non_numeric_cols = [
            col for col in self.feature_names if not pd.api.types.is_numeric_dtype(df[col])
        ]
        if non_numeric_cols:
            raise DataInputError(f"Non-numeric columns: {non_numeric_cols}")

        nan_count = int(df[self.feature_names].isnull().sum().sum())
        if nan_count > 0:
            logger.warning(f"Feature matrix contains {nan_count} NaN values")

        logger.info("Data quality check passed")

    def _features(self, df: pd.DataFrame) -> np.ndarray:
        missing_cols = [col for col in self.feature_names if col not in df.columns]
        if missing_cols:
            raise DataInputError(f"Records lack feature columns: {missing_cols}")
        return df[self.feature_names].to_numpy(dtype=float)

    def _target(self, df: pd.DataFrame) -> np.ndarray:
        if self.target not in df.columns:
            raise DataInputError(
                f"Records lack the '{self.target}' column; normalize labels first"
            )
        return df[self.target].to_numpy(dtype=np.int64)

    def train(self, df: pd.DataFrame, model_name: str = 'decision_tree') -> TrainedPredictor:
        """Fit one model variant on a label-normalized training frame"""
        if model_name not in self.models:
            raise ValueError(f"Unknown model '{model_name}', expected one of {list(self.models)}")

        start_time = time.time()
        try:
            logger.info(f"\n{'='*50}\nTraining {model_name} model\n{'='*50}")
            self.check_data_quality(df)
            X, y = self._features(df), self._target(df)

            counts = class_counts(y)
            if len(counts) < 2:
                raise DegenerateInputError(f"Cannot train {model_name}", counts)

            model = clone(self.models[model_name])
            model.fit(X, y)
            train_time = time.time() - start_time

            self.training_metadata[model_name] = {
                'params': model.get_params(),
                'class_counts': counts,
                'n_records': len(df),
                'train_time': train_time
            }
            logger.info(f"Training completed for {model_name} in {train_time:.2f}s")

            return TrainedPredictor(
                name=model_name,
                estimator=model,
                feature_names=list(self.feature_names),
                metadata=self.training_metadata[model_name]
            )
        except Exception as e:
            logger.error(f"Training failed: {str(e)}", exc_info=True)
            raise

    def score(self, predictor: TrainedPredictor, df: pd.DataFrame) -> Scores:
        """Hard predictions and probability pairs for every record in `df`"""
        probabilities = predictor.predict_proba(self._features(df))
        # argmax keeps the first maximum, so ties resolve to fraud
        predictions = CLASS_ORDER[np.argmax(probabilities, axis=1)]
        return Scores(predictions=predictions, probabilities=probabilities)

    def evaluate_model(self, predictor: TrainedPredictor, df: pd.DataFrame,
                       partition: str = 'holdout') -> Tuple[Scores, Evaluation]:
        """Score a held-out frame and compute confusion counts, ROC curve and AUC"""
        start_time = time.time()
        try:
            logger.info(f"\n{'='*50}\nEvaluating {predictor.name} on {partition}\n{'='*50}")
            predict_start = time.time()
            scores = self.score(predictor, df)
            predict_time = time.time() - predict_start

            evaluation = evaluate(self._target(df), scores.predictions, scores.p_fraud)

            logger.info(f"ROC AUC: {evaluation.auc:.4f}")
            logger.info(f"Prediction time: {predict_time:.2f}s")
            logger.info(f"Evaluation time: {time.time() - start_time:.2f}s")
            return scores, evaluation
        except Exception as e:
            logger.error(f"Evaluation error: {str(e)}", exc_info=True)
            raise

    def cross_validate(self, df: pd.DataFrame, model_name: str) -> Tuple[float, float]:
        """Stratified K-fold ROC AUC (fraud as positive class) on a training frame"""
        n_splits = self.config['cv_folds']
        if n_splits < 2:
            raise ValueError(f"cv_folds must be at least 2, got {n_splits}")

        start_time = time.time()
        try:
            X, y = self._features(df), self._target(df)
            counts = class_counts(y)
            if len(counts) < 2 or min(counts.values()) < n_splits:
                raise DegenerateInputError(
                    f"Cannot build {n_splits} folds with both classes", counts
                )

            cv = StratifiedKFold(
                n_splits=n_splits,
                shuffle=True,
                random_state=self.config['random_state']
            )

            scores = []
            iterator = tqdm(cv.split(X, y), total=n_splits, desc=f'CV {model_name}')
            for train_idx, val_idx in iterator:
                model = clone(self.models[model_name])
                model.fit(X[train_idx], y[train_idx])

                fold_predictor = TrainedPredictor(model_name, model, self.feature_names)
                p_fraud = fold_predictor.predict_proba(X[val_idx])[:, 0]
                score = roc_auc(y[val_idx], p_fraud)
                scores.append(score)
                iterator.set_postfix({'Fold ROC AUC': score})

            mean_score, std_score = float(np.mean(scores)), float(np.std(scores))
            logger.info(f"\nCV Results - ROC AUC: {mean_score:.4f} ± {std_score:.4f}")
            logger.info(f"Total CV time: {time.time() - start_time:.2f}s")
            return mean_score, std_score
        except Exception as e:
            logger.error(f"CV error: {str(e)}", exc_info=True)
            raise
