# tests/test_train.py

import numpy as np
import pytest

from conftest import make_transactions
from fraud_report.data.preprocessing import normalize_labels
from fraud_report.exceptions import DataInputError, DegenerateInputError, ProbabilityLookupError
from fraud_report.models.train import FraudDetectionModel, Scores, TrainedPredictor

MODEL_NAMES = ['decision_tree', 'random_forest']


class _ConstantEstimator:
    """Stand-in estimator returning fixed probabilities."""

    def __init__(self, classes, proba):
        self.classes_ = np.array(classes)
        self.proba = np.array(proba, dtype=float)

    def predict_proba(self, X):
        return np.tile(self.proba, (len(X), 1))


@pytest.fixture
def model():
    return FraudDetectionModel({'random_state': 0})


class TestTrain:
    """Tests for fitting the two model variants."""

    def test_ten_record_scenario(self, model):
        """A tree fitted on 8 records classifies the held-out records correctly."""
        df = normalize_labels(make_transactions(2, 8, seed=4, shift=50.0))
        holdout = df.iloc[[8, 9]]
        training = df.drop(index=holdout.index)

        predictor = model.train(training, 'decision_tree')
        scores = model.score(predictor, holdout)
        all_fraud = model.score(predictor, df[df['label'] == 'fraud'])

        assert len(training) == 8
        assert scores.predictions.tolist() == [0, 1]
        assert all_fraud.predictions.tolist() == [0, 0]

    @pytest.mark.parametrize('model_name', MODEL_NAMES)
    def test_single_class_training_fails(self, model, model_name):
        df = normalize_labels(make_transactions(0, 20))

        with pytest.raises(DegenerateInputError) as exc_info:
            model.train(df, model_name)

        assert exc_info.value.class_counts == {1: 20}

    def test_unknown_model(self, model, normalized_transactions):
        with pytest.raises(ValueError, match='Unknown model'):
            model.train(normalized_transactions, 'xgboost')

    def test_requires_normalized_labels(self, model, transactions):
        with pytest.raises(DataInputError, match='target'):
            model.train(transactions, 'decision_tree')

    def test_non_numeric_feature(self, model, normalized_transactions):
        df = normalized_transactions.copy()
        df['v5'] = 'x'

        with pytest.raises(DataInputError, match='Non-numeric'):
            model.train(df, 'decision_tree')

    def test_training_metadata(self, model, normalized_transactions):
        predictor = model.train(normalized_transactions, 'random_forest')

        assert predictor.name == 'random_forest'
        assert predictor.metadata['class_counts'] == {0: 40, 1: 160}
        assert model.training_metadata['random_forest']['n_records'] == 200

    def test_training_does_not_touch_template(self, model, normalized_transactions):
        model.train(normalized_transactions, 'decision_tree')

        assert not hasattr(model.models['decision_tree'], 'classes_')


class TestScore:
    """Tests for predictions and probability pairs."""

    @pytest.mark.parametrize('model_name', MODEL_NAMES)
    def test_probabilities_are_distributions(self, model, model_name):
        train = normalize_labels(make_transactions(30, 120, seed=5, shift=0.5))
        held_out = normalize_labels(make_transactions(10, 40, seed=6, shift=0.5))

        predictor = model.train(train, model_name)
        scores = model.score(predictor, held_out)

        assert scores.probabilities.shape == (50, 2)
        assert np.allclose(scores.probabilities.sum(axis=1), 1.0, atol=1e-9)
        assert np.all((scores.probabilities >= 0) & (scores.probabilities <= 1))
        assert set(scores.predictions.tolist()) <= {0, 1}

    def test_ties_resolve_to_fraud(self, model, normalized_transactions):
        predictor = TrainedPredictor(
            'constant', _ConstantEstimator([0, 1], [0.5, 0.5]), model.feature_names
        )

        scores = model.score(predictor, normalized_transactions.head(3))

        assert scores.predictions.tolist() == [0, 0, 0]

    def test_columns_follow_class_order(self, model, normalized_transactions):
        predictor = TrainedPredictor(
            'constant', _ConstantEstimator([1, 0], [0.8, 0.2]), model.feature_names
        )

        scores = model.score(predictor, normalized_transactions.head(2))

        assert scores.p_fraud.tolist() == [0.2, 0.2]
        assert scores.p_genuine.tolist() == [0.8, 0.8]
        assert scores.predictions.tolist() == [1, 1]

    def test_missing_feature_column(self, model, normalized_transactions):
        predictor = model.train(normalized_transactions, 'decision_tree')

        with pytest.raises(DataInputError, match='v12'):
            model.score(predictor, normalized_transactions.drop(columns=['v12']))


class TestProbabilityLookup:

    def _scores(self, n):
        probabilities = np.column_stack([np.full(n, 0.25), np.full(n, 0.75)])
        return Scores(predictions=np.ones(n, dtype=int), probabilities=probabilities)

    def test_lookup(self):
        assert self._scores(10).probability_at(9) == (0.25, 0.75)

    def test_lookup_beyond_test_set(self):
        """Position 5000 against a 1998-record test set."""
        with pytest.raises(ProbabilityLookupError) as exc_info:
            self._scores(1998).probability_at(5000)

        assert exc_info.value.position == 5000
        assert exc_info.value.size == 1998
        assert '1998' in str(exc_info.value)

    def test_lookup_error_is_index_error(self):
        with pytest.raises(IndexError):
            self._scores(3).probability_at(-1)


class TestEvaluateModel:

    @pytest.mark.parametrize('model_name', MODEL_NAMES)
    def test_well_separated_data(self, model, model_name, normalized_transactions):
        held_out = normalize_labels(make_transactions(10, 30, seed=8))
        predictor = model.train(normalized_transactions, model_name)

        scores, evaluation = model.evaluate_model(predictor, held_out, 'validation')

        assert len(scores) == 40
        assert evaluation.confusion.total == 40
        assert evaluation.confusion.tp == 10
        assert evaluation.auc == pytest.approx(1.0)

    def test_single_class_holdout_fails(self, model, normalized_transactions):
        held_out = normalize_labels(make_transactions(0, 10, seed=8))
        predictor = model.train(normalized_transactions, 'decision_tree')

        with pytest.raises(DegenerateInputError):
            model.evaluate_model(predictor, held_out)


class TestCrossValidate:

    def test_cross_validate(self, normalized_transactions):
        model = FraudDetectionModel({'random_state': 0, 'cv_folds': 3})

        mean_score, std_score = model.cross_validate(normalized_transactions, 'decision_tree')

        assert 0.0 <= mean_score <= 1.0
        assert std_score >= 0.0

    def test_too_few_fraud_records(self):
        model = FraudDetectionModel({'random_state': 0, 'cv_folds': 5})
        df = normalize_labels(make_transactions(2, 50))

        with pytest.raises(DegenerateInputError):
            model.cross_validate(df, 'random_forest')

    def test_folds_disabled(self, model, normalized_transactions):
        with pytest.raises(ValueError, match='cv_folds'):
            model.cross_validate(normalized_transactions, 'decision_tree')
