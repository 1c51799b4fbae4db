"""Tests for the sequence predictor lifecycle (stand-in model, no TensorFlow training)."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
import pytest

from augur.datasets import MinMaxScaler
from augur.errors import ModelNotTrainedError
from augur.predictors import ModelState, SequencePredictor, build_lstm_model, roll_window


@pytest.fixture
def windows():
    rng = np.random.default_rng(0)
    X = rng.uniform(0, 1, size=(20, 5, 2))
    y = X[:, -1, 0]
    return X, y


@pytest.fixture
def target_scaler():
    return MinMaxScaler().fit([[100.0], [200.0]])


class TestLifecycle:
    def test_starts_untrained(self, model_factory):
        predictor = SequencePredictor(model_factory=model_factory)
        assert predictor.state == ModelState.UNTRAINED
        assert not predictor.is_trained

    def test_predict_before_fit(self, model_factory, windows):
        predictor = SequencePredictor(model_factory=model_factory)
        with pytest.raises(ModelNotTrainedError):
            predictor.predict(windows[0])

    def test_evaluate_and_forecast_before_fit(self, model_factory, windows, target_scaler):
        predictor = SequencePredictor(model_factory=model_factory)
        with pytest.raises(ModelNotTrainedError):
            predictor.evaluate(windows[0], windows[1], target_scaler)
        with pytest.raises(ModelNotTrainedError):
            predictor.forecast(windows[0][0], 3, target_scaler)

    def test_build_stays_untrained(self, model_factory):
        predictor = SequencePredictor(model_factory=model_factory)
        predictor.build((5, 2))
        assert predictor.state == ModelState.UNTRAINED

    def test_fit_trains_and_records_history(self, model_factory, windows):
        predictor = SequencePredictor(model_factory=model_factory)
        history = predictor.fit(*windows, epochs=3, batch_size=4)
        assert predictor.is_trained
        assert len(history.loss) == 3
        assert len(history.val_loss) == 3
        call = predictor._model.fit_calls[0]
        assert call["shuffle"] is False
        assert call["epochs"] == 3

    def test_fit_rejects_empty(self, model_factory):
        predictor = SequencePredictor(model_factory=model_factory)
        with pytest.raises(ValueError):
            predictor.fit(np.empty((0, 5, 2)), np.empty(0))


class TestPrediction:
    def test_evaluate_descaled(self, model_factory, windows, target_scaler):
        predictor = SequencePredictor(model_factory=model_factory)
        predictor.fit(*windows, epochs=1)
        result = predictor.evaluate(*windows, target_scaler=target_scaler)
        assert result.metrics.mse == pytest.approx(0.0)
        assert result.y_true.min() >= 100.0
        assert result.y_true.max() <= 200.0

    def test_forecast_rolls_window(self, model_factory, target_scaler):
        predictor = SequencePredictor(model_factory=model_factory)
        X = np.tile(np.linspace(0, 1, 4)[:, None], (6, 1, 2)).reshape(6, 4, 2)
        predictor.fit(X, X[:, -1, 0], epochs=1)

        window = np.array([[0.1, 0.0], [0.2, 0.0], [0.3, 0.0], [0.4, 0.0]])
        result = predictor.forecast(window, steps=3, target_scaler=target_scaler)
        assert len(result) == 3
        # persistence model keeps predicting the last target slot
        np.testing.assert_allclose(result.values, [140.0, 140.0, 140.0])


class TestLSTMArchitecture:
    def test_stacked_layers(self):
        tf = pytest.importorskip("tensorflow")
        keras = tf.keras

        model = build_lstm_model((5, 2))
        layers = model.layers
        expected = [
            keras.layers.LSTM, keras.layers.Dropout,
            keras.layers.LSTM, keras.layers.Dropout,
            keras.layers.Dense,
        ]
        assert len(layers) == len(expected)
        for layer, cls in zip(layers, expected):
            assert isinstance(layer, cls)
        assert layers[0].return_sequences is True
        assert layers[2].return_sequences is False
        assert layers[1].rate == pytest.approx(0.2)
        assert layers[3].rate == pytest.approx(0.2)
        assert layers[4].units == 1
        assert model.loss == 'mean_squared_error'
        assert isinstance(model.optimizer, keras.optimizers.Adam)

    def test_default_factory_build_stays_untrained(self):
        pytest.importorskip("tensorflow")
        predictor = SequencePredictor()
        predictor.build((5, 2))
        assert predictor.state == ModelState.UNTRAINED
        with pytest.raises(ModelNotTrainedError):
            predictor.predict(np.zeros((1, 5, 2)))


class TestRollWindow:
    def test_drops_oldest_and_copies_latest(self):
        window = np.array([[1.0, 10.0], [2.0, 20.0], [3.0, 30.0]])
        rolled = roll_window(window, 9.0, slot=0)
        np.testing.assert_array_equal(rolled, [[2.0, 20.0], [3.0, 30.0], [9.0, 30.0]])
        assert window[0, 0] == 1.0

    def test_no_slot_carries_row(self):
        window = np.array([[1.0], [2.0]])
        np.testing.assert_array_equal(roll_window(window, 5.0, slot=None), [[2.0], [2.0]])
