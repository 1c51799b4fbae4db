"""Alignment, feature building, scaling and windowing."""
from .align import align, fill_gaps
from .features import (
    AUXILIARY_FEATURES,
    BASE_FEATURES,
    FeatureSet,
    FeatureSpec,
    build_features,
    default_feature_columns,
    latest_feature_rows,
    validate_feature_spec,
)
from .scaling import MinMaxScaler, ScalerState
from .windows import WindowedDataset, make_windows, split_train_test
