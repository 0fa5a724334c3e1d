"""
Unsupervised Timecard Outlier Scoring (Isolation Forest)

Purpose:
Detect timecards that are statistically unusual relative to a reference
distribution of plausible legitimate work patterns, WITHOUT fraud labels.

Algorithm (scikit-learn's IsolationForest, which is the textbook procedure):
- 100 isolation trees, each grown on a subsample of psi = min(256, n) points
  drawn without replacement
- at every node: one feature picked at random, split value uniform between
  the node's min and max of that feature
- a branch stops at <= 1 point or depth ceil(log2 psi)
- path length h(x) = depth reached + c(size) for leaves holding > 1 point
- score s(x) = 2 ** (-E[h(x)] / c(psi)), in (0, 1]:
  ~1 isolated quickly (anomalous), ~0.5 typical

Design Constraint:
- Model is trained once on the synthetic prior (see training_data.py)
- Trees are immutable after fit(); scoring has no side effects
- Scoring before fit() raises ModelNotReadyError
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from sklearn.ensemble import IsolationForest

from timecard_guard.exceptions import ModelNotReadyError
from timecard_guard.features.extractor import features_to_frame
from timecard_guard.features.schema import AnomalyFeatures


logger = logging.getLogger(__name__)


# ============================================================================
# FEATURE CONTRACT (STRICT)
# ============================================================================
# is_weekend is deliberately absent: day_of_week already carries it, and the
# reasoner reads the flag directly.

FOREST_FEATURES = [
    'clock_in_hour',
    'clock_out_hour',
    'duration_hours',
    'days_since_pay_day',
    'days_until_pay_day',
    'occupation_type',
    'rate_cents',
    'day_of_week',
    'schedule_deviation',
]

NUM_TREES = 100
SUBSAMPLE_SIZE = 256
EULER_GAMMA = 0.5772156649

Samples = Union[pd.DataFrame, Sequence[AnomalyFeatures]]


def average_path_length(n: int) -> float:
    """
    c(n): average path length of an unsuccessful BST search over n points.

    Used both as the leaf correction for unsplit branches and as the
    normaliser c(psi) of the anomaly score.
    """
    if n <= 1:
        return 0.0
    if n == 2:
        return 1.0
    return 2.0 * (math.log(n - 1) + EULER_GAMMA) - 2.0 * (n - 1) / n


@dataclass(frozen=True)
class Detection:
    """A sample whose score exceeded the detection threshold."""
    index: int
    score: float
    features: Optional[AnomalyFeatures] = None


# ============================================================================
# PREPROCESSING
# ============================================================================

def _to_frame(samples: Samples) -> pd.DataFrame:
    if isinstance(samples, pd.DataFrame):
        return samples
    return features_to_frame(list(samples))


def _validate_feature_contract(df: pd.DataFrame) -> None:
    """
    Enforce the forest feature contract.

    Raises:
        ValueError: If a contract column is missing or holds nulls
    """
    missing_features = set(FOREST_FEATURES) - set(df.columns)
    if missing_features:
        raise ValueError(
            f"Missing required forest features: {sorted(missing_features)}\n"
            f"Expected: {FOREST_FEATURES}"
        )

    null_counts = df[FOREST_FEATURES].isnull().sum()
    if null_counts.sum() > 0:
        raise ValueError(
            f"NULL values detected in forest features:\n{null_counts[null_counts > 0]}"
        )


def to_matrix(samples: Samples) -> np.ndarray:
    """Feature matrix in FOREST_FEATURES column order."""
    df = _to_frame(samples)
    if df.empty:
        return np.empty((0, len(FOREST_FEATURES)))
    _validate_feature_contract(df)
    return df[FOREST_FEATURES].to_numpy(dtype=float)


# ============================================================================
# MODEL
# ============================================================================

class TimecardIsolationForest:
    """
    Isolation Forest behind the timecard feature contract.

    Usage:
        forest = TimecardIsolationForest(random_state=42)
        forest.fit(generate_normal_training_data(300, seed=42))

        detections = forest.detect(todays_features, threshold=0.55)
        for d in detections:
            print(d.index, d.score)
    """

    def __init__(
        self,
        n_estimators: int = NUM_TREES,
        max_samples: int = SUBSAMPLE_SIZE,
        random_state: Optional[int] = 42,
    ):
        self.n_estimators = n_estimators
        self.max_samples = max_samples
        self.random_state = random_state
        self._model: Optional[IsolationForest] = None
        self._sample_size = 0

    @property
    def is_ready(self) -> bool:
        return self._model is not None

    @property
    def sample_size(self) -> int:
        """psi actually used per tree (min(max_samples, n_train))."""
        return self._sample_size

    def fit(self, samples: Samples, verbose: bool = False) -> "TimecardIsolationForest":
        """
        Build the ensemble from a reference set of normal vectors.

        Args:
            samples: DataFrame with FOREST_FEATURES columns, or AnomalyFeatures list
            verbose: Log training diagnostics at INFO

        Returns:
            self (fitted)

        Raises:
            ValueError: Empty reference set or broken feature contract
        """
        X_train = to_matrix(samples)
        if len(X_train) == 0:
            raise ValueError("Cannot fit Isolation Forest on an empty reference set")

        sample_size = min(self.max_samples, len(X_train))

        model = IsolationForest(
            n_estimators=self.n_estimators,
            max_samples=sample_size,
            contamination='auto',
            random_state=self.random_state,
        )
        model.fit(X_train)

        # Publish only once training is complete
        self._sample_size = sample_size
        self._model = model

        if verbose:
            logger.info("=" * 70)
            logger.info("ISOLATION FOREST TRAINED")
            logger.info("=" * 70)
            logger.info(f"Reference samples:   {len(X_train):,}")
            logger.info(f"Features:            {X_train.shape[1]}")
            logger.info(f"n_estimators:        {self.n_estimators}")
            logger.info(f"psi (per tree):      {sample_size}")
            logger.info(f"max depth:           {math.ceil(math.log2(max(sample_size, 2)))}")
            logger.info("=" * 70)

        return self

    def score(self, samples: Samples) -> np.ndarray:
        """
        Anomaly score s(x) in (0, 1] for every sample, input order preserved.

        scikit-learn's score_samples() returns -s(x) from the original paper,
        so the sign flip is all that is needed.

        Raises:
            ModelNotReadyError: fit() has not completed
        """
        if self._model is None:
            raise ModelNotReadyError(
                "Isolation Forest has not been fitted. Call fit() first."
            )

        X = to_matrix(samples)
        if len(X) == 0:
            return np.empty(0)

        return -self._model.score_samples(X)

    def detect(self, samples: Samples, threshold: float) -> List[Detection]:
        """
        Every sample scoring strictly above `threshold`, tagged with its index.

        Args:
            samples: AnomalyFeatures list or DataFrame
            threshold: Detection cut-off, e.g. 0.55

        Returns:
            List[Detection], in input order
        """
        feature_list = None if isinstance(samples, pd.DataFrame) else list(samples)
        scores = self.score(samples if feature_list is None else feature_list)

        detections = []
        for index, score in enumerate(scores):
            if score > threshold:
                detections.append(Detection(
                    index=index,
                    score=float(score),
                    features=feature_list[index] if feature_list is not None else None,
                ))

        logger.debug(
            f"Scored {len(scores)} samples, {len(detections)} above threshold {threshold}"
        )
        return detections
