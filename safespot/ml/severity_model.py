"""
severity_model.py — 0–100 severity score for a hazard, as seen by one user.

Two interchangeable scorers share one input contract:

    reference_severity()   closed-form formula (deterministic, the default)
    SeverityScorer         optional feed-forward network trained at start-up
                           on samples labelled by that same formula

═══════════════════════════════════════════════════════════════════════════
REFERENCE FORMULA
═══════════════════════════════════════════════════════════════════════════

    distScore  = max(0, 1 − distance_km / 20000)
    hazScore   = clamp(magnitude_like / maxScale × priority, 0, 1)
    elevScore  = max(0, 1 − elevation_m / 3000)
    timeScore  = 1 if hour < 6 or hour ≥ 18 else 0

    severity   = round(100 × (0.30·dist + 0.30·haz + 0.15·elev + 0.15·time))

    Type         priority   maxScale   (intensity unit)
    ──────────   ────────   ────────   ───────────────
    earthquake   1.0        8          magnitude
    flood        0.8        5          water depth, m
    storm        0.7        50         wind speed
    others       0.5        1

Every term is non-increasing in distance and bounded, so the score always
lands in [0, 100] (max raw sum is 0.90) and never grows as the hazard
moves further away.

═══════════════════════════════════════════════════════════════════════════
NETWORK VARIANT
═══════════════════════════════════════════════════════════════════════════

    input (9) → Dense(16, ReLU) → Dense(8, ReLU) → Dense(1, linear)

Input encoding:
    [distance/20000, onehot(earthquake, flood, storm),
     magnitude/8, water_depth/5, wind_speed/50, elevation/3000, hour/23]

The network only approximates the formula (training noise, no
monotonicity guarantee), so it is opt-in via SEVERITY_USE_MODEL.
"""

from __future__ import annotations

import logging
import math
import time
import warnings
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.neural_network import MLPRegressor

from safespot.core.errors import ModelNotInitializedError
from safespot.hazards.models import HazardType

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_DISTANCE_KM = 20_000.0
MAX_ELEVATION_M = 3_000.0

HAZARD_PRIORITY: Dict[HazardType, float] = {
    HazardType.EARTHQUAKE: 1.0,
    HazardType.FLOOD: 0.8,
    HazardType.STORM: 0.7,
}
DEFAULT_PRIORITY = 0.5

MAX_SCALE: Dict[HazardType, float] = {
    HazardType.EARTHQUAKE: 8.0,
    HazardType.FLOOD: 5.0,
    HazardType.STORM: 50.0,
}
DEFAULT_MAX_SCALE = 1.0

WEIGHTS = {"distance": 0.30, "hazard": 0.30, "elevation": 0.15, "time": 0.15}

# Types with a dedicated input channel in the network encoding
MODEL_TYPES: Tuple[HazardType, ...] = (
    HazardType.EARTHQUAKE,
    HazardType.FLOOD,
    HazardType.STORM,
)


@dataclass(frozen=True)
class SeverityFeatures:
    """Normalized feature vector for one hazard/user pair."""
    distance_km: float
    hazard_type: HazardType
    magnitude_like: float = 0.0
    elevation_m: float = 0.0
    hour_of_day: int = 12  # 0–23


# ---------------------------------------------------------------------------
# Closed form
# ---------------------------------------------------------------------------

def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def reference_raw(features: SeverityFeatures) -> float:
    """Weighted score in [0, 0.9] before scaling to 0–100."""
    dist_score = max(0.0, 1.0 - features.distance_km / MAX_DISTANCE_KM)

    priority = HAZARD_PRIORITY.get(features.hazard_type, DEFAULT_PRIORITY)
    max_scale = MAX_SCALE.get(features.hazard_type, DEFAULT_MAX_SCALE)
    haz_score = _clamp((features.magnitude_like or 0.0) / max_scale * priority, 0.0, 1.0)

    elev_score = max(0.0, 1.0 - features.elevation_m / MAX_ELEVATION_M)
    time_score = 1.0 if (features.hour_of_day < 6 or features.hour_of_day >= 18) else 0.0

    return (
        WEIGHTS["distance"] * dist_score
        + WEIGHTS["hazard"] * haz_score
        + WEIGHTS["elevation"] * elev_score
        + WEIGHTS["time"] * time_score
    )


def reference_severity(features: SeverityFeatures) -> int:
    """Deterministic 0–100 severity."""
    return int(_clamp(_round_half_up(100.0 * reference_raw(features)), 0, 100))


# ---------------------------------------------------------------------------
# Network encoding + synthetic training data
# ---------------------------------------------------------------------------

def encode_features(features: SeverityFeatures) -> List[float]:
    one_hot = [1.0 if features.hazard_type == t else 0.0 for t in MODEL_TYPES]
    intensity = features.magnitude_like or 0.0
    magnitude = intensity if features.hazard_type == HazardType.EARTHQUAKE else 0.0
    water_depth = intensity if features.hazard_type == HazardType.FLOOD else 0.0
    wind_speed = intensity if features.hazard_type == HazardType.STORM else 0.0
    return [
        features.distance_km / MAX_DISTANCE_KM,
        *one_hot,
        magnitude / MAX_SCALE[HazardType.EARTHQUAKE],
        water_depth / MAX_SCALE[HazardType.FLOOD],
        wind_speed / MAX_SCALE[HazardType.STORM],
        features.elevation_m / MAX_ELEVATION_M,
        features.hour_of_day / 23.0,
    ]


def generate_training_data(
    n_samples: int = 500,
    seed: int = 42,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Draw synthetic samples and label them with the reference formula.

    Returns (X, y) with y scaled to [0, 1].
    """
    rng = np.random.RandomState(seed)
    X: List[List[float]] = []
    y: List[float] = []

    for _ in range(n_samples):
        hazard_type = MODEL_TYPES[rng.randint(len(MODEL_TYPES))]
        features = SeverityFeatures(
            distance_km=float(rng.uniform(0, MAX_DISTANCE_KM)),
            hazard_type=hazard_type,
            magnitude_like=float(rng.uniform(0, MAX_SCALE[hazard_type])),
            elevation_m=float(rng.uniform(0, MAX_ELEVATION_M)),
            hour_of_day=int(rng.randint(24)),
        )
        X.append(encode_features(features))
        y.append(reference_raw(features))

    return np.asarray(X, dtype=float), np.asarray(y, dtype=float)


# ---------------------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------------------

class SeverityScorer:
    """
    Severity scorer with an optional trained network.

    Usage:
        scorer = SeverityScorer(use_model=True)
        scorer.initialize()                 # trains the network
        scorer.predict_severity(features)   # network output, 0–100

        scorer.score(features)              # network if ready, else formula

    With ``use_model=False`` no training happens and both calls use the
    closed form, so ``predict_severity`` never fails.
    """

    def __init__(
        self,
        *,
        use_model: bool = False,
        n_samples: int = 500,
        seed: int = 42,
        max_iter: int = 500,
    ):
        self.use_model = use_model
        self.n_samples = n_samples
        self.seed = seed
        self.max_iter = max_iter
        self._model: Optional[MLPRegressor] = None

    @property
    def is_ready(self) -> bool:
        return not self.use_model or self._model is not None

    def initialize(self) -> None:
        """Train the network (no-op for the formula variant). Blocking."""
        if not self.use_model or self._model is not None:
            return

        start = time.monotonic()
        X, y = generate_training_data(self.n_samples, self.seed)
        model = MLPRegressor(
            hidden_layer_sizes=(16, 8),
            activation="relu",
            solver="adam",
            max_iter=self.max_iter,
            random_state=self.seed,
        )
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", category=ConvergenceWarning)
            model.fit(X, y)
        self._model = model

        logger.info(
            "Severity model trained on %d samples (loss=%.5f)",
            self.n_samples, model.loss_,
            extra={"duration_ms": int((time.monotonic() - start) * 1000)},
        )

    def predict_severity(self, features: SeverityFeatures) -> int:
        """
        0–100 severity.

        Raises
        ------
        ModelNotInitializedError
            Network variant invoked before ``initialize()`` completed.
        """
        if not self.use_model:
            return reference_severity(features)
        if self._model is None:
            raise ModelNotInitializedError("severity")

        x = np.asarray([encode_features(features)], dtype=float)
        raw = float(self._model.predict(x)[0])
        return int(_clamp(_round_half_up(raw * 100.0), 0, 100))

    def score(self, features: SeverityFeatures) -> int:
        """Like predict_severity, but falls back to the formula until ready."""
        if not self.is_ready:
            return reference_severity(features)
        return self.predict_severity(features)
