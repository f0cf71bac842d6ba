"""
Shared Test Fixtures and Configuration for the Customer Segmentation Test Suite

This module provides reusable fixtures for:
- Sample data (arrays, DataFrames, Datasets)
- Parameter and configuration objects
- Temporary files

Usage:
    pytest automatically discovers fixtures from conftest.py
    Any test can use these fixtures by including them as function parameters
"""

import pytest
import numpy as np
import pandas as pd

from customer_segmentation.config import (
    SegmentationConfig,
    DataConfig,
    ClusteringConfig,
    OutputConfig,
    LoggingConfig
)
from customer_segmentation.data import Dataset, FeatureSpec, TargetRule, load_dataset
from customer_segmentation.models import KMeansParams, TreeParams


# ==============================================================================
# PYTEST CONFIGURATION
# ==============================================================================

def pytest_configure(config):
    """Register custom markers for test organization."""
    config.addinivalue_line(
        "markers", "unit: Unit tests for individual functions/classes"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests for workflows"
    )
    config.addinivalue_line(
        "markers", "edge_case: Tests for edge cases and boundary conditions"
    )
    config.addinivalue_line(
        "markers", "slow: Slow-running tests (>1 second)"
    )


# ==============================================================================
# RANDOM GENERATOR FIXTURES
# ==============================================================================

@pytest.fixture(scope="session")
def random_seed():
    """Seed shared by every generator in the suite."""
    return 42


@pytest.fixture
def rng(random_seed):
    """Fresh seeded generator for each test."""
    return np.random.default_rng(random_seed)


# ==============================================================================
# SAMPLE DATA FIXTURES - ARRAYS
# ==============================================================================

@pytest.fixture
def valid_X_small(rng):
    """Small valid feature array (200 samples, 3 features)."""
    return rng.normal(size=(200, 3))


@pytest.fixture
def valid_y_small():
    """Small valid binary target (200 samples, 15% positive)."""
    y = np.zeros(200, dtype=int)
    y[:30] = 1
    return y


@pytest.fixture
def X_with_nans(rng):
    """Edge case: Feature array with NaN values."""
    X = rng.normal(size=(100, 4))
    X[rng.choice(100, 10, replace=False), 1] = np.nan
    return X


@pytest.fixture
def X_with_infs(rng):
    """Edge case: Feature array with infinity values."""
    X = rng.normal(size=(100, 4))
    X[rng.choice(100, 5, replace=False), 2] = np.inf
    return X


@pytest.fixture
def three_blobs(rng):
    """Three well-separated 2-D clusters of 40 points each."""
    centers = np.array([[0.0, 0.0], [10.0, 10.0], [-10.0, 10.0]])
    return np.vstack([center + rng.normal(scale=0.5, size=(40, 2)) for center in centers])


# ==============================================================================
# SAMPLE DATA FIXTURES - CUSTOMER TABLES
# ==============================================================================

CONTRACTS = ['month', 'one_year', 'two_year']


@pytest.fixture
def customer_schema():
    """Declared features of the synthetic customer table."""
    return [
        FeatureSpec.numeric('monthly_charges'),
        FeatureSpec.categorical('contract', CONTRACTS),
        FeatureSpec.numeric('support_calls'),
    ]


@pytest.fixture
def customer_frame():
    """
    Synthetic customer table (300 rows) in which tenure depends strongly on
    the contract type and weakly on monthly charges.
    """
    generator = np.random.default_rng(7)
    n = 300
    contract = generator.choice(CONTRACTS, size=n, p=[0.5, 0.3, 0.2])
    base = pd.Series(contract).map({'month': 8.0, 'one_year': 30.0, 'two_year': 55.0}).to_numpy()
    monthly = generator.uniform(20, 120, size=n)
    tenure = np.clip(base + 0.1 * (monthly - 70) + generator.normal(scale=6, size=n), 0, 72)
    return pd.DataFrame({
        'customer_id': np.arange(n),
        'monthly_charges': monthly.round(2),
        'contract': contract,
        'support_calls': generator.poisson(2.0, size=n).astype(float),
        'tenure': tenure.round(0),
    })


@pytest.fixture
def tenure_rule():
    """Long tenure: above the upper quartile of tenure."""
    return TargetRule(column='tenure', quantile=0.75, direction='>', name='long_tenure')


@pytest.fixture
def customer_dataset(customer_frame, customer_schema, tenure_rule):
    """Dataset built from the synthetic customer table."""
    return load_dataset(customer_frame, customer_schema, tenure_rule)


@pytest.fixture
def perfect_predictor_dataset():
    """A binary feature that determines the target exactly, plus a noise feature."""
    generator = np.random.default_rng(3)
    n = 100
    flag = np.repeat([0.0, 1.0], n // 2)
    frame = pd.DataFrame({
        'flag': flag,
        'noise': generator.normal(size=n),
    })
    schema = [FeatureSpec.numeric('flag'), FeatureSpec.numeric('noise')]
    return Dataset(frame, schema, flag.astype(bool), target_name='outcome')


@pytest.fixture
def constant_feature_dataset():
    """An informative feature alongside a feature with one value for every record."""
    n = 120
    x = np.arange(n, dtype=float)
    frame = pd.DataFrame({'x': x, 'constant': np.full(n, 5.0)})
    schema = [FeatureSpec.numeric('x'), FeatureSpec.numeric('constant')]
    return Dataset(frame, schema, x >= 60, target_name='outcome')


# ==============================================================================
# CONFIGURATION FIXTURES
# ==============================================================================

@pytest.fixture
def fast_tree_params():
    """Tree parameters with few folds for quick tests."""
    return TreeParams(complexity_floor=0.01, min_split=20, n_folds=5)


@pytest.fixture
def small_kmeans_params():
    """K-means parameters for small test matrices."""
    return KMeansParams(n_clusters=3, k_max=5)


@pytest.fixture
def temp_data_file(tmp_path, customer_frame):
    """Temporary CSV file with the synthetic customer table."""
    file_path = tmp_path / "customers.csv"
    customer_frame.to_csv(file_path, index=False)
    return file_path


@pytest.fixture
def segmentation_config(tmp_path, temp_data_file, customer_schema, tenure_rule, fast_tree_params):
    """Complete configuration pointing at the temporary CSV file."""
    return SegmentationConfig(
        data=DataConfig(
            source=str(temp_data_file),
            target=tenure_rule,
            features=customer_schema,
        ),
        tree_params=fast_tree_params,
        clustering=ClusteringConfig(n_clusters=3, k_max=5),
        output=OutputConfig(output_dir=str(tmp_path / "output")),
        logging=LoggingConfig(level='WARNING'),
        seed=42,
        verbose=False,
        name="test run"
    )
