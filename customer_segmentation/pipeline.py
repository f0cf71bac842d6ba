"""
Segmentation Pipeline Orchestrator

Runs the whole workflow with data kept in memory between stages:
load and validate the data, standardize the clustering matrix, fit the
decision-tree and k-means segmenters, evaluate both partitions and export
every table.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from .config import SegmentationConfig
from .data.dataset import Dataset, Encoding
from .data.loader import load_dataset
from .evaluator import SegmentEvaluator
from .kmeans import KMeansSegmenter, choose_k_by_elbow, elbow_curve
from .logger import get_logger
from .models.results import SegmentationReport
from .standardizer import Standardizer
from .tree import DecisionTreeSegmenter

# Module-level logger
logger = get_logger(__name__)


class SegmentationPipeline:
    """
    Orchestrates the complete segmentation workflow.

    Example:
        >>> config = SegmentationConfig.from_yaml('config.yaml')
        >>> pipeline = SegmentationPipeline(config)
        >>> pipeline.load_data()
        >>> pipeline.standardize()
        >>> pipeline.fit_tree()
        >>> pipeline.fit_kmeans()
        >>> pipeline.evaluate()
        >>> pipeline.export_all()
    """

    def __init__(self, config: SegmentationConfig):
        """
        Initialize pipeline with configuration.

        Args:
            config: SegmentationConfig object
        """
        self.config = config
        self.verbose = config.verbose

        # Independent streams for the tree folds and k-means initialisation
        tree_seed, kmeans_seed = np.random.SeedSequence(config.seed).spawn(2)
        self.tree_rng = np.random.default_rng(tree_seed)
        self.kmeans_rng = np.random.default_rng(kmeans_seed)

        # Data storage (loaded once, reused)
        self.dataset: Optional[Dataset] = None
        self.raw_matrix = None
        self.scaled_matrix = None
        self.standardizer: Optional[Standardizer] = None

        # Model storage
        self.tree_segmenter: Optional[DecisionTreeSegmenter] = None
        self.kmeans_segmenter: Optional[KMeansSegmenter] = None
        self.tree_assignment: Optional[pd.Series] = None
        self.cluster_assignment: Optional[pd.Series] = None
        self.elbow: Optional[pd.DataFrame] = None

        # State tracking
        self.state = {
            'data_loaded': False,
            'standardized': False,
            'tree_fitted': False,
            'kmeans_fitted': False,
            'evaluated': False,
            'exported': False
        }

        # Results storage
        self.evaluation: Dict[str, Any] = {}
        self.warnings: list = []

        Path(self.config.output.output_dir).mkdir(parents=True, exist_ok=True)

        if self.verbose:
            logger.info("=" * 70)
            logger.info("SEGMENTATION PIPELINE INITIALIZED")
            logger.info("=" * 70)
            logger.info(self.config.summary())

    def _require(self, stage: str, action: str) -> None:
        if not self.state[stage]:
            raise RuntimeError(f"Cannot {action}: stage '{stage}' has not run yet")

    def _stage_banner(self, title: str) -> None:
        if self.verbose:
            logger.info("=" * 70)
            logger.info(title)
            logger.info("=" * 70)

    def load_data(self, frame: Optional[pd.DataFrame] = None) -> Dataset:
        """
        Load the configured source (or ``frame``) into a Dataset.

        Data is loaded once and reused across all pipeline stages.
        """
        if self.state['data_loaded']:
            logger.info("Data already loaded, skipping")
            return self.dataset

        self._stage_banner("STAGE 1: LOADING DATA")

        data_config = self.config.data
        self.dataset = load_dataset(
            frame if frame is not None else data_config.source,
            data_config.features,
            data_config.target,
            missing_policy=data_config.missing_policy,
            numeric_sentinel=data_config.numeric_sentinel,
            categorical_sentinel=data_config.categorical_sentinel,
        )
        self.state['data_loaded'] = True

        target = self.dataset.target
        logger.info(
            f"Data loaded: {len(self.dataset):,} records, {int(target.sum()):,} positive "
            f"({target.mean():.2%}), {len(self.dataset.feature_names)} features"
        )
        return self.dataset

    def standardize(self) -> None:
        """Build the clustering matrix and scale it to zero mean and unit variance."""
        self._require('data_loaded', "standardize")
        self._stage_banner("STAGE 2: STANDARDIZING")

        data_config = self.config.data
        self.raw_matrix = self.dataset.feature_matrix(
            data_config.cluster_features, encoding=Encoding(data_config.cluster_encoding)
        )
        self.standardizer = Standardizer()
        self.scaled_matrix = self.standardizer.fit_transform(self.raw_matrix)

        constant = [c for c, flag in zip(self.raw_matrix.columns, self.standardizer.constant_) if flag]
        if constant:
            self.warnings.append(f"Zero-variance clustering columns: {constant}")
            logger.warning(f"Zero-variance clustering columns scaled to zero: {constant}")
        logger.info(f"Standardized {self.raw_matrix.shape[1]} clustering columns")
        self.state['standardized'] = True

    def fit_tree(self) -> pd.Series:
        """Fit the decision-tree segmenter; returns the tree assignment."""
        self._require('data_loaded', "fit the tree")
        self._stage_banner("STAGE 3: DECISION TREE SEGMENTATION")

        self.tree_segmenter = DecisionTreeSegmenter(self.config.tree_params, rng=self.tree_rng)
        self.tree_segmenter.fit(self.dataset, self.config.data.tree_features)
        self.tree_assignment = self.tree_segmenter.assignment(self.dataset)

        if len(self.tree_segmenter.rules_) == 1:
            self.warnings.append("Decision tree has a single segment (no split survived pruning)")
        if self.verbose:
            logger.info("\n" + self.tree_segmenter.rules_text())

        self.state['tree_fitted'] = True
        return self.tree_assignment

    def fit_kmeans(self) -> pd.Series:
        """Compute the elbow curve and fit k-means; returns the cluster assignment."""
        self._require('standardized', "fit k-means")
        self._stage_banner("STAGE 4: K-MEANS SEGMENTATION")

        params = self.config.clustering.to_params()
        self.elbow = elbow_curve(
            self.scaled_matrix,
            params.k_max,
            self.config.seed,
            max_iter=params.max_iter,
            tol=params.tol,
            init=params.init,
        )
        if not self.elbow['monotone'].all():
            bad = self.elbow.loc[~self.elbow['monotone'], 'k'].tolist()
            self.warnings.append(f"Elbow curve not monotone at k={bad}")
        logger.info(f"Elbow suggests k={choose_k_by_elbow(self.elbow)}; using k={params.n_clusters}")

        self.kmeans_segmenter = KMeansSegmenter(params, rng=self.kmeans_rng)
        self.kmeans_segmenter.fit(self.scaled_matrix)
        self.cluster_assignment = self.kmeans_segmenter.assignment(self.dataset.index)

        result = self.kmeans_segmenter.result_
        if not result.converged:
            self.warnings.append(f"k-means did not converge in {result.n_iter} iterations")
        if result.n_reseeds:
            self.warnings.append(f"k-means reseeded {result.n_reseeds} empty cluster(s)")

        self.state['kmeans_fitted'] = True
        return self.cluster_assignment

    def _assignments(self) -> Dict[str, pd.Series]:
        assignments = {}
        if self.state['tree_fitted']:
            assignments['tree'] = self.tree_assignment
        if self.state['kmeans_fitted']:
            assignments['cluster'] = self.cluster_assignment
        return assignments

    def evaluate(self) -> Dict[str, Any]:
        """Summaries, probability tables and separation scores for every fitted method."""
        assignments = self._assignments()
        if not assignments:
            raise RuntimeError("Cannot evaluate: fit the tree or k-means first")
        self._stage_banner("STAGE 5: EVALUATING SEGMENTS")

        evaluator = SegmentEvaluator.from_dataset(self.dataset)
        self.evaluation = {'comparison': None}
        for method, assignment in assignments.items():
            summary = evaluator.summary(assignment)
            self.evaluation[method] = {
                'summary': summary,
                'joint': evaluator.joint_probabilities(assignment),
                'conditional': evaluator.conditional_probabilities(assignment),
                'separation': evaluator.separation_score(summary, method=assignment.name),
                'conditional_separation': evaluator.conditional_separation(assignment),
            }
        self.evaluation['comparison'] = evaluator.compare(
            {assignment.name: assignment for assignment in assignments.values()}
        )

        self.state['evaluated'] = True
        return self.evaluation

    def export_all(self) -> Dict[str, str]:
        """
        Write every output table to the output directory.

        Returns:
            Dictionary mapping output type to file paths
        """
        self._require('evaluated', "export")
        self._stage_banner("STAGE 6: EXPORTING OUTPUTS")

        output = self.config.output
        output_dir = Path(output.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        exported: Dict[str, str] = {}

        def write_csv(key: str, frame: pd.DataFrame, filename: str, index: bool = False) -> None:
            path = output_dir / filename
            frame.to_csv(path, index=index)
            exported[key] = str(path)

        segments = pd.concat(list(self._assignments().values()), axis=1)
        target = pd.Series(self.dataset.target, index=self.dataset.index, name=self.dataset.target_name)

        if output.write_records:
            raw = pd.concat([self.dataset.features, target, segments], axis=1)
            write_csv('records_raw', raw, "segmented_records_raw.csv")
            if self.scaled_matrix is not None:
                scaled = pd.concat([self.scaled_matrix.to_frame(), target, segments], axis=1)
                write_csv('records_scaled', scaled, "segmented_records_scaled.csv")

        if self.elbow is not None:
            write_csv('elbow_curve', self.elbow, "elbow_curve.csv")

        for method in ('tree', 'cluster'):
            if method not in self.evaluation:
                continue
            results = self.evaluation[method]
            write_csv(f'summary_{method}', results['summary'], f"summary_{method}.csv", index=True)
            write_csv(f'joint_{method}', results['joint'].to_frame(), f"joint_{method}.csv")
            write_csv(f'conditional_{method}', results['conditional'].to_frame(), f"conditional_{method}.csv")

        if output.write_diagnostics:
            if self.tree_segmenter is not None:
                write_csv('complexity_table', self.tree_segmenter.complexity_table_, "complexity_table.csv")
                write_csv('feature_importance', self.tree_segmenter.feature_importance_, "feature_importance.csv")
                rules_path = output_dir / "segment_rules.txt"
                with open(rules_path, 'w') as f:
                    f.write("=" * 80 + "\n")
                    f.write("DECISION TREE SEGMENT RULES\n")
                    f.write("=" * 80 + "\n\n")
                    f.write(self.tree_segmenter.rules_text() + "\n")
                exported['segment_rules'] = str(rules_path)
            if self.kmeans_segmenter is not None:
                centroids = self.kmeans_segmenter.centroids_frame(
                    self.standardizer.mean_, self.standardizer.scale_
                )
                write_csv('cluster_centroids', centroids, "cluster_centroids.csv")

        report_path = output_dir / output.report_name
        self.build_report().to_json(str(report_path))
        exported['run_report'] = str(report_path)

        for key, path in exported.items():
            logger.info(f"  {key}: {path}")

        self.state['exported'] = True
        return exported

    def build_report(self) -> SegmentationReport:
        """Assemble the run report from the completed stages."""
        self._require('data_loaded', "build a report")

        separation = {}
        for method in ('tree', 'cluster'):
            if method in self.evaluation:
                results = self.evaluation[method]
                separation[method] = {
                    'overall': results['separation'].model_dump(),
                    'by_target': {
                        str(value): score.model_dump()
                        for value, score in results['conditional_separation'].items()
                    },
                }

        kmeans = {}
        if self.kmeans_segmenter is not None:
            result = self.kmeans_segmenter.result_
            kmeans = {
                'params': self.config.clustering.to_params().to_dict(),
                'n_clusters': result.n_clusters,
                'total_within_ss': result.total_within_ss,
                'within_ss': result.within_ss,
                'n_iter': result.n_iter,
                'converged': result.converged,
                'n_reseeds': result.n_reseeds,
                'elbow_suggestion': choose_k_by_elbow(self.elbow),
            }

        target = self.dataset.target
        return SegmentationReport(
            n_records=len(self.dataset),
            n_positive=int(target.sum()),
            features=self.dataset.feature_names,
            tree=self.tree_segmenter.get_summary() if self.tree_segmenter is not None else {},
            kmeans=kmeans,
            separation=separation,
            warnings=list(self.warnings),
        )

    def run_all(self, frame: Optional[pd.DataFrame] = None) -> SegmentationReport:
        """
        Run every stage in order.

        Args:
            frame: Optional in-memory table used instead of the configured source

        Returns:
            The run report
        """
        self.load_data(frame)
        self.standardize()
        self.fit_tree()
        self.fit_kmeans()
        self.evaluate()
        self.export_all()

        report = self.build_report()
        if self.verbose:
            logger.info("=" * 70)
            logger.info("SEGMENTATION COMPLETE")
            logger.info("=" * 70)
            logger.info(self.evaluation['comparison'].to_string())
            for warning in report.warnings:
                logger.warning(warning)
        return report

    def get_state(self) -> Dict[str, bool]:
        """Copy of the stage completion flags."""
        return dict(self.state)
