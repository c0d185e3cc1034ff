"""dgembed: Distance-geometry reconstruction of protein Cα traces.

Turns a sparse set of distance restraints (a residue contact map) into 3-D
coordinates: triangle-inequality bound smoothing infers bounds for every
residue pair, independent sampling or metrization draws concrete distance
matrices from them, and classical scaling embeds each matrix in 3-D.  The
same bound inference scores how much a contact subset tells about the full
contact map.
"""
from .errors import (
    DistanceGeometryError, SparseMatrixError, MatrixShapeError, MatrixIndexError,
    InfeasibleBoundsError, SmoothingConvergenceError, RestraintViolationError,
    DegenerateEmbeddingWarning,
)
from .parameters import ParameterRegistry, DEFAULT_PARAMETERS

# Restraint storage
from .sparse import SparseMatrix
from .bounds import Bound, BoundsMatrix, DenseBounds, ViolationCounts
from .contacts import ContactGraph

# Bound inference & embedding
from .smoothing import (
    BoundsSmoother, smooth_bounds, infer_all_bounds,
    sample_distances, metrize_distances,
)
from .embedding import (
    ScalingMethod, Embedding, Embedder,
    distance_matrix, radius_of_gyration, radius_of_gyration_from_distances,
)
from .reconstruction import (
    ReconstructionConfig, Model, ReconstructionResult, Reconstructor,
)

# Scoring & subset search
from .scoring import (
    score_contact_error, score_distance_error,
    random_subset, random_subset_statistics, SubsetStatistics,
)
from .distiller import Distiller, SubsetScore

# Benchmark & I/O
from .benchmark import (
    kabsch_rmsd, mirror, ModelBenchmark, BenchmarkReport,
    benchmark_reconstruction,
)
from .fetch import fetch_ca_trace, load_ca_trace, parse_mmcif_ca
from .output import (
    result_to_dict, result_to_json, write_ca_pdb,
    read_graph_file, write_graph_file,
)

__all__ = [
    # Errors
    "DistanceGeometryError", "SparseMatrixError", "MatrixShapeError",
    "MatrixIndexError", "InfeasibleBoundsError", "SmoothingConvergenceError",
    "RestraintViolationError", "DegenerateEmbeddingWarning",
    # Parameters
    "ParameterRegistry", "DEFAULT_PARAMETERS",
    # Restraint storage
    "SparseMatrix", "Bound", "BoundsMatrix", "DenseBounds", "ViolationCounts",
    "ContactGraph",
    # Bound inference
    "BoundsSmoother", "smooth_bounds", "infer_all_bounds",
    "sample_distances", "metrize_distances",
    # Embedding
    "ScalingMethod", "Embedding", "Embedder",
    "distance_matrix", "radius_of_gyration", "radius_of_gyration_from_distances",
    # Reconstruction
    "ReconstructionConfig", "Model", "ReconstructionResult", "Reconstructor",
    # Scoring
    "score_contact_error", "score_distance_error",
    "random_subset", "random_subset_statistics", "SubsetStatistics",
    "Distiller", "SubsetScore",
    # Benchmark
    "kabsch_rmsd", "mirror", "ModelBenchmark", "BenchmarkReport",
    "benchmark_reconstruction",
    # I/O
    "fetch_ca_trace", "load_ca_trace", "parse_mmcif_ca",
    "result_to_dict", "result_to_json", "write_ca_pdb",
    "read_graph_file", "write_graph_file",
]
