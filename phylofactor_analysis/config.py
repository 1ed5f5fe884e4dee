"""
Central configuration for the phylofactor analysis library.
"""

# --- Data Preparation ---

# Pseudocount substituted for zero counts before any log transform.
# 0.65 is the conventional value used in the sequence-count tutorials.
PSEUDOCOUNT: float = 0.65

# Branch length assigned to edges whose length is unknown.
DEFAULT_BRANCH_LENGTH: float = 1.0

# --- Factorization Parameters ---

# Objective used to rank candidate edges.
# Options:
#   "var":      explained sum of squares of the contrast regressed on the covariate
#   "F":        F-statistic of that regression
#   "variance": sample variance of the contrast (no covariate needed)
DEFAULT_OBJECTIVE: str = "var"

# Significance level for the Kolmogorov-Smirnov stopping rule.
# Factorization stops once the candidate p-values are indistinguishable from
# Uniform(0, 1), i.e. when the KS p-value is strictly greater than KS_ALPHA.
KS_ALPHA: float = 0.01

# Significance level for Benjamini-Hochberg adjusted factor p-values in summaries.
SIGNIFICANCE_ALPHA: float = 0.05

# Whether the partitioner requires a strictly bifurcating tree by default.
# Node-keyed transforms always require one.
REQUIRE_BIFURCATING: bool = False

# --- Parallelism ---

# Environment variable that overrides the number of scoring workers
# (e.g. "1" to disable parallelism).
N_JOBS_ENV: str = "PHYLOFACTOR_N_JOBS"

# Candidate sets smaller than this are always scored sequentially.
MIN_CANDIDATES_FOR_PARALLEL: int = 32

# --- Numerical ---

# Tolerance used when comparing floating point contrasts.
EPSILON: float = 1e-9
