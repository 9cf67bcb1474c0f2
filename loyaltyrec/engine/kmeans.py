"""K-means clustering of product feature vectors.

Lloyd's algorithm over squared Euclidean distance with randomized seeding.
Initial centroids are sampled from the data with a bounded number of
re-draws to avoid picking the same vector twice, and a centroid that loses
all its members is re-seeded from a random vector. Pass ``random_state`` to
make runs reproducible.
"""

import logging
from typing import Optional, Set, Union

import numpy as np
from sklearn.metrics.pairwise import euclidean_distances
from sklearn.utils import check_random_state

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_N_CLUSTERS = 8
DEFAULT_MAX_ITER = 80
DEFAULT_SEED_RETRIES = 10

RandomStateLike = Optional[Union[int, np.random.RandomState]]


def effective_k(requested_k: int, n_products: int) -> int:
    """Cap the number of clusters so each can be meaningfully populated."""
    return max(1, min(requested_k, max(1, n_products // 2)))


class KMeansClusterer:
    """Lloyd's k-means with retry-based seeding and empty-cluster re-seeding.

    Follows the scikit-learn estimator conventions: ``fit`` returns the
    estimator and results are exposed as ``labels_``, ``cluster_centers_``
    and ``n_iter_``.
    """

    def __init__(
        self,
        n_clusters: int = DEFAULT_N_CLUSTERS,
        max_iter: int = DEFAULT_MAX_ITER,
        seed_retries: int = DEFAULT_SEED_RETRIES,
        random_state: RandomStateLike = None,
    ):
        if n_clusters < 1:
            raise ValueError(f"n_clusters must be at least 1, got {n_clusters}")
        if max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {max_iter}")

        self.n_clusters = n_clusters
        self.max_iter = max_iter
        self.seed_retries = seed_retries
        self.random_state = random_state

    def _init_centroids(
        self, vectors: np.ndarray, rng: np.random.RandomState
    ) -> np.ndarray:
        n_samples = vectors.shape[0]
        used: Set[int] = set()
        seeds = []
        for _ in range(self.n_clusters):
            idx = int(rng.randint(n_samples))
            tries = 0
            while idx in used and tries < self.seed_retries:
                idx = int(rng.randint(n_samples))
                tries += 1
            used.add(idx)
            seeds.append(idx)
        return vectors[seeds].astype(np.float64, copy=True)

    def fit(self, vectors: np.ndarray) -> "KMeansClusterer":
        """Cluster the rows of ``vectors``.

        Args:
            vectors: Array of shape (n_samples, n_features).

        Returns:
            The fitted clusterer.

        Raises:
            ValueError: If ``vectors`` is empty.
        """
        vectors = np.asarray(vectors, dtype=np.float64)
        if vectors.ndim != 2 or vectors.shape[0] == 0:
            raise ValueError("Cannot cluster an empty set of vectors")

        rng = check_random_state(self.random_state)
        n_samples = vectors.shape[0]

        centroids = self._init_centroids(vectors, rng)
        labels = np.full(n_samples, -1, dtype=np.int64)
        n_iter = 0

        for n_iter in range(1, self.max_iter + 1):
            # Assignment step; argmin keeps the first centroid on ties
            distances = euclidean_distances(vectors, centroids, squared=True)
            new_labels = distances.argmin(axis=1)
            moved = int(np.count_nonzero(new_labels != labels))
            labels = new_labels

            # Update step
            for cluster in range(self.n_clusters):
                members = vectors[labels == cluster]
                if members.shape[0] == 0:
                    centroids[cluster] = vectors[rng.randint(n_samples)]
                    logger.debug(
                        "Re-seeded empty cluster",
                        extra={"cluster": cluster, "iteration": n_iter},
                    )
                else:
                    centroids[cluster] = members.mean(axis=0)

            if moved == 0:
                break

        self.labels_ = labels
        self.cluster_centers_ = centroids
        self.n_iter_ = n_iter

        logger.info(
            "K-means finished",
            extra={
                "num_samples": n_samples,
                "n_clusters": self.n_clusters,
                "clusters_used": int(np.unique(labels).size),
                "n_iter": n_iter,
            },
        )

        return self

    def fit_predict(self, vectors: np.ndarray) -> np.ndarray:
        """Fit and return the cluster label of each row."""
        return self.fit(vectors).labels_
