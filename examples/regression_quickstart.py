import numpy as np
from time import perf_counter
from cartpy import CARTRegressor, DatasetView, ParameterGrid, deadline, select_best, tune

rng = np.random.default_rng(0)
X = rng.uniform(-3, 3, size=(400, 4))
y = np.sin(X[:, 0]) * 5 + np.where(X[:, 1] > 1, 4.0, 0.0) + rng.normal(0, 0.5, 400)

reg = CARTRegressor(min_samples_split=20, min_samples_leaf=5,
                    feature_names=["x0", "x1", "x2", "x3"])
t0 = perf_counter(); reg.fit(X, y); print(f"fit: {perf_counter()-t0:.3f} s")
print("depth:", reg.get_depth(), "leaves:", reg.get_n_leaves())

# hand-picked pairs instead of a full product
grid = ParameterGrid.from_points(
    [(3, 1, 0.0), (5, 5, 0.0), (8, 5, 0.01), (None, 10, 0.05)],
    names=["max_depth", "min_samples_leaf", "cost_complexity_alpha"],
)
ds = DatasetView(X, y, task="regression", feature_names=["x0", "x1", "x2", "x3"])
results = tune(ds, grid, k=5, metric="mse", criterion="variance", seed=0,
               should_stop=deadline(30.0))
best = select_best(results)
print(f"best mse={best.mean:.4f} (+/- {best.std_error:.4f}) with {best.params}")
