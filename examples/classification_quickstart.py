import numpy as np
from time import perf_counter
from cartpy import CARTClassifier, TreeGridSearch, enable_logging

rng = np.random.default_rng(42)
n = 600
age = rng.uniform(18, 80, n)
fare = rng.exponential(30, n)
cabin = rng.choice(["first", "second", "third"], n, p=[0.2, 0.3, 0.5])
logit = 0.04 * (50 - age) + 0.02 * fare + np.select([cabin == "first", cabin == "second"], [1.5, 0.5], -1.0)
y = (logit + rng.normal(0, 1, n) > 0).astype(int)

feats = ["age", "fare", "cabin"]
X = np.empty((n, 3), dtype=object)
X[:, 0], X[:, 1], X[:, 2] = age, fare, cabin

clf = CARTClassifier(
    criterion="gini", min_samples_split=40, min_samples_leaf=10,
    feature_names=feats, categorical_features=["cabin"],
)
t0 = perf_counter(); clf.fit(X, y); print(f"fit: {perf_counter()-t0:.3f} s")
clf.print_tree(class_names=["No", "Yes"])

path = clf.cost_complexity_pruning_path(X, y)
print("alphas:", np.round(path.ccp_alphas, 4))
print("leaves:", path.n_leaves)

grid = {
    "max_depth": [2, 4, None],
    "min_samples_leaf": [1, 5, 20],
    "cost_complexity_alpha": [0.0, 0.005, 0.02],
}
with enable_logging(level="INFO"):
    search = TreeGridSearch(grid, cv=5, scoring="accuracy", random_state=42,
                            feature_names=feats, categorical_features=["cabin"], n_jobs=-1)
    t0 = perf_counter(); search.fit(X, y); print(f"search: {perf_counter()-t0:.3f} s")

for c in search.results_[:5]:
    print(f"{c.mean:.4f} +/- {c.std_error:.4f}  {c.params}")
for rule in search.best_estimator_.export_rules(class_names=["No", "Yes"]):
    print(rule)
