"""
Errors and warnings raised by cartpy.

All errors inherit from ``CartError``.  Input errors also subclass
``ValueError`` so that code written against scikit-learn conventions keeps
working::

    try:
        tune(dataset, grid, k=1)
    except ValueError:
        ...

Warnings inherit from ``CartWarning`` so callers can silence the whole
family with a single filter::

    import warnings
    from cartpy import CartWarning
    warnings.filterwarnings('ignore', category=CartWarning)
"""


class CartError(Exception):
    """Base class for all cartpy errors."""


class InvalidInputError(CartError, ValueError):
    """
    Raised when a dataset, grid or configuration value is structurally
    invalid (empty dataset, ragged rows, ``k < 2``, empty grid, ...).

    These are detected at the boundary, before any tree is built.
    """


class EmptyCandidateSetError(CartError, ValueError):
    """Raised when a selection is requested over zero candidates."""


class CartWarning(UserWarning):
    """Base class for all cartpy warnings."""


class DegenerateFoldWarning(CartWarning):
    """
    Warning emitted when a metric is undefined on one or more validation
    folds (e.g. ROC AUC on a fold holding a single class).  The affected
    scores are recorded as NaN and excluded from the aggregated mean.
    """
