"""Schema-driven data mapping engine.

Applies declarative mapping projects to source datasets in batches,
creating or updating the target dataset.
"""

__version__ = "0.1.0"
