"""Data handling and retrieval modules.

The reference store (``circprofiler.data.mirna_manager``) and the target
loaders (``circprofiler.data.targets``) depend on the models package and are
imported from their own modules.
"""

from .base import FastaUtils, SequenceUtils

__all__ = [
    "FastaUtils",
    "SequenceUtils",
]
