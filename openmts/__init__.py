"""OpenMTS inventory core: material batches and their transaction logs."""

__version__ = "1.0.0"
