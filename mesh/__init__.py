"""
This is the general mesh module for the AMR solver.  It implements the
index boxes that describe a level, the single-patch grid and data
objects, the multi-patch level data and interpolation between levels,
and the reconstruction (limiting) routines.
"""

__all__ = ['array_indexer', 'boundary', 'box', 'multipatch', 'patch',
           'reconstruction']
