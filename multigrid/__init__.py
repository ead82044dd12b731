"""
This is the pyro-style multigrid solver, along with the masked
conjugate gradient solvers used on levels that do not cover their
whole domain or whose size is not a power of 2.
"""

__all__ = ['MG', 'variable_coeff_MG', 'edge_coeffs', 'masked_cg']
