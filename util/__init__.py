"""
This module provides utility functions for the solvers: colored
terminal output, timers, and runtime parameter handling.
"""

__all__ = ['msg', 'profile', 'runparams']
