"""Stationary log returns, fixed-candidate ARMA selection and residual diagnostics."""

__version__ = "0.1.0"
