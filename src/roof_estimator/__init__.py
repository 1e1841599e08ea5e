"""
Roof Estimator Package

Roofing cost estimates for the lead funnel and admin tools.
Resolves an intake snapshot into a low / likely / high price range using
configurable pricing rules with a built-in fallback rule table.
"""

__version__ = "1.0.0"
