"""
TappHA Analytics.

Smart-home analytics and recommendation engine: statistical, frequency and
correlation analysis of device time series, behavioral pattern, anomaly and
prediction summaries, and ranked, explainable automation recommendations.
"""

__version__ = "0.1.0"
