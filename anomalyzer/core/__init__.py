"""Core primitives: windows, statistical tests, buffers, ensemble evaluation.

The ensemble splits a series into a historical reference window and a recent
active window, scores the pair with independent tests, and folds the scores
into one weighted probability.
"""
