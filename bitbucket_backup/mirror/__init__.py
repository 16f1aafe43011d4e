"""
Mirror — Keep local clones of every workspace repository current.

This package holds the git plumbing, the per-repository synchronizer and
the post-run verifier.
"""
