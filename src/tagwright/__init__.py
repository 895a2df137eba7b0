"""
Tagwright: Versioned Asset Tag Rewriter

A utility for rewriting asset tags in HTML documents: expanding globbed
script sources, injecting fallback loaders and stamping URLs with
content-hash version query strings for cache busting.
"""

__version__ = "0.1.0"
__author__ = "Tagwright Project"
__description__ = "Versioned Asset Tag Rewriter"
