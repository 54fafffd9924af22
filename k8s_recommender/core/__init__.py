"""
Core module for the K8s Solution Recommender.

This module contains the resource-solution assembly pipeline: capability and
pattern retrieval over the vector index, schema-driven dependency discovery,
hierarchy classification and the two-pass reasoning orchestrator.
"""

from k8s_recommender.core.orchestrator import ResourceRecommender, create_recommender

__all__ = [
    "ResourceRecommender",
    "create_recommender",
]
