"""Relevance scoring, aggregation and note template fields."""
