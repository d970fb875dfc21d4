"""Video transcript indexing pipeline.

This package extracts YouTube video transcripts, chunks them at two
granularities, and indexes the chunks into per-user search collections,
driving each video through its lifecycle with durable, retried job steps.
"""
