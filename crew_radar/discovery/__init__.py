"""
Discovery pipeline: privacy-aware plotting, proximity filtering and the
per-view session that ties them to a map surface.
"""
