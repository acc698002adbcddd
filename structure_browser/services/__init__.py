"""
Service layer: transport, availability index, response aggregation, link
resolution and the search session controller.
"""
