"""
Provider matching.

Ranks approved providers for a service request with a weighted 0-100 score
built from service match, reputation, experience, location, availability,
pricing fit and recent performance.
"""
