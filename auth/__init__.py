"""auth/ -- Authentication package for the Registry API.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or registry/.
api/ imports from auth/, not the other way around.
"""
