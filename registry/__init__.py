"""registry/ -- Reference-data registry (roles, areas, countries, ...).

Layer rule: registry/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or auth/; the Referential Guard receives the
credential store as a collaborator instead.
"""
