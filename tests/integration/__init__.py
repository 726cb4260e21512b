"""
Integration Tests Package

End-to-end harness for the provenance service and its dict mappers.

TEST AXIOMS:
=============
1. Every view renders, whatever the state of the collaborators
2. Writes are visible through every read path
"""
