"""media/ -- Client for the remote media host (avatar and cover-image uploads).

Layer rule: media/ imports only stdlib and third-party libraries.
"""
