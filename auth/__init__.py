"""auth/ -- Accounts, password hashing, tokens, and sessions for VideoTube.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, catalog/, or media/.
api/ imports from auth/, not the other way around.
"""
