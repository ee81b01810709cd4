"""auth/ -- Shop accounts: credentials, login tokens and the account store.

Layer rule: auth/ imports from core/ and, in manager.py only, from cache/.
It does NOT import from privilege/.
"""
