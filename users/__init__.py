"""users/ -- User identity records and account operations.

Layer rule: users/ imports only stdlib, third-party libraries and core/.
auth/ reads users through UserStore; users/ never imports from auth/ except
for password hashing in accounts.py.
"""
