"""posts/ -- Local mirror of an external posts feed.

Layer rule: posts/ imports only stdlib, third-party libraries and core/.
"""
