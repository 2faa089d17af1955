"""auth/ -- Session lifecycle and request authentication for SessionGate.

Layer rule: auth/ imports only stdlib, third-party libraries, core/ and the
UserStore from users/. It does NOT import from api/ or posts/.
api/ imports from auth/, not the other way around.
"""
