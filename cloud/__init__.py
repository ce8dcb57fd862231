"""
cloud/ - Remote Store Layer
===========================
Adapters for Firebase: the per-user Firestore bill collection and the
Firebase Auth identity record. Nothing here knows about the local store.
"""
