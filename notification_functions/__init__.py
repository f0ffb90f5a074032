"""Firestore-triggered push and email notification handlers."""
