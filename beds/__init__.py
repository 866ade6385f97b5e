"""Bed registry and occupancy synchronization for the ward.

This app owns the canonical list of beds and keeps each bed's
``occupied`` flag derived from the patients currently assigned to it.
Patient records are owned by the patient-management side; the app only
listens to changes of their bed reference.
"""
