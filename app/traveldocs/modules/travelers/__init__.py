"""
Travelers module.

Traveler records for the travel-document workflow: profile fields, lock
status, question answers and file attachments, plus one invoice per traveler.
Mutations are recorded to the append-only audit trail.
"""

# Load the shared Base (and with it every model) before this module's models.
import app.traveldocs.models  # noqa: E402,F401
