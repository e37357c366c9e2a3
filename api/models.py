# Models are stored in Firebase Firestore, not the Django database.
# This file is kept for Django app structure compatibility.
#
# See firebase_service.py for the Firestore collections and their fields.
