"""
Persistence helpers.

Every function takes the SQLAlchemy Session explicitly; none of them
commit. Transaction boundaries belong to the caller (see
rallyelo.db.session.unit_of_work).
"""
