"""Chat, jam-session, upload and Spotify logic behind the routes.

Services take a Session plus plain arguments, raise ApiError subclasses for
client mistakes and commit through ``lumi.db.session.transaction``.
"""
