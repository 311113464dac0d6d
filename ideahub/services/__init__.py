"""
Service layer — all business rules and every ``commit`` live here.

Blueprints parse input, call one service function and serialise the result;
they never touch ``db.session``.
"""
