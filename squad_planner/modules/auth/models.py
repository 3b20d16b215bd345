# Supabase Auth
# Identity comes from Supabase's built-in authentication system; token issuance
# (sign up, sign in, refresh) happens outside this service.

"""
Supabase Auth provides:
- auth.get_user() - Resolve the caller from a JWT access token

The resolved user is narrowed to an Identity (id, email, username from
user_metadata). Profile data lives in the public.profiles table, see
squad_planner.modules.profiles.models.
"""
