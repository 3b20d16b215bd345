# Supabase tables: profiles, referrals
# This file documents the expected database schema
# Actual operations are handled through the row accessor in service.py

"""
Expected Supabase table structure:

profiles:
- id: uuid (primary key, same as auth.users.id)
- username: text (not null)
- avatar_url: text (nullable)
- total_sessions: integer (default: 0)
- total_checkins: integer (default: 0)
- reliability_score: numeric (default: 0)
- streak_days: integer (default: 0)
- xp: integer (default: 0)
- level: integer (default: 1)
- referral_code: text (nullable, unique)
- created_at: timestamp (default: now())

referrals:
- id: uuid (primary key)
- referrer_id: uuid (foreign key to profiles.id, not null)
- referred_id: uuid (foreign key to profiles.id, nullable)
- referral_code: text (not null)
- status: text (default: 'pending') - values: pending, signed_up, converted
- reward_claimed: boolean (default: false)
- created_at: timestamp (default: now())

get_referral_stats(p_user_id uuid) -> json:
- optional database function; returns the same fields as ReferralStats
"""
