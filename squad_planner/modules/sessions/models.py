# Supabase tables: sessions, session_rsvps, session_checkins
# This file documents the expected database schema
# Actual operations are handled through the row accessor in service.py

"""
Expected Supabase table structure:

sessions:
- id: uuid (primary key)
- squad_id: uuid (foreign key to squads.id, not null)
- title: text (nullable)
- game: text (nullable)
- scheduled_at: timestamptz (not null)
- duration_minutes: integer (default: 120)
- status: text (not null, default: 'proposed') - values: proposed, confirmed, cancelled, completed
- created_by: uuid (foreign key to profiles.id, not null)
- auto_confirm_threshold: integer (default: 3)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

session_rsvps:
- id: uuid (primary key)
- session_id: uuid (foreign key to sessions.id, not null)
- user_id: uuid (foreign key to profiles.id, not null)
- response: text (not null) - values: present, absent, maybe
- responded_at: timestamp (default: now())
- unique constraint on (session_id, user_id); later answers overwrite the row

session_checkins:
- id: uuid (primary key)
- session_id: uuid (foreign key to sessions.id, not null)
- user_id: uuid (foreign key to profiles.id, not null)
- status: text (default: 'present') - values: present, late, noshow
- checked_at: timestamp (default: now())
- unique constraint on (session_id, user_id); rows are never updated
"""
